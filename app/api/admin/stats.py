from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from app.core.deps import CurrentUser, require_admin
from app.db.session import get_db
from app.models.common import utcnow
from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.schemas.accounts import AdminStats

router = APIRouter()

ACTIVE_WINDOW_DAYS = 30


def _count(db: Session, stmt) -> int:
    return int(db.execute(stmt).scalar() or 0)


@router.get("", response_model=AdminStats)
def get_stats(db: Session = Depends(get_db), admin: CurrentUser = Depends(require_admin)):
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    active_since = now - timedelta(days=ACTIVE_WINDOW_DAYS)
    return AdminStats(
        total_users=_count(db, select(func.count(User.id))),
        total_forms=_count(db, select(func.count(Form.id))),
        total_responses=_count(db, select(func.count(Response.id))),
        # Users who own a form that received a response in the window.
        active_users=_count(
            db,
            select(func.count(distinct(Form.owner_id)))
            .join(Response, Response.form_id == Form.id)
            .where(Response.created_at >= active_since),
        ),
        forms_today=_count(db, select(func.count(Form.id)).where(Form.created_at >= today)),
        responses_today=_count(db, select(func.count(Response.id)).where(Response.created_at >= today)),
    )
