from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.admin.users import user_read
from app.core.deps import CurrentUser, require_admin
from app.db.session import get_db
from app.schemas.accounts import AdminFormRow
from app.services.forms import list_all_forms, pagination_meta

router = APIRouter()


@router.get("")
def list_forms(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
):
    rows, total = list_all_forms(db, page=page, limit=limit)
    return {
        "rows": [
            AdminFormRow(
                id=form.id,
                title=form.title,
                description=form.description,
                published=bool(form.published),
                response_count=int(form.response_count or 0),
                view_count=int(form.view_count or 0),
                created_at=form.created_at,
                updated_at=form.updated_at,
                owner=user_read(owner),
            )
            for form, owner in rows
        ],
        "pagination": pagination_meta(page, limit, total),
    }
