from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.deps import CurrentUser, require_admin, require_super_admin
from app.db.session import get_db
from app.models.form import Form
from app.models.user import User
from app.schemas.accounts import AdminUserRow, UserPlanUpdate, UserRead, UserRoleUpdate
from app.services.forms import pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        plan=user.plan,
        is_active=bool(user.is_active),
    )


@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
):
    total = int(db.execute(select(func.count(User.id))).scalar() or 0)
    form_counts = (
        select(Form.owner_id, func.count(Form.id).label("form_count"))
        .group_by(Form.owner_id)
        .subquery()
    )
    rows = db.execute(
        select(User, func.coalesce(form_counts.c.form_count, 0))
        .outerjoin(form_counts, form_counts.c.owner_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "rows": [
            AdminUserRow(**user_read(user).model_dump(), created_at=user.created_at, form_count=int(count))
            for user, count in rows
        ],
        "pagination": pagination_meta(page, limit, total),
    }


@router.patch("/{user_id}/plan", response_model=UserRead)
def update_user_plan(
    user_id: UUID,
    payload: UserPlanUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_super_admin),
):
    user = _user_or_404(db, user_id)
    previous = user.plan
    user.plan = payload.plan
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("plan changed user_id=%s %s->%s by=%s", user.id, previous, user.plan, admin.id)
    return user_read(user)


@router.patch("/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: UUID,
    payload: UserRoleUpdate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_super_admin),
):
    user = _user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")
    user.role = payload.role
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("role changed user_id=%s role=%s by=%s", user.id, user.role, admin.id)
    return user_read(user)
