from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.deps import CurrentUser, get_current_user
from app.db.session import get_db
from app.schemas.accounts import UsageRead, UserRead
from app.services.usage import UsageUnavailableError, usage_summary

router = APIRouter()


@router.get("", response_model=UserRead)
def get_me(current: CurrentUser = Depends(get_current_user)):
    user = current.user
    return UserRead(
        id=user.id,
        email=user.email,
        name=user.name,
        role=current.role,
        plan=user.plan,
        is_active=bool(user.is_active),
    )


@router.get("/usage", response_model=UsageRead)
def get_my_usage(
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    try:
        return usage_summary(db, current.user)
    except UsageUnavailableError:
        raise HTTPException(status_code=503, detail="Usage is temporarily unavailable")
