from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.form import Form
from app.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_USER, User

ADMIN_ROLES = {ROLE_ADMIN, ROLE_SUPER_ADMIN}


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def is_privileged(email: str | None, allow_list: set[str] | None = None) -> bool:
    normalized = normalize_email(email)
    if not normalized:
        return False
    emails = settings.super_admin_emails_set if allow_list is None else allow_list
    return normalized in emails


def is_admin_role(role: str | None) -> bool:
    return str(role or ROLE_USER) in ADMIN_ROLES


def resolve_role(db: Session, user: User) -> str:
    """Effective role for ``user``; allow-listed emails are promoted in place once."""
    if not is_privileged(user.email):
        return str(user.role or ROLE_USER)
    if user.role == ROLE_SUPER_ADMIN:
        return ROLE_SUPER_ADMIN
    user.role = ROLE_SUPER_ADMIN
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
    else:
        db.refresh(user)
    return ROLE_SUPER_ADMIN


def can_access_form(role: str, user: User, form: Form) -> bool:
    if is_admin_role(role):
        return True
    return form.owner_id == user.id
