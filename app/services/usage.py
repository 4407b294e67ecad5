from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.common import utcnow
from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.services.plans import can_accept_response, can_create_form, limits_for

logger = logging.getLogger(__name__)


class UsageUnavailableError(RuntimeError):
    """The usage store could not be read; admission must fail closed."""


def month_start(as_of: datetime) -> datetime:
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    as_of = as_of.astimezone(timezone.utc)
    return as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def next_month_start(as_of: datetime) -> datetime:
    start = month_start(as_of)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def monthly_response_count(db: Session, owner_id: uuid.UUID, as_of: datetime | None = None) -> int:
    """Responses created during ``as_of``'s calendar month across every form of ``owner_id``."""
    now = as_of or utcnow()
    since, until = month_start(now), next_month_start(now)
    stmt = (
        select(func.count(Response.id))
        .join(Form, Form.id == Response.form_id)
        .where(
            Form.owner_id == owner_id,
            Response.created_at >= since,
            Response.created_at < until,
        )
    )
    try:
        return int(db.execute(stmt).scalar() or 0)
    except SQLAlchemyError as exc:
        logger.error("usage count failed owner=%s error=%s", owner_id, exc.__class__.__name__)
        raise UsageUnavailableError("monthly usage unavailable") from exc


def owned_form_count(db: Session, owner_id: uuid.UUID) -> int:
    return int(db.execute(select(func.count(Form.id)).where(Form.owner_id == owner_id)).scalar() or 0)


def usage_summary(db: Session, user: User, as_of: datetime | None = None) -> dict:
    now = as_of or utcnow()
    limits = limits_for(user.plan)
    forms_count = owned_form_count(db, user.id)
    monthly = monthly_response_count(db, user.id, now)
    return {
        "plan": str(user.plan),
        "limits": limits.as_dict(),
        "forms_count": forms_count,
        "monthly_responses": monthly,
        "period_start": month_start(now).isoformat(),
        "can_create_form": can_create_form(limits, forms_count),
        "can_accept_response": can_accept_response(limits, monthly),
    }
