from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.common import utcnow
from app.models.response import Response

TIME_RANGES = ("1W", "1M", "1Y")
WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
RECENT_LIMIT = 10


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _shift_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, 28)
    return value.replace(year=year, month=month, day=day)


def range_start(time_range: str, now: datetime) -> datetime:
    if time_range == "1W":
        return now - timedelta(days=7)
    if time_range == "1M":
        return _shift_months(now, -1)
    if time_range == "1Y":
        return _shift_months(now, -12)
    raise ValueError(f"Unsupported range: {time_range}")


def bucket_labels(time_range: str, now: datetime) -> list[str]:
    if time_range == "1W":
        return [WEEKDAY_LABELS[(now - timedelta(days=i)).weekday()] for i in range(6, -1, -1)]
    if time_range == "1M":
        return ["Week 1", "Week 2", "Week 3", "Week 4"]
    return [MONTH_LABELS[_shift_months(now, -i).month - 1] for i in range(11, -1, -1)]


def bucket_for(time_range: str, created_at: datetime, now: datetime) -> str:
    if time_range == "1W":
        return WEEKDAY_LABELS[created_at.weekday()]
    if time_range == "1M":
        week_num = (now - created_at).days // 7
        return f"Week {4 - week_num}"
    return MONTH_LABELS[created_at.month - 1]


def group_by_time(created: list[datetime], time_range: str, now: datetime) -> list[dict]:
    counts = {label: 0 for label in bucket_labels(time_range, now)}
    for value in created:
        label = bucket_for(time_range, _aware(value), now)
        # "Week 0" (28+ days back in a 1M range) has no bucket.
        if label in counts:
            counts[label] += 1
    return [{"label": label, "count": count} for label, count in counts.items()]


def form_analytics(db: Session, form_id: uuid.UUID, time_range: str = "1M", now: datetime | None = None) -> dict:
    current = _aware(now or utcnow())
    since = range_start(time_range, current)

    total = int(db.execute(select(func.count(Response.id)).where(Response.form_id == form_id)).scalar() or 0)
    created = (
        db.execute(
            select(Response.created_at)
            .where(Response.form_id == form_id, Response.created_at >= since)
            .order_by(Response.created_at.asc())
        )
        .scalars()
        .all()
    )
    recent = db.execute(
        select(Response.id, Response.email, Response.created_at)
        .where(Response.form_id == form_id)
        .order_by(Response.created_at.desc())
        .limit(RECENT_LIMIT)
    ).all()

    return {
        "form_id": form_id,
        "range": time_range,
        "total_responses": total,
        "responses_by_time": group_by_time(list(created), time_range, current),
        "recent_submissions": [
            {"id": row_id, "email": email or "Anonymous", "date": _aware(created_at).date().isoformat()}
            for row_id, email, created_at in recent
        ],
    }
