from __future__ import annotations

import logging
import math
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.schemas.forms import FieldDefinition, FormCreate, FormUpdate
from app.services.google_sheets import get_sheets_client
from app.services.plans import can_create_form, limits_for
from app.services.sheet_mirror import sheet_headers
from app.services.usage import owned_form_count

logger = logging.getLogger(__name__)

FORM_LIMIT_REACHED = "FORM_LIMIT_REACHED"


class FormLimitReachedError(Exception):
    code = FORM_LIMIT_REACHED
    message = "Your plan does not allow more forms"


def _to_iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _dump_fields(fields: list[FieldDefinition]) -> list[dict]:
    return [f.model_dump(mode="json", exclude_none=True) for f in fields]


def serialize_form(row: Form) -> dict:
    return {
        "id": row.id,
        "owner_id": row.owner_id,
        "title": row.title,
        "description": row.description,
        "require_email": bool(row.require_email),
        "published": bool(row.published),
        "fields": list(row.fields or []),
        "response_count": int(row.response_count or 0),
        "view_count": int(row.view_count or 0),
        "sheet_id": row.sheet_id,
        "sheet_url": row.sheet_url,
        "created_at": _to_iso(row.created_at),
        "updated_at": _to_iso(row.updated_at),
    }


def serialize_response(row: Response) -> dict:
    return {
        "id": row.id,
        "email": row.email,
        "data": dict(row.data or {}),
        "created_at": _to_iso(row.created_at),
    }


def create_form(db: Session, owner: User, payload: FormCreate) -> Form:
    limits = limits_for(owner.plan)
    if not can_create_form(limits, owned_form_count(db, owner.id)):
        raise FormLimitReachedError()
    row = Form(
        owner_id=owner.id,
        title=payload.title.strip(),
        description=payload.description,
        require_email=payload.require_email,
        published=False,
        fields=_dump_fields(payload.fields),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_form(db: Session, row: Form, payload: FormUpdate) -> tuple[Form, bool]:
    """Apply a partial update; the flag tells whether the field list changed."""
    changes = payload.model_dump(exclude_unset=True, exclude={"fields"})
    for key, value in changes.items():
        if key == "title" and value is not None:
            value = value.strip()
        if key in {"title", "require_email", "published"} and value is None:
            continue
        setattr(row, key, value)
    fields_changed = False
    if payload.fields is not None:
        new_fields = _dump_fields(payload.fields)
        fields_changed = new_fields != list(row.fields or [])
        row.fields = new_fields
    db.add(row)
    db.commit()
    db.refresh(row)
    return row, fields_changed


def delete_form(db: Session, row: Form) -> str | None:
    """Delete the form and every response it owns. Returns the orphaned sheet id, if any."""
    sheet_id = row.sheet_id
    db.execute(delete(Response).where(Response.form_id == row.id))
    db.delete(row)
    db.commit()
    return sheet_id


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "total_pages": math.ceil(total / limit) if total else 0}


def list_owner_forms(db: Session, owner_id: uuid.UUID, *, page: int, limit: int) -> tuple[list[Form], int]:
    total = int(db.execute(select(func.count(Form.id)).where(Form.owner_id == owner_id)).scalar() or 0)
    rows = (
        db.execute(
            select(Form)
            .where(Form.owner_id == owner_id)
            .order_by(Form.updated_at.desc(), Form.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(rows), total


def list_all_forms(db: Session, *, page: int, limit: int) -> tuple[list[tuple[Form, User]], int]:
    total = int(db.execute(select(func.count(Form.id))).scalar() or 0)
    rows = db.execute(
        select(Form, User)
        .join(User, User.id == Form.owner_id)
        .order_by(Form.updated_at.desc(), Form.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return [(form, owner) for form, owner in rows], total


def list_form_responses(db: Session, form_id: uuid.UUID, *, page: int, limit: int) -> tuple[list[Response], int]:
    total = int(db.execute(select(func.count(Response.id)).where(Response.form_id == form_id)).scalar() or 0)
    rows = (
        db.execute(
            select(Response)
            .where(Response.form_id == form_id)
            .order_by(Response.created_at.desc(), Response.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(rows), total


def get_published_form_and_count_view(db: Session, form_id: uuid.UUID) -> Form | None:
    row = db.execute(select(Form).where(Form.id == form_id, Form.published.is_(True))).scalar_one_or_none()
    if row is None:
        return None
    db.execute(
        update(Form)
        .where(Form.id == row.id)
        .values(view_count=Form.view_count + 1, updated_at=Form.updated_at)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return row


# Spreadsheet side effects below run after the HTTP response and open their own
# session; none of them may fail the owning request.

def provision_form_sheet(form_id: uuid.UUID, owner_email: str) -> None:
    db = SessionLocal()
    try:
        row = db.get(Form, form_id)
        if row is None or row.sheet_id:
            return
        fields = [FieldDefinition.model_validate(f) for f in row.fields or []]
        client = get_sheets_client()
        spreadsheet_id, url = client.create_spreadsheet(row.title, sheet_headers(fields))
        client.share(spreadsheet_id, owner_email, "writer")
        row.sheet_id = spreadsheet_id
        row.sheet_url = url
        db.add(row)
        db.commit()
        logger.info("sheet provisioned form_id=%s sheet_id=%s", form_id, spreadsheet_id)
    except Exception:
        db.rollback()
        logger.exception("sheet provisioning failed form_id=%s", form_id)
    finally:
        db.close()


def refresh_sheet_headers(sheet_id: str, fields: list[dict]) -> None:
    try:
        parsed = [FieldDefinition.model_validate(f) for f in fields or []]
        get_sheets_client().update_headers(sheet_id, sheet_headers(parsed))
    except Exception:
        logger.exception("sheet header refresh failed sheet_id=%s", sheet_id)


def remove_sheet(sheet_id: str) -> None:
    try:
        get_sheets_client().delete_spreadsheet(sheet_id)
    except Exception:
        logger.exception("sheet delete failed sheet_id=%s", sheet_id)


def should_provision_sheet(owner: User, row: Form) -> bool:
    return bool(row.fields) and limits_for(owner.plan).has_sheets_export
