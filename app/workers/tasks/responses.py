from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select, update

from app.db.session import SessionLocal
from app.models.form import Form
from app.models.response import Response
from app.schemas.forms import FieldDefinition
from app.services.google_sheets import get_sheets_client
from app.services.sheet_mirror import build_sheet_row
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

BACKFILL_BATCH = 500


@celery_app.task(name="app.workers.tasks.responses.reconcile_response_counts")
def reconcile_response_counts():
    """Reset each form's denormalized counter to its row count in one UPDATE statement."""
    db = SessionLocal()
    try:
        actual = (
            select(func.count(Response.id))
            .where(Response.form_id == Form.id)
            .correlate(Form)
            .scalar_subquery()
        )
        fixed = db.execute(
            update(Form)
            .where(Form.response_count != actual)
            .values(response_count=actual)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.commit()
        if fixed:
            logger.warning("response_count drift fixed forms=%s", fixed)
        return {"fixed_forms": int(fixed or 0)}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="app.workers.tasks.responses.backfill_form_sheet")
def backfill_form_sheet(form_id: str):
    """Append every stored response of a form to its sheet, oldest first."""
    db = SessionLocal()
    try:
        form = db.get(Form, uuid.UUID(str(form_id)))
        if form is None or not form.sheet_id:
            return {"appended": 0}
        fields = [FieldDefinition.model_validate(f) for f in form.fields or []]
        sink = get_sheets_client()
        appended = 0
        offset = 0
        while True:
            rows = (
                db.execute(
                    select(Response)
                    .where(Response.form_id == form.id)
                    .order_by(Response.created_at.asc(), Response.id.asc())
                    .offset(offset)
                    .limit(BACKFILL_BATCH)
                )
                .scalars()
                .all()
            )
            if not rows:
                break
            sink.append_rows(form.sheet_id, [build_sheet_row(r.created_at, r.email, r.data, fields) for r in rows])
            appended += len(rows)
            offset += len(rows)
        return {"appended": appended}
    finally:
        db.close()
