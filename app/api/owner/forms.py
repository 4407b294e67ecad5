from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.deps import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.form import Form
from app.schemas.forms import FormAnalytics, FormCreate, FormRead, FormUpdate
from app.services.analytics import form_analytics
from app.services.forms import (
    FormLimitReachedError,
    create_form,
    delete_form,
    list_form_responses,
    list_owner_forms,
    pagination_meta,
    provision_form_sheet,
    refresh_sheet_headers,
    remove_sheet,
    serialize_form,
    serialize_response,
    should_provision_sheet,
    update_form,
)
from app.services.roles import can_access_form

router = APIRouter()



def _form_for_access_or_404(db: Session, current: CurrentUser, form_id: UUID) -> Form:
    row = db.get(Form, form_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Form not found")
    if not can_access_form(current.role, current.user, row):
        raise HTTPException(status_code=403, detail="Forbidden")
    return row


@router.get("")
def list_forms(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    rows, total = list_owner_forms(db, current.id, page=page, limit=limit)
    return {"rows": [serialize_form(r) for r in rows], "pagination": pagination_meta(page, limit, total)}


@router.post("", response_model=FormRead, status_code=201)
def create_owner_form(
    payload: FormCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    try:
        row = create_form(db, current.user, payload)
    except FormLimitReachedError as exc:
        raise HTTPException(status_code=403, detail={"code": exc.code, "message": exc.message})
    if should_provision_sheet(current.user, row):
        background_tasks.add_task(provision_form_sheet, row.id, current.user.email)
    return serialize_form(row)


@router.get("/{form_id}", response_model=FormRead)
def get_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return serialize_form(_form_for_access_or_404(db, current, form_id))


@router.patch("/{form_id}", response_model=FormRead)
def patch_form(
    form_id: UUID,
    payload: FormUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    row = _form_for_access_or_404(db, current, form_id)
    row, fields_changed = update_form(db, row, payload)
    if fields_changed and row.sheet_id:
        background_tasks.add_task(refresh_sheet_headers, row.sheet_id, list(row.fields or []))
    return serialize_form(row)


@router.delete("/{form_id}")
def delete_owner_form(
    form_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    row = db.get(Form, form_id)
    # Owner only, admins cannot delete other users' forms.
    if row is None or row.owner_id != current.id:
        raise HTTPException(status_code=404, detail="Form not found or access denied")
    sheet_id = delete_form(db, row)
    if sheet_id:
        background_tasks.add_task(remove_sheet, sheet_id)
    return {"status": "deleted", "id": str(form_id)}


@router.get("/{form_id}/responses")
def list_responses(
    form_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    row = _form_for_access_or_404(db, current, form_id)
    rows, total = list_form_responses(db, row.id, page=page, limit=limit)
    return {"rows": [serialize_response(r) for r in rows], "pagination": pagination_meta(page, limit, total)}


@router.get("/{form_id}/analytics", response_model=FormAnalytics)
def get_form_analytics(
    form_id: UUID,
    range: str = Query("1M", pattern="^(1W|1M|1Y)$"),
    db: Session = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
):
    row = _form_for_access_or_404(db, current, form_id)
    return form_analytics(db, row.id, range)
