from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.http_hardening import client_ip, client_referrer, client_user_agent
from app.db.session import get_db
from app.schemas.forms import PublicFormRead, ResponseCreated, ResponseSubmit
from app.services.admission import RejectionReason
from app.services.forms import get_published_form_and_count_view
from app.services.rate_limit import hit_submission_limit
from app.services.submissions import (
    FormNotFoundError,
    RequestMetadata,
    SubmissionCommitError,
    run_post_commit_hooks,
    submit_response,
)
from app.services.usage import UsageUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter()

RETRY_MESSAGE = "Failed to submit response, please try again"
REJECTION_STATUS = {
    RejectionReason.FORM_NOT_PUBLISHED: 404,
    RejectionReason.INVALID_RESPONSE_DATA: 400,
    RejectionReason.EMAIL_REQUIRED: 400,
    RejectionReason.RESPONSE_LIMIT_REACHED: 403,
}


@router.get("/{form_id}", response_model=PublicFormRead)
def get_public_form(form_id: UUID, db: Session = Depends(get_db)):
    row = get_published_form_and_count_view(db, form_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return PublicFormRead(
        id=row.id,
        title=row.title,
        description=row.description,
        require_email=bool(row.require_email),
        fields=list(row.fields or []),
    )


@router.post("/{form_id}/responses", response_model=ResponseCreated, status_code=201)
def submit_form_response(
    form_id: UUID,
    payload: ResponseSubmit,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    ip = client_ip(request)
    limited = hit_submission_limit(ip, str(form_id))
    if not limited.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many submissions, try again later",
            headers={"Retry-After": str(limited.retry_after_seconds)},
        )

    metadata = RequestMetadata(
        ip_address=ip,
        user_agent=client_user_agent(request),
        referrer=client_referrer(request),
    )
    try:
        result = submit_response(db, form_id, payload.model_dump(), metadata)
    except FormNotFoundError:
        raise HTTPException(status_code=404, detail="Form not found")
    except UsageUnavailableError:
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)
    except SubmissionCommitError:
        raise HTTPException(status_code=500, detail=RETRY_MESSAGE)
    except SQLAlchemyError:
        logger.exception("submission lookup failed form_id=%s", form_id)
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)

    if result.rejection is not None:
        raise HTTPException(
            status_code=REJECTION_STATUS[result.rejection.reason],
            detail=result.rejection.as_detail(),
        )

    submission = result.submission
    background_tasks.add_task(run_post_commit_hooks, submission)
    return ResponseCreated(id=submission.response_id, created_at=submission.created_at.isoformat())
