from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.common import utcnow
from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.schemas.forms import FieldDefinition
from app.services.admission import Rejected, evaluate, parse_fields
from app.services.plans import PlanTier
from app.services.sheet_mirror import mirror_response
from app.services.usage import monthly_response_count

logger = logging.getLogger(__name__)


class FormNotFoundError(LookupError):
    pass


class SubmissionCommitError(RuntimeError):
    """The response row and counter update were rolled back together."""


@dataclass(frozen=True)
class RequestMetadata:
    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None


@dataclass(frozen=True)
class CommittedSubmission:
    response_id: uuid.UUID
    form_id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    email: str | None
    data: dict[str, Any]
    sheet_id: str | None = None
    fields: tuple[FieldDefinition, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SubmissionResult:
    submission: CommittedSubmission | None = None
    rejection: Rejected | None = None

    @property
    def accepted(self) -> bool:
        return self.submission is not None


PostCommitHook = Callable[[CommittedSubmission], None]


def find_owner_tier(db: Session, owner_id: uuid.UUID) -> str:
    plan = db.execute(select(User.plan).where(User.id == owner_id)).scalar_one_or_none()
    return str(plan or PlanTier.FREE.value)


def commit_response(
    db: Session,
    form: Form,
    *,
    email: str | None,
    data: dict[str, Any],
    metadata: RequestMetadata | None = None,
) -> CommittedSubmission:
    """Insert the response and bump ``Form.response_count`` in one transaction.

    The counter is incremented in SQL, never read-modify-written in Python.
    Any store failure rolls back both effects.
    """
    meta = metadata or RequestMetadata()
    form_id = form.id
    owner_id = form.owner_id
    sheet_id = form.sheet_id
    fields = tuple(parse_fields(form.fields))

    row = Response(
        form_id=form_id,
        email=email,
        data=dict(data),
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
        referrer=meta.referrer,
        created_at=utcnow(),
    )
    try:
        db.add(row)
        db.flush()
        bumped = db.execute(
            update(Form)
            .where(Form.id == form_id)
            .values(response_count=Form.response_count + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise SubmissionCommitError("form no longer exists")
        snapshot = CommittedSubmission(
            response_id=row.id,
            form_id=form_id,
            owner_id=owner_id,
            created_at=row.created_at,
            email=row.email,
            data=dict(row.data),
            sheet_id=sheet_id,
            fields=fields,
        )
        db.commit()
    except SubmissionCommitError:
        db.rollback()
        logger.warning("response commit aborted form_id=%s: form missing", form_id)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("response commit failed form_id=%s", form_id)
        raise SubmissionCommitError("response commit failed") from exc
    return snapshot


def submit_response(
    db: Session,
    form_id: uuid.UUID,
    payload: dict[str, Any],
    metadata: RequestMetadata | None = None,
    *,
    as_of: datetime | None = None,
) -> SubmissionResult:
    form = db.get(Form, form_id)
    if form is None:
        raise FormNotFoundError(str(form_id))

    decision = evaluate(
        form,
        lambda: find_owner_tier(db, form.owner_id),
        payload,
        count_monthly=lambda owner_id, when: monthly_response_count(db, owner_id, when),
        as_of=as_of,
    )
    if isinstance(decision, Rejected):
        logger.info("submission rejected form_id=%s reason=%s", form_id, decision.reason.value)
        return SubmissionResult(rejection=decision)

    committed = commit_response(db, form, email=decision.email, data=decision.data, metadata=metadata)
    logger.info("submission committed form_id=%s response_id=%s", form_id, committed.response_id)
    return SubmissionResult(submission=committed)


def mirror_to_sheet(submission: CommittedSubmission) -> None:
    mirror_response(submission.sheet_id, submission, submission.fields)


DEFAULT_POST_COMMIT_HOOKS: tuple[PostCommitHook, ...] = (mirror_to_sheet,)


def run_post_commit_hooks(
    submission: CommittedSubmission,
    hooks: Iterable[PostCommitHook] | None = None,
) -> None:
    for hook in DEFAULT_POST_COMMIT_HOOKS if hooks is None else hooks:
        try:
            hook(submission)
        except Exception:
            logger.exception(
                "post-commit hook %s failed response_id=%s",
                getattr(hook, "__name__", repr(hook)),
                submission.response_id,
            )
