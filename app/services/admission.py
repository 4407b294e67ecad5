"""Admission of public form submissions.

``evaluate`` runs the checks in a fixed order and stops at the first
rejection: publication, payload shape, email, then the monthly plan quota.
Only the quota check reads the store, and it is skipped for unlimited tiers.

The quota is a soft limit. The count is read before the commit transaction
starts, so concurrent submissions near the boundary can all pass and push an
owner slightly over the nominal monthly limit.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable
from urllib.parse import urlsplit

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError

from app.core.config import settings
from app.models.common import utcnow
from app.schemas.forms import FieldDefinition, FieldType
from app.services.plans import PlanTier, is_unlimited, limits_for


class RejectionReason(str, Enum):
    FORM_NOT_PUBLISHED = "FORM_NOT_PUBLISHED"
    INVALID_RESPONSE_DATA = "INVALID_RESPONSE_DATA"
    EMAIL_REQUIRED = "EMAIL_REQUIRED"
    RESPONSE_LIMIT_REACHED = "RESPONSE_LIMIT_REACHED"


REJECTION_MESSAGES = {
    RejectionReason.FORM_NOT_PUBLISHED: "Form not found or not published",
    RejectionReason.INVALID_RESPONSE_DATA: "Invalid response data",
    RejectionReason.EMAIL_REQUIRED: "A valid email is required for this form",
    RejectionReason.RESPONSE_LIMIT_REACHED: "This form is not accepting more responses this month",
}


@dataclass(frozen=True)
class Accepted:
    data: dict[str, Any]
    email: str | None = None


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    message: str
    details: dict[str, str] = field(default_factory=dict)

    def as_detail(self) -> dict:
        body: dict[str, Any] = {"code": self.reason.value, "message": self.message}
        if self.details:
            body["details"] = dict(self.details)
        return body


Decision = Accepted | Rejected
MonthlyCounter = Callable[[uuid.UUID, datetime], int]
TierSource = PlanTier | str | Callable[[], PlanTier | str]


def reject(reason: RejectionReason, details: dict[str, str] | None = None) -> Rejected:
    return Rejected(reason=reason, message=REJECTION_MESSAGES[reason], details=dict(details or {}))


# Field-level validators return (cleaned_value, error). A cleaned value of
# None means the field is left out of the stored data.
_FieldResult = tuple[Any, str | None]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _validate_text(definition: FieldDefinition, value: Any) -> _FieldResult:
    if not isinstance(value, str):
        return None, f"{definition.label} must be text"
    return value, None


def _validate_single_choice(definition: FieldDefinition, value: Any) -> _FieldResult:
    if not isinstance(value, str):
        return None, f"{definition.label} must be a single option"
    if definition.options and value not in definition.options:
        return None, f"{definition.label} must be one of the listed options"
    return value, None


def _validate_multi_choice(definition: FieldDefinition, value: Any) -> _FieldResult:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return None, f"{definition.label} must be a list of options"
    if any(not item.strip() or settings.SHEET_MULTI_VALUE_DELIMITER in item for item in value):
        return None, f"{definition.label} contains an invalid option"
    if definition.options and any(item not in definition.options for item in value):
        return None, f"{definition.label} must only use the listed options"
    if definition.required and not value:
        return None, f"Select at least one option for {definition.label}"
    return list(value), None


def _validate_file_url(definition: FieldDefinition, value: Any) -> _FieldResult:
    if not isinstance(value, str):
        return None, f"{definition.label} must be a file URL"
    parts = urlsplit(value.strip())
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return None, "Invalid file URL"
    return value.strip(), None


_VALIDATORS: dict[FieldType, Callable[[FieldDefinition, Any], _FieldResult]] = {
    FieldType.SHORT_TEXT: _validate_text,
    FieldType.LONG_TEXT: _validate_text,
    FieldType.MULTIPLE_CHOICE: _validate_single_choice,
    FieldType.DROPDOWN: _validate_single_choice,
    FieldType.CHECKBOXES: _validate_multi_choice,
    FieldType.IMAGE: _validate_file_url,
    FieldType.FILE_UPLOAD: _validate_file_url,
}


@dataclass(frozen=True)
class ValidationOutcome:
    data: dict[str, Any]
    errors: dict[str, str]

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_fields(raw_fields: Iterable[Any] | None) -> list[FieldDefinition]:
    parsed: list[FieldDefinition] = []
    for raw in raw_fields or []:
        parsed.append(raw if isinstance(raw, FieldDefinition) else FieldDefinition.model_validate(raw))
    return parsed


def build_response_validator(fields: Iterable[FieldDefinition]) -> Callable[[dict[str, Any]], ValidationOutcome]:
    """Compile a field list into a routine that checks one submitted ``data`` mapping.

    Layout fields and keys that match no field are dropped from the result.
    """
    data_fields = [f for f in fields if not f.is_layout]

    def _validate(data: dict[str, Any]) -> ValidationOutcome:
        payload = data if isinstance(data, dict) else {}
        cleaned: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for definition in data_fields:
            value = payload.get(definition.id)
            if _is_blank(value):
                if definition.required:
                    errors[definition.id] = f"{definition.label} is required"
                continue
            value_out, error = _VALIDATORS[definition.type](definition, value)
            if error:
                errors[definition.id] = error
                continue
            cleaned[definition.id] = value_out
        return ValidationOutcome(data=cleaned, errors=errors)

    return _validate


def normalize_email(raw: Any) -> str | None:
    """Return the normalized address, or None when ``raw`` is not a syntactically valid email."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return validate_email(raw.strip(), check_deliverability=False).normalized
    except EmailNotValidError:
        return None


def evaluate(
    form: Any,
    owner_tier: TierSource,
    payload: dict[str, Any],
    *,
    count_monthly: MonthlyCounter,
    as_of: datetime | None = None,
) -> Decision:
    if not bool(getattr(form, "published", False)):
        return reject(RejectionReason.FORM_NOT_PUBLISHED)

    try:
        fields = parse_fields(getattr(form, "fields", None))
    except ValidationError:
        return reject(RejectionReason.INVALID_RESPONSE_DATA, {"_form": "Form definition is invalid"})

    outcome = build_response_validator(fields)(payload.get("data") or {})
    errors = dict(outcome.errors)

    raw_email = payload.get("email")
    email = normalize_email(raw_email)
    require_email = bool(getattr(form, "require_email", False))
    if not require_email and not _is_blank(raw_email) and email is None:
        errors["email"] = "Invalid email address"
    if errors:
        return reject(RejectionReason.INVALID_RESPONSE_DATA, errors)

    if require_email and email is None:
        return reject(RejectionReason.EMAIL_REQUIRED)

    # Callable tiers are resolved only after the checks above pass.
    limits = limits_for(owner_tier() if callable(owner_tier) else owner_tier)
    if not is_unlimited(limits.max_responses_per_month):
        used = count_monthly(form.owner_id, as_of or utcnow())
        if used >= limits.max_responses_per_month:
            return reject(RejectionReason.RESPONSE_LIMIT_REACHED)

    return Accepted(data=outcome.data, email=email)
