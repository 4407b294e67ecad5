from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from app.core.config import settings
from app.schemas.forms import FieldDefinition, FieldType
from app.services.google_sheets import get_sheets_client

logger = logging.getLogger(__name__)


class ResponseRecord(Protocol):
    created_at: datetime
    email: str | None
    data: dict[str, Any]


class SheetRowSink(Protocol):
    def append_row(self, spreadsheet_id: str, row: list[str]) -> None:
        ...


def data_fields(fields: Iterable[FieldDefinition]) -> list[FieldDefinition]:
    return [f for f in fields if not f.is_layout]


def sheet_headers(fields: Iterable[FieldDefinition]) -> list[str]:
    return ["Timestamp", "Email", *[f.label for f in data_fields(fields)]]


def _iso_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return settings.SHEET_MULTI_VALUE_DELIMITER.join(str(item) for item in value)
    if isinstance(value, str):
        return value
    return str(value)


def build_sheet_row(
    created_at: datetime,
    email: str | None,
    data: dict[str, Any],
    fields: Iterable[FieldDefinition],
) -> list[str]:
    values = [_cell((data or {}).get(f.id)) for f in data_fields(fields)]
    return [_iso_timestamp(created_at), email or settings.SHEET_EMAIL_PLACEHOLDER, *values]


def split_sheet_row(row: list[str], fields: Iterable[FieldDefinition]) -> dict[str, Any]:
    """Read field values back out of a mirrored row, in field order."""
    result: dict[str, Any] = {}
    for definition, cell in zip(data_fields(fields), row[2:]):
        if definition.type == FieldType.CHECKBOXES:
            result[definition.id] = cell.split(settings.SHEET_MULTI_VALUE_DELIMITER) if cell else []
        else:
            result[definition.id] = cell
    return result


def mirror_response(
    sheet_id: str | None,
    record: ResponseRecord,
    fields: Iterable[FieldDefinition],
    *,
    client: SheetRowSink | None = None,
) -> bool:
    """Append one committed response to the form's sheet.

    Never raises: the response is already stored, so any failure here is only
    logged. Returns whether the row was written.
    """
    if not str(sheet_id or "").strip():
        return False
    try:
        row = build_sheet_row(record.created_at, record.email, record.data, fields)
        sink = client or get_sheets_client()
        sink.append_row(str(sheet_id), row)
        return True
    except Exception:
        logger.exception("sheet mirror failed sheet_id=%s", sheet_id)
        return False
