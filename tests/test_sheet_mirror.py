import os
import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from pydantic import ValidationError

from app.schemas.forms import FieldDefinition
from app.services.admission import build_response_validator
from app.services.google_sheets import SheetsNotConfiguredError, spreadsheet_url
from app.services.sheet_mirror import (
    build_sheet_row,
    mirror_response,
    sheet_headers,
    split_sheet_row,
)

CREATED_AT = datetime(2026, 3, 15, 12, 30, 5, tzinfo=timezone.utc)


class FakeSheets:
    def __init__(self):
        self.rows = []

    def append_row(self, spreadsheet_id, row):
        self.rows.append((spreadsheet_id, row))


class BrokenSheets:
    def append_row(self, spreadsheet_id, row):
        raise ConnectionError("sheets api unreachable")


class SheetRowTests(unittest.TestCase):
    def setUp(self):
        self.fields = [
            FieldDefinition(id="name", type="short_text", label="Name"),
            FieldDefinition(id="intro", type="section_break", label="About"),
            FieldDefinition(id="pets", type="checkboxes", label="Pets", options=["cat", "dog", "fish"]),
            FieldDefinition(id="line", type="divider", label="-"),
            FieldDefinition(id="size", type="dropdown", label="Size", options=["S", "M"]),
        ]

    def test_headers_skip_layout_fields(self):
        self.assertEqual(sheet_headers(self.fields), ["Timestamp", "Email", "Name", "Pets", "Size"])

    def test_row_layout(self):
        row = build_sheet_row(CREATED_AT, "a@b.com", {"name": "Alice", "pets": ["dog", "cat"], "size": "M"}, self.fields)
        self.assertEqual(row, ["2026-03-15T12:30:05+00:00", "a@b.com", "Alice", "dog, cat", "M"])

    def test_missing_values_and_placeholder_email(self):
        row = build_sheet_row(CREATED_AT, None, {"name": "Bob"}, self.fields)
        self.assertEqual(row[1], "N/A")
        self.assertEqual(row[2:], ["Bob", "", ""])

    def test_layout_values_never_become_columns(self):
        row = build_sheet_row(CREATED_AT, "a@b.com", {"intro": "x", "line": "y"}, self.fields)
        self.assertEqual(len(row), len(sheet_headers(self.fields)))
        self.assertNotIn("x", row)
        self.assertNotIn("y", row)

    def test_non_string_values_are_stringified(self):
        row = build_sheet_row(CREATED_AT, None, {"name": 42}, self.fields)
        self.assertEqual(row[2], "42")

    def test_naive_timestamp_is_treated_as_utc(self):
        row = build_sheet_row(datetime(2026, 3, 15, 12, 30, 5), None, {}, self.fields)
        self.assertEqual(row[0], "2026-03-15T12:30:05+00:00")

    def test_offset_timestamp_is_converted_to_utc(self):
        local = CREATED_AT.astimezone(timezone(timedelta(hours=3)))
        row = build_sheet_row(local, None, {}, self.fields)
        self.assertEqual(row[0], "2026-03-15T12:30:05+00:00")

    def test_row_splits_back_in_field_order(self):
        data = {"name": "Alice", "pets": ["fish", "cat"], "size": "S"}
        row = build_sheet_row(CREATED_AT, "a@b.com", data, self.fields)
        self.assertEqual(split_sheet_row(row, self.fields), data)

    def test_options_cannot_contain_the_cell_delimiter(self):
        with self.assertRaises(ValidationError):
            FieldDefinition(id="c", type="checkboxes", label="C", options=["Yes, please", "No"])
        with self.assertRaises(ValidationError):
            FieldDefinition(id="c", type="dropdown", label="C", options=["ok", " "])

    def test_accepted_checkbox_answers_split_back_unchanged(self):
        fields = [FieldDefinition(id="c", type="checkboxes", label="C", options=["Yes,please", "No", "a,"])]
        validate = build_response_validator(fields)
        for answer in (["Yes,please", "No"], ["a,", "No"], ["No"]):
            outcome = validate({"c": answer})
            self.assertTrue(outcome.ok, answer)
            row = build_sheet_row(CREATED_AT, None, outcome.data, fields)
            self.assertEqual(split_sheet_row(row, fields), {"c": answer})
        self.assertFalse(validate({"c": ["Yes, please", "No"]}).ok)

    def test_empty_multi_choice_splits_to_empty_list(self):
        row = build_sheet_row(CREATED_AT, None, {"name": "A", "size": "S"}, self.fields)
        self.assertEqual(split_sheet_row(row, self.fields)["pets"], [])


class MirrorResponseTests(unittest.TestCase):
    def setUp(self):
        self.fields = [FieldDefinition(id="name", type="short_text", label="Name")]
        self.record = SimpleNamespace(created_at=CREATED_AT, email="a@b.com", data={"name": "Alice"})

    def test_appends_row(self):
        sink = FakeSheets()
        self.assertTrue(mirror_response("sheet-1", self.record, self.fields, client=sink))
        self.assertEqual(sink.rows, [("sheet-1", ["2026-03-15T12:30:05+00:00", "a@b.com", "Alice"])])

    def test_no_sheet_is_a_no_op(self):
        sink = FakeSheets()
        self.assertFalse(mirror_response(None, self.record, self.fields, client=sink))
        self.assertFalse(mirror_response("  ", self.record, self.fields, client=sink))
        self.assertEqual(sink.rows, [])

    def test_failure_is_logged_not_raised(self):
        with self.assertLogs("app.services.sheet_mirror", level="ERROR"):
            self.assertFalse(mirror_response("sheet-1", self.record, self.fields, client=BrokenSheets()))

    def test_unconfigured_credentials_are_swallowed(self):
        with patch(
            "app.services.sheet_mirror.get_sheets_client",
            side_effect=SheetsNotConfiguredError("no credentials"),
        ):
            self.assertFalse(mirror_response("sheet-1", self.record, self.fields))

    def test_spreadsheet_url(self):
        self.assertEqual(spreadsheet_url("abc"), "https://docs.google.com/spreadsheets/d/abc/edit")
