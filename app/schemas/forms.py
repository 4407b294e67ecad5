from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings


class FieldType(str, Enum):
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOXES = "checkboxes"
    DROPDOWN = "dropdown"
    IMAGE = "image"
    FILE_UPLOAD = "file_upload"
    SECTION_BREAK = "section_break"
    DIVIDER = "divider"


LAYOUT_FIELD_TYPES = frozenset({FieldType.SECTION_BREAK, FieldType.DIVIDER})


class FieldDefinition(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    type: FieldType
    label: str = Field(min_length=1, max_length=500)
    required: bool = False
    options: Optional[List[str]] = None
    description: Optional[str] = None
    placeholder: Optional[str] = None

    @field_validator("options")
    @classmethod
    def _options_fit_sheet_cells(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        for option in value or []:
            if not option.strip():
                raise ValueError("Options must not be blank")
            if settings.SHEET_MULTI_VALUE_DELIMITER in option:
                raise ValueError(f"Options must not contain {settings.SHEET_MULTI_VALUE_DELIMITER!r}")
        return value

    @property
    def is_layout(self) -> bool:
        return self.type in LAYOUT_FIELD_TYPES


def _unique_field_ids(fields: List[FieldDefinition]) -> List[FieldDefinition]:
    seen: set[str] = set()
    for field in fields:
        if field.id in seen:
            raise ValueError(f"Duplicate field id: {field.id}")
        seen.add(field.id)
    return fields


class FormCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    require_email: bool = True
    fields: List[FieldDefinition] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def _fields_unique(cls, value: List[FieldDefinition]) -> List[FieldDefinition]:
        return _unique_field_ids(value)


class FormUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    require_email: Optional[bool] = None
    published: Optional[bool] = None
    fields: Optional[List[FieldDefinition]] = None

    @field_validator("fields")
    @classmethod
    def _fields_unique(cls, value: Optional[List[FieldDefinition]]) -> Optional[List[FieldDefinition]]:
        if value is None:
            return value
        return _unique_field_ids(value)


class FormRead(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    description: Optional[str] = None
    require_email: bool
    published: bool
    fields: List[Dict[str, Any]]
    response_count: int
    view_count: int
    sheet_id: Optional[str] = None
    sheet_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PublicFormRead(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    require_email: bool
    fields: List[Dict[str, Any]]


class ResponseSubmit(BaseModel):
    email: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ResponseCreated(BaseModel):
    id: UUID
    created_at: str


class ResponseRead(BaseModel):
    id: UUID
    email: Optional[str] = None
    data: Dict[str, Any]
    created_at: Optional[str] = None


class AnalyticsPoint(BaseModel):
    label: str
    count: int


class RecentSubmission(BaseModel):
    id: UUID
    email: str
    date: str


class FormAnalytics(BaseModel):
    form_id: UUID
    range: Literal["1W", "1M", "1Y"]
    total_responses: int
    responses_by_time: List[AnalyticsPoint]
    recent_submissions: List[RecentSubmission]
