from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PlanLimitsRead(BaseModel):
    max_forms: int
    max_responses_per_month: int
    has_advanced_analytics: bool
    has_sheets_export: bool
    has_team_collaboration: bool
    has_custom_branding: bool
    has_api_access: bool


class UsageRead(BaseModel):
    plan: str
    limits: PlanLimitsRead
    forms_count: int
    monthly_responses: int
    period_start: str
    can_create_form: bool
    can_accept_response: bool


class UserPlanUpdate(BaseModel):
    plan: Literal["FREE", "PREMIUM", "BUSINESS"]


class UserRoleUpdate(BaseModel):
    role: Literal["USER", "ADMIN", "SUPER_ADMIN"]


class UserRead(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    role: str
    plan: str
    is_active: bool


class AdminUserRow(UserRead):
    created_at: Optional[datetime] = None
    form_count: int


class AdminFormRow(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    published: bool
    response_count: int
    view_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner: UserRead


class AdminStats(BaseModel):
    total_users: int
    total_forms: int
    total_responses: int
    active_users: int
    forms_today: int
    responses_today: int


class UploadInit(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=120)
    size_bytes: int = Field(gt=0)


class UploadInitResponse(BaseModel):
    key: str
    presigned_url: str
    public_url: str
