import uuid

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin


class Form(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "forms"
    __table_args__ = (CheckConstraint("response_count >= 0", name="ck_forms_response_count_non_negative"),)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    require_email: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    fields: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Written only by the response commit transaction and the reconcile task.
    response_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sheet_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    sheet_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
