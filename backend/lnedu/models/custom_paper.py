from datetime import datetime

from sqlalchemy import String, Integer, Text, Boolean, ForeignKey, DateTime, Enum, JSON, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from lnedu.database.base import Base
from lnedu.models.enums import CustomPaperStatus, Urgency

class CustomPaper(Base):
    __tablename__ = "custom_papers"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    paper_type: Mapped[str] = mapped_column(String(32), nullable=False)
    academic_area: Mapped[str] = mapped_column(String(32), nullable=False)
    page_count: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    urgency: Mapped[Urgency] = mapped_column(Enum(Urgency, native_enum=False, length=20), default=Urgency.NORMAL, nullable=False)
    requirements: Mapped[str] = mapped_column(Text, nullable=False)
    keywords: Mapped[str | None] = mapped_column(Text)
    references: Mapped[str | None] = mapped_column(Text)
    requirement_files: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    delivery_files: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[CustomPaperStatus] = mapped_column(
        Enum(CustomPaperStatus, native_enum=False, length=20), default=CustomPaperStatus.REQUESTED, index=True, nullable=False
    )
    quoted_price: Mapped[int | None] = mapped_column(Integer)  # centavos
    final_price: Mapped[int | None] = mapped_column(Integer)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    quoted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    messages: Mapped[list["CustomPaperMessage"]] = relationship(
        back_populates="custom_paper", cascade="all, delete-orphan", order_by="CustomPaperMessage.id"
    )


class CustomPaperMessage(Base):
    __tablename__ = "custom_paper_messages"

    id: Mapped[int] = mapped_column(primary_key=True)
    custom_paper_id: Mapped[int] = mapped_column(ForeignKey("custom_papers.id", ondelete="CASCADE"), index=True, nullable=False)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_from_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    custom_paper: Mapped[CustomPaper] = relationship(back_populates="messages")
