from datetime import datetime

from sqlalchemy import String, Text, Boolean, ForeignKey, DateTime, Enum, JSON, func
from sqlalchemy.orm import Mapped, mapped_column
from lnedu.database.base import Base
from lnedu.models.enums import MessageStatus, MessagePriority

class Message(Base):
    """Mensagem do formulário de contato."""
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, native_enum=False, length=20), default=MessageStatus.UNREAD, index=True, nullable=False
    )
    priority: Mapped[MessagePriority] = mapped_column(
        Enum(MessagePriority, native_enum=False, length=20), default=MessagePriority.NORMAL, nullable=False
    )
    # replied / reply_content / replied_at / assigned_to mudam juntos
    replied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reply_content: Mapped[str | None] = mapped_column(Text)
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)  # ip, userAgent, spamScore
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
