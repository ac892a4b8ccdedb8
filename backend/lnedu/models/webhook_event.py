from datetime import datetime

from sqlalchemy import String, Text, DateTime, Enum, JSON, func
from sqlalchemy.orm import Mapped, mapped_column
from lnedu.database.base import Base
from lnedu.models.enums import WebhookEventStatus

class WebhookEvent(Base):
    """Registro de cada webhook recebido; status FAILED funciona como dead-letter."""
    __tablename__ = "webhook_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False)  # "asaas" | "payment"
    event: Mapped[str] = mapped_column(String(64), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(64), index=True)
    payload_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[WebhookEventStatus] = mapped_column(Enum(WebhookEventStatus, native_enum=False, length=20), nullable=False)
    error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
