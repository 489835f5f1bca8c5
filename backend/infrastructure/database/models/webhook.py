"""
Outbound webhook delivery model.

Each row is one delivery task driven by the retry scheduler. Only the most
recent attempt's outcome is kept on the row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from core.domain.delivery import DeliveryStatus

from .base import Base


class WebhookDelivery(Base):
    """A queued webhook call to a project's endpoint."""

    __tablename__ = "webhook_deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    article_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Target
    webhook_url: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[str] = mapped_column(
        String(100), nullable=False, default="article.published"
    )
    # Serialized JSON body, sent byte-for-byte on every attempt
    request_payload: Mapped[str] = mapped_column(Text, nullable=False)

    # Attempt state
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DeliveryStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    retry_backoff_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Last attempt outcome
    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivery_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_webhook_deliveries_status_next_retry", "status", "next_retry_at"),
        Index("ix_webhook_deliveries_project_created", "project_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WebhookDelivery(id={self.id}, status={self.status}, attempts={self.attempts})>"
