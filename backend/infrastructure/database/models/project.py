"""
Project database model.

Only the columns the delivery engine reads are mapped here: ownership and
the outbound webhook configuration.
"""

from typing import Optional

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Project(Base, TimestampMixin):
    """A customer project that owns articles, social posts and a webhook endpoint."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Owner (external auth provider user id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Outbound webhook configuration
    webhook_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    webhook_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    webhook_events: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_projects_user_created", "user_id", "created_at"),)

    def accepts_event(self, event_type: str) -> bool:
        """Whether this project wants webhook deliveries for *event_type*."""
        if not self.webhook_enabled or not self.webhook_url:
            return False
        # No explicit subscription list means every event
        if not self.webhook_events:
            return True
        return event_type in self.webhook_events

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name})>"
