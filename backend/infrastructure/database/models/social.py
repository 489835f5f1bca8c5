"""
Social media scheduling database models.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.domain.delivery import DeliveryStatus

from .base import Base, TimestampMixin


class SocialConnection(Base, TimestampMixin):
    """
    Connected social media account for a project.

    Holds the encrypted refresh token the publisher trades for a short-lived
    access token on every post.
    """

    __tablename__ = "social_connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)

    refresh_token_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index(
            "ix_social_connections_project_provider",
            "project_id",
            "provider",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<SocialConnection(project={self.project_id}, provider={self.provider})>"


class SocialPost(Base, TimestampMixin):
    """
    A post scheduled for publishing to one provider.

    ``payload`` holds the base text plus per-provider overrides::

        {"base": {"text": "..."},
         "reddit": {"subreddit": "...", "title": "...", "text": "..."},
         "x": {"text": "..."}}
    """

    __tablename__ = "social_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Attempt state
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DeliveryStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    publish_scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Starts equal to publish_scheduled_at, moved forward on each retry
    next_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Last attempt outcome
    last_http_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    delivery_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    platform_post_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_social_posts_status_next_attempt", "status", "next_attempt_at"),
    )

    def __repr__(self) -> str:
        return f"<SocialPost(id={self.id}, provider={self.provider}, status={self.status})>"
