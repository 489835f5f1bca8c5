"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .project import Project
from .social import SocialConnection, SocialPost
from .webhook import WebhookDelivery

__all__ = [
    "Base",
    "TimestampMixin",
    "Project",
    "WebhookDelivery",
    "SocialConnection",
    "SocialPost",
]
