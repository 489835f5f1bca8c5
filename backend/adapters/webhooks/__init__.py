"""
Outbound webhook delivery adapter.
"""

from .sender import UNREADABLE_BODY, WebhookSender

__all__ = [
    "WebhookSender",
    "UNREADABLE_BODY",
]
