"""Notification utilities - email."""

from src.marketplace.core.notifications.email import send_event_email

__all__ = [
    "send_event_email",
]
