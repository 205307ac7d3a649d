"""Protocols for ScrubJay collaborators."""

from scrubjay.protocols.dispatcher import Dispatcher
from scrubjay.protocols.ingestion import IngestionService
from scrubjay.protocols.notification import Notification, NotificationField, Notifier

__all__ = [
    "Dispatcher",
    "IngestionService",
    "Notification",
    "NotificationField",
    "Notifier",
]
