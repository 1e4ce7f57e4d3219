"""Storage layer - SQLite notification store with versioned migrations."""

from notifier.storage.base import NotificationStore
from notifier.storage.db import DatabaseManager
from notifier.storage.models import Notification, NotificationCreate, NotificationQuery, Page

__all__ = [
    "DatabaseManager",
    "Notification",
    "NotificationCreate",
    "NotificationQuery",
    "NotificationStore",
    "Page",
]
