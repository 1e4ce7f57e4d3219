"""Data models for the notification storage layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from dateutil.parser import parse as dateparse

from notifier.errors import ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "email", "phone", "body", "subject")


@dataclass
class NotificationCreate:
    """Validated payload for creating a notification."""

    name: str
    email: str
    phone: str
    body: str
    subject: str

    @classmethod
    def from_payload(cls, payload: Any) -> NotificationCreate:
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object")
        missing = [
            f for f in REQUIRED_FIELDS
            if not isinstance(payload.get(f), str) or not payload[f].strip()
        ]
        if missing:
            raise ValidationError(
                "All fields are required: " + ", ".join(REQUIRED_FIELDS)
            )
        return cls(**{f: payload[f].strip() for f in REQUIRED_FIELDS})


@dataclass
class Notification:
    """A persisted notification. ``read_at is None`` means unread."""

    id: Optional[int]
    name: str
    email: str
    phone: Optional[str]
    body: str
    subject: str
    sent_at: Optional[datetime]
    read_at: Optional[datetime] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @classmethod
    def from_create(cls, request: NotificationCreate, sent_at: datetime) -> Notification:
        """Build an unsaved, unread notification from a create request."""
        return cls(
            id=None,
            name=request.name,
            email=request.email,
            phone=request.phone or None,
            body=request.body,
            subject=request.subject,
            sent_at=sent_at,
            read_at=None,
        )

    def to_row(self) -> tuple:
        return (
            self.name,
            self.email,
            self.phone,
            self.body,
            self.subject,
            to_db_timestamp(self.sent_at) if self.sent_at else None,
            to_db_timestamp(self.read_at) if self.read_at else None,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Notification:
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row.get("phone"),
            body=row["body"],
            subject=row["subject"],
            sent_at=parse_timestamp(row.get("sent_at")),
            read_at=parse_timestamp(row.get("read_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "body": self.body,
            "subject": self.subject,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "read_at": self.read_at.isoformat() if self.read_at else None,
        }


@dataclass
class NotificationQuery:
    """Filter for store reads. Results are always ordered by ``sent_at`` DESC."""

    sent_since: Optional[datetime] = None
    sent_before: Optional[datetime] = None
    unread_only: bool = False
    ids: Optional[Sequence[int]] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


@dataclass
class Page:
    """One page of notifications plus pagination metadata."""

    notifications: list = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next": self.page < self.total_pages,
            "has_prev": self.page > 1,
        }


# --- Helpers ---

def to_db_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with fixed precision so string order matches time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(val: Any) -> Optional[datetime]:
    """Parse a stored timestamp into an aware datetime, or None if absent/malformed."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        dt = val
    else:
        try:
            dt = dateparse(str(val))
        except (ValueError, TypeError, OverflowError):
            logger.warning("Malformed timestamp %r", val)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
