"""Store interface consumed by the digest engine."""

from __future__ import annotations

from datetime import datetime
from typing import List, Protocol, Sequence

from notifier.storage.models import Notification, NotificationQuery


class NotificationStore(Protocol):
    """Read and batched-update access to notification records.

    Implementations raise :class:`notifier.errors.StoreError` on failure.
    """

    async def find_many(self, query: NotificationQuery) -> List[Notification]:
        """Notifications matching ``query``, newest ``sent_at`` first."""
        ...

    async def count(self, query: NotificationQuery) -> int:
        ...

    async def update_many(self, ids: Sequence[int], read_at: datetime) -> int:
        """Mark the given still-unread ids as read. Returns the updated count."""
        ...
