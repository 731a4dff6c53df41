"""
notifications.py - Marketplace notifications

Notifications are plain immutable data. The marketplace buffers them inside a
transaction scope and publishes them on commit: the NotificationLog is the
audit trail, subscribers are plain functions.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class NotificationKind(Enum):
    """Kinds of notification emitted by the marketplace."""
    ITEM_LISTED = "item_listed"
    ITEM_SOLD = "item_sold"
    ITEM_SOLD_VIA_BID = "item_sold_via_bid"
    BID_SUBMITTED = "bid_submitted"
    BID_CANCELLED = "bid_cancelled"
    BID_ACCEPTED = "bid_accepted"
    ITEM_DELISTED = "item_delisted"
    PRICE_CHANGED = "price_changed"
    POLICY_UPDATED = "policy_updated"


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable record of something that happened in the marketplace.

    Attributes:
        sequence: Monotonic position in the notification log (assigned on publish)
        kind: What happened
        item_id: Item concerned, None for policy updates
        params: Principals and amounts as frozen tuple of (key, value) pairs
    """
    sequence: int
    kind: NotificationKind
    item_id: Optional[int]
    params: tuple = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        """Get params as a dictionary for convenience."""
        return dict(self.params)

    def __getitem__(self, key: str) -> Any:
        return self.params_dict[key]

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"Notification(#{self.sequence} {self.kind.value} item={self.item_id} {params_str})"


def notification(kind: NotificationKind, item_id: Optional[int] = None, **params: Any) -> Notification:
    """Build an unpublished notification (sequence 0) from keyword params."""
    return Notification(sequence=0, kind=kind, item_id=item_id, params=tuple(params.items()))


# Subscriber type: (notification) -> None
Subscriber = Callable[[Notification], None]


class NotificationLog:
    """
    Append-only notification history with subscriber dispatch.

    Subscribers are called in registration order after a notification is
    appended. A failing subscriber does not undo the committed operation;
    the exception propagates to the caller of dispatch().
    """

    def __init__(self):
        self._entries: List[Notification] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.remove(subscriber)

    def append(self, pending: Notification) -> Notification:
        """Assign the next sequence number and record the notification."""
        published = Notification(
            sequence=len(self._entries) + 1,
            kind=pending.kind,
            item_id=pending.item_id,
            params=pending.params,
        )
        self._entries.append(published)
        return published

    def dispatch(self, published: List[Notification]) -> None:
        for entry in published:
            for subscriber in list(self._subscribers):
                subscriber(entry)

    @property
    def entries(self) -> List[Notification]:
        return list(self._entries)

    def of_kind(self, kind: NotificationKind) -> List[Notification]:
        return [n for n in self._entries if n.kind == kind]

    def __len__(self) -> int:
        return len(self._entries)
