"""
Cancellation rules for orders
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from models.order import ActorRole, Order, OrderStatus

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})

STATUS_NOT_CANCELLABLE = "status not cancellable"
WINDOW_EXPIRED = "cancellation window expired"
DAILY_LIMIT_REACHED = "daily cancellation limit reached"

CANCELLATION_REASONS = {
    "changed_mind": "Changed my mind",
    "wrong_order": "Ordered wrong items",
    "long_wait": "Wait time too long",
    "duplicate": "Duplicate order",
    "other": "Other reason",
}


def format_cancellation_reason(reason: str) -> str:
    """Display text for a reason code; free text passes through"""
    return CANCELLATION_REASONS.get(reason, reason)


def format_time_remaining(remaining: Optional[timedelta]) -> Optional[str]:
    if remaining is None or remaining <= timedelta(0):
        return None
    seconds = remaining.total_seconds()
    if seconds < 60:
        return f"{round(seconds)} seconds"
    return f"{round(seconds / 60)} minutes"


@dataclass(frozen=True)
class CancellationDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "CancellationDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "CancellationDecision":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


class CancellationPolicy:
    """Decides whether an actor may cancel an order.

    Pure: the order and the actor's cancellation count for today are fetched
    by the caller. Rules are checked in order and the first failure wins:

    1. admins may always cancel
    2. status must be pending or preparing
    3. the order must be no older than the cancellation window
    4. the actor must be under the daily cancellation quota
    """

    def __init__(self, window_minutes: int = 15, max_per_day: int = 3):
        self.window = timedelta(minutes=window_minutes)
        self.max_per_day = max_per_day

    def can_cancel(self, order: Order, actor_role: ActorRole,
                   todays_cancellation_count: int,
                   now: Optional[datetime] = None) -> CancellationDecision:
        if actor_role is ActorRole.ADMIN:
            return CancellationDecision.allow()

        if order.status not in CANCELLABLE_STATUSES:
            return CancellationDecision.deny(STATUS_NOT_CANCELLABLE)

        if not self.is_within_window(order, now):
            return CancellationDecision.deny(WINDOW_EXPIRED)

        if todays_cancellation_count >= self.max_per_day:
            return CancellationDecision.deny(DAILY_LIMIT_REACHED)

        return CancellationDecision.allow()

    def is_within_window(self, order: Order, now: Optional[datetime] = None) -> bool:
        return self._elapsed(order, now) <= self.window

    def time_remaining(self, order: Order, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Time left in the cancellation window, None once it has passed"""
        remaining = self.window - self._elapsed(order, now)
        if remaining <= timedelta(0):
            return None
        return remaining

    def _elapsed(self, order: Order, now: Optional[datetime]) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - order.created_at
