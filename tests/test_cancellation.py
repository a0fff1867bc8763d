"""
Tests for the cancellation policy
"""
import unittest
from datetime import datetime, timedelta, timezone

from core.cancellation import (
    DAILY_LIMIT_REACHED, STATUS_NOT_CANCELLABLE, WINDOW_EXPIRED,
    CancellationPolicy, format_cancellation_reason, format_time_remaining
)
from models.order import (
    ActorRole, Order, OrderSource, OrderStatus, OrderType, PaymentMethod
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_order(status=OrderStatus.PENDING, age_minutes=1):
    return Order(
        id="order-1",
        user_id="customer-1",
        customer_name="Juan",
        customer_phone="0917",
        order_type=OrderType.PICKUP,
        payment_method=PaymentMethod.CASH,
        status=status,
        total_amount=1000,
        source=OrderSource.ONLINE,
        created_at=NOW - timedelta(minutes=age_minutes)
    )


class TestCancellationPolicy(unittest.TestCase):
    """Test cases for CancellationPolicy"""

    def setUp(self):
        self.policy = CancellationPolicy(window_minutes=15, max_per_day=3)

    def test_admin_can_cancel_ready_order(self):
        decision = self.policy.can_cancel(make_order(OrderStatus.READY, age_minutes=300),
                                          ActorRole.ADMIN, 10, NOW)
        self.assertTrue(decision.allowed)
        self.assertIsNone(decision.reason)

    def test_customer_cannot_cancel_ready_order(self):
        decision = self.policy.can_cancel(make_order(OrderStatus.READY), ActorRole.CUSTOMER, 0, NOW)
        self.assertFalse(decision)
        self.assertEqual(decision.reason, STATUS_NOT_CANCELLABLE)

    def test_customer_can_cancel_preparing_order(self):
        decision = self.policy.can_cancel(make_order(OrderStatus.PREPARING), ActorRole.CUSTOMER, 0, NOW)
        self.assertTrue(decision.allowed)

    def test_window_expired_after_sixteen_minutes(self):
        decision = self.policy.can_cancel(make_order(age_minutes=16), ActorRole.CUSTOMER, 0, NOW)
        self.assertEqual(decision.reason, WINDOW_EXPIRED)

    def test_window_boundary_is_inclusive(self):
        decision = self.policy.can_cancel(make_order(age_minutes=15), ActorRole.CUSTOMER, 0, NOW)
        self.assertTrue(decision.allowed)

    def test_fourth_cancellation_denied(self):
        order = make_order()
        self.assertTrue(self.policy.can_cancel(order, ActorRole.CUSTOMER, 2, NOW).allowed)

        decision = self.policy.can_cancel(order, ActorRole.CUSTOMER, 3, NOW)
        self.assertEqual(decision.reason, DAILY_LIMIT_REACHED)

    def test_rules_checked_in_order(self):
        """Status is reported before window and quota"""
        decision = self.policy.can_cancel(make_order(OrderStatus.COMPLETED, age_minutes=60),
                                          ActorRole.STAFF, 99, NOW)
        self.assertEqual(decision.reason, STATUS_NOT_CANCELLABLE)

        decision = self.policy.can_cancel(make_order(age_minutes=60), ActorRole.KIOSK, 99, NOW)
        self.assertEqual(decision.reason, WINDOW_EXPIRED)

    def test_time_remaining(self):
        remaining = self.policy.time_remaining(make_order(age_minutes=5), NOW)
        self.assertEqual(remaining, timedelta(minutes=10))
        self.assertEqual(format_time_remaining(remaining), "10 minutes")

        self.assertIsNone(self.policy.time_remaining(make_order(age_minutes=20), NOW))
        self.assertIsNone(format_time_remaining(None))

    def test_time_remaining_under_a_minute(self):
        order = make_order(age_minutes=0)
        order.created_at = NOW - timedelta(minutes=14, seconds=30)
        self.assertEqual(format_time_remaining(self.policy.time_remaining(order, NOW)), "30 seconds")

    def test_reason_labels(self):
        self.assertEqual(format_cancellation_reason("long_wait"), "Wait time too long")
        self.assertEqual(format_cancellation_reason("spilled my drink"), "spilled my drink")


if __name__ == '__main__':
    unittest.main()
