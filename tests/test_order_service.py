"""
Tests for order submission, status changes and cancellation
"""
import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from core.cache import ReadThroughCache
from core.cancellation import (
    DAILY_LIMIT_REACHED, STATUS_NOT_CANCELLABLE, WINDOW_EXPIRED, CancellationPolicy
)
from core.errors import (
    EmptyCartError, OrderNotFound, PolicyDenied, RemoteError, ValidationError
)
from database.connection import DatabaseConnection
from database.repository import CartRepository, CatalogRepository, OrderRepository
from models.catalog import FoodItem, ItemSize
from models.order import (
    Actor, ActorRole, CustomerInfo, OrderSource, OrderStatus, OrderType
)
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.order_service import ALREADY_CANCELLED, UNAUTHORIZED, OrderService


class FakeClock:
    """Wall clock and monotonic ticker driven by the test"""

    def __init__(self, now):
        self.now = now
        self.ticks = 0.0

    def __call__(self):
        return self.now

    def monotonic(self):
        return self.ticks

    def advance(self, **kwargs):
        delta = timedelta(**kwargs)
        self.now += delta
        self.ticks += delta.total_seconds()


class BrokenOrderRepository(OrderRepository):
    """Order repository whose create call always fails"""

    def create_order_with_items(self, header, items):
        raise RemoteError("create_order_with_items failed: database is locked")


class OrderServiceTestCase(unittest.TestCase):
    """Shared fixture: temporary database with a small menu"""

    order_repository_class = OrderRepository

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.db = DatabaseConnection(self.test_db.name)
        self.clock = FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))

        catalog_repo = CatalogRepository(self.db)
        catalog_repo.save_item(FoodItem("burger", "Burger", 14900))
        catalog_repo.save_item(FoodItem("fries", "Fries", 6900))
        catalog_repo.save_size(ItemSize("fries-large", "fries", "Large", 3000))

        self.cart_repo = CartRepository(self.db, clock=self.clock)
        self.order_repo = self.order_repository_class(self.db, clock=self.clock)
        self.cart_service = CartService(self.cart_repo, CatalogService(catalog_repo),
                                        ReadThroughCache(ttl=None))
        self.service = OrderService(
            self.order_repo, self.cart_service, CancellationPolicy(15, 3),
            ReadThroughCache(ttl=30, clock=self.clock.monotonic), clock=self.clock
        )

        self.customer = Actor("user-1", ActorRole.CUSTOMER)
        self.admin = Actor("admin-1", ActorRole.ADMIN)
        self.info = CustomerInfo(name="Juan Dela Cruz", phone="09171234567",
                                 address="12 Mabini St")

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def place(self, user_id="user-1", order_type=OrderType.PICKUP, source=OrderSource.ONLINE):
        self.cart_service.add_item(user_id, "burger", quantity=2)
        self.cart_service.add_item(user_id, "fries", "fries-large", note="no salt")
        return self.service.submit_order(user_id, self.info, order_type, source=source)


class TestOrderSubmission(OrderServiceTestCase):

    def test_submit_creates_pending_order(self):
        order = self.place()

        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.total_amount, 2 * 14900 + 9900)
        self.assertEqual(order.user_id, "user-1")
        self.assertEqual(len(order.lines), 2)
        self.assertEqual(order.lines[1].size_id, "fries-large")
        self.assertEqual(order.lines[1].note, "no salt")
        self.assertEqual(order.created_at, self.clock.now)

    def test_submit_clears_cart(self):
        self.place()

        self.assertTrue(self.cart_service.cart("user-1").is_empty)
        self.assertEqual(self.cart_repo.get_lines("user-1"), [])

    def test_submit_records_placed_history(self):
        order = self.place()
        history = self.service.get_status_history(order.id)

        self.assertEqual([h.status for h in history], [OrderStatus.PENDING])
        self.assertEqual(history[0].notes, "Order placed")

    def test_empty_cart_rejected(self):
        with self.assertRaises(EmptyCartError):
            self.service.submit_order("user-1", self.info)

    def test_missing_fields_reported_together(self):
        self.cart_service.add_item("user-1", "burger")

        with self.assertRaises(ValidationError) as ctx:
            self.service.submit_order("user-1", CustomerInfo(name="  "), OrderType.DELIVERY)

        self.assertEqual(ctx.exception.missing_fields, ["name", "phone", "address"])
        self.assertEqual(self.cart_service.cart("user-1").count, 1)

    def test_pickup_does_not_need_address(self):
        self.cart_service.add_item("user-1", "burger")
        order = self.service.submit_order("user-1", CustomerInfo(name="Ana", phone="0917"))

        self.assertIsNone(order.customer_address)

    def test_invalid_order_type_rejected(self):
        self.cart_service.add_item("user-1", "burger")

        with self.assertRaises(ValidationError) as ctx:
            self.service.submit_order("user-1", self.info, "dine_in")

        self.assertEqual(ctx.exception.missing_fields, ["order_type"])

    def test_new_order_visible_in_user_list(self):
        self.assertEqual(self.service.fetch_user_orders("user-1"), [])
        order = self.place()

        self.assertEqual([o.id for o in self.service.fetch_user_orders("user-1")], [order.id])


class TestFailedSubmission(OrderServiceTestCase):

    order_repository_class = BrokenOrderRepository

    def test_store_failure_leaves_cart_untouched(self):
        self.cart_service.add_item("user-1", "burger", quantity=2)

        with self.assertRaises(RemoteError):
            self.service.submit_order("user-1", self.info)

        self.assertEqual(self.cart_service.cart("user-1").count, 2)
        self.assertEqual(len(self.cart_repo.get_lines("user-1")), 1)


class TestStatusChanges(OrderServiceTestCase):

    def test_advance_delivery_order(self):
        order = self.place(order_type=OrderType.DELIVERY)
        seen = []
        while True:
            advanced = self.service.advance_order(order.id, "staff-1")
            if advanced is None:
                break
            seen.append(advanced.status)

        self.assertEqual(seen, [OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY,
                                OrderStatus.COMPLETED])

    def test_advance_kiosk_order_completes_directly(self):
        order = self.place(source=OrderSource.KIOSK)
        self.assertEqual(self.service.next_action(order),
                         {"status": "completed", "label": "Approve"})

        self.assertEqual(self.service.advance_order(order.id).status, OrderStatus.COMPLETED)

    def test_status_change_recorded_in_history(self):
        order = self.place()
        self.service.update_order_status(order.id, "preparing", "staff-1", "On the grill")

        history = self.service.get_status_history(order.id)
        self.assertEqual(history[-1].status, OrderStatus.PREPARING)
        self.assertEqual(history[-1].changed_by, "staff-1")
        self.assertEqual(history[-1].notes, "On the grill")

    def test_unknown_order(self):
        with self.assertRaises(OrderNotFound):
            self.service.get_order("missing")
        with self.assertRaises(OrderNotFound):
            self.service.update_order_status("missing", OrderStatus.READY)

    def test_order_reads_are_cached(self):
        order = self.place()
        self.service.get_order(order.id)

        # 서비스를 거치지 않은 변경은 캐시 만료 전까지 보이지 않음
        self.order_repo.update_order_status(order.id, OrderStatus.PREPARING)
        self.clock.advance(seconds=29)
        self.assertEqual(self.service.get_order(order.id).status, OrderStatus.PENDING)

        self.clock.advance(seconds=1)
        self.assertEqual(self.service.get_order(order.id).status, OrderStatus.PREPARING)


class TestCancellation(OrderServiceTestCase):

    def test_customer_cancels_within_window(self):
        order = self.place()
        self.clock.advance(minutes=5)

        cancelled = self.service.cancel_order(order.id, self.customer, "Changed my mind")

        self.assertEqual(cancelled.status, OrderStatus.CANCELLED)
        record = self.service.get_cancellation(order.id)
        self.assertEqual(record.reason, "Changed my mind")
        self.assertEqual(record.cancelled_by, "user-1")
        history = self.service.get_status_history(order.id)
        self.assertEqual(history[-1].notes, "Order cancelled - Changed my mind")
        self.assertEqual(self.service.get_order(order.id).status, OrderStatus.CANCELLED)

    def test_customer_denied_after_window(self):
        order = self.place()
        self.clock.advance(minutes=16)

        with self.assertRaises(PolicyDenied) as ctx:
            self.service.cancel_order(order.id, self.customer, "Too slow")

        self.assertEqual(ctx.exception.reason, WINDOW_EXPIRED)
        self.assertIsNone(self.service.get_cancellation(order.id))

    def test_customer_denied_when_ready(self):
        order = self.place()
        self.service.update_order_status(order.id, OrderStatus.READY)

        with self.assertRaises(PolicyDenied) as ctx:
            self.service.cancel_order(order.id, self.customer, "Too slow")

        self.assertEqual(ctx.exception.reason, STATUS_NOT_CANCELLABLE)

    def test_admin_cancels_ready_order(self):
        order = self.place()
        self.service.update_order_status(order.id, OrderStatus.READY)
        self.clock.advance(hours=2)

        cancelled = self.service.cancel_order(order.id, self.admin, "Out of stock")
        self.assertEqual(cancelled.status, OrderStatus.CANCELLED)

    def test_daily_limit(self):
        orders = [self.place() for _ in range(4)]
        for order in orders[:3]:
            self.service.cancel_order(order.id, self.customer, "Duplicate")

        with self.assertRaises(PolicyDenied) as ctx:
            self.service.cancel_order(orders[3].id, self.customer, "Duplicate")

        self.assertEqual(ctx.exception.reason, DAILY_LIMIT_REACHED)
        self.assertEqual(self.service.todays_cancellation_count(self.customer), 3)

    def test_limit_resets_next_day(self):
        for _ in range(3):
            self.service.cancel_order(self.place().id, self.customer, "Duplicate")

        self.clock.advance(days=1)
        order = self.place()
        self.assertEqual(self.service.cancel_order(order.id, self.customer, "Again").status,
                         OrderStatus.CANCELLED)

    def test_other_customer_cannot_cancel(self):
        order = self.place()

        with self.assertRaises(PolicyDenied):
            self.service.cancel_order(order.id, Actor("user-2"), "Not mine")

    def test_guest_cannot_cancel_guest_orders(self):
        guest = Actor(None)
        orders = [self.place(user_id=None) for _ in range(5)]

        for order in orders:
            with self.assertRaises(PolicyDenied) as ctx:
                self.service.cancel_order(order.id, guest, "Wrong order")
            self.assertEqual(ctx.exception.reason, UNAUTHORIZED)

        self.assertEqual([self.service.get_order(o.id).status for o in orders],
                         [OrderStatus.PENDING] * 5)
        info = self.service.cancellation_info(orders[0].id, guest)
        self.assertFalse(info["can_cancel"])
        self.assertEqual(info["reason"], UNAUTHORIZED)

    def test_admin_cannot_cancel_twice(self):
        order = self.place()
        self.service.cancel_order(order.id, self.admin, "Out of stock")

        with self.assertRaises(PolicyDenied) as ctx:
            self.service.cancel_order(order.id, self.admin, "Out of stock")

        self.assertEqual(ctx.exception.reason, ALREADY_CANCELLED)
        self.assertEqual(self.service.get_cancellation(order.id).cancelled_by, "admin-1")
        self.assertFalse(self.service.cancellation_info(order.id, self.admin)["can_cancel"])

    def test_can_view(self):
        order = self.place()
        guest_order = self.place(user_id=None)

        self.assertTrue(self.service.can_view(order, self.customer))
        self.assertTrue(self.service.can_view(guest_order, Actor("staff-1", ActorRole.STAFF)))
        self.assertFalse(self.service.can_view(order, Actor("user-2")))
        self.assertFalse(self.service.can_view(guest_order, Actor(None)))

    def test_reason_required(self):
        order = self.place()

        with self.assertRaises(ValidationError) as ctx:
            self.service.cancel_order(order.id, self.customer, "   ")

        self.assertEqual(ctx.exception.missing_fields, ["reason"])

    def test_cancellation_info(self):
        order = self.place()
        self.clock.advance(minutes=5)

        info = self.service.cancellation_info(order.id, self.customer)
        self.assertEqual(info, {"can_cancel": True, "reason": None,
                                "time_remaining": "10 minutes"})

        self.clock.advance(minutes=11)
        info = self.service.cancellation_info(order.id, self.customer)
        self.assertFalse(info["can_cancel"])
        self.assertEqual(info["reason"], WINDOW_EXPIRED)
        self.assertIsNone(info["time_remaining"])


class TestTodayStats(OrderServiceTestCase):

    def test_today_stats(self):
        first = self.place()
        second = self.place()
        self.place()
        self.service.update_order_status(first.id, OrderStatus.PREPARING)
        self.service.cancel_order(second.id, self.admin, "Customer called")

        stats = self.service.get_today_stats()

        self.assertEqual(stats["total_orders"], 3)
        self.assertEqual(stats["total_sales"], 2 * (2 * 14900 + 9900))
        self.assertEqual(stats["pending_orders"], 1)
        self.assertEqual(stats["preparing_orders"], 1)
        self.assertEqual(stats["cancelled_orders"], 1)
        self.assertEqual(stats["completed_orders"], 0)

    def test_yesterday_orders_excluded(self):
        self.place()
        self.clock.advance(days=1)

        self.assertEqual(self.service.get_today_stats()["total_orders"], 0)


if __name__ == '__main__':
    unittest.main()
