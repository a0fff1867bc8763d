"""
Tests for order status transitions
"""
import unittest

from core.status_machine import is_terminal, next_status, next_status_label
from models.order import OrderSource, OrderStatus, OrderType


class TestNextStatus(unittest.TestCase):
    """Test cases for next_status"""

    def test_pending_kiosk_skips_to_completed(self):
        self.assertEqual(
            next_status(OrderStatus.PENDING, OrderType.PICKUP, OrderSource.KIOSK),
            OrderStatus.COMPLETED
        )

    def test_pending_online_goes_to_preparing(self):
        self.assertEqual(
            next_status(OrderStatus.PENDING, OrderType.PICKUP, OrderSource.ONLINE),
            OrderStatus.PREPARING
        )

    def test_preparing_depends_on_order_type(self):
        for source in OrderSource:
            self.assertEqual(
                next_status(OrderStatus.PREPARING, OrderType.DELIVERY, source),
                OrderStatus.OUT_FOR_DELIVERY
            )
            self.assertEqual(
                next_status(OrderStatus.PREPARING, OrderType.PICKUP, source),
                OrderStatus.READY
            )

    def test_ready_and_out_for_delivery_complete(self):
        for status in (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY):
            self.assertEqual(
                next_status(status, OrderType.DELIVERY, OrderSource.ONLINE),
                OrderStatus.COMPLETED
            )

    def test_terminal_states_have_no_next(self):
        for status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            self.assertTrue(is_terminal(status))
            for order_type in OrderType:
                for source in OrderSource:
                    self.assertIsNone(next_status(status, order_type, source))

    def test_labels(self):
        self.assertEqual(
            next_status_label(OrderStatus.PENDING, OrderType.PICKUP, OrderSource.KIOSK), "Approve"
        )
        self.assertEqual(
            next_status_label(OrderStatus.PENDING, OrderType.PICKUP, OrderSource.POS),
            "Start Preparing"
        )
        self.assertEqual(
            next_status_label(OrderStatus.OUT_FOR_DELIVERY, OrderType.DELIVERY, OrderSource.ONLINE),
            "Mark Delivered"
        )
        self.assertIsNone(
            next_status_label(OrderStatus.CANCELLED, OrderType.PICKUP, OrderSource.ONLINE)
        )


if __name__ == '__main__':
    unittest.main()
