"""
Order status transitions used to drive the "next action" button.

The store performs the actual transition; nothing here rejects a jump the
back-office chooses to make.
"""
from typing import Optional

from models.order import OrderSource, OrderStatus, OrderType

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def next_status(current: OrderStatus, order_type: OrderType,
                source: OrderSource) -> Optional[OrderStatus]:
    """Suggested next status, or None when the order has no further step"""
    if is_terminal(current):
        return None
    if current is OrderStatus.PENDING:
        # 키오스크 주문은 카운터에서 결제/수령하므로 준비 단계를 건너뜀
        if source is OrderSource.KIOSK:
            return OrderStatus.COMPLETED
        return OrderStatus.PREPARING
    if current is OrderStatus.PREPARING:
        if order_type is OrderType.DELIVERY:
            return OrderStatus.OUT_FOR_DELIVERY
        return OrderStatus.READY
    # ready, out_for_delivery
    return OrderStatus.COMPLETED


def next_status_label(current: OrderStatus, order_type: OrderType,
                      source: OrderSource) -> Optional[str]:
    """Button text for the next action"""
    if current is OrderStatus.PENDING:
        return "Approve" if source is OrderSource.KIOSK else "Start Preparing"
    if current is OrderStatus.PREPARING:
        return "Out for Delivery" if order_type is OrderType.DELIVERY else "Ready for Pickup"
    if current is OrderStatus.READY:
        return "Mark Completed"
    if current is OrderStatus.OUT_FOR_DELIVERY:
        return "Mark Delivered"
    return None
