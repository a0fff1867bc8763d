"""
Order service - handles order submission, status changes and cancellation
"""
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import structlog

from core.cache import ReadThroughCache
from core.cancellation import CancellationPolicy, format_time_remaining
from core.cart import CartAggregator
from core.errors import (
    EmptyCartError, OrderNotFound, PolicyDenied, ValidationError
)
from core.status_machine import next_status, next_status_label
from database.repository import OrderRepository, utc_now
from models.order import (
    Actor, CancellationRecord, CustomerInfo, Order, OrderSource, OrderStatus,
    OrderType, PaymentMethod, StatusHistoryEntry
)
from .cart_service import CartService

logger = structlog.get_logger(__name__)

UNAUTHORIZED = "unauthorized to cancel this order"
ALREADY_CANCELLED = "order already cancelled"

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: Type[E], value: Union[E, str], field_name: str) -> E:
    """Accept an enum member or its value, else ValidationError naming the field"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError([field_name], f"Invalid {field_name}: {value!r}") from None


class OrderSubmissionAdapter:
    # 장바구니를 한 번의 원자적 주문 생성 호출로 변환

    def __init__(self, order_repository: OrderRepository):
        self.order_repo = order_repository

    def submit(self, cart: CartAggregator, customer_info: CustomerInfo,
               order_type: Union[OrderType, str] = OrderType.PICKUP,
               payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
               user_id: Optional[str] = None,
               source: Union[OrderSource, str] = OrderSource.ONLINE,
               notes: Optional[str] = None) -> Order:
        if cart.is_empty:
            raise EmptyCartError()

        order_type = coerce_enum(OrderType, order_type, "order_type")
        payment_method = coerce_enum(PaymentMethod, payment_method, "payment_method")
        source = coerce_enum(OrderSource, source, "source")

        # 필수 입력 확인 (배달 주문은 주소도 필요)
        missing = []
        if not customer_info.name.strip():
            missing.append("name")
        if not customer_info.phone.strip():
            missing.append("phone")
        if order_type is OrderType.DELIVERY and not customer_info.address.strip():
            missing.append("address")
        if missing:
            raise ValidationError(missing)

        header = {
            "user_id": user_id,
            "customer_name": customer_info.name.strip(),
            "customer_phone": customer_info.phone.strip(),
            "customer_email": customer_info.email.strip() or None,
            "customer_address": customer_info.address.strip() or None,
            "order_type": order_type.value,
            "payment_method": payment_method.value,
            "order_source": source.value,
            "notes": notes
        }
        # 호출 시점의 장바구니 가격으로 주문 아이템 구성
        items = [{
            "food_item_id": line.food_item_id,
            "size_id": line.size_id,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
            "total_price": line.total,
            "special_instructions": line.note
        } for line in cart.lines]

        # 실패 시 장바구니는 그대로 두고 오류를 그대로 전달
        order = self.order_repo.create_order_with_items(header, items)
        cart.clear()
        return order


class OrderService:
    # 주문 관련 비즈니스 로직을 처리하는 서비스 클래스

    def __init__(self, order_repository: OrderRepository, cart_service: CartService,
                 policy: CancellationPolicy, cache: ReadThroughCache,
                 clock=utc_now):
        # OrderRepository, CartService, 취소 정책, 주문 캐시 주입
        self.order_repo = order_repository
        self.cart_service = cart_service
        self.policy = policy
        self.cache = cache
        self.clock = clock
        self.adapter = OrderSubmissionAdapter(order_repository)

    def submit_order(self, user_id: Optional[str], customer_info: CustomerInfo,
                     order_type: Union[OrderType, str] = OrderType.PICKUP,
                     payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
                     source: Union[OrderSource, str] = OrderSource.ONLINE,
                     notes: Optional[str] = None) -> Order:
        # 장바구니 내용을 바탕으로 최종 주문 처리
        with self.cart_service.lock:
            cart = self.cart_service.cart(user_id)
            order = self.adapter.submit(cart, customer_info, order_type, payment_method,
                                        user_id=user_id, source=source, notes=notes)
        logger.info("order_submitted", order_id=order.id, user_id=user_id,
                    total_amount=order.total_amount, source=order.source.value)

        # 성공적인 주문 후 저장된 장바구니 비우기
        clear_result = self.cart_service.clear(user_id)
        if not clear_result.confirmed:
            # 경고 로그만 남기고 주문은 실패시키지 않음
            logger.warning("cart_clear_failed_after_order", order_id=order.id,
                           error=str(clear_result.error))

        self.cache.put(("order", order.id), order)
        self.cache.invalidate_prefix("orders")
        return order

    def get_order(self, order_id: str) -> Order:
        def fetch() -> Order:
            order = self.order_repo.get_order(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return order

        return self.cache.get_or_fetch(("order", order_id), fetch)

    def fetch_user_orders(self, user_id: str) -> List[Order]:
        return self.cache.get_or_fetch(
            ("orders", "user", user_id),
            lambda: self.order_repo.list_orders(user_id=user_id)
        )

    def fetch_orders(self, source: Optional[Union[OrderSource, str]] = None,
                     status: Optional[Union[OrderStatus, str]] = None) -> List[Order]:
        # 관리자용 전체 주문 목록 (주문 경로/상태 필터)
        source = coerce_enum(OrderSource, source, "source") if source else None
        status = coerce_enum(OrderStatus, status, "status") if status else None
        return self.cache.get_or_fetch(
            ("orders", "all", source, status),
            lambda: self.order_repo.list_orders(source=source, status=status)
        )

    def update_order_status(self, order_id: str, status: Union[OrderStatus, str],
                            changed_by: Optional[str] = None,
                            notes: Optional[str] = None) -> Order:
        status = coerce_enum(OrderStatus, status, "status")
        self.order_repo.update_order_status(order_id, status, changed_by, notes)
        logger.info("order_status_changed", order_id=order_id, status=status.value,
                    changed_by=changed_by)

        self._forget(order_id)
        return self.get_order(order_id)

    def advance_order(self, order_id: str, changed_by: Optional[str] = None) -> Optional[Order]:
        # 현재 상태에서 제안되는 다음 상태로 변경, 다음 단계가 없으면 None
        order = self.get_order(order_id)
        target = next_status(order.status, order.order_type, order.source)
        if target is None:
            return None
        return self.update_order_status(order_id, target, changed_by)

    def next_action(self, order: Order) -> Optional[Dict[str, str]]:
        target = next_status(order.status, order.order_type, order.source)
        if target is None:
            return None
        return {
            "status": target.value,
            "label": next_status_label(order.status, order.order_type, order.source)
        }

    def can_view(self, order: Order, actor: Actor) -> bool:
        # 직원/관리자는 모든 주문, 고객은 본인 주문만 조회 가능
        if actor.is_staff:
            return True
        return actor.user_id is not None and order.user_id == actor.user_id

    def cancel_order(self, order_id: str, actor: Actor, reason: str) -> Order:
        if not reason or not reason.strip():
            raise ValidationError(["reason"], "A cancellation reason is required")

        # 정책 판단은 캐시가 아닌 저장소의 현재 상태 기준
        self.cache.invalidate(("order", order_id))
        order = self.get_order(order_id)

        now = self.clock()
        denial = self._cancel_denial(order, actor, now)
        if denial is not None:
            logger.info("order_cancellation_denied", order_id=order_id,
                        user_id=actor.user_id, reason=denial)
            raise PolicyDenied(denial)

        cancelled = self.order_repo.cancel_order(order_id, reason.strip(), actor.user_id)
        logger.info("order_cancelled", order_id=order_id, user_id=actor.user_id,
                    reason=reason.strip())

        self._forget(order_id)
        self.cache.put(("order", order_id), cancelled)
        return cancelled

    def cancellation_info(self, order_id: str, actor: Actor) -> Dict[str, Any]:
        # 취소 가능 여부와 남은 취소 가능 시간 (화면 표시용)
        order = self.get_order(order_id)
        now = self.clock()
        denial = self._cancel_denial(order, actor, now)
        return {
            "can_cancel": denial is None,
            "reason": denial,
            "time_remaining": format_time_remaining(self.policy.time_remaining(order, now))
        }

    def todays_cancellation_count(self, actor: Actor, now: Optional[datetime] = None) -> int:
        if actor.user_id is None:
            return 0
        start, end = self._day_bounds((now or self.clock()).date())
        return self.order_repo.count_cancellations(actor.user_id, start, end)

    def get_cancellation(self, order_id: str) -> Optional[CancellationRecord]:
        return self.order_repo.get_cancellation(order_id)

    def get_status_history(self, order_id: str) -> List[StatusHistoryEntry]:
        return self.order_repo.get_status_history(order_id)

    def get_today_stats(self, day: Optional[date] = None) -> Dict[str, int]:
        # 당일 주문 통계 (매출은 취소 주문 제외)
        start, end = self._day_bounds(day or self.clock().date())
        orders = self.order_repo.list_orders(since=start, until=end)

        stats = {
            "total_orders": len(orders),
            "total_sales": sum(o.total_amount for o in orders
                               if o.status is not OrderStatus.CANCELLED)
        }
        for status in OrderStatus:
            stats[f"{status.value}_orders"] = sum(1 for o in orders if o.status is status)
        return stats

    def _cancel_denial(self, order: Order, actor: Actor, now: datetime) -> Optional[str]:
        # 비로그인 사용자는 주문 소유를 확인할 수 없으므로 취소 불가
        if not actor.is_admin and (actor.user_id is None or order.user_id != actor.user_id):
            return UNAUTHORIZED
        # 관리자도 이미 취소된 주문은 다시 취소할 수 없음
        if order.status is OrderStatus.CANCELLED:
            return ALREADY_CANCELLED

        # 취소 횟수는 취소 호출 전에 읽으므로 동시 취소 시 한도를 넘을 수 있음
        count = self.todays_cancellation_count(actor, now)
        return self.policy.can_cancel(order, actor.role, count, now).reason

    def _forget(self, order_id: str) -> None:
        self.cache.invalidate(("order", order_id))
        self.cache.invalidate_prefix("orders")

    @staticmethod
    def _day_bounds(day: date):
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return start, start + timedelta(days=1)

