"""
OrderingSession - orchestrates all services for one signed-in user
"""
from typing import Any, Dict, List, Optional, Union

import structlog

from config import Settings
from database.connection import DatabaseConnection
from database.repository import CartRepository, CatalogRepository, OrderRepository
from models.cart import LineKey
from models.order import Actor, ActorRole, CustomerInfo, Order, OrderSource
from services.cart_service import CartService, MutationResult
from services.catalog_service import CatalogService
from services.order_service import OrderService
from .cache import ReadThroughCache
from .currency import format_currency
from .cancellation import CancellationPolicy

logger = structlog.get_logger(__name__)


class OrderingSession:
    # 사용자 세션 단위의 주문 처리 관리자
    # 캐시는 세션마다 새로 만들고 close() 시 모두 버린다

    def __init__(self, db_connection: DatabaseConnection, actor: Actor,
                 settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.actor = actor

        # 세션 전용 캐시 (장바구니는 만료 없이 변경 시 무효화)
        self.order_cache = ReadThroughCache(ttl=self.settings.order_cache_ttl)
        self.cart_cache = ReadThroughCache(ttl=None)

        # 리포지토리 레이어 초기화 (데이터 접근 계층)
        self.catalog_repo = CatalogRepository(db_connection)
        self.cart_repo = CartRepository(db_connection)
        self.order_repo = OrderRepository(db_connection)

        # 서비스 레이어 초기화 (비즈니스 로직 계층)
        self.policy = CancellationPolicy(
            window_minutes=self.settings.cancellation_window_minutes,
            max_per_day=self.settings.max_cancellations_per_day
        )
        self.catalog_service = CatalogService(self.catalog_repo)
        self.cart_service = CartService(self.cart_repo, self.catalog_service, self.cart_cache)
        self.order_service = OrderService(self.order_repo, self.cart_service,
                                          self.policy, self.order_cache)
        self.closed = False

    @property
    def user_id(self) -> Optional[str]:
        return self.actor.user_id

    @property
    def order_source(self) -> OrderSource:
        # 키오스크 계정의 주문은 키오스크 주문으로 기록
        if self.actor.role is ActorRole.KIOSK:
            return OrderSource.KIOSK
        return OrderSource.ONLINE

    # === 메뉴 관련 메서드들 ===
    def get_menu(self) -> List[Dict[str, Any]]:
        return self.catalog_service.get_menu()

    # === 장바구니 관련 메서드들 ===
    def get_cart_details(self) -> Dict[str, Any]:
        details = self.cart_service.get_cart_details(self.user_id)
        # 화면 표시용 금액 문자열 추가
        summary = details["summary"]
        summary["total_display"] = format_currency(summary["total"], self.settings.currency_symbol)
        return details

    def add_to_cart(self, food_item_id: str, size_id: Optional[str] = None,
                    quantity: int = 1, note: Optional[str] = None) -> MutationResult:
        return self.cart_service.add_item(self.user_id, food_item_id, size_id, quantity, note)

    def update_cart_item(self, key: LineKey, quantity: int) -> MutationResult:
        return self.cart_service.update_quantity(self.user_id, key, quantity)

    def remove_from_cart(self, key: LineKey) -> MutationResult:
        return self.cart_service.remove_item(self.user_id, key)

    def clear_cart(self) -> MutationResult:
        return self.cart_service.clear(self.user_id)

    def reload_cart(self) -> Dict[str, Any]:
        self.cart_service.reload(self.user_id)
        return self.get_cart_details()

    # === 주문 관련 메서드들 ===
    def place_order(self, customer_info: CustomerInfo, order_type: str = "pickup",
                    payment_method: str = "cash", notes: Optional[str] = None) -> Order:
        return self.order_service.submit_order(self.user_id, customer_info, order_type,
                                               payment_method, self.order_source, notes)

    def get_order(self, order_id: str) -> Order:
        return self.order_service.get_order(order_id)

    def my_orders(self) -> List[Order]:
        if self.user_id is None:
            return []
        return self.order_service.fetch_user_orders(self.user_id)

    def all_orders(self, source: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        return self.order_service.fetch_orders(source, status)

    def advance_order(self, order_id: str) -> Optional[Order]:
        return self.order_service.advance_order(order_id, self.user_id)

    def set_order_status(self, order_id: str, status: str, notes: Optional[str] = None) -> Order:
        return self.order_service.update_order_status(order_id, status, self.user_id, notes)

    def cancel_order(self, order_id: str, reason: str) -> Order:
        return self.order_service.cancel_order(order_id, self.actor, reason)

    def cancellation_info(self, order_id: str) -> Dict[str, Any]:
        return self.order_service.cancellation_info(order_id, self.actor)

    def today_stats(self) -> Dict[str, int]:
        return self.order_service.get_today_stats()

    # === 세션 종료 ===
    def close(self) -> None:
        # 로그아웃 시 세션 캐시와 장바구니 메모리 상태 정리
        self.order_cache.clear()
        self.cart_cache.clear()
        self.cart_service.close()
        self.closed = True
        logger.info("session_closed", user_id=self.user_id)

    def __enter__(self) -> "OrderingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def make_actor(user_id: Optional[str], role: Union[ActorRole, str, None] = None) -> Actor:
    """Build an Actor from loosely typed request data; unknown roles act as customers"""
    if isinstance(role, ActorRole):
        return Actor(user_id, role)
    try:
        return Actor(user_id, ActorRole(role or ActorRole.CUSTOMER.value))
    except ValueError:
        return Actor(user_id, ActorRole.CUSTOMER)
