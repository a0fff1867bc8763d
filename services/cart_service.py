"""
Cart service - handles cart operations
"""
import threading
from typing import Any, Callable, Dict, List, Optional

import structlog

from core.cache import ReadThroughCache
from core.cart import CartAggregator
from core.errors import RemoteError
from database.repository import CartRepository
from models.cart import CartLine, CartSummary, LineKey
from .catalog_service import CatalogService

logger = structlog.get_logger(__name__)


class MutationResult:
    """Outcome of an optimistic cart mutation.

    The in-memory cart already reflects the change. When the write to the
    store failed, ``confirmed`` is False and the caller may ``rollback()``
    to the state before the mutation, or keep it and ``reload`` later.
    A rollback after a later mutation of the same cart re-syncs the cart
    from the store instead of restoring the older snapshot.
    """

    def __init__(self, confirmed: bool, summary: CartSummary,
                 error: Optional[RemoteError] = None,
                 restore: Optional[Callable[[], None]] = None):
        self.confirmed = confirmed
        self.summary = summary
        self.error = error
        self.rolled_back = False
        self._restore = restore

    def rollback(self) -> None:
        if self.confirmed or self.rolled_back or self._restore is None:
            return
        self._restore()
        self.rolled_back = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.confirmed,
            "summary": self.summary.to_dict(),
            "error": str(self.error) if self.error else None,
            "rolled_back": self.rolled_back
        }


class CartService:
    # 장바구니 관련 비즈니스 로직을 처리하는 서비스 클래스
    # 메모리의 장바구니를 먼저 변경하고 저장소에는 뒤이어 기록한다
    # 같은 세션의 요청이 여러 스레드에서 올 수 있으므로 변경은 락 안에서 순서대로 처리

    def __init__(self, cart_repository: CartRepository, catalog_service: CatalogService,
                 cache: ReadThroughCache):
        # CartRepository, CatalogService, 장바구니 캐시 주입
        self.cart_repo = cart_repository
        self.catalog_service = catalog_service
        self.cache = cache
        self._carts: Dict[Optional[str], CartAggregator] = {}
        self._versions: Dict[Optional[str], int] = {}
        self._lock = threading.RLock()

    def cart(self, user_id: Optional[str]) -> CartAggregator:
        # 사용자 장바구니 (처음 접근 시 저장소에서 로드, 비로그인은 메모리에만 존재)
        with self._lock:
            cart = self._carts.get(user_id)
            if cart is not None:
                return cart

            cart = CartAggregator()
            if user_id is not None:
                lines: List[CartLine] = self.cache.get_or_fetch(
                    ("cart", user_id), lambda: self.cart_repo.get_lines(user_id)
                )
                cart.restore(lines)
            self._carts[user_id] = cart
            return cart

    def reload(self, user_id: Optional[str]) -> CartAggregator:
        # 메모리 상태를 버리고 저장소 기준으로 다시 동기화
        with self._lock:
            self._carts.pop(user_id, None)
            self.cache.invalidate(("cart", user_id))
            return self.cart(user_id)

    def add_item(self, user_id: Optional[str], food_item_id: str, size_id: Optional[str] = None,
                 quantity: int = 1, note: Optional[str] = None) -> MutationResult:
        # 가격은 현재 메뉴 기준으로 계산 (이미 담긴 라인의 가격은 유지)
        item, size = self.catalog_service.resolve(food_item_id, size_id)

        with self._lock:
            cart = self.cart(user_id)
            snapshot = cart.snapshot()
            line = cart.add_line(item, size, quantity, note)

            return self._write_through(user_id, cart, snapshot,
                                       lambda: self.cart_repo.save_line(user_id, line))

    def update_quantity(self, user_id: Optional[str], key: LineKey, quantity: int) -> MutationResult:
        # 수량이 0 이하이면 라인 삭제
        with self._lock:
            cart = self.cart(user_id)
            snapshot = cart.snapshot()
            cart.set_quantity(key, quantity)
            line = cart.get(key)

            if line is None:
                return self._write_through(user_id, cart, snapshot,
                                           lambda: self.cart_repo.delete_line(user_id, key))
            return self._write_through(user_id, cart, snapshot,
                                       lambda: self.cart_repo.save_line(user_id, line))

    def remove_item(self, user_id: Optional[str], key: LineKey) -> MutationResult:
        with self._lock:
            cart = self.cart(user_id)
            snapshot = cart.snapshot()
            cart.remove_line(key)

            return self._write_through(user_id, cart, snapshot,
                                       lambda: self.cart_repo.delete_line(user_id, key))

    def clear(self, user_id: Optional[str]) -> MutationResult:
        with self._lock:
            cart = self.cart(user_id)
            snapshot = cart.snapshot()
            cart.clear()

            return self._write_through(user_id, cart, snapshot,
                                       lambda: self.cart_repo.clear(user_id))

    def get_cart_details(self, user_id: Optional[str]) -> Dict[str, Any]:
        # 현재 장바구니 내용과 총액 정보
        with self._lock:
            cart = self.cart(user_id)
            return {
                "lines": [line.to_dict() for line in cart.lines],
                "summary": cart.summary().to_dict(),
                "message": f"{len(cart)} item(s) in cart" if len(cart) else "Cart is empty"
            }

    @property
    def lock(self) -> threading.RLock:
        # 장바구니를 직접 다루는 호출자(주문 제출)가 같은 락을 사용
        return self._lock

    def close(self) -> None:
        with self._lock:
            self._carts.clear()
            self._versions.clear()

    def _write_through(self, user_id: Optional[str], cart: CartAggregator,
                       snapshot: List[CartLine], write: Callable[[], Any]) -> MutationResult:
        self.cache.invalidate(("cart", user_id))
        version = self._versions.get(user_id, 0) + 1
        self._versions[user_id] = version
        summary = cart.summary()
        if user_id is None:
            return MutationResult(True, summary)

        try:
            write()
        except RemoteError as e:
            # 메모리와 저장소 상태가 어긋남, 되돌릴지는 호출자가 결정
            logger.warning("cart_write_failed", user_id=user_id, error=str(e))
            return MutationResult(False, summary, error=e,
                                  restore=lambda: self._rollback(user_id, cart, snapshot, version))
        return MutationResult(True, summary)

    def _rollback(self, user_id: Optional[str], cart: CartAggregator,
                  snapshot: List[CartLine], version: int) -> None:
        with self._lock:
            if self._carts.get(user_id) is cart and self._versions.get(user_id) == version:
                cart.restore(snapshot)
                return
            # 이후 다른 변경이 반영되었으면 스냅샷 대신 저장소 기준으로 재동기화
            logger.info("cart_rollback_resynced", user_id=user_id)
            self.reload(user_id)
