"""
Database repository classes

OrderRepository exposes the store procedures (create_order_with_items,
cancel_order, update_order_status); each runs in one transaction.
"""
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator, List, Optional

import structlog

from core.errors import OrderNotFound, RemoteError
from models.cart import CartLine, LineKey, format_line_key
from models.catalog import FoodItem, ItemSize
from models.order import (
    CancellationRecord, Order, OrderLine, OrderSource, OrderStatus,
    OrderType, PaymentMethod, StatusHistoryEntry
)
from .connection import DatabaseConnection

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> str:
    # 문자열 비교로 정렬/범위 조회가 가능하도록 UTC, 마이크로초까지 고정
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


@contextmanager
def unit_of_work(db: DatabaseConnection, action: str) -> Generator[sqlite3.Connection, None, None]:
    # 하나의 트랜잭션으로 실행하고 sqlite 오류는 RemoteError로 변환
    with db.get_connection() as conn:
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("store_call_failed", action=action, error=str(e))
            raise RemoteError(f"{action} failed: {e}") from e


class CatalogRepository:
    # 메뉴 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection 인스턴스 주입
        self.db = db_connection

    def list_items(self, available_only: bool = True) -> List[FoodItem]:
        with unit_of_work(self.db, "list_items") as conn:
            sql = "SELECT id, name, price, category, description, is_available FROM food_items"
            if available_only:
                sql += " WHERE is_available = 1"
            sql += " ORDER BY category, name"
            return [self._item_from_row(row) for row in conn.execute(sql)]

    def get_item(self, food_item_id: str) -> Optional[FoodItem]:
        with unit_of_work(self.db, "get_item") as conn:
            row = conn.execute("""
            SELECT id, name, price, category, description, is_available
            FROM food_items WHERE id = ?
            """, (food_item_id,)).fetchone()
            return self._item_from_row(row) if row else None

    def get_sizes(self, food_item_id: str) -> List[ItemSize]:
        with unit_of_work(self.db, "get_sizes") as conn:
            rows = conn.execute("""
            SELECT id, food_item_id, name, price_modifier
            FROM item_sizes WHERE food_item_id = ?
            ORDER BY price_modifier
            """, (food_item_id,))
            return [self._size_from_row(row) for row in rows]

    def get_size(self, size_id: str) -> Optional[ItemSize]:
        with unit_of_work(self.db, "get_size") as conn:
            row = conn.execute("""
            SELECT id, food_item_id, name, price_modifier
            FROM item_sizes WHERE id = ?
            """, (size_id,)).fetchone()
            return self._size_from_row(row) if row else None

    def save_item(self, item: FoodItem) -> None:
        with unit_of_work(self.db, "save_item") as conn:
            conn.execute("""
            INSERT INTO food_items (id, name, price, category, description, is_available)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                price = excluded.price,
                category = excluded.category,
                description = excluded.description,
                is_available = excluded.is_available
            """, (item.id, item.name, item.price, item.category, item.description,
                  int(item.is_available)))

    def save_size(self, size: ItemSize) -> None:
        with unit_of_work(self.db, "save_size") as conn:
            conn.execute("""
            INSERT INTO item_sizes (id, food_item_id, name, price_modifier)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                food_item_id = excluded.food_item_id,
                name = excluded.name,
                price_modifier = excluded.price_modifier
            """, (size.id, size.food_item_id, size.name, size.price_modifier))

    @staticmethod
    def _item_from_row(row: sqlite3.Row) -> FoodItem:
        return FoodItem(
            id=row["id"],
            name=row["name"],
            price=row["price"],
            category=row["category"],
            description=row["description"],
            is_available=bool(row["is_available"])
        )

    @staticmethod
    def _size_from_row(row: sqlite3.Row) -> ItemSize:
        return ItemSize(
            id=row["id"],
            food_item_id=row["food_item_id"],
            name=row["name"],
            price_modifier=row["price_modifier"]
        )


class CartRepository:
    # 장바구니 데이터 접근 계층 (사용자별 장바구니 관리)

    def __init__(self, db_connection: DatabaseConnection, clock: Clock = utc_now):
        self.db = db_connection
        self.clock = clock

    def get_lines(self, user_id: str) -> List[CartLine]:
        # 사용자의 장바구니 라인 조회 (추가된 순서)
        with unit_of_work(self.db, "get_cart_lines") as conn:
            rows = conn.execute("""
            SELECT food_item_id, size_id, name, size_name, unit_price, quantity, note
            FROM cart_items WHERE user_id = ?
            ORDER BY created_at, rowid
            """, (user_id,))

            return [CartLine(
                food_item_id=row["food_item_id"],
                name=row["name"],
                unit_price=row["unit_price"],
                quantity=row["quantity"],
                size_id=row["size_id"],
                size_name=row["size_name"],
                note=row["note"]
            ) for row in rows]

    def save_line(self, user_id: str, line: CartLine) -> None:
        # 라인의 현재 상태를 그대로 저장 (수량은 증감이 아닌 절대값)
        now = to_timestamp(self.clock())
        with unit_of_work(self.db, "save_cart_line") as conn:
            conn.execute("""
            INSERT INTO cart_items (
                user_id, line_key, food_item_id, size_id, name, size_name,
                unit_price, quantity, note, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, line_key) DO UPDATE SET
                quantity = excluded.quantity,
                note = excluded.note,
                updated_at = excluded.updated_at
            """, (
                user_id, format_line_key(line.key), line.food_item_id, line.size_id,
                line.name, line.size_name, line.unit_price, line.quantity, line.note,
                now, now
            ))

    def delete_line(self, user_id: str, key: LineKey) -> int:
        with unit_of_work(self.db, "delete_cart_line") as conn:
            cursor = conn.execute(
                "DELETE FROM cart_items WHERE user_id = ? AND line_key = ?",
                (user_id, format_line_key(key))
            )
            return cursor.rowcount

    def clear(self, user_id: str) -> int:
        # 장바구니 전체 비우기, 삭제된 라인 수 반환
        with unit_of_work(self.db, "clear_cart") as conn:
            cursor = conn.execute("DELETE FROM cart_items WHERE user_id = ?", (user_id,))
            return cursor.rowcount


class OrderRepository:
    # 주문 데이터 접근 계층 (주문 생성, 상태 변경, 취소)

    def __init__(self, db_connection: DatabaseConnection, clock: Clock = utc_now):
        self.db = db_connection
        self.clock = clock

    def create_order_with_items(self, header: Dict[str, Any], items: List[Dict[str, Any]]) -> Order:
        # 주문과 주문 아이템을 하나의 트랜잭션으로 생성, 총액은 아이템에서 계산
        order_id = str(uuid.uuid4())
        now = to_timestamp(self.clock())
        total_amount = sum(item["quantity"] * item["unit_price"] for item in items)

        with unit_of_work(self.db, "create_order_with_items") as conn:
            conn.execute("""
            INSERT INTO orders (
                id, user_id, customer_name, customer_phone, customer_email, customer_address,
                order_type, payment_method, status, order_source, total_amount, notes,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                order_id, header.get("user_id"), header["customer_name"], header["customer_phone"],
                header.get("customer_email"), header.get("customer_address"),
                header["order_type"], header["payment_method"], OrderStatus.PENDING.value,
                header.get("order_source", OrderSource.ONLINE.value), total_amount,
                header.get("notes"), now, now
            ))

            for item in items:
                conn.execute("""
                INSERT INTO order_items (
                    id, order_id, food_item_id, size_id, quantity, unit_price,
                    total_price, special_instructions
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    str(uuid.uuid4()), order_id, item["food_item_id"], item.get("size_id"),
                    item["quantity"], item["unit_price"], item["total_price"],
                    item.get("special_instructions")
                ))

            self._add_history(conn, order_id, OrderStatus.PENDING.value,
                              header.get("user_id"), "Order placed", now)

            return self._load_order(conn, order_id)

    def update_order_status(self, order_id: str, status: OrderStatus,
                            changed_by: Optional[str] = None,
                            notes: Optional[str] = None) -> None:
        now = to_timestamp(self.clock())
        with unit_of_work(self.db, "update_order_status") as conn:
            cursor = conn.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, now, order_id)
            )
            if cursor.rowcount == 0:
                raise OrderNotFound(order_id)

            self._add_history(conn, order_id, status.value, changed_by,
                              notes or f"Status changed to {status.value}", now)

    def cancel_order(self, order_id: str, reason: str, cancelled_by: Optional[str]) -> Order:
        # 상태 변경 + 취소 기록 + 이력 추가를 하나의 트랜잭션으로 처리
        now = to_timestamp(self.clock())
        with unit_of_work(self.db, "cancel_order") as conn:
            cursor = conn.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?",
                (OrderStatus.CANCELLED.value, now, order_id)
            )
            if cursor.rowcount == 0:
                raise OrderNotFound(order_id)

            conn.execute("""
            INSERT INTO order_cancellations (order_id, cancelled_by, reason, created_at)
            VALUES (?, ?, ?, ?)
            """, (order_id, cancelled_by, reason, now))

            self._add_history(conn, order_id, OrderStatus.CANCELLED.value, cancelled_by,
                              f"Order cancelled - {reason}", now)

            return self._load_order(conn, order_id)

    def get_order(self, order_id: str) -> Optional[Order]:
        with unit_of_work(self.db, "get_order") as conn:
            try:
                return self._load_order(conn, order_id)
            except OrderNotFound:
                return None

    def list_orders(self, user_id: Optional[str] = None,
                    source: Optional[OrderSource] = None,
                    status: Optional[OrderStatus] = None,
                    since: Optional[datetime] = None,
                    until: Optional[datetime] = None) -> List[Order]:
        # 조건별 주문 목록 조회 (최신순)
        sql = "SELECT * FROM orders WHERE 1 = 1"
        params: List[Any] = []
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        if source is not None:
            sql += " AND order_source = ?"
            params.append(source.value)
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        if since is not None:
            sql += " AND created_at >= ?"
            params.append(to_timestamp(since))
        if until is not None:
            sql += " AND created_at < ?"
            params.append(to_timestamp(until))
        sql += " ORDER BY created_at DESC"

        with unit_of_work(self.db, "list_orders") as conn:
            rows = conn.execute(sql, params).fetchall()
            lines = self._load_lines(conn, [row["id"] for row in rows])
            return [self._order_from_row(row, lines.get(row["id"], [])) for row in rows]

    def get_cancellation(self, order_id: str) -> Optional[CancellationRecord]:
        with unit_of_work(self.db, "get_cancellation") as conn:
            row = conn.execute("""
            SELECT order_id, cancelled_by, reason, created_at
            FROM order_cancellations WHERE order_id = ?
            """, (order_id,)).fetchone()
            if not row:
                return None
            return CancellationRecord(
                order_id=row["order_id"],
                reason=row["reason"],
                cancelled_by=row["cancelled_by"],
                created_at=from_timestamp(row["created_at"])
            )

    def count_cancellations(self, cancelled_by: str, since: datetime, until: datetime) -> int:
        # 특정 사용자가 주어진 기간에 취소한 주문 수
        with unit_of_work(self.db, "count_cancellations") as conn:
            row = conn.execute("""
            SELECT COUNT(*) FROM order_cancellations
            WHERE cancelled_by = ? AND created_at >= ? AND created_at < ?
            """, (cancelled_by, to_timestamp(since), to_timestamp(until))).fetchone()
            return row[0]

    def get_status_history(self, order_id: str) -> List[StatusHistoryEntry]:
        with unit_of_work(self.db, "get_status_history") as conn:
            rows = conn.execute("""
            SELECT order_id, status, changed_by, notes, created_at
            FROM order_status_history WHERE order_id = ?
            ORDER BY id
            """, (order_id,))
            return [StatusHistoryEntry(
                order_id=row["order_id"],
                status=OrderStatus(row["status"]),
                changed_by=row["changed_by"],
                notes=row["notes"],
                created_at=from_timestamp(row["created_at"])
            ) for row in rows]

    @staticmethod
    def _add_history(conn: sqlite3.Connection, order_id: str, status: str,
                     changed_by: Optional[str], notes: str, created_at: str) -> None:
        conn.execute("""
        INSERT INTO order_status_history (order_id, status, changed_by, notes, created_at)
        VALUES (?, ?, ?, ?, ?)
        """, (order_id, status, changed_by, notes, created_at))

    def _load_order(self, conn: sqlite3.Connection, order_id: str) -> Order:
        row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        if not row:
            raise OrderNotFound(order_id)
        lines = self._load_lines(conn, [order_id])
        return self._order_from_row(row, lines.get(order_id, []))

    @staticmethod
    def _load_lines(conn: sqlite3.Connection, order_ids: List[str]) -> Dict[str, List[OrderLine]]:
        if not order_ids:
            return {}
        placeholders = ", ".join("?" for _ in order_ids)
        rows = conn.execute(f"""
        SELECT id, order_id, food_item_id, size_id, quantity, unit_price, special_instructions
        FROM order_items WHERE order_id IN ({placeholders})
        ORDER BY rowid
        """, order_ids)

        lines: Dict[str, List[OrderLine]] = {}
        for row in rows:
            lines.setdefault(row["order_id"], []).append(OrderLine(
                id=row["id"],
                order_id=row["order_id"],
                food_item_id=row["food_item_id"],
                quantity=row["quantity"],
                unit_price=row["unit_price"],
                size_id=row["size_id"],
                note=row["special_instructions"]
            ))
        return lines

    @staticmethod
    def _order_from_row(row: sqlite3.Row, lines: List[OrderLine]) -> Order:
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            customer_name=row["customer_name"],
            customer_phone=row["customer_phone"],
            customer_email=row["customer_email"],
            customer_address=row["customer_address"],
            order_type=OrderType(row["order_type"]),
            payment_method=PaymentMethod(row["payment_method"]),
            status=OrderStatus(row["status"]),
            total_amount=row["total_amount"],
            source=OrderSource(row["order_source"]),
            notes=row["notes"],
            created_at=from_timestamp(row["created_at"]),
            updated_at=from_timestamp(row["updated_at"]),
            lines=lines
        )
