"""
Database connection management
"""
import sqlite3
from contextlib import contextmanager
from typing import Generator

SCHEMA = '''
CREATE TABLE IF NOT EXISTS food_items (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    price INTEGER NOT NULL CHECK (price >= 0),
    category TEXT,
    description TEXT,
    is_available INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS item_sizes (
    id TEXT PRIMARY KEY,
    food_item_id TEXT NOT NULL REFERENCES food_items(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    price_modifier INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS cart_items (
    user_id TEXT NOT NULL,
    line_key TEXT NOT NULL,
    food_item_id TEXT NOT NULL REFERENCES food_items(id) ON DELETE CASCADE,
    size_id TEXT REFERENCES item_sizes(id),
    name TEXT NOT NULL,
    size_name TEXT,
    unit_price INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    note TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, line_key)
);

CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    customer_name TEXT NOT NULL,
    customer_phone TEXT NOT NULL,
    customer_email TEXT,
    customer_address TEXT,
    order_type TEXT NOT NULL CHECK (order_type IN ('pickup', 'delivery')),
    payment_method TEXT NOT NULL CHECK (payment_method IN ('cash', 'card')),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'preparing', 'ready', 'out_for_delivery', 'completed', 'cancelled')),
    order_source TEXT NOT NULL DEFAULT 'online' CHECK (order_source IN ('online', 'kiosk', 'pos')),
    total_amount INTEGER NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_items (
    id TEXT PRIMARY KEY,
    order_id TEXT NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
    food_item_id TEXT NOT NULL REFERENCES food_items(id),
    size_id TEXT REFERENCES item_sizes(id),
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    unit_price INTEGER NOT NULL,
    total_price INTEGER NOT NULL,
    special_instructions TEXT
);

CREATE TABLE IF NOT EXISTS order_cancellations (
    order_id TEXT PRIMARY KEY REFERENCES orders(id),
    cancelled_by TEXT,
    reason TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_status_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
    status TEXT NOT NULL,
    changed_by TEXT,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders(user_id);
CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status);
CREATE INDEX IF NOT EXISTS idx_orders_created_at ON orders(created_at);
CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);
CREATE INDEX IF NOT EXISTS idx_cancellations_actor ON order_cancellations(cancelled_by, created_at);
'''


class DatabaseConnection:
    # 데이터베이스 연결을 관리하는 클래스

    def __init__(self, db_path: str = "ordering.db"):
        # 데이터베이스 파일 경로 설정 및 초기화
        self.db_path = db_path
        self.init_database()

    def init_database(self):
        # 필요한 테이블이 없으면 생성
        with self.get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        # 컨텍스트 매니저를 사용하여 데이터베이스 연결 자동 관리
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()
