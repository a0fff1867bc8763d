#!/usr/bin/env python3
"""
데이터베이스 초기화 스크립트
테이블을 생성하고 샘플 메뉴 데이터를 넣습니다.
"""
import sqlite3

from config import Settings
from core.currency import format_currency, to_minor
from core.errors import RemoteError
from database.connection import DatabaseConnection
from database.repository import CatalogRepository
from models.catalog import FoodItem, ItemSize

# 가격은 페소 단위로 적고 저장 시 센타보로 변환
SAMPLE_MENU = [
    FoodItem("burger-classic", "Classic Burger", to_minor("149.00"), "Burgers", "Beef patty, cheddar, pickles"),
    FoodItem("burger-chicken", "Crispy Chicken Burger", to_minor("159.00"), "Burgers", "Fried chicken thigh, slaw"),
    FoodItem("fries", "Fries", to_minor("69.00"), "Sides", "Sea salt fries"),
    FoodItem("iced-tea", "Iced Tea", to_minor("49.00"), "Drinks", "House-brewed lemon iced tea"),
    FoodItem("halo-halo", "Halo-Halo", to_minor("99.00"), "Desserts", "Shaved ice, ube, leche flan"),
]

SAMPLE_SIZES = [
    ItemSize("fries-regular", "fries", "Regular", 0),
    ItemSize("fries-large", "fries", "Large", to_minor("30.00")),
    ItemSize("iced-tea-medium", "iced-tea", "Medium", 0),
    ItemSize("iced-tea-large", "iced-tea", "Large", to_minor("20.00")),
]


def init_database(db_path: str, currency_symbol: str = "₱") -> bool:
    """Create tables and seed the sample menu"""
    try:
        catalog = CatalogRepository(DatabaseConnection(db_path))
        for item in SAMPLE_MENU:
            catalog.save_item(item)
        for size in SAMPLE_SIZES:
            catalog.save_size(size)

        print("✅ 데이터베이스 초기화 완료!")

        # Verify data
        items = catalog.list_items(available_only=False)
        print(f"📊 food_items 테이블: {len(items)}개 메뉴")
        for item in items:
            print(f"   - {item.name}: {format_currency(item.price, currency_symbol)}")

        return True

    except (RemoteError, sqlite3.Error) as e:
        print(f"❌ 데이터베이스 초기화 실패: {str(e)}")
        return False


if __name__ == "__main__":
    settings = Settings.from_env()
    print(f"=== 주문 데이터베이스 초기화 ({settings.db_path}) ===")
    if init_database(settings.db_path, settings.currency_symbol):
        print("\n이제 app.py를 실행할 수 있습니다!")
    else:
        print("\n초기화에 실패했습니다. ORDERING_DB_PATH 설정을 확인해주세요.")
