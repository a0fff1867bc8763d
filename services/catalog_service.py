"""
Catalog service - resolves menu items and sizes for pricing
"""
from typing import Any, Dict, List, Optional, Tuple

from core.errors import ValidationError
from database.repository import CatalogRepository
from models.catalog import FoodItem, ItemSize


class CatalogService:
    # 메뉴 조회 로직을 처리하는 서비스 클래스

    def __init__(self, catalog_repository: CatalogRepository):
        # CatalogRepository 인스턴스를 주입받아 데이터 접근 계층과 연결
        self.catalog_repo = catalog_repository

    def get_menu(self) -> List[Dict[str, Any]]:
        # 판매 중인 메뉴와 사이즈 옵션 목록
        menu = []
        for item in self.catalog_repo.list_items(available_only=True):
            entry = item.to_dict()
            entry["sizes"] = [size.to_dict() for size in self.catalog_repo.get_sizes(item.id)]
            menu.append(entry)
        return menu

    def resolve(self, food_item_id: str, size_id: Optional[str] = None) -> Tuple[FoodItem, Optional[ItemSize]]:
        # 장바구니 추가 시점의 가격 계산을 위해 상품과 사이즈를 함께 조회
        item = self.catalog_repo.get_item(food_item_id)
        if item is None:
            raise ValidationError(["food_item_id"], f"Unknown food item: {food_item_id}")
        if not item.is_available:
            raise ValidationError(["food_item_id"], f"{item.name} is not available")

        if size_id is None:
            return item, None

        size = self.catalog_repo.get_size(size_id)
        if size is None or size.food_item_id != item.id:
            raise ValidationError(["size_id"], f"Unknown size {size_id} for {item.name}")
        return item, size
