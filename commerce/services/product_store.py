"""Product catalogue storage"""

from __future__ import annotations

from typing import Any, Dict, List

from ..models.base import build_model
from ..models.product import DEFAULT_CATEGORY, Product
from ..utils.exceptions import ConflictError, ValidationError
from ..utils.logger import get_logger
from .collection_store import CollectionStore

logger = get_logger(__name__)


class ProductStore(CollectionStore[Product]):
    model = Product
    entity_name = "Product"

    def create_product(self, data: Dict[str, Any]) -> Product:
        """
        Raises:
            ValidationError: Name or price missing, or a field has the wrong type
        """
        if not data.get("name") or data.get("price") in (None, ""):
            raise ValidationError("Product name and price are required")
        product = build_model(
            Product,
            {
                "name": data["name"],
                "description": data.get("description") or "",
                "price": data["price"],
                "category": data.get("category") or DEFAULT_CATEGORY,
                "imageUrl": data.get("imageUrl") or data.get("image_url"),
                "stock": data.get("stock") or 0,
            },
        )
        if product.stock < 0:
            raise ValidationError("Stock cannot be negative")
        return self._insert(product)

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Product:
        changes = {k: v for k, v in updates.items() if k not in ("id", "createdAt")}
        return self._patch(product_id, changes)

    def search(self, query: str) -> List[Product]:
        """Name or description substring match, case-insensitive"""
        q = (query or "").strip().lower()
        return self.find(lambda p: q in p.name.lower() or q in (p.description or "").lower())

    def find_by_category(self, category: str) -> List[Product]:
        return self.find(lambda p: p.category == category)

    def adjust_stock(self, product_id: str, delta: int) -> Product:
        """
        Add `delta` (negative to take stock) under the store lock.

        Raises:
            NotFoundError: Unknown product
            ConflictError: Resulting stock would be negative (INSUFFICIENT_STOCK)
        """
        def apply(current: Product) -> Product:
            new_stock = current.stock + delta
            if new_stock < 0:
                raise ConflictError(
                    f"Insufficient stock for product {current.name}: {current.stock} available",
                    code="INSUFFICIENT_STOCK",
                )
            return current.model_copy(update={"stock": new_stock})

        product = self._update(product_id, apply)
        logger.info("Stock adjusted", product_id=product_id, delta=delta, stock=product.stock)
        return product
