"""
Shopping cart storage.

At most one cart per user. Items are keyed by productId: adding a product
that is already in the cart increases its quantity instead of duplicating it.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ..models.base import build_model, utc_now_iso
from ..models.cart import Cart, CartItem
from ..utils.exceptions import NotFoundError, ValidationError
from ..utils.logger import get_logger
from .collection_store import CollectionStore

logger = get_logger(__name__)

ItemList = List[Dict[str, Any]]


def _require_user_id(user_id: Optional[str]) -> None:
    if not user_id:
        raise ValidationError("User ID is required")


def _require_product_id(product_id: Optional[str]) -> None:
    if not product_id:
        raise ValidationError("Product ID is required")


def merge_items(items: List[CartItem]) -> List[CartItem]:
    """Collapse duplicate productIds, summing quantities; the last name/price wins"""
    merged: Dict[str, CartItem] = {}
    for item in items:
        existing = merged.get(item.product_id)
        if existing is None:
            merged[item.product_id] = item
        else:
            merged[item.product_id] = item.model_copy(
                update={"quantity": existing.quantity + item.quantity}
            )
    return list(merged.values())


class CartStore(CollectionStore[Cart]):
    model = Cart
    entity_name = "Cart"

    def get_by_user(self, user_id: str) -> Optional[Cart]:
        _require_user_id(user_id)
        return next((c for c in self.get_all() if c.user_id == user_id), None)

    def _mutate(self, user_id: str, change: Callable[[ItemList], ItemList], create: bool) -> Cart:
        """
        Apply `change` to the user's item list under the store lock.
        Creates the cart when `create` is set, otherwise raises CART_NOT_FOUND.
        """
        with self.store.transaction() as documents:
            index = next(
                (i for i, d in enumerate(documents) if isinstance(d, dict) and d.get("userId") == user_id),
                None,
            )
            if index is None:
                if not create:
                    raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
                current = Cart(user_id=user_id)
            else:
                current = build_model(Cart, documents[index])

            items = merge_items(
                [build_model(CartItem, i) for i in change([i.to_record() for i in current.items])]
            )
            record = current.to_record()
            record["items"] = [i.to_record() for i in items]
            record["updatedAt"] = utc_now_iso()
            cart = build_model(Cart, record)
            if index is None:
                documents.append(cart.to_record())
                logger.info("Cart created", user_id=user_id, cart_id=cart.id)
            else:
                documents[index] = cart.to_record()
        return cart

    def create_or_update_cart(self, user_id: str, items: Any) -> Cart:
        """Replace the cart's items, creating the cart if needed"""
        _require_user_id(user_id)
        if not isinstance(items, list):
            raise ValidationError("Items must be an array")
        validated = [build_model(CartItem, i) for i in items]
        return self._mutate(user_id, lambda _: [i.to_record() for i in validated], create=True)

    def add_item(self, user_id: str, item: Dict[str, Any]) -> Cart:
        """
        Add a product, or increase its quantity and refresh name/price if present.

        Raises:
            ValidationError: Missing productId, name, price or quantity, or bad values
        """
        _require_user_id(user_id)
        if not item or not item.get("productId"):
            raise ValidationError("Valid item with productId is required")
        if not item.get("name") or item.get("price") is None or item.get("quantity") is None:
            raise ValidationError("Item must have name, price, and quantity")
        new_item = build_model(CartItem, item)

        def change(items: ItemList) -> ItemList:
            for i, existing in enumerate(items):
                if existing["productId"] == new_item.product_id:
                    items[i] = {
                        **existing,
                        "quantity": existing["quantity"] + new_item.quantity,
                        "price": new_item.price,
                        "name": new_item.name,
                    }
                    return items
            return items + [new_item.to_record()]

        return self._mutate(user_id, change, create=True)

    def remove_item(self, user_id: str, product_id: str) -> Cart:
        _require_user_id(user_id)
        _require_product_id(product_id)
        return self._mutate(
            user_id, lambda items: [i for i in items if i["productId"] != product_id], create=False
        )

    def update_item_quantity(self, user_id: str, product_id: str, quantity: Any) -> Cart:
        _require_user_id(user_id)
        _require_product_id(product_id)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be a positive number")

        def change(items: ItemList) -> ItemList:
            for item in items:
                if item["productId"] == product_id:
                    item["quantity"] = quantity
                    return items
            raise NotFoundError("Item not found in cart", code="ITEM_NOT_FOUND")

        return self._mutate(user_id, change, create=False)

    def clear_cart(self, user_id: str) -> Cart:
        _require_user_id(user_id)
        return self._mutate(user_id, lambda _: [], create=False)

    def delete_cart(self, user_id: str) -> bool:
        """Remove the user's cart. Returns False when there was none."""
        _require_user_id(user_id)
        cart = self.get_by_user(user_id)
        if cart is None:
            return False
        return self.delete(cart.id)

    def calculate_total(self, user_id: str) -> Dict[str, Any]:
        cart = self.get_by_user(user_id)
        if cart is None:
            return {"total": 0, "itemCount": 0}
        total = round(sum(i.price * i.quantity for i in cart.items), 2)
        return {"total": total, "itemCount": sum(i.quantity for i in cart.items)}
