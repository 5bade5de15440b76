"""
Order storage and lifecycle rules.

Invariants:
    - An order always has at least one item; every item has a productId and
      an integer quantity >= 1.
    - Status moves forward along pending -> processing -> shipped -> delivered
      (skipping ahead is allowed) or to cancelled. delivered and cancelled are
      terminal.
    - statusHistory is append-only and gains one entry per actual status change.
    - totalAmount is recomputed whenever items change, never on read.
    - All validation happens before the collection file is touched.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

from ..models.base import build_model, parse_timestamp, utc_now_iso
from ..models.order import (
    FULFILMENT_PATH,
    ORDER_STATUSES,
    TERMINAL_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    StatusHistoryEntry,
    calculate_total,
)
from ..utils.exceptions import ConflictError, NotFoundError, ValidationError
from ..utils.logger import get_logger
from .collection_store import CollectionStore, created_within

logger = get_logger(__name__)

UPDATABLE_FIELDS = (
    "shippingAddress",
    "billingAddress",
    "notes",
    "paymentMethod",
    "paymentStatus",
)


def parse_status(status: Any) -> OrderStatus:
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status. Valid statuses are: {', '.join(ORDER_STATUSES)}"
        )
    return OrderStatus(status)


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Raises:
        ConflictError: Backward move or leaving a terminal state (INVALID_STATUS_TRANSITION)
    """
    if current == target:
        return
    allowed = current not in TERMINAL_STATUSES and (
        target == OrderStatus.CANCELLED
        or FULFILMENT_PATH.index(target) > FULFILMENT_PATH.index(current)
    )
    if not allowed:
        raise ConflictError(
            f"Cannot change order status from {current.value} to {target.value}",
            code="INVALID_STATUS_TRANSITION",
        )


def validate_items(items: Any) -> List[OrderItem]:
    """Check an item list and return it as models, naming the first bad item"""
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")
    out = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item at index {i} must be an object")
        if not item.get("productId"):
            raise ValidationError(f"Item at index {i} is missing productId")
        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Item at index {i} has invalid quantity")
        price = item.get("price", 0)
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            raise ValidationError(f"Item at index {i} has invalid price")
        out.append(build_model(OrderItem, item))
    return out


def _history_entry(status: OrderStatus, note: Optional[str]) -> StatusHistoryEntry:
    return StatusHistoryEntry(status=status, timestamp=utc_now_iso(), note=note)


class OrderStore(CollectionStore[Order]):
    model = Order
    entity_name = "Order"

    def get_by_user(self, user_id: str) -> List[Order]:
        return self.find(lambda o: o.user_id == user_id)

    def get_by_status(self, status: str) -> List[Order]:
        target = parse_status(status)
        return self.find(lambda o: o.status == target)

    def create_order(self, data: Dict[str, Any]) -> Order:
        """
        Raises:
            ValidationError: Missing userId, empty or invalid items, missing
                shippingAddress, or unknown status
        """
        if not data.get("userId"):
            raise ValidationError("User ID is required")
        items = validate_items(data.get("items"))
        if not data.get("shippingAddress"):
            raise ValidationError("Shipping address is required")
        status = parse_status(data.get("status") or OrderStatus.PENDING.value)

        total = data.get("totalAmount")
        order = build_model(
            Order,
            {
                "userId": data["userId"],
                "items": [item.to_record() for item in items],
                "shippingAddress": data["shippingAddress"],
                "billingAddress": data.get("billingAddress") or data["shippingAddress"],
                "status": status.value,
                "totalAmount": total if total else calculate_total(items),
                "paymentMethod": data.get("paymentMethod"),
                "paymentStatus": data.get("paymentStatus") or "pending",
                "notes": data.get("notes") or "",
                "statusHistory": [_history_entry(status, "Order created").to_record()],
            },
        )
        return self._insert(order)

    def update_order(self, order_id: str, updates: Dict[str, Any]) -> Order:
        """
        Update an order. `status` goes through the transition rules (with an
        optional `statusNote`), `items` are revalidated and the total
        recomputed; other known fields are copied as given.

        Raises:
            NotFoundError: Unknown order
            ValidationError: Invalid items or status
            ConflictError: Status transition not allowed
        """
        target = parse_status(updates["status"]) if updates.get("status") else None
        items = validate_items(updates["items"]) if "items" in updates else None
        note = updates.get("statusNote")

        def apply(current: Order) -> Order:
            changes: Dict[str, Any] = {
                field: updates[field] for field in UPDATABLE_FIELDS if field in updates
            }
            if items is not None:
                if current.status in TERMINAL_STATUSES:
                    raise ConflictError(
                        f"Cannot update items in {current.status.value} orders", code="ORDER_LOCKED"
                    )
                changes["items"] = [item.to_record() for item in items]
                changes["totalAmount"] = calculate_total(items)
            if target is not None and target != current.status:
                check_transition(current.status, target)
                history = [entry.to_record() for entry in current.status_history]
                history.append(
                    _history_entry(target, note or f"Status changed to {target.value}").to_record()
                )
                changes["status"] = target.value
                changes["statusHistory"] = history
            merged = current.to_record()
            merged.update(changes)
            return build_model(Order, merged)

        order = self._update(order_id, apply)
        if target is not None:
            logger.info("Order status updated", order_id=order_id, status=order.status.value)
        return order

    def update_order_status(self, order_id: str, status: str, note: Optional[str] = None) -> Order:
        parse_status(status)
        return self.update_order(order_id, {"status": status, "statusNote": note})

    def _modify_items(self, order_id: str, action: str, change) -> Order:
        """Run an item-list change on a non-terminal order and recompute its total"""
        def apply(current: Order) -> Order:
            if current.status in TERMINAL_STATUSES:
                raise ConflictError(
                    f"Cannot {action} items in {current.status.value} orders", code="ORDER_LOCKED"
                )
            records = change([item.to_record() for item in current.items])
            items = validate_items(records)
            merged = current.to_record()
            merged["items"] = [item.to_record() for item in items]
            merged["totalAmount"] = calculate_total(items)
            return build_model(Order, merged)

        return self._update(order_id, apply)

    def add_order_item(self, order_id: str, item: Dict[str, Any]) -> Order:
        """Append an item (quantity defaults to 1)"""
        if not item.get("productId") or not item.get("name") or item.get("price") in (None, ""):
            raise ValidationError("Item must have productId, name, and price")
        new_item = {**item, "quantity": item.get("quantity") or 1}
        validate_items([new_item])
        return self._modify_items(order_id, "add", lambda items: items + [new_item])

    def remove_order_item(self, order_id: str, product_id: str) -> Order:
        def change(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            remaining = [i for i in items if i["productId"] != product_id]
            if len(remaining) == len(items):
                raise NotFoundError(f"Item with productId {product_id} not found in order")
            if not remaining:
                raise ValidationError(
                    "Cannot remove the last item from an order. Consider cancelling the order instead."
                )
            return remaining

        return self._modify_items(order_id, "remove", change)

    def update_order_item(self, order_id: str, product_id: str, updates: Dict[str, Any]) -> Order:
        def change(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            for i, item in enumerate(items):
                if item["productId"] == product_id:
                    items[i] = {**item, **updates, "productId": product_id}
                    return items
            raise NotFoundError(f"Item with productId {product_id} not found in order")

        return self._modify_items(order_id, "update", change)

    def search(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> List[Order]:
        target = parse_status(status) if status else None

        def matches(order: Order) -> bool:
            if user_id and order.user_id != user_id:
                return False
            if target is not None and order.status != target:
                return False
            if product_id and not any(item.product_id == product_id for item in order.items):
                return False
            return created_within(order, start_date, end_date)

        return self.find(matches)

    def count_by_status(self) -> Dict[str, int]:
        """Every status present, zero-filled"""
        counts = Counter(order.status.value for order in self.get_all())
        return {status: counts.get(status, 0) for status in ORDER_STATUSES}

    def user_order_history(self, user_id: str) -> List[Order]:
        """Newest first"""
        return sorted(self.get_by_user(user_id), key=lambda o: parse_timestamp(o.created_at), reverse=True)

    def recent_orders(self, limit: int = 10) -> List[Order]:
        orders = sorted(self.get_all(), key=lambda o: parse_timestamp(o.created_at), reverse=True)
        return orders[: max(0, limit)]
