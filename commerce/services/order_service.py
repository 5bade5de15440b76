"""
Order placement across the order and product collections.

The order write and the stock writes are separate critical sections: there
is no cross-collection transaction. When a stock decrement fails after the
order is written, the stock already taken is put back and the order is
deleted before the error propagates.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..models.order import OrderStatus, TERMINAL_STATUSES, Order
from ..utils.exceptions import ConflictError, NotFoundError, ValidationError
from ..utils.logger import get_logger
from .order_store import OrderStore, validate_items
from .product_store import ProductStore

logger = get_logger(__name__)


class OrderService:
    """Order workflows that touch more than one collection"""

    def __init__(self, orders: OrderStore, products: ProductStore, reserve_stock: bool = False):
        self.orders = orders
        self.products = products
        self.reserve_stock = reserve_stock

    def _priced_items(self, items: Any) -> Tuple[list, Dict[str, int]]:
        """
        Check each product exists and has stock for the quantity requested
        across all lines; fill missing name/price from the catalogue.

        Returns the item records and the total quantity per productId.
        """
        validated = validate_items(items)
        requested: Dict[str, int] = {}
        for item in validated:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        products = {}
        for product_id, quantity in requested.items():
            product = self.products.get_by_id(product_id)
            if product is None:
                raise ValidationError(f"Product with ID {product_id} not found")
            if product.stock < quantity:
                raise ConflictError(
                    f"Not enough stock for product {product_id}. "
                    f"Available: {product.stock}, Requested: {quantity}",
                    code="INSUFFICIENT_STOCK",
                )
            products[product_id] = product

        out = []
        for item in validated:
            product = products[item.product_id]
            record = item.to_record()
            record["name"] = item.name or product.name
            record["price"] = item.price or product.price
            out.append(record)
        return out, requested

    def place_order(self, data: Dict[str, Any]) -> Order:
        """
        Create an order. With stock reservation enabled, products are checked
        first and their stock decremented after the order is written. If a
        decrement fails, stock already taken is returned and the order removed.

        Raises:
            ValidationError: Invalid order data or unknown product
            ConflictError: Not enough stock (INSUFFICIENT_STOCK)
        """
        if not self.reserve_stock:
            return self.orders.create_order(data)

        payload = dict(data)
        payload["items"], requested = self._priced_items(data.get("items"))
        payload.pop("totalAmount", None)
        order = self.orders.create_order(payload)

        taken: List[Tuple[str, int]] = []
        for product_id, quantity in requested.items():
            try:
                self.products.adjust_stock(product_id, -quantity)
            except (ConflictError, NotFoundError):
                logger.error(
                    "Stock changed while placing order, rolling back",
                    order_id=order.id,
                    product_id=product_id,
                    quantity=quantity,
                )
                self._release(order.id, taken)
                raise
            taken.append((product_id, quantity))
        logger.info("Order placed", order_id=order.id, user_id=order.user_id, items=len(order.items))
        return order

    def _release(self, order_id: str, taken: List[Tuple[str, int]]) -> None:
        for product_id, quantity in taken:
            self.products.adjust_stock(product_id, quantity)
        self.orders.delete(order_id)

    def cancel_order(self, order_id: str, note: str = "Order cancelled") -> Order:
        """Cancel an order; reserved stock goes back to the catalogue"""
        current = self.orders.require(order_id)
        was_open = current.status not in TERMINAL_STATUSES
        order = self.orders.update_order_status(order_id, OrderStatus.CANCELLED.value, note)

        if self.reserve_stock and was_open:
            for item in order.items:
                if self.products.get_by_id(item.product_id) is None:
                    logger.warning("Cannot restock missing product", order_id=order_id, product_id=item.product_id)
                    continue
                self.products.adjust_stock(item.product_id, item.quantity)
            logger.info("Stock returned for cancelled order", order_id=order_id)
        return order

    def process_order(self, order_id: str) -> Order:
        """Move a pending order to processing"""
        current = self.orders.require(order_id)
        if current.status != OrderStatus.PENDING:
            raise ConflictError(
                f"Only pending orders can be processed, order is {current.status.value}",
                code="INVALID_STATUS_TRANSITION",
            )
        return self.orders.update_order_status(order_id, OrderStatus.PROCESSING.value, "Order processing started")
