"""Collection document models"""

from .base import Document, build_model, parse_timestamp, utc_now_iso
from .cart import Cart, CartItem
from .order import ORDER_STATUSES, Order, OrderItem, OrderStatus, StatusHistoryEntry
from .payment import PAYMENT_METHODS, PAYMENT_STATUSES, Payment, PaymentMethod, PaymentStatus
from .product import Product
from .user import ROLE_ADMIN, ROLE_USER, User

__all__ = [
    "Document",
    "build_model",
    "parse_timestamp",
    "utc_now_iso",
    "Cart",
    "CartItem",
    "ORDER_STATUSES",
    "Order",
    "OrderItem",
    "OrderStatus",
    "StatusHistoryEntry",
    "PAYMENT_METHODS",
    "PAYMENT_STATUSES",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ROLE_ADMIN",
    "ROLE_USER",
    "User",
]
