"""Domain stores, one per collection, and cross-collection workflows"""

from .cart_store import CartStore
from .collection_store import CollectionStore
from .order_service import OrderService
from .order_store import OrderStore
from .payment_store import PaymentStore
from .product_store import ProductStore
from .user_store import UserStore, hash_password, verify_password

__all__ = [
    "CartStore",
    "CollectionStore",
    "OrderService",
    "OrderStore",
    "PaymentStore",
    "ProductStore",
    "UserStore",
    "hash_password",
    "verify_password",
]
