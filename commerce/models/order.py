"""
Order models.

Lifecycle: pending -> processing -> shipped -> delivered, and any
non-terminal status -> cancelled. `statusHistory` is append-only.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import Field

from .base import CamelModel, Document


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ORDER_STATUSES = [s.value for s in OrderStatus]

# Forward order of the fulfilment path; cancelled sits outside it
FULFILMENT_PATH = [
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


class OrderItem(CamelModel):
    product_id: str
    quantity: int = Field(ge=1)
    name: Optional[str] = None
    price: float = 0.0


class StatusHistoryEntry(CamelModel):
    status: OrderStatus
    timestamp: str
    note: Optional[str] = None


class Order(Document):
    user_id: str
    items: List[OrderItem]
    shipping_address: Any
    billing_address: Any = None
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float = 0.0
    payment_method: Optional[str] = None
    payment_status: str = "pending"
    notes: str = ""
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)


def calculate_total(items: List[OrderItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)
