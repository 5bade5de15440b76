"""Payment models (mock gateway)"""

from enum import Enum
from typing import Any, Dict

from pydantic import Field

from .base import Document


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CRYPTO = "crypto"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


PAYMENT_METHODS = [m.value for m in PaymentMethod]
PAYMENT_STATUSES = [s.value for s in PaymentStatus]

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}


class Payment(Document):
    transaction_id: str
    user_id: str
    order_id: str
    payment_method: PaymentMethod
    amount: float = Field(gt=0)
    status: PaymentStatus = PaymentStatus.COMPLETED
    currency: str = "USD"
    description: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
