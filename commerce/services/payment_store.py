"""
Payment storage with a mock gateway.

Created payments are immediately `completed` with a `txn_<digits>`
transaction id; no real processor is contacted.
"""

from __future__ import annotations

import secrets
from typing import Any, Dict, List, Optional

from ..models.base import build_model
from ..models.payment import (
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    PAYMENT_TRANSITIONS,
    Payment,
    PaymentStatus,
)
from ..utils.exceptions import ConflictError, ValidationError
from ..utils.logger import get_logger
from .collection_store import CollectionStore, created_within

logger = get_logger(__name__)


def _transaction_id() -> str:
    return f"txn_{secrets.randbelow(10**9)}"


def _check_method(method: Any) -> None:
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Valid methods are: {', '.join(PAYMENT_METHODS)}"
        )


def _check_status(status: Any) -> None:
    if status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status. Valid statuses are: {', '.join(PAYMENT_STATUSES)}"
        )


class PaymentStore(CollectionStore[Payment]):
    model = Payment
    entity_name = "Payment"

    def create_payment(self, data: Dict[str, Any]) -> Payment:
        """
        Raises:
            ValidationError: Missing ids, unknown method, or non-positive amount
        """
        if not data.get("userId"):
            raise ValidationError("User ID is required")
        if not data.get("orderId"):
            raise ValidationError("Order ID is required")
        if not data.get("paymentMethod"):
            raise ValidationError("Payment method is required")
        _check_method(data["paymentMethod"])
        amount = data.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
            raise ValidationError("Amount must be a positive number")

        payment = build_model(
            Payment,
            {
                "transactionId": _transaction_id(),
                "userId": data["userId"],
                "orderId": data["orderId"],
                "paymentMethod": data["paymentMethod"],
                "amount": amount,
                "status": PaymentStatus.COMPLETED.value,
                "currency": data.get("currency") or "USD",
                "description": data.get("description") or "",
                "metadata": data.get("metadata") or {},
            },
        )
        return self._insert(payment)

    def get_by_user(self, user_id: str) -> List[Payment]:
        return self.find(lambda p: p.user_id == user_id)

    def get_by_order(self, order_id: str) -> List[Payment]:
        return self.find(lambda p: p.order_id == order_id)

    def update_payment(self, payment_id: str, updates: Dict[str, Any]) -> Payment:
        if "paymentMethod" in updates:
            _check_method(updates["paymentMethod"])
        if "status" in updates:
            _check_status(updates["status"])
        changes = {k: v for k, v in updates.items() if k not in ("id", "createdAt", "transactionId")}
        return self._patch(payment_id, changes)

    def update_payment_status(self, payment_id: str, status: str) -> Payment:
        """
        Move a payment along pending -> completed|failed, failed -> pending,
        completed -> refunded.

        Raises:
            ValidationError: Unknown status
            ConflictError: Transition not allowed (INVALID_STATUS_TRANSITION)
        """
        _check_status(status)
        target = PaymentStatus(status)

        def apply(current: Payment) -> Payment:
            if target == current.status:
                return current
            if target not in PAYMENT_TRANSITIONS[current.status]:
                raise ConflictError(
                    f"Cannot change payment status from {current.status.value} to {target.value}",
                    code="INVALID_STATUS_TRANSITION",
                )
            return current.model_copy(update={"status": target})

        payment = self._update(payment_id, apply)
        logger.info("Payment status updated", payment_id=payment_id, status=payment.status.value)
        return payment

    def search(
        self,
        user_id: Optional[str] = None,
        order_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Payment]:
        def matches(p: Payment) -> bool:
            if user_id and p.user_id != user_id:
                return False
            if order_id and p.order_id != order_id:
                return False
            if payment_method and p.payment_method.value != payment_method:
                return False
            if status and p.status.value != status:
                return False
            return created_within(p, start_date, end_date)

        return self.find(matches)
