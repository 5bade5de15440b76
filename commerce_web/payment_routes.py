"""
Payment routes (mock gateway).

Prefix: /api/payments
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from commerce.app import CommerceApp
from commerce.auth.context import AuthContext
from commerce.models.base import CamelModel
from commerce.utils.exceptions import NotFoundError
from commerce.utils.logger import get_logger

from .auth_middleware import check_owner, get_commerce, require_admin, require_auth

logger = get_logger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


class PaymentRequest(CamelModel):
    user_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_method: Optional[str] = None
    amount: Any = None
    currency: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PaymentStatusRequest(CamelModel):
    status: str


@router.post("", status_code=status.HTTP_201_CREATED)
def create_payment(
    body: PaymentRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    check_owner(commerce, ctx, body.user_id)
    payment = commerce.payments.create_payment(body.model_dump(by_alias=True, exclude_none=True))
    logger.info("Payment processed", payment_id=payment.id, order_id=payment.order_id, amount=payment.amount)
    return payment.to_record()


@router.get("", dependencies=[Depends(require_admin)])
def list_payments(
    user_id: Optional[str] = Query(None, alias="userId"),
    order_id: Optional[str] = Query(None, alias="orderId"),
    payment_method: Optional[str] = Query(None, alias="paymentMethod"),
    status_: Optional[str] = Query(None, alias="status"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    payments = commerce.payments.search(
        user_id=user_id,
        order_id=order_id,
        payment_method=payment_method,
        status=status_,
        start_date=start_date,
        end_date=end_date,
    )
    return [p.to_record() for p in payments]


@router.get("/user/{user_id}")
def user_payments(
    user_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    check_owner(commerce, ctx, user_id)
    return [p.to_record() for p in commerce.payments.get_by_user(user_id)]


@router.get("/order/{order_id}")
def order_payments(
    order_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    order = commerce.orders.get_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    check_owner(commerce, ctx, order.user_id)
    return [p.to_record() for p in commerce.payments.get_by_order(order_id)]


@router.get("/{payment_id}")
def get_payment(
    payment_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    payment = commerce.payments.get_by_id(payment_id)
    if payment is None:
        raise NotFoundError("Payment not found", code="PAYMENT_NOT_FOUND")
    check_owner(commerce, ctx, payment.user_id)
    return payment.to_record()


@router.patch("/{payment_id}/status", dependencies=[Depends(require_admin)])
def update_payment_status(
    payment_id: str, body: PaymentStatusRequest, commerce: CommerceApp = Depends(get_commerce)
) -> Dict[str, Any]:
    return commerce.payments.update_payment_status(payment_id, body.status).to_record()
