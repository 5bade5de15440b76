"""
Order routes.

Prefix: /api/orders

Every route authenticates first. Listing and cross-user queries need an
admin; single-order routes need the order's owner (or an admin).
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from commerce.app import CommerceApp
from commerce.auth.context import AuthContext, VerifiedBy
from commerce.models.base import CamelModel
from commerce.models.order import Order, OrderStatus
from commerce.services.order_store import check_transition, parse_status
from commerce.utils.exceptions import AuthorizationError, NotFoundError, ServiceUnavailableError
from commerce.utils.logger import get_logger

from .auth_middleware import check_owner, get_commerce, require_admin, require_auth

logger = get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderCreateRequest(CamelModel):
    user_id: Optional[str] = None
    items: Any = None
    shipping_address: Any = None
    billing_address: Any = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class OrderUpdateRequest(CamelModel):
    items: Any = None
    status: Optional[str] = None
    status_note: Optional[str] = None
    shipping_address: Any = None
    billing_address: Any = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdateRequest(CamelModel):
    status: str
    note: Optional[str] = None


class OrderItemRequest(CamelModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    price: Any = None
    quantity: Any = None


def _dump(body: CamelModel) -> Dict[str, Any]:
    return body.model_dump(by_alias=True, exclude_none=True)


def _owned_order(commerce: CommerceApp, ctx: AuthContext, order_id: str) -> Order:
    order = commerce.orders.get_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    check_owner(commerce, ctx, order.user_id)
    return order


def _require_admin_for_status(commerce: CommerceApp, ctx: AuthContext) -> None:
    try:
        commerce.guards.is_admin(ctx)
    except AuthorizationError:
        raise AuthorizationError("Only admins can change order status; owners may only cancel", code="ADMIN_REQUIRED")


def _caller_profile(commerce: CommerceApp, ctx: AuthContext) -> Dict[str, Any]:
    local = {"id": ctx.subject_id, "role": ctx.role}
    if commerce.identity_client is None or ctx.verified_by != VerifiedBy.REMOTE:
        return local
    try:
        return commerce.identity_client.get_user_profile(ctx.token)
    except ServiceUnavailableError as e:
        logger.warning("Profile lookup failed, using token claims", subject_id=ctx.subject_id, error_code=e.code)
        return local


@router.get("", dependencies=[Depends(require_admin)])
def list_orders(commerce: CommerceApp = Depends(get_commerce)) -> List[Dict[str, Any]]:
    return [o.to_record() for o in commerce.orders.get_all()]


@router.get("/search", dependencies=[Depends(require_admin)])
def search_orders(
    user_id: Optional[str] = Query(None, alias="userId"),
    status_: Optional[str] = Query(None, alias="status"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    product_id: Optional[str] = Query(None, alias="productId"),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    orders = commerce.orders.search(
        user_id=user_id,
        status=status_,
        start_date=start_date,
        end_date=end_date,
        product_id=product_id,
    )
    return [o.to_record() for o in orders]


@router.get("/counts", dependencies=[Depends(require_admin)])
def order_counts(commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, int]:
    return commerce.orders.count_by_status()


@router.get("/recent", dependencies=[Depends(require_admin)])
def recent_orders(
    limit: int = Query(10, ge=1, le=100),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    return [o.to_record() for o in commerce.orders.recent_orders(limit)]


@router.get("/status/{order_status}", dependencies=[Depends(require_admin)])
def orders_by_status(order_status: str, commerce: CommerceApp = Depends(get_commerce)) -> List[Dict[str, Any]]:
    return [o.to_record() for o in commerce.orders.get_by_status(order_status)]


@router.get("/user/{user_id}")
def user_orders(
    user_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    check_owner(commerce, ctx, user_id)
    return [o.to_record() for o in commerce.orders.user_order_history(user_id)]


@router.get("/me")
def my_orders(
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    """The caller's profile from the identity service with their order history"""
    return {
        "user": _caller_profile(commerce, ctx),
        "orders": [o.to_record() for o in commerce.orders.user_order_history(ctx.subject_id)],
    }


@router.get("/{order_id}")
def get_order(
    order_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    return _owned_order(commerce, ctx, order_id).to_record()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreateRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    check_owner(commerce, ctx, body.user_id)
    commerce.guards.user_exists(ctx, body.user_id)
    order = commerce.order_service.place_order(_dump(body))
    logger.info("Order created", order_id=order.id, user_id=order.user_id, total=order.total_amount)
    return order.to_record()


@router.put("/{order_id}")
def update_order(
    order_id: str,
    body: OrderUpdateRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    current = _owned_order(commerce, ctx, order_id)
    updates = _dump(body)
    target = parse_status(updates.pop("status")) if "status" in updates else None
    note = updates.pop("statusNote", None)

    if target == OrderStatus.CANCELLED:
        check_transition(current.status, target)
    elif target is not None:
        # Only admins move orders along the fulfilment path
        _require_admin_for_status(commerce, ctx)
        updates["status"] = target.value
        if note:
            updates["statusNote"] = note

    order = commerce.orders.update_order(order_id, updates) if updates else current
    if target == OrderStatus.CANCELLED:
        # Cancellation goes through the service so reserved stock is returned
        order = commerce.order_service.cancel_order(order_id, note or "Order cancelled")
    return order.to_record()


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: str,
    body: StatusUpdateRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    target = parse_status(body.status)
    if target == OrderStatus.CANCELLED:
        _owned_order(commerce, ctx, order_id)
        return commerce.order_service.cancel_order(order_id, body.note or "Order cancelled").to_record()
    _require_admin_for_status(commerce, ctx)
    return commerce.orders.update_order_status(order_id, target.value, body.note).to_record()


@router.post("/{order_id}/process", dependencies=[Depends(require_admin)])
def process_order(order_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.order_service.process_order(order_id).to_record()


@router.post("/{order_id}/items")
def add_order_item(
    order_id: str,
    body: OrderItemRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    _owned_order(commerce, ctx, order_id)
    return commerce.orders.add_order_item(order_id, _dump(body)).to_record()


@router.patch("/{order_id}/items/{product_id}")
def update_order_item(
    order_id: str,
    product_id: str,
    body: OrderItemRequest,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    _owned_order(commerce, ctx, order_id)
    updates = _dump(body)
    updates.pop("productId", None)
    return commerce.orders.update_order_item(order_id, product_id, updates).to_record()


@router.delete("/{order_id}/items/{product_id}")
def remove_order_item(
    order_id: str,
    product_id: str,
    ctx: AuthContext = Depends(require_auth),
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    _owned_order(commerce, ctx, order_id)
    return commerce.orders.remove_order_item(order_id, product_id).to_record()


@router.delete("/{order_id}", dependencies=[Depends(require_admin)])
def delete_order(order_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    if not commerce.orders.delete(order_id):
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return {"message": "Order deleted successfully"}
