"""
Cart routes.

Prefix: /api/carts/{user_id}; every route requires the cart's owner or an admin.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from commerce.app import CommerceApp
from commerce.models.base import CamelModel
from commerce.utils.exceptions import NotFoundError

from .auth_middleware import get_commerce, require_admin, require_path_owner

router = APIRouter(prefix="/api/carts", tags=["carts"])


class CartItemRequest(CamelModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    price: Any = None
    quantity: Any = None


class CartReplaceRequest(CamelModel):
    items: Any = None


class QuantityRequest(CamelModel):
    quantity: Any = None


@router.get("", dependencies=[Depends(require_admin)])
def list_carts(commerce: CommerceApp = Depends(get_commerce)) -> List[Dict[str, Any]]:
    return [c.to_record() for c in commerce.carts.get_all()]


@router.get("/{user_id}", dependencies=[Depends(require_path_owner)])
def get_cart(user_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    cart = commerce.carts.get_by_user(user_id)
    if cart is None:
        # An empty cart for users who never added anything
        return {"userId": user_id, "items": []}
    return cart.to_record()


@router.put("/{user_id}", dependencies=[Depends(require_path_owner)])
def replace_cart(
    user_id: str, body: CartReplaceRequest, commerce: CommerceApp = Depends(get_commerce)
) -> Dict[str, Any]:
    return commerce.carts.create_or_update_cart(user_id, body.items).to_record()


@router.post("/{user_id}/items", dependencies=[Depends(require_path_owner)])
def add_item(user_id: str, body: CartItemRequest, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.carts.add_item(user_id, body.model_dump(by_alias=True, exclude_none=True)).to_record()


@router.delete("/{user_id}/items/{product_id}", dependencies=[Depends(require_path_owner)])
def remove_item(user_id: str, product_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.carts.remove_item(user_id, product_id).to_record()


@router.patch("/{user_id}/items/{product_id}/quantity", dependencies=[Depends(require_path_owner)])
def update_quantity(
    user_id: str,
    product_id: str,
    body: QuantityRequest,
    commerce: CommerceApp = Depends(get_commerce),
) -> Dict[str, Any]:
    return commerce.carts.update_item_quantity(user_id, product_id, body.quantity).to_record()


@router.get("/{user_id}/total", dependencies=[Depends(require_path_owner)])
def cart_total(user_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.carts.calculate_total(user_id)


@router.delete("/{user_id}/delete", dependencies=[Depends(require_path_owner)])
def delete_cart(user_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    if not commerce.carts.delete_cart(user_id):
        raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
    return {"message": "Cart deleted successfully"}


@router.delete("/{user_id}", dependencies=[Depends(require_path_owner)])
def clear_cart(user_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.carts.clear_cart(user_id).to_record()
