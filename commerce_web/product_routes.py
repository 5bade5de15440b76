"""
Product catalogue routes.

Prefix: /api/products. Reads need any authenticated caller; writes need an admin.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from commerce.app import CommerceApp
from commerce.models.base import CamelModel
from commerce.utils.exceptions import NotFoundError, ValidationError

from .auth_middleware import get_commerce, require_admin, require_auth

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Any = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    stock: Any = None


class StockAdjustRequest(CamelModel):
    delta: int


@router.get("", dependencies=[Depends(require_auth)])
def list_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    commerce: CommerceApp = Depends(get_commerce),
) -> List[Dict[str, Any]]:
    if q:
        products = commerce.products.search(q)
    elif category:
        products = commerce.products.find_by_category(category)
    else:
        products = commerce.products.get_all()
    return [p.to_record() for p in products]


@router.get("/count", dependencies=[Depends(require_auth)])
def count_products(commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, int]:
    return {"count": commerce.products.count()}


@router.get("/{product_id}", dependencies=[Depends(require_auth)])
def get_product(product_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    product = commerce.products.get_by_id(product_id)
    if product is None:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product.to_record()


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_product(body: ProductRequest, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    return commerce.products.create_product(body.model_dump(by_alias=True, exclude_none=True)).to_record()


@router.put("/{product_id}", dependencies=[Depends(require_admin)])
def update_product(
    product_id: str, body: ProductRequest, commerce: CommerceApp = Depends(get_commerce)
) -> Dict[str, Any]:
    updates = body.model_dump(by_alias=True, exclude_none=True)
    if not updates:
        raise ValidationError("No fields to update")
    return commerce.products.update_product(product_id, updates).to_record()


@router.patch("/{product_id}/stock", dependencies=[Depends(require_admin)])
def adjust_stock(
    product_id: str, body: StockAdjustRequest, commerce: CommerceApp = Depends(get_commerce)
) -> Dict[str, Any]:
    return commerce.products.adjust_stock(product_id, body.delta).to_record()


@router.delete("/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: str, commerce: CommerceApp = Depends(get_commerce)) -> Dict[str, Any]:
    if not commerce.products.delete(product_id):
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return {"message": "Product deleted successfully"}
