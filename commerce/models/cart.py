"""Shopping cart models. One cart per user; items keyed by productId."""

from typing import List

from pydantic import Field

from .base import CamelModel, Document


class CartItem(CamelModel):
    product_id: str
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)


class Cart(Document):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
