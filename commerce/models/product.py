"""Product catalogue model"""

from typing import Optional

from .base import Document

DEFAULT_CATEGORY = "uncategorized"


class Product(Document):
    name: str
    description: str = ""
    price: float
    category: str = DEFAULT_CATEGORY
    image_url: Optional[str] = None
    stock: int = 0
