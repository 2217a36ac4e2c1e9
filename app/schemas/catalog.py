# app/schemas/catalog.py
from decimal import Decimal
from typing import Any

from sqlmodel import SQLModel


class CatalogResponse(SQLModel):
    """
    Raw answer from the product catalog: a status code plus whatever
    payload came back. Nothing here is trusted yet.
    """

    code: int
    data: Any = None


class ProductDetails(SQLModel):
    """
    Validated product data the cart is allowed to copy into line items.

    variants is kept raw: entries are checked one by one when a variant
    is selected, so a single malformed entry does not reject the product.
    """

    product_id: str
    name: str
    price: Decimal
    image_url: str | None = None
    stock: int | None = None
    variants: Any = None


class VariantSelection(SQLModel):
    """
    Variant chosen for a cart line.

    stock=None means the variant did not report stock and the
    product-level stock applies.
    """

    color: str = ""
    size: str = ""
    stock: int | None = None
