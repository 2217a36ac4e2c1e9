# app/schemas/cart.py
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from pydantic import field_validator
from sqlmodel import SQLModel, Field

CENTS = Decimal("0.01")


def present_amount(value: Decimal) -> float:
    """
    Round an exact amount for display.

    Only response models call this; stored amounts keep full precision.
    """
    return float(value.quantize(CENTS, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Cart aggregate
# ---------------------------------------------------------------------------


class LineItem(SQLModel):
    """
    One line of a cart.

    (product_id, color, size) identifies the line; an empty color/size
    means the product has no variant selected.
    """

    product_id: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(description="Unit price snapshot taken when added")
    name: str
    image: str | None = None
    color: str = ""
    size: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def matches(
        self,
        product_id: str,
        color: str | None = None,
        size: str | None = None,
    ) -> bool:
        """
        None for color/size means "any"; a string must match exactly.
        """
        if self.product_id != product_id:
            return False
        if color is not None and self.color != color:
            return False
        if size is not None and self.size != size:
            return False
        return True


class Cart(SQLModel):
    """
    Cart aggregate for one user.

    total_amount is always derived from items via recompute_total().
    version is owned by the store (0 = never saved).
    """

    user_id: str
    items: list[LineItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_item(
        self,
        product_id: str,
        color: str | None = None,
        size: str | None = None,
    ) -> LineItem | None:
        for item in self.items:
            if item.matches(product_id, color, size):
                return item
        return None

    def recompute_total(self) -> Decimal:
        self.total_amount = sum(
            (item.line_total for item in self.items),
            Decimal("0"),
        )
        return self.total_amount


# ---------------------------------------------------------------------------
# REST payloads
# ---------------------------------------------------------------------------


class CartItemAdd(SQLModel):
    """
    Payload for adding one unit of a product to the cart.

    color/size select a variant; omitted means the catalog default.
    """

    product_id: str
    color: str | None = None
    size: str | None = None

    @field_validator("product_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("product_id cannot be empty")
        return v


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.

    quantity must be >= 1; the service rejects anything else with
    InvalidArgument so REST and RPC report it the same way.
    """

    quantity: int
    color: str | None = None
    size: str | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, including line_total.
    """

    product_id: str
    quantity: int
    price: float
    name: str
    image: str | None = None
    color: str = ""
    size: str = ""
    line_total: float

    @classmethod
    def from_item(cls, item: LineItem) -> "CartItemRead":
        return cls(
            product_id=item.product_id,
            quantity=item.quantity,
            price=present_amount(item.price),
            name=item.name,
            image=item.image,
            color=item.color,
            size=item.size,
            line_total=present_amount(item.line_total),
        )


class CartRead(SQLModel):
    """
    Full cart response model with totals.
    """

    user_id: str
    items: list[CartItemRead]
    total_quantity: int
    total_amount: float
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartRead":
        return cls(
            user_id=cart.user_id,
            items=[CartItemRead.from_item(it) for it in cart.items],
            total_quantity=sum(it.quantity for it in cart.items),
            total_amount=present_amount(cart.total_amount),
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )


class CartLineSummary(SQLModel):
    """
    Flattened line used by downstream services (e.g. order creation).
    """

    product_id: str
    description: str
    color: str
    size: str
    quantity: int
    price: float
