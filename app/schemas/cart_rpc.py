# app/schemas/cart_rpc.py
from typing import Any

from sqlmodel import SQLModel

from app.schemas.cart import Cart, CartLineSummary, present_amount


class UserIdRequest(SQLModel):
    user_id: str


class AddItemRequest(UserIdRequest):
    product_id: str
    color: str | None = None
    size: str | None = None


class UpdateItemRequest(UserIdRequest):
    product_id: str
    quantity: int
    color: str | None = None
    size: str | None = None


class RemoveItemRequest(UserIdRequest):
    product_id: str
    color: str | None = None
    size: str | None = None


class RpcCartItem(SQLModel):
    """
    Cart line as sent to RPC callers. Images are a storefront concern
    and are left out.
    """

    product_id: str
    quantity: int
    price: float
    name: str
    color: str
    size: str


class RpcCart(SQLModel):
    user_id: str
    items: list[RpcCartItem]
    total_amount: float

    @classmethod
    def from_cart(cls, cart: Cart) -> "RpcCart":
        return cls(
            user_id=cart.user_id,
            items=[
                RpcCartItem(
                    product_id=it.product_id,
                    quantity=it.quantity,
                    price=present_amount(it.price),
                    name=it.name,
                    color=it.color,
                    size=it.size,
                )
                for it in cart.items
            ],
            total_amount=present_amount(cart.total_amount),
        )


class RpcResponse(SQLModel):
    """
    Envelope returned by every RPC method.

    success=False always comes with error = {kind, message, retryable, ...}.
    """

    success: bool
    message: str
    cart: RpcCart | None = None
    items: list[CartLineSummary] | None = None
    error: dict[str, Any] | None = None
