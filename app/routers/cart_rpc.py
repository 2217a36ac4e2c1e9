# app/routers/cart_rpc.py
"""
RPC entry point for internal services (orders, payments, ...).

Calls look like:

    POST /rpc/CartService/AddItem
    {"user_id": "u1", "product_id": "p1", "color": "red"}

Callers are trusted services: user_id comes in the payload instead of a
bearer token, and every call must carry the shared RPC_SHARED_SECRET in
the X-Internal-Token header. Every method answers 200 with an
RpcResponse envelope; cart failures are reported inside it
(success=False, error={...}).
"""
import logging
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError
from sqlmodel import Session

from app.core.auth import require_internal_caller
from app.core.errors import CartError, InvalidArgument
from app.database import get_session
from app.routers.cart import get_cart_service
from app.schemas.cart_rpc import (
    AddItemRequest,
    RemoveItemRequest,
    RpcCart,
    RpcResponse,
    UpdateItemRequest,
    UserIdRequest,
)
from app.services.cart_service import CartService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/CartService",
    tags=["Cart RPC"],
    dependencies=[Depends(require_internal_caller)],
)


def _cart_response(cart, message: str) -> RpcResponse:
    return RpcResponse(success=True, message=message, cart=RpcCart.from_cart(cart))


def _get_cart(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = UserIdRequest.model_validate(body)
    return _cart_response(service.get_cart(session, req.user_id), "Cart retrieved successfully")


def _add_item(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = AddItemRequest.model_validate(body)
    cart = service.add_item(session, req.user_id, req.product_id, color=req.color, size=req.size)
    return _cart_response(cart, "Item added to cart successfully")


def _update_item(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = UpdateItemRequest.model_validate(body)
    cart = service.update_item(
        session,
        req.user_id,
        req.product_id,
        req.quantity,
        color=req.color,
        size=req.size,
    )
    return _cart_response(cart, "Item quantity updated successfully")


def _remove_item(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = RemoveItemRequest.model_validate(body)
    cart = service.remove_item(session, req.user_id, req.product_id, color=req.color, size=req.size)
    return _cart_response(cart, "Item removed from cart successfully")


def _clear_cart(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = UserIdRequest.model_validate(body)
    return _cart_response(service.clear_cart(session, req.user_id), "Cart cleared successfully")


def _get_cart_details(service: CartService, session: Session, body: dict) -> RpcResponse:
    req = UserIdRequest.model_validate(body)
    items = service.get_cart_details(session, req.user_id)
    return RpcResponse(success=True, message="Cart details retrieved successfully", items=items)


RPC_METHODS: dict[str, Callable[[CartService, Session, dict], RpcResponse]] = {
    "GetCart": _get_cart,
    "AddItem": _add_item,
    "UpdateItem": _update_item,
    "RemoveItem": _remove_item,
    "ClearCart": _clear_cart,
    "GetCartDetails": _get_cart_details,
}


def _error_response(error: CartError) -> RpcResponse:
    return RpcResponse(success=False, message=error.message, error=error.to_dict())


@router.post("/{method}", response_model=RpcResponse, response_model_exclude_none=True)
def call_cart_method(
    method: str,
    body: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
    service: CartService = Depends(get_cart_service),
):
    """
    Dispatch one RPC call to the cart service.
    """
    handler = RPC_METHODS.get(method)
    if handler is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown method CartService.{method}",
        )

    logger.info("Received %s request for user: %s", method, body.get("user_id"))

    try:
        return handler(service, session, body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        return _error_response(InvalidArgument(f"Invalid request fields: {fields}"))
    except CartError as e:
        logger.info("%s failed for user %s: %s (%s)", method, body.get("user_id"), e.kind, e.message)
        return _error_response(e)
