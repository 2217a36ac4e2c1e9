# app/routers/cart.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_user
from app.core.catalog_client import CatalogClient
from app.core.config import get_settings
from app.database import get_session
from app.repositories.cart_repo import SqlCartRepository
from app.schemas.cart import CartRead, CartItemAdd, CartItemUpdate
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = SqlCartRepository()


def get_cart_service() -> CartService:
    """
    Build the cart service for a request.

    Shared by the REST and RPC routers so both run the same rules.
    Tests override this dependency to plug in fakes.
    """
    return CartService(cart_repo, CatalogClient.from_settings(get_settings()))


@router.get("", response_model=CartRead)
def get_my_cart(
    session: Session = Depends(get_session),
    user_id: str = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Get current user's cart with all items and total amount.

    404 if the user never added anything.
    """
    return CartRead.from_cart(service.get_cart(session, user_id))


@router.post("/items", response_model=CartRead, status_code=status.HTTP_201_CREATED)
def add_cart_item(
    payload: CartItemAdd,
    session: Session = Depends(get_session),
    user_id: str = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Add one unit of a product to the current user's cart.

    Adding the same product/variant again increases its quantity.
    Returns the updated cart.
    """
    cart = service.add_item(
        session,
        user_id,
        payload.product_id,
        color=payload.color,
        size=payload.size,
    )
    return CartRead.from_cart(cart)


@router.put("/items/{product_id}", response_model=CartRead)
def update_cart_item(
    product_id: str,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    user_id: str = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Update quantity of a product in the cart.

    Returns the updated cart.
    """
    cart = service.update_item(
        session,
        user_id,
        product_id,
        payload.quantity,
        color=payload.color,
        size=payload.size,
    )
    return CartRead.from_cart(cart)


@router.delete("/items/{product_id}", response_model=CartRead)
def remove_cart_item(
    product_id: str,
    color: str | None = None,
    size: str | None = None,
    session: Session = Depends(get_session),
    user_id: str = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Remove one unit of a product from the cart.

    The line is deleted once its quantity reaches zero.
    Returns the updated cart.
    """
    cart = service.remove_item(session, user_id, product_id, color=color, size=size)
    return CartRead.from_cart(cart)


@router.delete("", response_model=CartRead)
def clear_cart(
    session: Session = Depends(get_session),
    user_id: str = Depends(require_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Clear the entire cart.

    Returns the (now empty) cart.
    """
    return CartRead.from_cart(service.clear_cart(session, user_id))
