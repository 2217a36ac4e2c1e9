# app/services/cart_service.py
import logging
from decimal import Decimal

from sqlmodel import Session

from app.core.catalog_client import CatalogClient
from app.core.errors import (
    InsufficientStock,
    InvalidArgument,
    ItemNotFound,
    NotFound,
    OutOfStock,
)
from app.repositories.cart_repo import CartStore
from app.schemas.cart import Cart, CartLineSummary, LineItem, present_amount
from app.services.variant_policy import available_stock, select_variant, stock_for_line

logger = logging.getLogger(__name__)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - merge a new unit into an existing line keyed by (product, color, size)
      - snapshot price/name/image from the catalog at add time
      - enforce stock on add and update
      - decrement-or-delete on remove
      - keep total_amount equal to the exact sum of price * quantity

    Every operation works on a copy loaded from the store and only the
    final save makes changes visible, so a failure never leaves a cart
    half-updated. The caller's user_id is trusted (identity is checked
    upstream by the transport).
    """

    def __init__(self, cart_repo: CartStore, catalog: CatalogClient):
        self.cart_repo = cart_repo
        self.catalog = catalog

    # ---- internal helpers ----

    @staticmethod
    def _require(value: str | None, field: str) -> str:
        if value is None or not str(value).strip():
            raise InvalidArgument(f"{field} is required")
        return str(value).strip()

    def _get_existing_cart(self, session: Session | None, user_id: str) -> Cart:
        cart = self.cart_repo.find_by_user(session, user_id)
        if cart is None:
            raise NotFound("Cart not found")
        return cart

    @staticmethod
    def _get_line(
        cart: Cart,
        product_id: str,
        color: str | None,
        size: str | None,
    ) -> LineItem:
        item = cart.find_item(product_id, color, size)
        if item is None:
            raise ItemNotFound("Item not found in cart")
        return item

    def _save(self, session: Session | None, cart: Cart) -> Cart:
        cart.recompute_total()
        return self.cart_repo.save(session, cart)

    # ---- public operations ----

    def get_cart(self, session: Session | None, user_id: str) -> Cart:
        user_id = self._require(user_id, "user_id")
        return self._get_existing_cart(session, user_id)

    def add_item(
        self,
        session: Session | None,
        user_id: str,
        product_id: str,
        color: str | None = None,
        size: str | None = None,
    ) -> Cart:
        """
        Add one unit of a product to the user's cart.

        Rules:
          - catalog must return a usable product (price, name)
          - variant is picked from the catalog list (requested or default)
          - existing line: quantity + 1 must not exceed stock
          - new line: stock must be at least 1
          - the cart is created on first add
        """
        user_id = self._require(user_id, "user_id")
        product_id = self._require(product_id, "product_id")

        product = self.catalog.get_product_details(product_id)

        selection, warnings = select_variant(product.variants, color, size)
        for warning in warnings:
            logger.warning("Product %s: %s", product_id, warning)
        if selection is None:
            raise InvalidArgument(
                f"Requested variant is not available for product {product_id}"
            )

        stock = available_stock(product, selection)

        cart = self.cart_repo.find_by_user(session, user_id)
        if cart is None:
            cart = self.cart_repo.create(user_id)

        existing = cart.find_item(product_id, selection.color, selection.size)

        if existing is not None:
            new_qty = existing.quantity + 1
            if new_qty > stock:
                raise InsufficientStock(
                    f"Only {stock} unit(s) of product {product_id} available",
                    available=stock,
                )
            existing.quantity = new_qty
        else:
            if stock < 1:
                raise OutOfStock(f"Product {product_id} is out of stock")
            cart.items.append(
                LineItem(
                    product_id=product_id,
                    quantity=1,
                    price=product.price,
                    name=product.name,
                    image=product.image_url,
                    color=selection.color,
                    size=selection.size,
                )
            )

        saved = self._save(session, cart)
        logger.info(
            "Added product %s (%s/%s) to cart of user %s",
            product_id,
            selection.color or "-",
            selection.size or "-",
            user_id,
        )
        return saved

    def update_item(
        self,
        session: Session | None,
        user_id: str,
        product_id: str,
        quantity: int,
        color: str | None = None,
        size: str | None = None,
    ) -> Cart:
        """
        Set the quantity of a cart line.

        The product is re-checked in the catalog (it must still exist and
        the line's variant must have enough stock) but the stored price,
        name and variant of the line are left as they are.
        """
        user_id = self._require(user_id, "user_id")
        product_id = self._require(product_id, "product_id")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidArgument("quantity must be an integer >= 1")

        product = self.catalog.get_product_details(product_id)

        cart = self._get_existing_cart(session, user_id)
        item = self._get_line(cart, product_id, color, size)

        stock = stock_for_line(product, item.color, item.size)
        if quantity > stock:
            raise InsufficientStock(
                f"Only {stock} unit(s) of product {product_id} available",
                available=stock,
            )

        item.quantity = quantity
        saved = self._save(session, cart)
        logger.info("Set quantity of product %s to %s for user %s", product_id, quantity, user_id)
        return saved

    def remove_item(
        self,
        session: Session | None,
        user_id: str,
        product_id: str,
        color: str | None = None,
        size: str | None = None,
    ) -> Cart:
        """
        Remove one unit of a product; the line disappears when its
        quantity would reach zero.
        """
        user_id = self._require(user_id, "user_id")
        product_id = self._require(product_id, "product_id")

        cart = self._get_existing_cart(session, user_id)
        item = self._get_line(cart, product_id, color, size)

        if item.quantity > 1:
            item.quantity -= 1
        else:
            cart.items = [it for it in cart.items if it is not item]

        saved = self._save(session, cart)
        logger.info("Removed one unit of product %s for user %s", product_id, user_id)
        return saved

    def clear_cart(self, session: Session | None, user_id: str) -> Cart:
        """
        Empty the cart. The cart itself is kept.
        """
        user_id = self._require(user_id, "user_id")
        cart = self._get_existing_cart(session, user_id)

        cart.items = []
        cart.total_amount = Decimal("0")

        saved = self._save(session, cart)
        logger.info("Cleared cart for user %s", user_id)
        return saved

    def get_cart_details(self, session: Session | None, user_id: str) -> list[CartLineSummary]:
        """
        Flattened cart lines for downstream services.
        """
        cart = self.get_cart(session, user_id)
        return [
            CartLineSummary(
                product_id=it.product_id,
                description=it.name,
                color=it.color,
                size=it.size,
                quantity=it.quantity,
                price=present_amount(it.price),
            )
            for it in cart.items
        ]
