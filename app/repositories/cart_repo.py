# app/repositories/cart_repo.py
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.errors import Conflict, PersistenceFailure
from app.models.cart import CartRecord
from app.schemas.cart import Cart, LineItem

logger = logging.getLogger(__name__)


class CartStore(ABC):
    """
    Keyed cart storage: one Cart document per user id.

    - Pure storage (no business rules).
    - save() writes the whole document or nothing.
    - save() refuses to overwrite a cart that changed since it was loaded
      (version check) and raises Conflict instead.
    """

    @abstractmethod
    def find_by_user(self, session: Session | None, user_id: str) -> Cart | None:
        ...

    @abstractmethod
    def save(self, session: Session | None, cart: Cart) -> Cart:
        ...

    def create(self, user_id: str) -> Cart:
        """New, not yet persisted cart (version 0)."""
        return Cart(user_id=user_id)


class SqlCartRepository(CartStore):
    """
    SQLModel-backed store. One row in `carts` per user.
    """

    @staticmethod
    def _to_cart(record: CartRecord) -> Cart:
        return Cart(
            user_id=record.user_id,
            items=[LineItem.model_validate(raw) for raw in record.items],
            total_amount=record.total_amount,
            version=record.version,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def find_by_user(self, session: Session, user_id: str) -> Cart | None:
        try:
            record = session.get(CartRecord, user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to load cart for user %s", user_id)
            raise PersistenceFailure("Could not load cart") from e
        if record is None:
            return None
        return self._to_cart(record)

    def save(self, session: Session, cart: Cart) -> Cart:
        now = datetime.now(timezone.utc)
        items = [item.model_dump(mode="json") for item in cart.items]
        total = str(cart.total_amount)

        try:
            if cart.version == 0:
                stmt = insert(CartRecord).values(
                    user_id=cart.user_id,
                    items=items,
                    total_amount=total,
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
                session.connection().execute(stmt)
                session.commit()
                created_at = now
            else:
                stmt = (
                    update(CartRecord)
                    .where(
                        CartRecord.user_id == cart.user_id,
                        CartRecord.version == cart.version,
                    )
                    .values(
                        items=items,
                        total_amount=total,
                        version=cart.version + 1,
                        updated_at=now,
                    )
                )
                result = session.connection().execute(stmt)
                if result.rowcount != 1:
                    session.rollback()
                    raise Conflict("Cart was modified concurrently, please retry")
                session.commit()
                created_at = cart.created_at
        except IntegrityError as e:
            # Another request created this user's cart first.
            session.rollback()
            raise Conflict("Cart was created concurrently, please retry") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to save cart for user %s", cart.user_id)
            raise PersistenceFailure("Could not save cart") from e

        return cart.model_copy(
            update={
                "version": cart.version + 1,
                "created_at": created_at,
                "updated_at": now,
            }
        )


class InMemoryCartRepository(CartStore):
    """
    Process-local store with the same contract as SqlCartRepository.

    Carts are copied in and out so callers never share state with the
    stored document. The session argument is ignored.
    """

    def __init__(self) -> None:
        self._carts: dict[str, Cart] = {}
        self._lock = threading.Lock()

    def find_by_user(self, session: Session | None, user_id: str) -> Cart | None:
        with self._lock:
            cart = self._carts.get(user_id)
            return cart.model_copy(deep=True) if cart is not None else None

    def save(self, session: Session | None, cart: Cart) -> Cart:
        now = datetime.now(timezone.utc)
        with self._lock:
            current = self._carts.get(cart.user_id)
            current_version = current.version if current is not None else 0
            if current_version != cart.version:
                raise Conflict("Cart was modified concurrently, please retry")

            stored = cart.model_copy(
                deep=True,
                update={
                    "version": cart.version + 1,
                    "created_at": current.created_at if current is not None else now,
                    "updated_at": now,
                },
            )
            self._carts[cart.user_id] = stored
            return stored.model_copy(deep=True)
