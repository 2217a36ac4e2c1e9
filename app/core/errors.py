# app/core/errors.py
"""
Error vocabulary shared by the cart service and both transports.

Services raise these instead of HTTPException so the same rules can be
served over REST and RPC. Each transport renders them in its own shape.
"""
from fastapi import status


class CartError(Exception):
    """Base class for every expected cart failure."""

    kind: str = "CartError"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }


class InvalidArgument(CartError):
    kind = "InvalidArgument"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(CartError):
    kind = "NotFound"
    http_status = status.HTTP_404_NOT_FOUND


class ItemNotFound(CartError):
    kind = "ItemNotFound"
    http_status = status.HTTP_404_NOT_FOUND


class ProductNotFound(CartError):
    kind = "ProductNotFound"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidProductData(CartError):
    kind = "InvalidProductData"
    http_status = status.HTTP_502_BAD_GATEWAY


class InsufficientStock(CartError):
    kind = "InsufficientStock"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message: str, available: int):
        super().__init__(message)
        self.available = available

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["available"] = self.available
        return data


class OutOfStock(CartError):
    kind = "OutOfStock"
    http_status = status.HTTP_409_CONFLICT


class UpstreamUnavailable(CartError):
    kind = "UpstreamUnavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class PersistenceFailure(CartError):
    kind = "PersistenceFailure"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class Conflict(CartError):
    """Raised when a cart was saved by someone else since it was loaded."""

    kind = "Conflict"
    http_status = status.HTTP_409_CONFLICT
    retryable = True

