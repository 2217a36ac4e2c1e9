# app/core/catalog_client.py
"""
HTTP client for the product catalog service.

Responsibilities:
  - fetch a product by id with a bounded timeout
  - turn transport failures and unusable payloads into cart errors:
      * timeout / connection error -> UpstreamUnavailable
      * non-200 code               -> ProductNotFound
      * missing/malformed fields   -> InvalidProductData

No caching and no retries: a failed lookup fails the cart operation.

The catalog answers either with a plain product object or with an
envelope of the form {"code": 200, "data": {...}} where data may also be
a JSON-encoded string. Both shapes are accepted.
"""
from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from numbers import Number
from typing import Any
from urllib.parse import quote

import httpx

from app.core.config import Settings
from app.core.errors import InvalidProductData, ProductNotFound, UpstreamUnavailable
from app.schemas.catalog import CatalogResponse, ProductDetails
from app.services.variant_policy import coerce_stock

logger = logging.getLogger(__name__)

CATALOG_OK = 200


class CatalogClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogClient":
        return cls(
            base_url=settings.CATALOG_SERVICE_URL,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )

    # ---- raw call ----

    def get_product(self, product_id: str) -> CatalogResponse:
        """
        Call the catalog and return its raw {code, data} answer.

        Raises:
            UpstreamUnavailable: on timeout or any transport-level error.
        """
        url = f"{self.base_url}/products/{quote(product_id, safe='')}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(url)
        except httpx.TimeoutException as e:
            logger.warning("Catalog lookup for %s timed out: %s", product_id, e)
            raise UpstreamUnavailable("Product catalog did not respond in time") from e
        except httpx.RequestError as e:
            logger.warning("Catalog lookup for %s failed: %s", product_id, e)
            raise UpstreamUnavailable("Product catalog is unreachable") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "code" in body and "data" in body:
            code = body.get("code")
            if not isinstance(code, int) or isinstance(code, bool):
                code = response.status_code
            return CatalogResponse(code=code, data=body.get("data"))

        return CatalogResponse(code=response.status_code, data=body)

    # ---- validated lookup ----

    def get_product_details(self, product_id: str) -> ProductDetails:
        """
        Fetch a product and validate the fields the cart copies.

        Raises:
            UpstreamUnavailable, ProductNotFound, InvalidProductData
        """
        answer = self.get_product(product_id)

        if answer.code != CATALOG_OK:
            logger.info("Catalog returned code %s for product %s", answer.code, product_id)
            raise ProductNotFound(f"Product {product_id} not found")

        return parse_product(product_id, answer.data)


def _decode_data(product_id: str, data: Any) -> dict:
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise InvalidProductData(
                f"Catalog data for product {product_id} is not valid JSON"
            ) from e

    if not isinstance(data, dict):
        raise InvalidProductData(f"Catalog data for product {product_id} is not an object")
    return data


def _parse_price(product_id: str, raw: Any) -> Decimal:
    if raw is None:
        raise InvalidProductData(f"Product {product_id} has no price")
    if isinstance(raw, bool) or not isinstance(raw, Number):
        raise InvalidProductData(f"Product {product_id} has a non-numeric price")

    try:
        # str() keeps the catalog's own digits instead of binary float noise
        price = Decimal(str(raw))
    except InvalidOperation as e:
        raise InvalidProductData(f"Product {product_id} has an invalid price") from e

    if not price.is_finite() or price < 0:
        raise InvalidProductData(f"Product {product_id} has an invalid price")
    return price


def parse_product(product_id: str, data: Any) -> ProductDetails:
    """
    Validate a catalog payload into ProductDetails.

    price and name are required. Optional fields that are malformed are
    dropped (image) or treated as no stock rather than failing the lookup.
    """
    record = _decode_data(product_id, data)

    price = _parse_price(product_id, record.get("price"))

    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidProductData(f"Product {product_id} has no name")

    image = record.get("imageUrl", record.get("image"))
    if not isinstance(image, str) or not image:
        image = None

    try:
        stock = coerce_stock(record.get("stock"))
    except ValueError as e:
        logger.warning("Ignoring stock for product %s: %s", product_id, e)
        stock = 0

    return ProductDetails(
        product_id=product_id,
        name=name.strip(),
        price=price,
        image_url=image,
        stock=stock,
        variants=record.get("variants"),
    )
