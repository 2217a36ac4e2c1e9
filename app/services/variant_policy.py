# app/services/variant_policy.py
"""
Variant selection for catalog products.

The catalog's variant list is not trusted to be well-formed. Entries are
validated one at a time: a malformed entry is skipped with a warning
instead of failing the whole add. Everything here is pure so the policy
can be tested without the network.

Rules:
  - color/size must each be a string or absent (absent -> "")
  - stock must be a number or absent (absent -> product-level stock)
  - the first valid entry wins; a requested color/size narrows the
    candidates to entries with exactly that value
  - a variant list with no valid entry means the product is treated as
    variant-less with stock 0
"""
from decimal import Decimal
from numbers import Number
from typing import Any

from app.schemas.catalog import ProductDetails, VariantSelection

NO_VARIANT = VariantSelection()


def _is_text_or_absent(entry: dict, field: str) -> bool:
    value = entry.get(field)
    return value is None or isinstance(value, str)


def coerce_stock(value: Any) -> int | None:
    """
    Convert a catalog stock value to a non-negative int.

    Returns None for an absent value. Raises ValueError for anything that
    is not a finite number (bools are rejected even though they are ints).
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (Number, Decimal)):
        raise ValueError(f"stock must be numeric, got {type(value).__name__}")
    try:
        stock = int(value)
    except (OverflowError, TypeError, ValueError) as exc:
        raise ValueError(f"stock is not a finite number: {value!r}") from exc
    return max(stock, 0)


def validate_variant(entry: Any) -> tuple[VariantSelection | None, str | None]:
    """
    Check a single variant entry.

    Returns (selection, None) when valid, (None, reason) otherwise.
    """
    if not isinstance(entry, dict):
        return None, f"variant entry is not an object: {entry!r}"

    for field in ("color", "size"):
        if not _is_text_or_absent(entry, field):
            return None, f"variant {field} is not a string: {entry.get(field)!r}"

    try:
        stock = coerce_stock(entry.get("stock"))
    except ValueError as exc:
        return None, f"variant {str(exc)}"

    return (
        VariantSelection(
            color=entry.get("color") or "",
            size=entry.get("size") or "",
            stock=stock,
        ),
        None,
    )


def select_variant(
    variants: Any,
    color: str | None = None,
    size: str | None = None,
) -> tuple[VariantSelection | None, list[str]]:
    """
    Pick the variant a new cart line should use.

    Returns (selection, warnings). selection is None only when the caller
    asked for a color/size that no valid entry offers.
    """
    warnings: list[str] = []

    # Products without a variant list have nothing to choose from;
    # a requested color/size is ignored.
    if variants is None or variants == []:
        return NO_VARIANT, warnings

    if not isinstance(variants, list):
        warnings.append(f"variants is not a list: {type(variants).__name__}")
        return VariantSelection(stock=0), warnings

    wants_color = bool(color)
    wants_size = bool(size)

    for index, entry in enumerate(variants):
        selection, reason = validate_variant(entry)
        if selection is None:
            warnings.append(f"variants[{index}] skipped: {reason}")
            continue
        if wants_color and selection.color != color:
            continue
        if wants_size and selection.size != size:
            continue
        return selection, warnings

    if wants_color or wants_size:
        return None, warnings

    return VariantSelection(stock=0), warnings


def find_variant(
    variants: Any,
    color: str,
    size: str,
) -> VariantSelection | None:
    """
    Exact lookup of an existing line's variant in a fresh catalog answer.

    Unlike select_variant, empty color/size must match empty values.
    """
    if not isinstance(variants, list):
        return None
    for entry in variants:
        selection, _ = validate_variant(entry)
        if selection is None:
            continue
        if selection.color == color and selection.size == size:
            return selection
    return None


def available_stock(product: ProductDetails, selection: VariantSelection) -> int:
    """
    Stock that applies to a selection: the variant's own stock if it
    reported one, else the product-level stock, else 0.
    """
    if selection.stock is not None:
        return selection.stock
    if product.stock is not None:
        return product.stock
    return 0


def stock_for_line(product: ProductDetails, color: str, size: str) -> int:
    """
    Stock available for an existing cart line's variant.

    A line whose variant is no longer offered has no stock.
    """
    if not product.variants:
        return available_stock(product, NO_VARIANT)

    selection = find_variant(product.variants, color, size)
    if selection is None:
        return 0
    return available_stock(product, selection)
