# app/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class CartRecord(SQLModel, table=True):
    """
    Persisted cart document, one row per user.

    items and total_amount are written together by a single statement,
    so a half-written cart is never visible.
    """

    __tablename__ = "carts"

    user_id: str = Field(
        primary_key=True,
        max_length=255,
        description="Resolved identity entity id",
    )

    items: list[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Ordered line items; prices stored as decimal strings",
    )

    total_amount: str = Field(
        default="0",
        description="Exact decimal total, never rounded",
    )

    version: int = Field(
        default=1,
        ge=1,
        description="Bumped on every save; checked before overwriting",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
