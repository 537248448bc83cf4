"""
Catalog Models

Shop items and their pack variants. The catalog is authored elsewhere;
this service only reads it to price order lines.
"""

from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class ShopItem(Base):
    """
    A product listed in the shop.

    Attributes:
        id: Integer primary key.
        name: Display name, copied onto order lines.
        price: Base unit price used when no pack is chosen.
        is_active: Only active items can be ordered.
    """

    __tablename__ = "shop_items"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    subtitle: Mapped[str] = mapped_column(
        String(500),
        default="",
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
    )
    stock_status: Mapped[str] = mapped_column(
        String(50),
        default="in-stock",
        nullable=False,
    )
    image: Mapped[str] = mapped_column(
        String(500),
        default="",
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    packs: Mapped[List["PackPricing"]] = relationship(
        "PackPricing",
        back_populates="shop_item",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<ShopItem(id={self.id}, name={self.name})>"


class PackPricing(Base):
    """
    A purchasable pack size of a shop item with its own price.
    """

    __tablename__ = "pack_pricing"
    __table_args__ = (
        UniqueConstraint("shop_item_id", "pack_size", name="uq_pack_pricing_item_size"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    shop_item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("shop_items.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    pack_size: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    our_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    shop_item: Mapped["ShopItem"] = relationship(
        "ShopItem",
        back_populates="packs",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<PackPricing(item={self.shop_item_id}, pack={self.pack_size})>"
