"""
Pricing Service

Resolves catalog references to authoritative unit prices. Order lines
get their money amounts from here and nowhere else.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CatalogReferenceError
from app.models.catalog import PackPricing, ShopItem


CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize a number to whole cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ResolvedPrice:
    shop_item_id: int
    product_name: str
    pack_size: Optional[str]
    unit_price: Decimal


async def resolve_price(
    db: AsyncSession,
    shop_item_id: int,
    pack_size: Optional[str] = None,
) -> ResolvedPrice:
    """
    Look up the current price of a shop item or one of its packs.

    Args:
        db: Database session.
        shop_item_id: Catalog item id.
        pack_size: Optional pack variant; blank means the base item.

    Returns:
        ResolvedPrice: Product name and positive unit price.

    Raises:
        CatalogReferenceError: Unknown or inactive item or pack, or no positive price.
    """
    result = await db.execute(
        select(ShopItem).where(
            ShopItem.id == shop_item_id,
            ShopItem.is_active.is_(True),
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise CatalogReferenceError(
            f"Product {shop_item_id} is not available",
            field="shopItemId",
        )

    pack_size = (pack_size or "").strip() or None

    if pack_size is not None:
        result = await db.execute(
            select(PackPricing).where(
                PackPricing.shop_item_id == item.id,
                PackPricing.pack_size == pack_size,
                PackPricing.is_active.is_(True),
            )
        )
        pack = result.scalar_one_or_none()
        if pack is None:
            raise CatalogReferenceError(
                f"Pack '{pack_size}' is not available for {item.name}",
                field="packSize",
            )
        price = to_money(pack.our_price)
    else:
        price = to_money(item.price)

    if price <= 0:
        raise CatalogReferenceError(
            f"{item.name} has no valid price",
            field="shopItemId",
        )

    return ResolvedPrice(
        shop_item_id=item.id,
        product_name=item.name,
        pack_size=pack_size,
        unit_price=price,
    )
