"""
Order Service

Validates customer details, prices cart lines against the catalog and
records the order together with its line snapshots and the consumption
of the customer's email verification token.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (
    NotFoundError,
    OtpError,
    OtpFailure,
    StorageError,
    ValidationError,
)
from app.models.enums import OrderPaymentStatus, PaymentMode
from app.models.order import Order, OrderItem
from app.models.otp_session import OtpSession
from app.services.otp_service import normalize_email
from app.services.pricing_service import CENT, ResolvedPrice, resolve_price


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
DEFAULT_COUNTRY = "India"
MAX_QUANTITY = 10_000
# Largest amount a Numeric(12, 2) column holds
MAX_ORDER_TOTAL = Decimal("9999999999.99")


@dataclass(frozen=True)
class ContactInfo:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class ShippingAddress:
    company_name: str = ""
    address: str = ""
    city: str = ""
    region: str = ""
    pincode: str = ""
    country: str = DEFAULT_COUNTRY


@dataclass(frozen=True)
class LineRequest:
    """One requested cart line. Deliberately carries no price."""
    shop_item_id: int
    quantity: int = 1
    pack_size: Optional[str] = None


@dataclass(frozen=True)
class PricedLine:
    price: ResolvedPrice
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return (self.price.unit_price * self.quantity).quantize(CENT)


def validate_contact(contact: ContactInfo) -> ContactInfo:
    """
    Check required contact fields and normalize them.

    Raises:
        ValidationError: A required field is missing or malformed.
    """
    name = (contact.name or "").strip()
    email = normalize_email(contact.email or "")
    phone = (contact.phone or "").strip()

    if not name:
        raise ValidationError("Customer name is required", field="customername")
    if not email:
        raise ValidationError("Email is required", field="email")
    if not phone:
        raise ValidationError("Phone is required", field="phone")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", field="email")

    digits = re.sub(r"\D", "", phone)
    if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
        raise ValidationError(
            f"Phone number must have {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits",
            field="phone",
        )

    return ContactInfo(name=name, email=email, phone=phone)


def normalize_address(address: Optional[ShippingAddress]) -> ShippingAddress:
    address = address or ShippingAddress()
    return ShippingAddress(
        company_name=(address.company_name or "").strip(),
        address=(address.address or "").strip(),
        city=(address.city or "").strip(),
        region=(address.region or "").strip(),
        pincode=(address.pincode or "").strip(),
        country=(address.country or "").strip() or DEFAULT_COUNTRY,
    )


async def price_lines(db: AsyncSession, lines: Sequence[LineRequest]) -> List[PricedLine]:
    """
    Resolve every requested line against the catalog.

    The first invalid line rejects the whole cart.
    """
    if not lines:
        raise ValidationError("At least one item is required", field="items")

    priced = []
    for index, line in enumerate(lines):
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive whole number",
                field=f"items.{index}.quantity",
            )
        if line.quantity > MAX_QUANTITY:
            raise ValidationError(
                f"Quantity cannot exceed {MAX_QUANTITY}",
                field=f"items.{index}.quantity",
            )
        price = await resolve_price(db, line.shop_item_id, line.pack_size)
        priced.append(PricedLine(price=price, quantity=line.quantity))
    return priced


def describe_cart(priced: Sequence[PricedLine]) -> str:
    """Human readable product name stored on the order."""
    if len(priced) == 1:
        price = priced[0].price
        if price.pack_size:
            return f"{price.product_name} ({price.pack_size})"
        return price.product_name
    return f"{len(priced)} item(s) from Cart"


async def _find_verified_session(
    db: AsyncSession,
    email: str,
    verification_token: str,
) -> OtpSession:
    token = (verification_token or "").strip()
    if not token:
        raise OtpError(OtpFailure.TOKEN_INVALID, "Email verification is required")

    result = await db.execute(
        select(OtpSession)
        .where(
            OtpSession.email == email,
            OtpSession.verification_token == token,
            OtpSession.verified_at.is_not(None),
            OtpSession.used_at.is_(None),
        )
        .execution_options(populate_existing=True)
    )
    otp_session = result.scalar_one_or_none()
    if otp_session is None or clock.as_utc(otp_session.token_expires_at) <= clock.utcnow():
        raise OtpError(
            OtpFailure.TOKEN_INVALID,
            "Email verification expired or already used, please verify again",
        )
    return otp_session


async def create_order(
    db: AsyncSession,
    contact: ContactInfo,
    address: Optional[ShippingAddress],
    lines: Sequence[LineRequest],
    verification_token: str,
) -> Order:
    """
    Create an order from a verified customer's cart.

    Everything is validated before the first write. The order, its items
    and the consumption of the verification token then commit together
    or not at all.

    Args:
        db: Database session.
        contact: Customer name, email and phone.
        address: Shipping address, optional parts default to blank.
        lines: Requested cart lines.
        verification_token: Token returned by OTP verification for contact.email.

    Returns:
        Order: The persisted order with its items.

    Raises:
        ValidationError: Bad contact details, empty cart or bad quantity.
        CatalogReferenceError: A line references an unavailable product or pack.
        OtpError: The token does not belong to the email, expired or was used.
        StorageError: The write failed and was rolled back.
    """
    contact = validate_contact(contact)
    address = normalize_address(address)
    priced = await price_lines(db, lines)
    otp_session = await _find_verified_session(db, contact.email, verification_token)

    total_price = sum((line.line_total for line in priced), Decimal("0.00"))
    if total_price > MAX_ORDER_TOTAL:
        raise ValidationError("Order total is too large", field="items")
    total_quantity = sum(line.quantity for line in priced)
    unit_price = (total_price / total_quantity).quantize(CENT)

    now = clock.utcnow()
    order = Order(
        customer_name=contact.name,
        email=contact.email,
        phone=contact.phone,
        company_name=address.company_name,
        address=address.address,
        city=address.city,
        region=address.region,
        pincode=address.pincode,
        country=address.country,
        product_name=describe_cart(priced),
        quantity=total_quantity,
        unit_price=unit_price,
        total_price=total_price,
        payment_status=OrderPaymentStatus.PENDING,
        payment_mode=PaymentMode.PENDING,
        items=[
            OrderItem(
                shop_item_id=line.price.shop_item_id,
                product_name=line.price.product_name,
                pack_size=line.price.pack_size,
                unit_price=line.price.unit_price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in priced
        ],
        payment=None,
    )

    try:
        db.add(order)
        await db.flush()

        result = await db.execute(
            update(OtpSession)
            .where(
                OtpSession.id == otp_session.id,
                OtpSession.used_at.is_(None),
                OtpSession.token_expires_at > now,
            )
            .values(used_at=now, order_id=order.id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise OtpError(
                OtpFailure.TOKEN_INVALID,
                "Email verification expired or already used, please verify again",
            )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not save order") from e

    logger.info(
        f"Order {order.id} created for {contact.email}: "
        f"{len(priced)} line(s), total {total_price}"
    )
    return order


async def get_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id).execution_options(populate_existing=True))
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_orders(db: AsyncSession) -> List[Order]:
    """All orders, newest first, with items and payment loaded."""
    result = await db.execute(select(Order).order_by(Order.id.desc()).execution_options(populate_existing=True))
    return list(result.scalars().all())
