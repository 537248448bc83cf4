"""
Payment Service

Receipt submission and administrator reconciliation.

Order payment status moves PENDING -> VERIFYING when a receipt is
accepted and VERIFYING -> PAID / FAILED on the administrator's verdict.
Each transition commits together with the payment row it belongs to.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import (
    AmountMismatchError,
    ConflictError,
    DuplicatePaymentError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.models.enums import OrderPaymentStatus, PaymentMode, PaymentStatus
from app.models.order import Order, OrderItem
from app.models.otp_session import OtpSession
from app.models.payment import Payment
from app.services.pricing_service import to_money
from app.services.receipt_storage import ReceiptStorage


logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
MAX_RATING = 5

_OPEN_ORDER_STATES = (OrderPaymentStatus.PENDING, OrderPaymentStatus.VERIFYING)


@dataclass(frozen=True)
class ReceiptUpload:
    filename: str
    content: bytes


@dataclass(frozen=True)
class Decision:
    payment_id: int
    status: PaymentStatus
    order_id: int
    order_status: OrderPaymentStatus


@dataclass(frozen=True)
class PaymentListing:
    payment: Payment
    product_name: str
    total_price: Decimal
    order_payment_status: OrderPaymentStatus


def parse_amount(raw) -> Decimal:
    """Parse a client-supplied amount into cents."""
    try:
        amount = to_money(raw)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("amount must be a number", field="amount")
    if not amount.is_finite():
        raise ValidationError("amount must be a number", field="amount")
    return amount


def parse_verdict(raw) -> PaymentStatus:
    value = str(raw or "").strip().upper()
    if value not in (PaymentStatus.SUCCESS.value, PaymentStatus.FAILED.value):
        raise ValidationError("status must be SUCCESS or FAILED", field="status")
    return PaymentStatus(value)


async def _existing_payment_id(db: AsyncSession, order_id: int) -> Optional[int]:
    result = await db.execute(select(Payment.id).where(Payment.order_id == order_id))
    return result.scalar_one_or_none()


async def submit_receipt(
    db: AsyncSession,
    storage: ReceiptStorage,
    order_id: int,
    amount: Decimal,
    receipt: ReceiptUpload,
    rating: int = 0,
    feedback: str = "",
) -> Payment:
    """
    Record an uploaded payment receipt for an order.

    The pre-check for an existing payment only produces a friendlier
    error; the unique constraint on payments.order_id is what rejects a
    concurrent second submission.

    Args:
        db: Database session.
        storage: Where the receipt artifact is kept.
        order_id: Order being paid.
        amount: Amount the customer says they paid.
        receipt: Uploaded receipt file.
        rating: Optional 0-5 shopping experience rating.
        feedback: Optional free text.

    Returns:
        Payment: The new PENDING payment.

    Raises:
        NotFoundError: The order does not exist.
        DuplicatePaymentError: The order already has a payment.
        ConflictError: The order's payment is already settled.
        AmountMismatchError: amount differs from the order total by more than 0.01.
    """
    result = await db.execute(select(Order).where(Order.id == order_id).execution_options(populate_existing=True))
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")

    if await _existing_payment_id(db, order_id) is not None:
        raise DuplicatePaymentError("A payment was already submitted for this order")

    if order.payment_status not in _OPEN_ORDER_STATES:
        raise ConflictError(f"Order payment is already {order.payment_status.value}")

    expected = to_money(order.total_price)
    if abs(to_money(amount) - expected) > AMOUNT_TOLERANCE:
        raise AmountMismatchError(
            "Paid amount does not match the order total",
            field="amount",
            details={"expected": str(expected), "received": str(to_money(amount))},
        )

    rating = min(max(int(rating or 0), 0), MAX_RATING)
    feedback = (feedback or "")[: settings.RECEIPT_FEEDBACK_MAX_CHARS]

    now = clock.utcnow()
    receipt_ref = storage.save(receipt.filename, receipt.content)
    committed = False

    try:
        payment = Payment(
            order_id=order_id,
            amount=to_money(amount),
            status=PaymentStatus.PENDING,
            receipt_ref=receipt_ref,
            rating=rating,
            feedback=feedback,
            customer_name=order.customer_name,
            email=order.email,
            phone=order.phone,
        )
        db.add(payment)
        await db.flush()

        result = await db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.payment_status.in_(_OPEN_ORDER_STATES),
            )
            .values(payment_status=OrderPaymentStatus.VERIFYING, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise ConflictError("Order payment was settled meanwhile")
        await db.commit()
        committed = True
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Duplicate receipt for order {order_id} rejected by the store")
        raise DuplicatePaymentError("A payment was already submitted for this order") from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not save payment") from e
    finally:
        # Any exit without a commit, cancellation included, drops the artifact
        if not committed:
            storage.release(receipt_ref)

    logger.info(f"Receipt accepted for order {order_id}: payment {payment.id}, amount {payment.amount}")
    return payment


async def decide(
    db: AsyncSession,
    payment_id: int,
    verdict: PaymentStatus | str,
) -> Decision:
    """
    Apply an administrator's verdict to a payment and its order.

    Payment status and order payment status are written in one
    transaction, so no reader sees them disagree.

    Raises:
        ValidationError: verdict is not SUCCESS or FAILED.
        NotFoundError: The payment does not exist.
    """
    verdict = parse_verdict(verdict.value if isinstance(verdict, PaymentStatus) else verdict)

    result = await db.execute(select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True))
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found")

    if payment.status not in (PaymentStatus.PENDING, verdict):
        logger.warning(
            f"Payment {payment_id} verdict changed from {payment.status.value} to {verdict.value}"
        )

    if verdict is PaymentStatus.SUCCESS:
        order_status, mode = OrderPaymentStatus.PAID, PaymentMode.UPI
    else:
        order_status, mode = OrderPaymentStatus.FAILED, PaymentMode.FAILED

    now = clock.utcnow()
    try:
        await db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(status=verdict, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(Order)
            .where(Order.id == payment.order_id)
            .values(payment_status=order_status, payment_mode=mode, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not update payment status") from e

    logger.info(f"Payment {payment_id} marked {verdict.value}; order {payment.order_id} is {order_status.value}")

    return Decision(
        payment_id=payment_id,
        status=verdict,
        order_id=payment.order_id,
        order_status=order_status,
    )


async def delete_payment(db: AsyncSession, storage: ReceiptStorage, payment_id: int) -> int:
    """
    Delete a payment and release its receipt.

    An order left VERIFYING without a payment goes back to PENDING so the
    customer can upload again.

    Returns:
        int: Number of payments deleted (0 or 1).
    """
    result = await db.execute(select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True))
    payment = result.scalar_one_or_none()
    if payment is None:
        return 0

    storage.release(payment.receipt_ref)

    try:
        await db.execute(delete(Payment).where(Payment.id == payment_id))
        await db.execute(
            update(Order)
            .where(
                Order.id == payment.order_id,
                Order.payment_status == OrderPaymentStatus.VERIFYING,
            )
            .values(payment_status=OrderPaymentStatus.PENDING, updated_at=clock.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not delete payment") from e

    logger.info(f"Payment {payment_id} deleted (order {payment.order_id})")
    return 1


async def delete_order(db: AsyncSession, storage: ReceiptStorage, order_id: int) -> int:
    """
    Delete an order together with its items and payments.

    Receipts are released first; a release failure is logged by the
    storage and does not stop the deletion.

    Returns:
        int: Number of orders deleted (0 or 1).
    """
    result = await db.execute(select(Order.id).where(Order.id == order_id))
    if result.scalar_one_or_none() is None:
        return 0

    result = await db.execute(select(Payment.receipt_ref).where(Payment.order_id == order_id))
    for receipt_ref in result.scalars().all():
        storage.release(receipt_ref)

    try:
        await db.execute(delete(Payment).where(Payment.order_id == order_id))
        await db.execute(
            update(OtpSession)
            .where(OtpSession.order_id == order_id)
            .values(order_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
        result = await db.execute(delete(Order).where(Order.id == order_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not delete order") from e

    logger.info(f"Order {order_id} deleted")
    return result.rowcount or 0


async def list_payments(db: AsyncSession) -> List[PaymentListing]:
    """All payments, newest first, with a summary of their order."""
    result = await db.execute(
        select(Payment, Order.product_name, Order.total_price, Order.payment_status)
        .join(Order, Order.id == Payment.order_id)
        .order_by(Payment.id.desc())
        .execution_options(populate_existing=True)
    )
    return [
        PaymentListing(
            payment=payment,
            product_name=product_name,
            total_price=total_price,
            order_payment_status=order_payment_status,
        )
        for payment, product_name, total_price, order_payment_status in result.all()
    ]
