"""
Tests for receipt submission and payment reconciliation.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    AmountMismatchError,
    ConflictError,
    DuplicatePaymentError,
    NotFoundError,
    ValidationError,
)
from app.models import Order, OrderItem, OtpSession, Payment
from app.models.enums import OrderPaymentStatus, PaymentMode, PaymentStatus
from app.services import payment_service
from app.services.payment_service import ReceiptUpload, parse_amount, parse_verdict


RECEIPT = ReceiptUpload(filename="upi screenshot.png", content=b"\x89PNG fake image")


async def _reload(db, model, pk):
    return await db.get(model, pk, populate_existing=True)


def _stored_files(storage) -> list:
    if not storage.base_dir.exists():
        return []
    return sorted(p.name for p in storage.base_dir.iterdir())


class TestParsing:
    def test_parse_amount(self):
        assert parse_amount("5000") == Decimal("5000.00")
        assert parse_amount("12.345") == Decimal("12.35")

    @pytest.mark.parametrize("raw", ["abc", "", "NaN", "Infinity"])
    def test_parse_amount_rejects_non_numbers(self, raw):
        with pytest.raises(ValidationError):
            parse_amount(raw)

    def test_parse_verdict(self):
        assert parse_verdict(" success ") is PaymentStatus.SUCCESS
        assert parse_verdict("FAILED") is PaymentStatus.FAILED
        with pytest.raises(ValidationError):
            parse_verdict("PENDING")
        with pytest.raises(ValidationError):
            parse_verdict(None)


class TestSubmitReceipt:
    @pytest.mark.asyncio
    async def test_exact_amount_is_accepted(self, db, storage, place_order):
        order = await place_order()

        payment = await payment_service.submit_receipt(
            db, storage, order.id, Decimal("5000.00"), RECEIPT, rating=4, feedback="Quick"
        )

        stored = await _reload(db, Payment, payment.id)
        assert stored.status is PaymentStatus.PENDING
        assert stored.amount == Decimal("5000.00")
        assert stored.rating == 4
        assert stored.feedback == "Quick"
        assert stored.customer_name == "Asha Rao"
        assert stored.email == "buyer@example.com"
        assert stored.receipt_ref.startswith("receipts/")
        assert stored.receipt_ref.endswith("upi_screenshot.png")

        order = await _reload(db, Order, order.id)
        assert order.payment_status is OrderPaymentStatus.VERIFYING
        assert len(_stored_files(storage)) == 1

    @pytest.mark.asyncio
    async def test_one_cent_difference_is_tolerated(self, db, storage, place_order):
        order = await place_order()

        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("4999.99"), RECEIPT)
        assert payment.id

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, db, storage, place_order):
        order = await place_order()

        with pytest.raises(AmountMismatchError) as exc_info:
            await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.02"), RECEIPT)

        assert exc_info.value.details == {"expected": "5000.00", "received": "5000.02"}
        assert _stored_files(storage) == []
        order = await _reload(db, Order, order.id)
        assert order.payment_status is OrderPaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_rating_and_feedback_are_clamped(self, db, storage, place_order):
        order = await place_order()

        payment = await payment_service.submit_receipt(
            db, storage, order.id, Decimal("5000"), RECEIPT, rating=9, feedback="x" * 5000
        )

        assert payment.rating == 5
        assert len(payment.feedback) == 2000

    @pytest.mark.asyncio
    async def test_unknown_order(self, db, storage, catalog):
        with pytest.raises(NotFoundError):
            await payment_service.submit_receipt(db, storage, 424242, Decimal("1.00"), RECEIPT)

    @pytest.mark.asyncio
    async def test_second_receipt_is_a_duplicate(self, db, storage, place_order):
        order = await place_order()
        await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        # Checked before the amount, so a wrong amount still reports the duplicate
        with pytest.raises(DuplicatePaymentError) as exc_info:
            await payment_service.submit_receipt(db, storage, order.id, Decimal("1.00"), RECEIPT)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_concurrent_receipts_record_one_payment(self, db, session_maker, storage, place_order):
        order = await place_order()

        async def submit():
            async with session_maker() as session:
                try:
                    return await payment_service.submit_receipt(
                        session, storage, order.id, Decimal("5000.00"), RECEIPT
                    )
                except DuplicatePaymentError as e:
                    return e

        results = await asyncio.gather(*(submit() for _ in range(5)))

        assert sum(isinstance(r, Payment) for r in results) == 1
        assert sum(isinstance(r, DuplicatePaymentError) for r in results) == 4

        count = await db.scalar(select(func.count()).select_from(Payment).where(Payment.order_id == order.id))
        assert count == 1
        # Losers released their artifacts
        assert len(_stored_files(storage)) == 1

    @pytest.mark.asyncio
    async def test_settled_order_rejects_new_receipt(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)
        await payment_service.decide(db, payment.id, "SUCCESS")
        await payment_service.delete_payment(db, storage, payment.id)

        with pytest.raises(ConflictError) as exc_info:
            await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)
        assert not isinstance(exc_info.value, DuplicatePaymentError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("driver crashed"), asyncio.CancelledError()])
    async def test_interrupted_commit_releases_receipt(self, db, storage, place_order, error):
        order = await place_order()

        with patch.object(db, "commit", AsyncMock(side_effect=error)):
            with pytest.raises(type(error)):
                await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        assert _stored_files(storage) == []
        await db.rollback()
        assert await db.scalar(select(func.count()).select_from(Payment)) == 0


class TestDecide:
    @pytest.mark.asyncio
    async def test_success_marks_order_paid(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        decision = await payment_service.decide(db, payment.id, "SUCCESS")

        assert decision.status is PaymentStatus.SUCCESS
        assert decision.order_status is OrderPaymentStatus.PAID
        assert decision.order_id == order.id

        payment = await _reload(db, Payment, payment.id)
        order = await _reload(db, Order, order.id)
        assert payment.status is PaymentStatus.SUCCESS
        assert order.payment_status is OrderPaymentStatus.PAID
        assert order.payment_mode is PaymentMode.UPI

    @pytest.mark.asyncio
    async def test_failure_marks_order_failed(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        await payment_service.decide(db, payment.id, PaymentStatus.FAILED)

        payment = await _reload(db, Payment, payment.id)
        order = await _reload(db, Order, order.id)
        assert payment.status is PaymentStatus.FAILED
        assert order.payment_status is OrderPaymentStatus.FAILED
        assert order.payment_mode is PaymentMode.FAILED

    @pytest.mark.asyncio
    async def test_verdict_can_be_revised(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        await payment_service.decide(db, payment.id, "FAILED")
        decision = await payment_service.decide(db, payment.id, "SUCCESS")

        assert decision.order_status is OrderPaymentStatus.PAID
        order = await _reload(db, Order, order.id)
        assert order.payment_status is OrderPaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_unknown_payment(self, db, catalog):
        with pytest.raises(NotFoundError):
            await payment_service.decide(db, 999, "SUCCESS")

    @pytest.mark.asyncio
    async def test_invalid_verdict(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        with pytest.raises(ValidationError):
            await payment_service.decide(db, payment.id, "MAYBE")

        payment = await _reload(db, Payment, payment.id)
        assert payment.status is PaymentStatus.PENDING


class TestDeletes:
    @pytest.mark.asyncio
    async def test_delete_payment_releases_receipt_and_reopens_order(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        assert await payment_service.delete_payment(db, storage, payment.id) == 1

        assert await _reload(db, Payment, payment.id) is None
        assert _stored_files(storage) == []
        order = await _reload(db, Order, order.id)
        assert order.payment_status is OrderPaymentStatus.PENDING

        # The customer can upload again
        again = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)
        assert again.id != payment.id

    @pytest.mark.asyncio
    async def test_delete_missing_payment(self, db, storage, catalog):
        assert await payment_service.delete_payment(db, storage, 999) == 0

    @pytest.mark.asyncio
    async def test_delete_order_removes_everything(self, db, storage, place_order):
        order = await place_order()
        await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        assert await payment_service.delete_order(db, storage, order.id) == 1

        assert await _reload(db, Order, order.id) is None
        assert await db.scalar(select(func.count()).select_from(Payment)) == 0
        assert await db.scalar(select(func.count()).select_from(OrderItem)) == 0
        assert _stored_files(storage) == []

        linked = await db.scalar(
            select(func.count()).select_from(OtpSession).where(OtpSession.order_id == order.id)
        )
        assert linked == 0
        assert await payment_service.delete_order(db, storage, order.id) == 0

    @pytest.mark.asyncio
    async def test_deleted_ids_are_never_reused(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)
        old_item_ids = {item.id for item in order.items}
        assert await payment_service.delete_order(db, storage, order.id) == 1

        newer = await place_order()
        assert newer.id != order.id
        assert old_item_ids.isdisjoint(item.id for item in newer.items)

        # A receipt aimed at the deleted order cannot land on the new one
        with pytest.raises(NotFoundError):
            await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        again = await payment_service.submit_receipt(db, storage, newer.id, Decimal("5000.00"), RECEIPT)
        assert again.id != payment.id

    @pytest.mark.asyncio
    async def test_release_failure_does_not_block_deletion(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        with patch("pathlib.Path.unlink", side_effect=PermissionError("read-only")):
            assert await payment_service.delete_payment(db, storage, payment.id) == 1

        assert await _reload(db, Payment, payment.id) is None


class TestListPayments:
    @pytest.mark.asyncio
    async def test_lists_with_order_summary(self, db, storage, place_order):
        order = await place_order()
        payment = await payment_service.submit_receipt(db, storage, order.id, Decimal("5000.00"), RECEIPT)

        listings = await payment_service.list_payments(db)

        assert len(listings) == 1
        assert listings[0].payment.id == payment.id
        assert listings[0].product_name == "Citric Acid"
        assert listings[0].total_price == Decimal("5000.00")
        assert listings[0].order_payment_status is OrderPaymentStatus.VERIFYING
