"""
Receipt Routes

Customers upload proof of a manual (UPI) payment for an order.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_storage
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.schemas.payment import ReceiptResponse
from app.services import payment_service
from app.services.payment_service import ReceiptUpload
from app.services.receipt_storage import ReceiptStorage


router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.post(
    "",
    response_model=ReceiptResponse,
    summary="Upload a payment receipt",
)
async def submit_receipt(
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[ReceiptStorage, Depends(get_storage)],
    orderid: Annotated[Optional[str], Form()] = None,
    amount: Annotated[Optional[str], Form()] = None,
    rating: Annotated[Optional[str], Form()] = None,
    feedback: Annotated[str, Form()] = "",
    receipt_file: Annotated[Optional[UploadFile], File(alias="receiptFile")] = None,
    receipt_image: Annotated[Optional[UploadFile], File(alias="receiptimage")] = None,
) -> ReceiptResponse:
    """
    Attach a receipt to an order and move it to VERIFYING.

    Raises:
        400 for missing fields or an amount that does not match the order
        total, 404 for an unknown order, 409 when the order already has a
        payment.
    """
    try:
        order_id = int(orderid or 0)
    except ValueError:
        order_id = 0
    if order_id <= 0:
        raise ValidationError("orderid required", field="orderid")

    upload = receipt_file or receipt_image
    if upload is None:
        raise ValidationError("receipt file required", field="receiptFile")

    if amount is None or not amount.strip():
        raise ValidationError("amount required", field="amount")
    paid = payment_service.parse_amount(amount.strip())

    try:
        stars = int(rating or 0)
    except ValueError:
        stars = 0

    # One byte past the limit is enough for the store to reject it
    content = await upload.read(storage.max_bytes + 1)
    payment = await payment_service.submit_receipt(
        db,
        storage,
        order_id=order_id,
        amount=paid,
        receipt=ReceiptUpload(filename=upload.filename or "receipt", content=content),
        rating=stars,
        feedback=feedback,
    )
    return ReceiptResponse(payment_id=payment.id, receipt_ref=payment.receipt_ref)
