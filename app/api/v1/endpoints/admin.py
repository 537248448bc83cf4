"""
Admin Routes

Payment reconciliation and order housekeeping. Every route except login
requires an admin bearer token.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_storage, require_admin
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError
from app.core.security import create_access_token, verify_password
from app.schemas.order import OrderResponse
from app.schemas.payment import (
    DeleteResponse,
    PaymentResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
)
from app.schemas.token import AdminLoginRequest, Token
from app.services import order_service, payment_service
from app.services.receipt_storage import ReceiptStorage


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/login",
    response_model=Token,
    summary="Log in as administrator",
)
async def login(data: AdminLoginRequest) -> Token:
    """
    Exchange admin credentials for a bearer token.

    Raises:
        401 for wrong credentials or when no admin password is configured.
    """
    if data.username != settings.ADMIN_USERNAME or not verify_password(
        data.password, settings.ADMIN_PASSWORD_HASH
    ):
        raise AuthenticationError("Invalid credentials")

    return Token(access_token=create_access_token(subject=data.username))


@router.get(
    "/orders",
    response_model=List[OrderResponse],
    summary="List orders",
)
async def list_orders(
    admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> List[OrderResponse]:
    orders = await order_service.list_orders(db)
    return [OrderResponse.model_validate(order) for order in orders]


@router.get(
    "/payments",
    response_model=List[PaymentResponse],
    summary="List payments",
)
async def list_payments(
    admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> List[PaymentResponse]:
    listings = await payment_service.list_payments(db)
    return [
        PaymentResponse(
            id=row.payment.id,
            order_id=row.payment.order_id,
            provider=row.payment.provider,
            amount=row.payment.amount,
            currency=row.payment.currency,
            status=row.payment.status,
            receipt_ref=row.payment.receipt_ref,
            rating=row.payment.rating,
            feedback=row.payment.feedback,
            customer_name=row.payment.customer_name,
            email=row.payment.email,
            phone=row.payment.phone,
            created_at=row.payment.created_at,
            product_name=row.product_name,
            total_price=row.total_price,
            order_payment_status=row.order_payment_status,
        )
        for row in listings
    ]


@router.post(
    "/payment-status",
    response_model=PaymentStatusResponse,
    summary="Mark a payment SUCCESS or FAILED",
)
async def set_payment_status(
    data: PaymentStatusRequest,
    admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentStatusResponse:
    """
    Record the verdict on a receipt and sync the order's payment status.

    Raises:
        400 for a status other than SUCCESS/FAILED, 404 for an unknown payment.
    """
    decision = await payment_service.decide(db, data.payment_id, data.status)
    return PaymentStatusResponse(
        payment_id=decision.payment_id,
        status=decision.status,
        order_id=decision.order_id,
        order_status=decision.order_status,
    )


@router.delete(
    "/orders/{order_id}",
    response_model=DeleteResponse,
    summary="Delete an order with its payments",
)
async def delete_order(
    order_id: int,
    admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[ReceiptStorage, Depends(get_storage)],
) -> DeleteResponse:
    deleted = await payment_service.delete_order(db, storage, order_id)
    return DeleteResponse(deleted=deleted)


@router.delete(
    "/payments/{payment_id}",
    response_model=DeleteResponse,
    summary="Delete a payment and its receipt",
)
async def delete_payment(
    payment_id: int,
    admin: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[ReceiptStorage, Depends(get_storage)],
) -> DeleteResponse:
    deleted = await payment_service.delete_payment(db, storage, payment_id)
    return DeleteResponse(deleted=deleted)
