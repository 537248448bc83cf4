"""
Order Routes
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.order import OrderCreateRequest, OrderCreateResponse
from app.services import order_service


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_200_OK,
    summary="Place an order",
)
async def create_order(
    data: OrderCreateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderCreateResponse:
    """
    Place an order priced from the catalog.

    Requires the ``emailOtpToken`` obtained from ``/otp/verify`` for the
    same email. The token is consumed by this call.
    """
    order = await order_service.create_order(
        db,
        contact=data.to_contact(),
        address=data.to_address(),
        lines=data.to_lines(),
        verification_token=data.email_otp_token,
    )
    return OrderCreateResponse(order_id=order.id)
