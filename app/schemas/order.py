"""
Order Schemas

Request bodies are normalized here into the service layer's strict input
types. Clients never send prices: any monetary field is rejected.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from app.models.enums import OrderPaymentStatus, PaymentMode
from app.schemas.base import CamelModel, Money
from app.services.order_service import MAX_QUANTITY, ContactInfo, LineRequest, ShippingAddress


MONETARY_FIELDS = frozenset({
    "price",
    "unitprice",
    "unitPrice",
    "unit_price",
    "totalprice",
    "totalPrice",
    "total_price",
    "lineTotal",
    "line_total",
    "amount",
    "ourPrice",
    "our_price",
})


def reject_client_prices(data: Any) -> Any:
    if isinstance(data, dict):
        supplied = sorted(MONETARY_FIELDS.intersection(data))
        if supplied:
            raise ValueError(
                f"Prices are computed by the server; remove {', '.join(supplied)}"
            )
    return data


class CartLine(BaseModel):
    """One cart line: which product, which pack, how many."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    shop_item_id: int = Field(
        ...,
        validation_alias=AliasChoices("shopItemId", "shop_item_id"),
    )
    pack_size: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("packSize", "pack_size"),
    )
    quantity: int = Field(default=1, gt=0, le=MAX_QUANTITY)

    @model_validator(mode="before")
    @classmethod
    def reject_prices(cls, data: Any) -> Any:
        return reject_client_prices(data)

    def to_line_request(self) -> LineRequest:
        return LineRequest(
            shop_item_id=self.shop_item_id,
            pack_size=self.pack_size,
            quantity=self.quantity,
        )


class OrderCreateRequest(BaseModel):
    """
    Schema for placing an order.

    Accepts a cart (``items``) or the older single-product body with
    ``shopItemId``/``packSize``/``quantity`` at the top level, and the
    lowercase field names used by the original storefront pages.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    customer_name: str = Field(
        default="",
        validation_alias=AliasChoices("customerName", "customername", "customer_name", "name"),
    )
    email: str = ""
    phone: str = ""
    company_name: str = Field(
        default="",
        validation_alias=AliasChoices("companyName", "companyname", "company_name"),
    )
    address: str = ""
    city: str = ""
    region: str = ""
    pincode: str = ""
    country: str = ""

    items: Optional[List[CartLine]] = None
    shop_item_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("shopItemId", "shop_item_id"),
    )
    pack_size: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("packSize", "pack_size"),
    )
    quantity: int = Field(default=1, gt=0, le=MAX_QUANTITY)

    email_otp_token: str = Field(
        default="",
        validation_alias=AliasChoices("emailOtpToken", "verificationToken", "email_otp_token"),
    )

    @model_validator(mode="before")
    @classmethod
    def reject_prices(cls, data: Any) -> Any:
        return reject_client_prices(data)

    def to_contact(self) -> ContactInfo:
        return ContactInfo(name=self.customer_name, email=self.email, phone=self.phone)

    def to_address(self) -> ShippingAddress:
        return ShippingAddress(
            company_name=self.company_name,
            address=self.address,
            city=self.city,
            region=self.region,
            pincode=self.pincode,
            country=self.country,
        )

    def to_lines(self) -> List[LineRequest]:
        if self.items:
            return [line.to_line_request() for line in self.items]
        if self.shop_item_id is not None:
            return [
                LineRequest(
                    shop_item_id=self.shop_item_id,
                    pack_size=self.pack_size,
                    quantity=self.quantity,
                )
            ]
        return []


class OrderCreateResponse(CamelModel):
    order_id: int


class OrderItemResponse(CamelModel):
    id: int
    shop_item_id: int
    product_name: str
    pack_size: Optional[str] = None
    unit_price: Money
    quantity: int
    line_total: Money


class OrderResponse(CamelModel):
    """Admin view of an order."""

    id: int
    customer_name: str
    email: str
    phone: str
    company_name: str
    address: str
    city: str
    region: str
    pincode: str
    country: str
    product_name: str
    quantity: int
    unit_price: Money
    total_price: Money
    payment_status: OrderPaymentStatus
    payment_mode: PaymentMode
    order_status: str
    created_at: datetime
    items: List[OrderItemResponse] = []
