"""Pydantic request/response schemas for the Marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    name: str
    address: str
    city: str
    state: str | None = None
    zip_code: str | None = None
    phone: str | None = None


class PricingSchema(BaseModel):
    subtotal: float
    customizations_total: float
    discount: float
    shipping_cost: float
    tax: float
    total: float
    coupon_code: str | None = None
    coupon_rejection: str | None = None


class CustomizationSchema(BaseModel):
    type: str
    price: float


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    listing_id: str
    quantity: int = Field(ge=1, default=1)
    variant_selection: dict[str, str] | None = None
    personalization: str | None = None
    customizations: list[str] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "listing_id": "lst-001",
                    "quantity": 2,
                    "variant_selection": {"size": "M", "color": "black"},
                    "personalization": "For Ana",
                    "customizations": ["frame"],
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int


class CartItemSchema(BaseModel):
    item_id: str
    listing_id: str
    title: str | None = None
    quantity: int
    variant_selection: dict[str, str] = Field(default_factory=dict)
    personalization: str | None = None
    customizations: list[CustomizationSchema] = Field(default_factory=list)
    unit_price: float | None = None
    line_total: float | None = None
    available: bool


class CartResponse(BaseModel):
    buyer_id: str
    items: list[CartItemSchema]
    pricing: PricingSchema
    currency: str


class ItemIdResponse(BaseModel):
    item_id: str


# ---------------------------------------------------------------------------
# Orders & payments
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    shipping: ShippingAddressSchema
    coupon_code: str | None = None
    invoice_type: str | None = None
    ruc: str | None = None


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    total: float
    currency: str
    expires_at: str
    preference_id: str
    init_point: str


class OrderItemSchema(BaseModel):
    item_id: str
    listing_id: str
    title: str
    quantity: int
    unit_price: float
    customizations: list[CustomizationSchema] = Field(default_factory=list)


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    buyer_id: str
    status: str
    items: list[OrderItemSchema]
    pricing: PricingSchema
    currency: str
    expires_at: str
    payment_id: str | None = None
    cancellation_reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str


class CancelOrderRequest(BaseModel):
    reason: str = "Cancelled by buyer"


class PaymentWebhookRequest(BaseModel):
    """Provider notification; only the payment id is trusted, the rest is looked up."""

    type: str = "payment"
    payment_id: str


class ExpireReservationsResponse(BaseModel):
    orders: int
    tickets: int


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class ValidateCouponRequest(BaseModel):
    code: str
    subtotal: float = Field(ge=0)


class ValidateCouponResponse(BaseModel):
    valid: bool
    code: str
    discount: float
    discount_type: str
    discount_value: float


class CreateCouponRequest(BaseModel):
    code: str
    discount_type: str
    discount_value: float = Field(ge=0)
    min_purchase: float = Field(ge=0, default=0.0)
    max_uses: int | None = Field(ge=1, default=None)
    expires_at: str | None = None


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
class OpenReturnRequest(BaseModel):
    order_id: str
    reason: str
    description: str | None = None


class ResolveReturnRequest(BaseModel):
    status: str
    admin_notes: str | None = None
    refund_order: bool = False


class ReturnIdResponse(BaseModel):
    return_id: str


class ResolveReturnResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Shows & tickets
# ---------------------------------------------------------------------------
class TicketReservationResponse(BaseModel):
    ticket_id: str
    code: str
    status: str
    price: float
    expires_at: str
    preference_id: str | None = None
    init_point: str | None = None


class RedeemTicketResponse(BaseModel):
    result: str
    code: str
    used_at: str


# ---------------------------------------------------------------------------
# Referrals & commissions
# ---------------------------------------------------------------------------
class GenerateReferralRequest(BaseModel):
    owner_name: str | None = None


class ReferralResponse(BaseModel):
    referral_id: str
    code: str
    commission_rate: float


class ReferralClickResponse(BaseModel):
    valid: bool
    code: str


class BeneficiarySchema(BaseModel):
    payee_type: str
    payee_id: str
    pending_amount: float
    paid_amount: float
    pending_count: int
    breakdown: dict[str, float]


class CommissionStatusResponse(BaseModel):
    commission_id: str
    status: str


class StatusResponse(BaseModel):
    status: str = "ok"
