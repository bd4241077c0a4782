"""FastAPI routes for the Marketplace — cart, orders, payments, returns,
tickets, referrals and commissions.

Identity comes from the ``X-User-Id`` / ``X-User-Role`` headers set by the
auth layer in front of this service.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException
from protean.utils.globals import current_domain

from marketplace.api.identity import current_user_id, is_admin, require_admin
from marketplace.api.schemas import (
    AddToCartRequest,
    BeneficiarySchema,
    CancelOrderRequest,
    CartResponse,
    CheckoutResponse,
    CommissionStatusResponse,
    CreateCouponRequest,
    ExpireReservationsResponse,
    GenerateReferralRequest,
    ItemIdResponse,
    OpenReturnRequest,
    OrderResponse,
    PaymentWebhookRequest,
    PlaceOrderRequest,
    RedeemTicketResponse,
    ReferralClickResponse,
    ReferralResponse,
    ResolveReturnRequest,
    ResolveReturnResponse,
    ReturnIdResponse,
    StatusResponse,
    TicketReservationResponse,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from marketplace.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from marketplace.cart.management import ClearCart
from marketplace.cart.view import view_cart
from marketplace.commissions.commission import Commission
from marketplace.commissions.payout import MarkCommissionPaid, MarkCommissionsPaid
from marketplace.commissions.summary import beneficiaries_with_pending, commissions_overview, referral_dashboard
from marketplace.coupons.management import CreateCoupon
from marketplace.coupons.validation import validate_coupon
from marketplace.errors import Forbidden
from marketplace.orders.cancellation import CancelOrder
from marketplace.orders.checkout import PlaceOrder
from marketplace.orders.expiration import ExpireReservations, load_order
from marketplace.orders.fulfillment import AdvanceOrderStatus
from marketplace.orders.order import Order
from marketplace.payments.checkout import start_order_checkout, start_ticket_checkout
from marketplace.payments.gateway import get_gateway
from marketplace.payments.webhook import handle_payment_notification
from marketplace.referrals.management import (
    GenerateReferralCode,
    LinkReferredBuyer,
    TrackReferralClick,
    validate_referral_code,
)
from marketplace.referrals.referral import Referral
from marketplace.returns.management import ResolveReturnRequest as ResolveReturnRequestCommand
from marketplace.returns.management import StartReturnReview, request_return
from marketplace.settings.setting import current_setting
from marketplace.tickets.redemption import RedeemTicket
from marketplace.tickets.reservation import ReserveTicket
from marketplace.tickets.ticket import Ticket


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        buyer_id=str(order.buyer_id),
        status=order.status,
        items=[
            {
                "item_id": str(item.id),
                "listing_id": str(item.listing_id),
                "title": item.title,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "customizations": [{"type": c["type"], "price": c["price"]} for c in item.customization_lines],
            }
            for item in order.items
        ],
        pricing={
            "subtotal": order.pricing.subtotal,
            "customizations_total": order.pricing.customizations_total,
            "discount": order.pricing.discount,
            "shipping_cost": order.pricing.shipping_cost,
            "tax": order.pricing.tax,
            "total": order.pricing.total,
            "coupon_code": order.coupon_code,
        },
        currency=order.pricing.currency,
        expires_at=order.expires_at.isoformat(),
        payment_id=order.payment_id,
        cancellation_reason=order.cancellation_reason,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(coupon_code: str | None = None, buyer_id: str = Depends(current_user_id)) -> CartResponse:
    """Cart lines priced against current listing data."""
    return CartResponse(**view_cart(buyer_id, coupon_code=coupon_code))


@cart_router.post("/items", status_code=201, response_model=ItemIdResponse)
async def add_cart_item(body: AddToCartRequest, buyer_id: str = Depends(current_user_id)) -> ItemIdResponse:
    command = AddToCart(
        buyer_id=buyer_id,
        listing_id=body.listing_id,
        quantity=body.quantity,
        variant_selection=json.dumps(body.variant_selection) if body.variant_selection else None,
        personalization=body.personalization,
        customizations=json.dumps(body.customizations),
    )
    item_id = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=item_id)


@cart_router.patch("/items/{item_id}", response_model=StatusResponse)
async def update_cart_item(
    item_id: str, body: UpdateCartQuantityRequest, buyer_id: str = Depends(current_user_id)
) -> StatusResponse:
    """Set a line's quantity; zero removes the line."""
    command = UpdateCartQuantity(buyer_id=buyer_id, item_id=item_id, new_quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(item_id: str, buyer_id: str = Depends(current_user_id)) -> StatusResponse:
    current_domain.process(RemoveFromCart(buyer_id=buyer_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.delete("", response_model=StatusResponse)
async def clear_cart(buyer_id: str = Depends(current_user_id)) -> StatusResponse:
    current_domain.process(ClearCart(buyer_id=buyer_id), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CheckoutResponse)
async def place_order(body: PlaceOrderRequest, buyer_id: str = Depends(current_user_id)) -> CheckoutResponse:
    """Check out the buyer's cart and open a hosted checkout for it."""
    command = PlaceOrder(
        buyer_id=buyer_id,
        shipping_address=json.dumps(body.shipping.model_dump()),
        coupon_code=body.coupon_code,
        invoice_type=body.invoice_type,
        ruc=body.ruc,
    )
    order_id = current_domain.process(command, asynchronous=False)
    order = current_domain.repository_for(Order).get(order_id)
    session = start_order_checkout(order)

    return CheckoutResponse(
        order_id=order_id,
        order_number=order.order_number,
        total=order.pricing.total,
        currency=order.pricing.currency,
        expires_at=order.expires_at.isoformat(),
        preference_id=session.preference_id,
        init_point=session.init_point,
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str, user_id: str = Depends(current_user_id), admin: bool = Depends(is_admin)
) -> OrderResponse:
    order = load_order(order_id)
    if not admin and str(order.buyer_id) != user_id:
        raise Forbidden({"order_id": ["Order belongs to another buyer"]})
    return _order_response(order)


@order_router.patch("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, _admin_id: str = Depends(require_admin)
) -> StatusResponse:
    """Admin-only forward transition (PAID → PROCESSING → SHIPPED → DELIVERED)."""
    load_order(order_id)
    status = current_domain.process(AdvanceOrderStatus(order_id=order_id, status=body.status), asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    user_id: str = Depends(current_user_id),
    admin: bool = Depends(is_admin),
) -> StatusResponse:
    load_order(order_id)
    command = CancelOrder(order_id=order_id, reason=body.reason, requested_by=user_id, is_admin=admin)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=StatusResponse)
async def process_webhook(
    body: PaymentWebhookRequest,
    x_signature: str = Header(default=""),
) -> StatusResponse:
    """Provider notification. Duplicates and late payments are acknowledged, not errors."""
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(json.dumps(body.model_dump()), x_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    if body.type != "payment":
        return StatusResponse(status="ignored")
    outcome = handle_payment_notification(body.payment_id)
    return StatusResponse(status=outcome)


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-reservations", response_model=ExpireReservationsResponse)
async def expire_reservations(_admin_id: str = Depends(require_admin)) -> ExpireReservationsResponse:
    """Sweep lapsed order and ticket reservations; meant for a scheduler."""
    result = current_domain.process(ExpireReservations(), asynchronous=False)
    return ExpireReservationsResponse(**result)


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("/validate", response_model=ValidateCouponResponse)
async def validate_coupon_code(
    body: ValidateCouponRequest, x_user_id: str | None = Header(default=None)
) -> ValidateCouponResponse:
    """Same discount checkout will apply for the same subtotal."""
    coupon, discount = validate_coupon(body.code, body.subtotal, buyer_id=x_user_id)
    return ValidateCouponResponse(
        valid=True,
        code=coupon.code,
        discount=float(round(discount, 2)),
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
    )


@coupon_router.post("", status_code=201, response_model=StatusResponse)
async def create_coupon(body: CreateCouponRequest, _admin_id: str = Depends(require_admin)) -> StatusResponse:
    command = CreateCoupon(
        code=body.code,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        min_purchase=body.min_purchase,
        max_uses=body.max_uses,
        expires_at=datetime.fromisoformat(body.expires_at) if body.expires_at else None,
    )
    code = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=code)


# ---------------------------------------------------------------------------
# Return Router
# ---------------------------------------------------------------------------
return_router = APIRouter(prefix="/returns", tags=["returns"])


@return_router.post("", status_code=201, response_model=ReturnIdResponse)
async def open_return(body: OpenReturnRequest, buyer_id: str = Depends(current_user_id)) -> ReturnIdResponse:
    return_id = request_return(body.order_id, buyer_id, body.reason, description=body.description)
    return ReturnIdResponse(return_id=return_id)


@return_router.patch("/{return_id}/review", response_model=StatusResponse)
async def review_return(return_id: str, _admin_id: str = Depends(require_admin)) -> StatusResponse:
    current_domain.process(StartReturnReview(return_id=return_id), asynchronous=False)
    return StatusResponse(status="Reviewing")


@return_router.patch("/{return_id}/resolve", response_model=ResolveReturnResponse)
async def resolve_return(
    return_id: str, body: ResolveReturnRequest, admin_id: str = Depends(require_admin)
) -> ResolveReturnResponse:
    command = ResolveReturnRequestCommand(
        return_id=return_id,
        status=body.status,
        admin_notes=body.admin_notes,
        refund_order=body.refund_order,
        resolved_by=admin_id,
    )
    status = current_domain.process(command, asynchronous=False)
    return ResolveReturnResponse(status=status)


# ---------------------------------------------------------------------------
# Show & Ticket Routers
# ---------------------------------------------------------------------------
show_router = APIRouter(prefix="/shows", tags=["shows"])
ticket_router = APIRouter(prefix="/tickets", tags=["tickets"])


@show_router.post("/{show_id}/tickets", status_code=201, response_model=TicketReservationResponse)
async def reserve_ticket(show_id: str, buyer_id: str = Depends(current_user_id)) -> TicketReservationResponse:
    """Reserve a seat; an existing unpaid reservation is returned instead of a new one."""
    ticket_id = current_domain.process(ReserveTicket(show_id=show_id, buyer_id=buyer_id), asynchronous=False)
    ticket = current_domain.repository_for(Ticket).get(ticket_id)
    session = start_ticket_checkout(ticket, currency=current_setting("currency"))

    return TicketReservationResponse(
        ticket_id=ticket_id,
        code=ticket.code,
        status=ticket.status,
        price=ticket.price,
        expires_at=ticket.expires_at.isoformat(),
        preference_id=session.preference_id,
        init_point=session.init_point,
    )


@ticket_router.post("/{code}/redeem", response_model=RedeemTicketResponse)
async def redeem_ticket(code: str, _admin_id: str = Depends(require_admin)) -> RedeemTicketResponse:
    result = current_domain.process(RedeemTicket(code=code), asynchronous=False)
    return RedeemTicketResponse(**result)


# ---------------------------------------------------------------------------
# Referral Router
# ---------------------------------------------------------------------------
referral_router = APIRouter(prefix="/referrals", tags=["referrals"])


@referral_router.post("", status_code=201, response_model=ReferralResponse)
async def generate_referral(
    body: GenerateReferralRequest, owner_id: str = Depends(current_user_id)
) -> ReferralResponse:
    """Return the caller's referral code, creating it on first use."""
    referral_id = current_domain.process(
        GenerateReferralCode(owner_id=owner_id, owner_name=body.owner_name), asynchronous=False
    )
    referral = current_domain.repository_for(Referral).get(referral_id)
    return ReferralResponse(referral_id=referral_id, code=referral.code, commission_rate=referral.commission_rate)


@referral_router.get("/me")
async def my_referral(owner_id: str = Depends(current_user_id)) -> dict:
    dashboard = referral_dashboard(owner_id)
    if dashboard is None:
        raise HTTPException(status_code=404, detail="No referral code yet")
    return dashboard


@referral_router.get("/{code}/validate")
async def validate_referral(code: str) -> dict:
    return validate_referral_code(code)


@referral_router.post("/{code}/click", response_model=ReferralClickResponse)
async def track_referral_click(code: str) -> ReferralClickResponse:
    referral_code = current_domain.process(TrackReferralClick(code=code), asynchronous=False)
    return ReferralClickResponse(valid=True, code=referral_code)


@referral_router.post("/{code}/link", response_model=StatusResponse)
async def link_referred_buyer(code: str, buyer_id: str = Depends(current_user_id)) -> StatusResponse:
    current_domain.process(LinkReferredBuyer(buyer_id=buyer_id, code=code), asynchronous=False)
    return StatusResponse(status="linked")


# ---------------------------------------------------------------------------
# Commission Router
# ---------------------------------------------------------------------------
commission_router = APIRouter(prefix="/commissions", tags=["commissions"])


@commission_router.get("/beneficiaries", response_model=list[BeneficiarySchema])
async def list_beneficiaries(_admin_id: str = Depends(require_admin)) -> list[BeneficiarySchema]:
    """Payees with pending commissions, largest first."""
    return [BeneficiarySchema(**row) for row in beneficiaries_with_pending()]


@commission_router.get("/overview")
async def overview(_admin_id: str = Depends(require_admin)) -> dict:
    return commissions_overview()


@commission_router.post("/{commission_id}/pay", response_model=CommissionStatusResponse)
async def pay_commission(commission_id: str, _admin_id: str = Depends(require_admin)) -> CommissionStatusResponse:
    current_domain.process(MarkCommissionPaid(commission_id=commission_id), asynchronous=False)
    commission = current_domain.repository_for(Commission).get(commission_id)
    return CommissionStatusResponse(commission_id=commission.commission_id, status=commission.status)


@commission_router.post("/payees/{payee_type}/{payee_id}/pay")
async def pay_payee(payee_type: str, payee_id: str, _admin_id: str = Depends(require_admin)) -> dict:
    paid = current_domain.process(MarkCommissionsPaid(payee_type=payee_type, payee_id=payee_id), asynchronous=False)
    return {"paid": paid}


routers = [
    cart_router,
    order_router,
    payment_router,
    maintenance_router,
    coupon_router,
    return_router,
    show_router,
    ticket_router,
    referral_router,
    commission_router,
]
