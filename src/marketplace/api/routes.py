"""FastAPI endpoints for orders and payments."""

from fastapi import APIRouter, Depends, Header, Query, Request

from marketplace.access.policy import Principal
from marketplace.api.auth import get_principal
from marketplace.api.schemas import (
    ApiResponse,
    CancelOrderRequest,
    ConfigureGatewayRequest,
    ConfirmPaymentRequest,
    CreateOrderRequest,
    CreatePaymentIntentRequest,
    RefundRequest,
    UpdateVendorStatusRequest,
)
from marketplace.api.serializers import serialize_order, serialize_payment_info
from marketplace.checkout.orchestrator import checkout
from marketplace.config import get_settings
from marketplace.exceptions import AuthorizationError, StateConflictError
from marketplace.order.lifecycle import cancel_order, update_vendor_status
from marketplace.order.queries import MAX_PAGE_SIZE, list_orders, view_order
from marketplace.order.status import OrderStatus
from marketplace.payment.gateway import get_gateway
from marketplace.payment.gateway.fake_adapter import FakeGateway
from marketplace.payment.reconciliation import (
    confirm_payment,
    create_payment_intent,
    handle_webhook,
    payment_status,
)
from marketplace.payment.refund import refund_order
from marketplace.shared.money import from_minor_units

order_router = APIRouter(prefix="/orders", tags=["orders"])
payment_router = APIRouter(prefix="/payments", tags=["payments"])


# --- Order endpoints ---


@order_router.post("", status_code=201, response_model=ApiResponse)
async def create_order(body: CreateOrderRequest, principal: Principal = Depends(get_principal)) -> ApiResponse:
    order = checkout(
        principal,
        items=[item.model_dump() for item in body.items],
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        customer_notes=body.customer_notes,
    )
    return ApiResponse(message="Order created successfully", data={"order": serialize_order(order, principal)})


@order_router.get("", response_model=ApiResponse)
async def get_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    status: OrderStatus | None = None,
    principal: Principal = Depends(get_principal),
) -> ApiResponse:
    result = list_orders(principal, page=page, limit=limit, status=status.value if status else None)
    return ApiResponse(
        data={
            "orders": [serialize_order(order, principal) for order in result.orders],
            "pagination": {
                "current_page": result.page,
                "total_pages": result.total_pages,
                "total_orders": result.total,
                "has_next_page": result.has_next_page,
                "has_prev_page": result.has_prev_page,
                "limit": result.limit,
            },
        }
    )


@order_router.get("/{order_id}", response_model=ApiResponse)
async def get_order(order_id: str, principal: Principal = Depends(get_principal)) -> ApiResponse:
    order = view_order(principal, order_id)
    return ApiResponse(data={"order": serialize_order(order, principal)})


@order_router.put("/{order_id}/vendor-status", response_model=ApiResponse)
async def change_vendor_status(
    order_id: str,
    body: UpdateVendorStatusRequest,
    principal: Principal = Depends(get_principal),
) -> ApiResponse:
    order = update_vendor_status(
        principal,
        order_id,
        status=body.status,
        tracking_number=body.tracking_number,
        estimated_delivery=body.estimated_delivery,
    )
    return ApiResponse(
        message="Vendor order status updated successfully",
        data={"order": serialize_order(order, principal)},
    )


@order_router.put("/{order_id}/cancel", response_model=ApiResponse)
async def cancel(
    order_id: str,
    body: CancelOrderRequest | None = None,
    principal: Principal = Depends(get_principal),
) -> ApiResponse:
    order = cancel_order(principal, order_id, reason=body.reason if body else None)
    return ApiResponse(message="Order cancelled successfully", data={"order": serialize_order(order, principal)})


# --- Payment endpoints ---


@payment_router.post("/create-payment-intent", response_model=ApiResponse)
async def create_intent(
    body: CreatePaymentIntentRequest,
    principal: Principal = Depends(get_principal),
) -> ApiResponse:
    outcome = create_payment_intent(principal, body.order_id)
    return ApiResponse(
        data={
            "client_secret": outcome.intent.client_secret,
            "payment_intent_id": outcome.intent.intent_id,
            "amount": from_minor_units(outcome.intent.amount),
            "currency": outcome.intent.currency,
            "order_number": outcome.order.order_number,
            "reused": outcome.reused,
        }
    )


@payment_router.post("/confirm-payment", response_model=ApiResponse)
async def confirm(body: ConfirmPaymentRequest, principal: Principal = Depends(get_principal)) -> ApiResponse:
    outcome = confirm_payment(principal, body.order_id, body.payment_intent_id)
    return ApiResponse(
        message="Payment confirmed successfully" if outcome.applied else "Payment already confirmed",
        data={
            "order": serialize_order(outcome.order, principal),
            "transfers": outcome.transfers,
        },
    )


@payment_router.post("/webhook")
async def webhook(request: Request, stripe_signature: str = Header(default="")) -> dict:
    """Processor callbacks; authenticated by signature, not by bearer token."""
    payload = await request.body()
    return handle_webhook(payload, stripe_signature)


@payment_router.get("/order/{order_id}/status", response_model=ApiResponse)
async def get_payment_status(order_id: str, principal: Principal = Depends(get_principal)) -> ApiResponse:
    order, intent_status = payment_status(principal, order_id)
    return ApiResponse(
        data={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "order_status": order.status,
            "total": order.summary.total,
            "currency": order.summary.currency,
            "payment_info": serialize_payment_info(order),
            "intent_status": intent_status,
        }
    )


@payment_router.post("/refund", response_model=ApiResponse)
async def refund(body: RefundRequest, principal: Principal = Depends(get_principal)) -> ApiResponse:
    order, result = refund_order(principal, body.order_id, amount=body.amount, reason=body.reason)
    return ApiResponse(
        message="Refund processed successfully",
        data={
            "refund_id": result.refund_id,
            "amount": order.refund_amount,
            "status": result.status,
            "order": serialize_order(order, principal),
        },
    )


@payment_router.post("/gateway/configure", response_model=ApiResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> ApiResponse:
    """Adjust the fake processor's behaviour outside production."""
    if get_settings().is_production:
        raise AuthorizationError("Gateway configuration is disabled in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise StateConflictError("Only the fake gateway can be configured")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason or "Card declined",
        auto_complete=body.auto_complete,
        time_out=body.time_out,
    )
    return ApiResponse(
        message="Gateway configured",
        data={
            "should_succeed": gateway.should_succeed,
            "failure_reason": gateway.failure_reason,
            "auto_complete": gateway.auto_complete,
            "time_out": gateway.time_out,
        },
    )
