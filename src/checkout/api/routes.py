"""FastAPI routes for the Checkout domain: orders, payments, stock and maintenance."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from protean.core.unit_of_work import UnitOfWork
from protean.utils.globals import current_domain

from checkout.api.dependencies import get_services, require_user
from checkout.api.errors import unwrap_or_raise
from checkout.api.schemas import (
    CancelOrderRequest,
    ConfigureGatewayRequest,
    CreateIntentRequest,
    ExpiredCountResponse,
    ExpirePendingOrdersRequest,
    GatewayConfigResponse,
    IntentResponse,
    OrderResponse,
    PlaceOrderRequest,
    RegisterStockRequest,
    SetStockRequest,
    StockResponse,
    WebhookAckResponse,
)
from checkout.container import CheckoutServices
from checkout.gateway.fake_adapter import FakeGateway
from checkout.order.builder import CartLine
from checkout.order.cancellation import CancelOrder
from checkout.order.expiry import expire_pending_orders as run_expiry
from checkout.order.fulfillment import DeliverOrder, ShipOrder
from checkout.order.order import CancellationActor
from checkout.order.queries import find_order, orders_for_user

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    user_id: str = Depends(require_user),
    services: CheckoutServices = Depends(get_services),
) -> OrderResponse:
    """Create a PENDING order from cart contents, reserving its stock."""
    lines = [CartLine(product_id=line.product_id, quantity=line.quantity) for line in body.lines]
    order = unwrap_or_raise(services.order_builder().place(user_id, lines, body.address_id))
    return OrderResponse.from_order(order)


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(
    user_id: str = Depends(require_user),
    services: CheckoutServices = Depends(get_services),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(order) for order in orders_for_user(services.domain, user_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user_id: str = Depends(require_user),
    services: CheckoutServices = Depends(get_services),
) -> OrderResponse:
    order = unwrap_or_raise(find_order(services.domain, order_id, user_id=user_id))
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    user_id: str = Depends(require_user),
) -> OrderResponse:
    """Cancel an order that has not been paid yet."""
    command = CancelOrder(
        order_id=order_id,
        user_id=user_id,
        reason=body.reason if body else "Cancelled by customer",
        cancelled_by=CancellationActor.CUSTOMER.value,
    )
    order = unwrap_or_raise(current_domain.process(command, asynchronous=False))
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(order_id: str) -> OrderResponse:
    order = unwrap_or_raise(current_domain.process(ShipOrder(order_id=order_id), asynchronous=False))
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: str) -> OrderResponse:
    order = unwrap_or_raise(current_domain.process(DeliverOrder(order_id=order_id), asynchronous=False))
    return OrderResponse.from_order(order)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/intents", response_model=IntentResponse)
def create_payment_intent(
    body: CreateIntentRequest,
    user_id: str = Depends(require_user),
    services: CheckoutServices = Depends(get_services),
) -> IntentResponse:
    """Create (or re-issue) the gateway payment intent for a pending order.

    A plain function, so FastAPI runs the blocking gateway call in its threadpool.
    """
    intent = unwrap_or_raise(services.payment_intents().create_for_order(body.order_id, user_id=user_id))
    return IntentResponse(intent_id=intent.intent_id, client_secret=intent.client_secret)


@payment_router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
    stripe_signature: str = Header(default=""),
    services: CheckoutServices = Depends(get_services),
) -> WebhookAckResponse:
    """Receive a gateway callback. The raw body is what the signature covers."""
    raw_payload = await request.body()
    signature = x_gateway_signature or stripe_signature
    # Runs off the event loop; the Stripe SDK blocks
    result = await run_in_threadpool(services.webhook_reconciler().handle, raw_payload, signature)
    ack = unwrap_or_raise(result)
    return WebhookAckResponse(event_id=ack.event_id, disposition=ack.disposition)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(
    body: ConfigureGatewayRequest,
    services: CheckoutServices = Depends(get_services),
) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It allows toggling success/failure behavior for manual API testing.
    """
    if services.settings.is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = services.gateway
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        failure_kind=body.failure_kind,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        failure_kind=gateway.failure_kind,
    )


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.get("/{product_id}", response_model=StockResponse)
async def get_stock(product_id: str, services: CheckoutServices = Depends(get_services)) -> StockResponse:
    snapshot = unwrap_or_raise(services.ledger.snapshot(product_id))
    return StockResponse(product_id=snapshot.product_id, inventory=snapshot.inventory, version=snapshot.version)


@stock_router.post("/{product_id}", status_code=201, response_model=StockResponse)
async def register_stock(
    product_id: str,
    body: RegisterStockRequest,
    services: CheckoutServices = Depends(get_services),
) -> StockResponse:
    """Put a product under inventory control. Omit ``inventory`` for unlimited stock."""
    with UnitOfWork():
        result = services.ledger.register(product_id, inventory=body.inventory)
    snapshot = unwrap_or_raise(result)
    return StockResponse(product_id=snapshot.product_id, inventory=snapshot.inventory, version=snapshot.version)


@stock_router.put("/{product_id}", response_model=StockResponse)
async def set_stock(
    product_id: str,
    body: SetStockRequest,
    services: CheckoutServices = Depends(get_services),
) -> StockResponse:
    """Administrative stock edit, guarded by the version the editor last read."""
    with UnitOfWork():
        result = services.ledger.set_level(product_id, body.inventory, body.version)
    snapshot = unwrap_or_raise(result)
    return StockResponse(product_id=snapshot.product_id, inventory=snapshot.inventory, version=snapshot.version)


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-pending-orders", response_model=ExpiredCountResponse)
async def expire_pending_orders(
    body: ExpirePendingOrdersRequest | None = None,
    services: CheckoutServices = Depends(get_services),
) -> ExpiredCountResponse:
    """Cancel PENDING orders whose payment never completed, releasing their stock."""
    older_than = body.older_than_minutes if body else None
    if older_than is None:
        older_than = services.settings.pending_order_timeout_minutes
    return ExpiredCountResponse(expired_count=run_expiry(services.domain, older_than_minutes=older_than))
