"""Pydantic request/response schemas for the Checkout API.

These are external contracts (anti-corruption layer), separate from
internal Protean aggregates and commands. Order requests carry product ids
and quantities only: prices and totals always come from the catalog.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Order Schemas
# ---------------------------------------------------------------------------
# Quantities and an empty cart are checked by OrderBuilder so they surface
# as 400s with the same body as every other validation failure.
class CartLineSchema(BaseModel):
    product_id: str
    quantity: int | None = None


class PlaceOrderRequest(BaseModel):
    lines: list[CartLineSchema] = []
    address_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "lines": [
                        {"product_id": "prod-001", "quantity": 2},
                        {"product_id": "prod-002", "quantity": 1},
                    ],
                    "address_id": "addr-001",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str = Field(default="Cancelled by customer", max_length=500)


class OrderItemResponse(BaseModel):
    product_id: str
    quantity: int
    price: int


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    total: int
    currency: str
    address_id: str
    items: list[OrderItemResponse]
    payment_intent_id: str | None = None
    payment_status: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            user_id=str(order.user_id),
            status=order.status,
            total=order.total,
            currency=order.currency,
            address_id=str(order.address_id),
            items=[
                OrderItemResponse(product_id=str(item.product_id), quantity=item.quantity, price=item.price)
                for item in order.lines
            ],
            payment_intent_id=order.payment_intent_id,
            payment_status=order.payment_status,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
        )


# ---------------------------------------------------------------------------
# Payment Schemas
# ---------------------------------------------------------------------------
class CreateIntentRequest(BaseModel):
    order_id: str = Field(min_length=1)


class IntentResponse(BaseModel):
    intent_id: str
    client_secret: str


class WebhookAckResponse(BaseModel):
    received: bool = True
    event_id: str
    disposition: str


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool
    failure_reason: str = "Gateway timeout"
    failure_kind: str = Field(default="unavailable", pattern="^(unavailable|invalid_request)$")


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    failure_kind: str


# ---------------------------------------------------------------------------
# Stock Schemas
# ---------------------------------------------------------------------------
class SetStockRequest(BaseModel):
    inventory: int | None = Field(default=None, ge=0)
    version: int = Field(ge=1)


class RegisterStockRequest(BaseModel):
    inventory: int | None = Field(default=None, ge=0)


class StockResponse(BaseModel):
    product_id: str
    inventory: int | None
    version: int


# ---------------------------------------------------------------------------
# Maintenance Schemas
# ---------------------------------------------------------------------------
class ExpirePendingOrdersRequest(BaseModel):
    older_than_minutes: int | None = Field(default=None, ge=0)


class ExpiredCountResponse(BaseModel):
    expired_count: int
