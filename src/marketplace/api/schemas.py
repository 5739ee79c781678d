"""Pydantic request/response schemas for the Marketplace API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from marketplace.order.status import VENDOR_SETTABLE_STATUSES

# --- Shared ---


class AddressSchema(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str | None = Field(None, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=30)


class ApiResponse(BaseModel):
    success: bool = True
    message: str | None = None
    data: Any = None


# --- Order Request Schemas ---


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=1000)
    customization: str | None = Field(None, max_length=500)


class CreateOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"product_id": "prod-mug-01", "quantity": 2},
                        {"product_id": "prod-scarf-07", "quantity": 1, "customization": "Initials: JS"},
                    ],
                    "shipping_address": {
                        "full_name": "Jane Smith",
                        "street": "12 Loom Lane",
                        "city": "Portland",
                        "state": "OR",
                        "zip_code": "97201",
                        "country": "US",
                    },
                    "customer_notes": "Gift wrap please",
                }
            ]
        }
    }

    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=50)
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    customer_notes: str | None = Field(None, max_length=1000)


class UpdateVendorStatusRequest(BaseModel):
    status: str
    tracking_number: str | None = Field(None, max_length=255)
    estimated_delivery: datetime | None = None

    @field_validator("status")
    @classmethod
    def status_must_be_settable(cls, value: str) -> str:
        allowed = sorted(s.value for s in VENDOR_SETTABLE_STATUSES)
        if value not in allowed:
            raise ValueError(f"Status must be one of: {', '.join(allowed)}")
        return value


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


# --- Payment Request Schemas ---


class CreatePaymentIntentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)


class ConfirmPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    payment_intent_id: str = Field(..., min_length=1)


class RefundRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    amount: float | None = Field(None, gt=0)
    reason: str | None = Field(None, max_length=500)


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str | None = Field(None, max_length=255)
    auto_complete: bool = False
    time_out: bool = False
