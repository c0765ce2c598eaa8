"""
Checkout request and response schemas.

Request bodies arrive in the storefront's camelCase; snake_case field names
are accepted as well. Client-submitted prices and discount amounts are never
trusted: ``price`` on a cart line is ignored and ``discountAmount`` is
accepted only for compatibility and recomputed server-side.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_CART_LINES = 100


class CamelModel(BaseModel):
    """Base schema using camelCase aliases on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CartItemRequest(CamelModel):
    """A cart line as submitted by the storefront: an untrusted hint."""

    id: str = Field(..., min_length=1, max_length=255, description="Catalog product id")
    quantity: int = Field(..., description="Number of units, checked during revalidation")
    name: Optional[str] = Field(
        None,
        max_length=255,
        description="Display name, used to resolve legacy references",
    )
    custom_notes: Optional[str] = Field(
        None,
        max_length=2000,
        description="Free-text notes for bespoke items",
    )


class PreparePaymentRequest(CamelModel):
    """Request schema for preparing a payment."""

    items: list[CartItemRequest] = Field(..., max_length=MAX_CART_LINES)
    promo_code: Optional[str] = Field(None, max_length=50)
    discount_amount: Optional[int] = Field(
        None,
        description="Ignored; the discount is recomputed from the promo code",
    )

    @field_validator("promo_code")
    @classmethod
    def blank_promo_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class CustomerDetails(CamelModel):
    """Customer contact and delivery fields shared by the order endpoints."""

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: str = Field("", max_length=50)
    delivery_address: str = Field("", max_length=2000)
    special_instructions: Optional[str] = Field(None, max_length=2000)

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate email shape and normalize to lower case."""
        email = v.strip().lower()
        local, _, domain = email.partition("@")
        if not local or "." not in domain or domain.startswith(".") or domain.endswith("."):
            raise ValueError("Invalid email format")
        return email

    @field_validator("customer_phone", "delivery_address", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("special_instructions")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class CompleteOrderRequest(CustomerDetails):
    """Request schema for completing a paid order."""

    payment_intent_id: str = Field(..., min_length=1, max_length=255)
    items: list[CartItemRequest] = Field(..., max_length=MAX_CART_LINES)


class FreeOrderRequest(CustomerDetails):
    """Request schema for an order whose total is zero, before or after a promo."""

    items: list[CartItemRequest] = Field(..., max_length=MAX_CART_LINES)
    promo_code: Optional[str] = Field(None, max_length=50)

    @field_validator("promo_code")
    @classmethod
    def blank_promo_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ValidatedItemResponse(CamelModel):
    """Cart line resolved against the catalog."""

    id: str
    name: str
    price: int
    quantity: int
    custom_notes: Optional[str] = None


class PreparePaymentResponse(CamelModel):
    """Payment preparation result."""

    skip_payment: bool
    client_secret: Optional[str] = None
    payment_intent_id: Optional[str] = None
    subtotal: int
    discount_amount: int = 0
    validated_total: int
    validated_items: list[ValidatedItemResponse]


class OrderCompletionResponse(CamelModel):
    """Result of completing or submitting an order."""

    success: bool = True
    already_completed: bool = False
    order: dict[str, Any]


class CheckoutConfigResponse(CamelModel):
    """Public payment configuration for the storefront."""

    publishable_key: str
    currency: str


class PromoValidationRequest(CamelModel):
    """Request schema for previewing a promo code."""

    code: str = Field(..., min_length=1, max_length=50)
    subtotal: int = Field(..., ge=0)


class PromoValidationResponse(CamelModel):
    """Promo preview; unknown or inactive codes are reported as not valid."""

    valid: bool
    code: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[int] = None
    discount_amount: int = 0
