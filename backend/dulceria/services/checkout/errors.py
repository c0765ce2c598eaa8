"""
Checkout error taxonomy.

Every error carries a machine-readable ``code`` that the API layer returns
to the storefront alongside the human-readable message.
"""

from typing import Any


class CheckoutError(Exception):
    """Base exception for checkout errors."""

    code = "CHECKOUT_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class CheckoutValidationError(CheckoutError):
    """Malformed or empty cart input."""

    code = "VALIDATION_ERROR"


class ProductNotFoundError(CheckoutError):
    """A cart line references a product absent from the catalog."""

    code = "PRODUCT_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__(f"Product not found: {identifier}", identifier=identifier)
        self.identifier = identifier


class PaymentPreparationError(CheckoutError):
    """The payment processor rejected payment intent creation."""

    code = "PAYMENT_PREPARATION_FAILED"


class PaymentNotCompletedError(CheckoutError):
    """Order completion was requested for a payment that has not succeeded."""

    code = "PAYMENT_NOT_COMPLETED"


class AmountMismatchError(CheckoutError):
    """The charged amount differs from the revalidated total."""

    code = "AMOUNT_MISMATCH"


class CartChangedError(CheckoutError):
    """The cart submitted for completion differs from the one that was paid for."""

    code = "CART_CHANGED_SINCE_PAYMENT"


class PaymentRequiredError(CheckoutError):
    """The zero-total request path was used for a cart that costs money."""

    code = "PAYMENT_REQUIRED"
