"""
Checkout service: payment preparation, order completion and free requests.

The flow never trusts client prices. Carts are revalidated against the
catalog on every step, the charged amount is bound to the recomputed total,
and the cart fingerprint written to the payment intent at preparation time
must still match when the order is completed.
"""

import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger, log_performance
from dulceria.database.models.notification import NotificationOutbox
from dulceria.database.models.order import Order, OrderStatus, PaymentMethod
from dulceria.schemas.checkout import (
    CompleteOrderRequest,
    CustomerDetails,
    FreeOrderRequest,
    PreparePaymentRequest,
    PreparePaymentResponse,
)
from dulceria.services.catalog.repository import CatalogRepository
from dulceria.services.checkout.errors import (
    AmountMismatchError,
    CartChangedError,
    PaymentNotCompletedError,
    PaymentPreparationError,
    PaymentRequiredError,
)
from dulceria.services.checkout.pricing import (
    CartValidator,
    ValidatedCart,
    to_minor_units,
)
from dulceria.services.notifications.service import NotificationService
from dulceria.services.notifications.templates import TemplateEngineError
from dulceria.services.orders.repository import OrderRepository
from dulceria.services.payments.stripe_client import StripeClient, StripeClientError
from dulceria.services.promotions.repository import PromoCodeRepository

logger = get_logger(__name__)

INTENT_SUCCEEDED = "succeeded"

# Payment intent metadata keys
META_SUBTOTAL = "subtotal"
META_DISCOUNT = "discount_amount"
META_PROMO_CODE = "promo_code"
META_TOTAL = "total"
META_FINGERPRINT = "cart_fingerprint"


class CheckoutService:
    """
    Orchestrates the storefront checkout.

    Attributes:
        stripe: Payment processor client
        orders: Order repository
        validator: Cart revalidation against the catalog and promo codes
        notifications: Outbox builder for order emails
    """

    def __init__(
        self,
        session: AsyncSession,
        stripe_client: StripeClient,
        notifications: Optional[NotificationService] = None,
        catalog: Optional[CatalogRepository] = None,
        promotions: Optional[PromoCodeRepository] = None,
        orders: Optional[OrderRepository] = None,
    ):
        self.stripe = stripe_client
        self.promotions = promotions or PromoCodeRepository(session)
        self.orders = orders or OrderRepository(session)
        self.validator = CartValidator(catalog or CatalogRepository(session), self.promotions)
        self.notifications = notifications or NotificationService(session)

    async def prepare_payment(self, request: PreparePaymentRequest) -> PreparePaymentResponse:
        """
        Revalidate a cart and create a payment intent for its total.

        Zero totals return ``skip_payment`` without touching the processor.
        No order is written on either path.

        Raises:
            CheckoutValidationError: If the cart is empty or malformed
            ProductNotFoundError: If a line does not resolve
            PaymentPreparationError: If the processor rejects the intent
        """
        cart = await self.validator.validate_with_promo(request.items, request.promo_code)

        if request.discount_amount is not None and request.discount_amount != cart.discount_amount:
            logger.info(
                "Client discount ignored",
                client_discount=request.discount_amount,
                discount_amount=cart.discount_amount,
            )

        if cart.total == 0:
            logger.info(
                "Zero-total cart, payment skipped",
                subtotal=cart.subtotal,
                discount_amount=cart.discount_amount,
            )
            return self._preparation_response(cart, skip_payment=True)

        metadata = {
            META_SUBTOTAL: str(cart.subtotal),
            META_DISCOUNT: str(cart.discount_amount),
            META_PROMO_CODE: cart.promo_code or "",
            META_TOTAL: str(cart.total),
            META_FINGERPRINT: cart.fingerprint,
        }

        try:
            with log_performance(logger, "prepare_payment", total=cart.total):
                intent = await self.stripe.create_payment_intent(
                    amount=to_minor_units(cart.total),
                    metadata=metadata,
                )
        except StripeClientError as e:
            raise PaymentPreparationError(
                str(e), total=cart.total, stripe_code=e.code
            ) from e

        return self._preparation_response(
            cart,
            skip_payment=False,
            client_secret=intent["client_secret"],
            payment_intent_id=intent["id"],
        )

    async def complete_order(self, request: CompleteOrderRequest) -> tuple[Order, bool]:
        """
        Persist the order for a succeeded payment, exactly once per intent.

        Returns:
            Tuple of (order, already_completed). A repeat call for an intent
            that already has an order returns that order without side effects.

        Raises:
            PaymentNotCompletedError: If the intent has not succeeded
            AmountMismatchError: If the charged amount differs from the total
            CartChangedError: If the cart differs from the one paid for
            ProductNotFoundError: If a line does not resolve
        """
        payment_intent_id = request.payment_intent_id

        existing = await self.orders.get_by_payment_intent_id(payment_intent_id)
        if existing is not None:
            logger.info(
                "Order already completed for payment intent",
                order_id=str(existing.id),
                payment_intent_id=payment_intent_id,
            )
            return existing, True

        try:
            intent = await self.stripe.retrieve_payment_intent(payment_intent_id)
        except StripeClientError as e:
            if e.code != "resource_missing":
                raise
            raise PaymentNotCompletedError(
                "Payment not found", payment_intent_id=payment_intent_id
            ) from e

        if intent["status"] != INTENT_SUCCEEDED:
            logger.warning(
                "Order completion attempted before payment succeeded",
                payment_intent_id=payment_intent_id,
                intent_status=intent["status"],
            )
            raise PaymentNotCompletedError(
                "Payment not completed",
                payment_intent_id=payment_intent_id,
                intent_status=intent["status"],
            )

        # The charged amount was fixed at preparation, so the discount comes from
        # the intent even if the promo has since been deactivated.
        metadata = intent.get("metadata") or {}
        cart = await self.validator.validate(request.items)
        cart.apply_discount(
            _int_metadata(metadata, META_DISCOUNT),
            metadata.get(META_PROMO_CODE) or None,
        )

        expected_amount = to_minor_units(cart.total)
        if intent["amount"] != expected_amount:
            logger.warning(
                "Charged amount does not match cart total",
                payment_intent_id=payment_intent_id,
                charged=intent["amount"],
                expected=expected_amount,
            )
            raise AmountMismatchError(
                "Payment amount does not match order total",
                payment_intent_id=payment_intent_id,
                charged=intent["amount"],
                expected=expected_amount,
            )

        paid_fingerprint = metadata.get(META_FINGERPRINT)
        if paid_fingerprint and paid_fingerprint != cart.fingerprint:
            logger.warning(
                "Cart changed since payment",
                payment_intent_id=payment_intent_id,
            )
            raise CartChangedError(
                "Cart contents changed since payment",
                payment_intent_id=payment_intent_id,
            )

        order = self._build_order(
            request,
            cart,
            status=OrderStatus.PAID,
            payment_method=PaymentMethod.CARD,
            payment_intent_id=payment_intent_id,
        )
        order, created = await self.orders.create_order(
            order, self._order_created_notifications(order)
        )

        if created and cart.promo_code:
            await self.promotions.increment_usage(cart.promo_code)

        return order, not created

    async def submit_free_order(self, request: FreeOrderRequest) -> Order:
        """
        Record a zero-total cart as a pending order.

        The promo code is applied again, so a cart that prepare_payment
        discounted to zero is accepted here too.

        Raises:
            PaymentRequiredError: If the revalidated total is not zero
        """
        cart = await self.validator.validate_with_promo(request.items, request.promo_code)

        if cart.total > 0:
            logger.warning(
                "Free order rejected for priced cart",
                total=cart.total,
            )
            raise PaymentRequiredError(
                "Payment required for this order", total=cart.total
            )

        order = self._build_order(
            request,
            cart,
            status=OrderStatus.PENDING,
            payment_method=PaymentMethod.REQUEST,
            payment_intent_id=None,
        )
        order, created = await self.orders.create_order(
            order, self._order_created_notifications(order)
        )

        if created and cart.promo_code:
            await self.promotions.increment_usage(cart.promo_code)

        return order

    def _build_order(
        self,
        customer: CustomerDetails,
        cart: ValidatedCart,
        status: OrderStatus,
        payment_method: PaymentMethod,
        payment_intent_id: Optional[str],
    ) -> Order:
        return Order(
            id=uuid.uuid4(),
            customer_name=customer.customer_name,
            customer_email=customer.customer_email,
            customer_phone=customer.customer_phone,
            delivery_address=customer.delivery_address,
            special_instructions=customer.special_instructions,
            items=cart.items,
            subtotal=cart.subtotal,
            discount_amount=cart.discount_amount,
            promo_code=cart.promo_code,
            total=cart.total,
            status=status.value,
            payment_method=payment_method.value,
            payment_intent_id=payment_intent_id,
        )

    def _order_created_notifications(self, order: Order) -> list[NotificationOutbox]:
        try:
            return self.notifications.order_created_notifications(order)
        except TemplateEngineError as e:
            logger.error(
                "Order notifications could not be rendered",
                order_id=str(order.id),
                error=str(e),
            )
            return []

    @staticmethod
    def _preparation_response(
        cart: ValidatedCart,
        skip_payment: bool,
        client_secret: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
    ) -> PreparePaymentResponse:
        return PreparePaymentResponse(
            skip_payment=skip_payment,
            client_secret=client_secret,
            payment_intent_id=payment_intent_id,
            subtotal=cart.subtotal,
            discount_amount=cart.discount_amount,
            validated_total=cart.total,
            validated_items=cart.items,
        )


def _int_metadata(metadata: dict[str, Any], key: str) -> int:
    try:
        return int(metadata.get(key) or 0)
    except (TypeError, ValueError):
        return 0
