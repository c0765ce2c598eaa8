"""
Checkout API endpoints.

Prepare a payment for a revalidated cart, complete a paid order, or submit
a zero-total custom request. Every error response carries a machine-readable
code alongside the message shown to the customer.
"""

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from dulceria.api.deps import CheckoutServiceDep, SESClientDep
from dulceria.core.config import get_settings
from dulceria.core.logging import get_logger
from dulceria.core.rate_limit import limiter
from dulceria.schemas.checkout import (
    CheckoutConfigResponse,
    CompleteOrderRequest,
    FreeOrderRequest,
    OrderCompletionResponse,
    PreparePaymentRequest,
    PreparePaymentResponse,
)
from dulceria.services.checkout.errors import CheckoutError, PaymentPreparationError
from dulceria.services.notifications.service import dispatch_outbox
from dulceria.services.orders.repository import OrderRepositoryError
from dulceria.services.payments.stripe_client import StripeClientError

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def checkout_http_error(error: CheckoutError) -> HTTPException:
    """Translate a checkout error to an HTTP error response."""
    status_code = (
        status.HTTP_502_BAD_GATEWAY
        if isinstance(error, PaymentPreparationError)
        else status.HTTP_400_BAD_REQUEST
    )
    return HTTPException(
        status_code=status_code,
        detail={"message": error.message, "code": error.code},
    )


def _processor_unavailable(error: StripeClientError) -> HTTPException:
    logger.error("Payment processor call failed", error=str(error), code=error.code)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "message": "Payment provider unavailable, please try again",
            "code": "PAYMENT_PROVIDER_ERROR",
        },
    )


def _persistence_failed(error: OrderRepositoryError) -> HTTPException:
    logger.error("Order could not be saved", error=str(error), context=error.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": "Failed to save order", "code": "ORDER_PERSISTENCE_FAILED"},
    )


@router.get(
    "/config",
    response_model=CheckoutConfigResponse,
    summary="Public checkout configuration",
)
async def get_checkout_config() -> CheckoutConfigResponse:
    settings = get_settings()
    return CheckoutConfigResponse(
        publishable_key=settings.stripe_publishable_key,
        currency=settings.currency,
    )


@router.post(
    "/prepare-payment",
    response_model=PreparePaymentResponse,
    response_model_exclude_none=True,
    summary="Prepare payment",
    description="Revalidate the cart and create a payment intent for its total",
)
@limiter.limit("30/minute")
async def prepare_payment(
    request: Request,
    body: PreparePaymentRequest,
    service: CheckoutServiceDep,
) -> PreparePaymentResponse:
    """
    Prepare a payment for a cart.

    Raises:
        HTTPException: 400 for invalid carts, 502 if the processor rejects
            the payment intent
    """
    try:
        return await service.prepare_payment(body)
    except CheckoutError as e:
        logger.warning("Payment preparation rejected", code=e.code, error=e.message)
        raise checkout_http_error(e)


@router.post(
    "/complete-order",
    response_model=OrderCompletionResponse,
    summary="Complete paid order",
    description="Verify a succeeded payment and record the order",
)
async def complete_order(
    body: CompleteOrderRequest,
    service: CheckoutServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
) -> OrderCompletionResponse:
    """
    Complete an order for a succeeded payment intent.

    Repeat calls for the same payment intent return the existing order with
    ``alreadyCompleted`` set.

    Raises:
        HTTPException: 400 for unpaid, mismatched or changed carts
    """
    try:
        order, already_completed = await service.complete_order(body)
    except CheckoutError as e:
        logger.warning(
            "Order completion rejected",
            code=e.code,
            error=e.message,
            payment_intent_id=body.payment_intent_id,
        )
        raise checkout_http_error(e)
    except StripeClientError as e:
        raise _processor_unavailable(e)
    except OrderRepositoryError as e:
        raise _persistence_failed(e)

    if not already_completed and ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)

    return OrderCompletionResponse(
        success=True,
        already_completed=already_completed,
        order=order.to_response(include_admin_fields=False),
    )


@router.post(
    "/submit-free-order",
    response_model=OrderCompletionResponse,
    summary="Submit custom order request",
    description="Record a custom request, or a cart discounted to zero, as a pending order",
)
async def submit_free_order(
    body: FreeOrderRequest,
    service: CheckoutServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
) -> OrderCompletionResponse:
    """
    Raises:
        HTTPException: 400 if the cart has a nonzero total
    """
    try:
        order = await service.submit_free_order(body)
    except CheckoutError as e:
        logger.warning("Free order rejected", code=e.code, error=e.message)
        raise checkout_http_error(e)
    except OrderRepositoryError as e:
        raise _persistence_failed(e)

    if ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)

    return OrderCompletionResponse(
        success=True,
        order=order.to_response(include_admin_fields=False),
    )
