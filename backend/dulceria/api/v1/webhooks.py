"""
Stripe webhook endpoint.

The raw request body is passed to signature verification untouched; events
with a missing or invalid signature are rejected before being parsed.
"""

from typing import Annotated, Any, Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request, status

from dulceria.api.deps import SESClientDep, WebhookServiceDep
from dulceria.core.logging import get_logger
from dulceria.services.notifications.service import dispatch_outbox
from dulceria.services.orders.repository import OrderRepositoryError
from dulceria.services.payments.stripe_client import WebhookVerificationError

logger = get_logger(__name__)

router = APIRouter(prefix="/stripe", tags=["webhooks"])


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhook",
    description="Reconcile orders from verified Stripe events",
)
async def handle_webhook(
    request: Request,
    service: WebhookServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
    stripe_signature: Annotated[Optional[str], Header(alias="stripe-signature")] = None,
) -> dict[str, Any]:
    """
    Handle a Stripe webhook event.

    Raises:
        HTTPException: 400 for a missing or invalid signature, 500 if the
            order update fails (Stripe retries the delivery)
    """
    payload = await request.body()

    try:
        result = await service.handle(payload, stripe_signature or "")
    except WebhookVerificationError as e:
        logger.warning("Webhook rejected", code=e.code)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid webhook signature", "code": e.code},
        )
    except OrderRepositoryError as e:
        logger.error("Webhook processing failed", error=str(e), context=e.context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "Failed to process webhook",
                "code": "WEBHOOK_PROCESSING_ERROR",
            },
        )

    if result.get("action") == "marked_paid" and ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)

    return result
