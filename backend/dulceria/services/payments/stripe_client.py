"""
Payment processor gateway for checkout and webhooks.

The client is constructed once at application startup and handed to the
services that need it. Blocking SDK calls run in a worker thread so the
event loop is never held by a slow processor response, and every call is
bounded by the configured network timeout.
"""

import asyncio
import json
from typing import Any, Callable, Optional

import stripe

from dulceria.core.config import Settings, get_settings
from dulceria.core.logging import get_logger, log_performance

logger = get_logger(__name__)


class StripeClientError(Exception):
    """A Stripe call failed; ``code`` is the Stripe error code when one was returned."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        stripe_error: Optional[stripe.StripeError] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.code = code
        self.stripe_error = stripe_error
        self.context = context


class StripePaymentError(StripeClientError):
    """Stripe rejected the request, e.g. an invalid amount or a declined card."""


class StripeAuthenticationError(StripeClientError):
    """The configured secret key was refused."""


class StripeRateLimitError(StripeClientError):
    """Still rate limited after the last retry."""


class StripeConnectionError(StripeClientError):
    """Stripe could not be reached after the last retry."""


class WebhookVerificationError(StripeClientError):
    """The payload or its Stripe-Signature header failed verification."""


def _metadata_dict(obj: Any) -> dict[str, str]:
    metadata = getattr(obj, "metadata", None)
    if not metadata:
        return {}
    return {key: metadata[key] for key in metadata.keys()}


def _intent_view(intent: Any) -> dict[str, Any]:
    """Snapshot the payment intent fields the checkout flow relies on."""
    return {
        "id": intent.id,
        "status": intent.status,
        "amount": intent.amount,
        "currency": intent.currency,
        "client_secret": getattr(intent, "client_secret", None),
        "metadata": _metadata_dict(intent),
    }


class StripeClient:
    """
    Async facade over the synchronous Stripe SDK.

    Transient failures (connection errors, rate limiting, 5xx API errors)
    are retried with exponential backoff. Everything else is wrapped in a
    ``StripeClientError`` subclass on first occurrence.
    """

    RETRYABLE_ERRORS = (
        stripe.APIConnectionError,
        stripe.RateLimitError,
        stripe.APIError,
    )

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        currency: str = "usd",
        timeout_seconds: float = 15.0,
        max_retries: int = 2,
        initial_backoff: float = 0.5,
        max_backoff: float = 8.0,
        backoff_multiplier: float = 2.0,
    ):
        """
        Initialize Stripe client.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook signing secret
            currency: Three-letter ISO currency code for new intents
            timeout_seconds: Network timeout for a single API request
            max_retries: Maximum number of retry attempts for transient errors
            initial_backoff: Initial backoff delay in seconds
            max_backoff: Maximum backoff delay in seconds
            backoff_multiplier: Multiplier for exponential backoff
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier

        # Retries are handled here, not by the SDK.
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

        logger.info(
            "Stripe client initialized",
            currency=self.currency,
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StripeClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.currency,
            timeout_seconds=settings.stripe_timeout_seconds,
            max_retries=settings.stripe_max_retries,
        )

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff delay for a 0-indexed attempt."""
        return min(
            self.initial_backoff * (self.backoff_multiplier**attempt),
            self.max_backoff,
        )

    def _wrap_error(self, operation: str, error: stripe.StripeError) -> StripeClientError:
        message = error.user_message or str(error)

        if isinstance(error, stripe.AuthenticationError):
            logger.error("Stripe authentication error", operation=operation, code=error.code)
            return StripeAuthenticationError(
                f"Authentication failed: {message}", code=error.code, stripe_error=error
            )

        if isinstance(error, stripe.CardError):
            logger.warning(
                "Stripe card error",
                operation=operation,
                code=error.code,
                decline_code=getattr(error, "decline_code", None),
            )
            return StripePaymentError(
                f"Card error: {message}", code=error.code, stripe_error=error
            )

        if isinstance(error, stripe.RateLimitError):
            return StripeRateLimitError(
                f"Rate limit exceeded: {message}", code=error.code, stripe_error=error
            )

        if isinstance(error, stripe.APIConnectionError):
            return StripeConnectionError(
                f"Connection error: {message}", code=error.code, stripe_error=error
            )

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Stripe invalid request",
                operation=operation,
                code=error.code,
                param=error.param,
            )
            return StripeClientError(
                f"Invalid request: {message}",
                code=error.code,
                stripe_error=error,
                param=error.param,
            )

        logger.error(
            "Stripe error",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )
        return StripeClientError(
            f"Stripe error: {message}",
            code=getattr(error, "code", None),
            stripe_error=error,
        )

    async def _execute_with_retry(
        self,
        operation: str,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """
        Execute a Stripe SDK call in a worker thread with retry on transient errors.

        Raises:
            StripeClientError: If the call fails permanently or after all retries
        """
        for attempt in range(self.max_retries + 1):
            try:
                with log_performance(logger, f"stripe.{operation}", attempt=attempt):
                    result = await asyncio.to_thread(
                        func, *args, api_key=self.api_key, **kwargs
                    )

                if attempt > 0:
                    logger.info(
                        "Stripe operation succeeded after retry",
                        operation=operation,
                        attempt=attempt,
                    )
                return result

            except self.RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Stripe operation failed after all retries",
                        operation=operation,
                        attempts=attempt + 1,
                        error=str(e),
                    )
                    raise self._wrap_error(operation, e) from e

                backoff = self._calculate_backoff(attempt)
                logger.warning(
                    "Transient Stripe error, retrying",
                    operation=operation,
                    attempt=attempt,
                    backoff_seconds=backoff,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(backoff)

            except stripe.StripeError as e:
                raise self._wrap_error(operation, e) from e

        raise StripeClientError(f"Stripe operation did not run: {operation}")

    async def create_payment_intent(
        self,
        amount: int,
        metadata: Optional[dict[str, str]] = None,
        receipt_email: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create a payment intent.

        Args:
            amount: Amount in minor units
            metadata: String metadata attached to the intent
            receipt_email: Optional email for the processor receipt

        Returns:
            Payment intent view with id, status, amount, currency,
            client_secret and metadata
        """
        params: dict[str, Any] = {
            "amount": amount,
            "currency": self.currency,
            "automatic_payment_methods": {"enabled": True},
        }
        if metadata:
            params["metadata"] = metadata
        if receipt_email:
            params["receipt_email"] = receipt_email

        intent = await self._execute_with_retry(
            "create_payment_intent",
            stripe.PaymentIntent.create,
            **params,
        )

        logger.info(
            "Payment intent created",
            payment_intent_id=intent.id,
            amount=amount,
            currency=self.currency,
        )
        return _intent_view(intent)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        """Retrieve a payment intent by id."""
        intent = await self._execute_with_retry(
            "retrieve_payment_intent",
            stripe.PaymentIntent.retrieve,
            payment_intent_id,
        )

        logger.debug(
            "Payment intent retrieved",
            payment_intent_id=intent.id,
            status=intent.status,
        )
        return _intent_view(intent)

    def construct_webhook_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook payload and return the event as a plain dictionary.

        The payload is only parsed after its signature has been verified.

        Raises:
            WebhookVerificationError: If the signature or payload is invalid
        """
        if not self.webhook_secret:
            logger.error("Webhook received but no signing secret is configured")
            raise WebhookVerificationError(
                "Webhook signing secret not configured", code="WEBHOOK_NOT_CONFIGURED"
            )

        if not signature:
            raise WebhookVerificationError(
                "Missing webhook signature", code="INVALID_SIGNATURE"
            )

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Webhook signature verification failed", error=str(e))
            raise WebhookVerificationError(
                "Webhook signature verification failed",
                code="INVALID_SIGNATURE",
                stripe_error=e,
            ) from e
        except UnicodeDecodeError as e:
            raise WebhookVerificationError(
                "Invalid webhook payload", code="INVALID_PAYLOAD"
            ) from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            logger.error("Invalid webhook payload", error=str(e))
            raise WebhookVerificationError(
                "Invalid webhook payload", code="INVALID_PAYLOAD"
            ) from e

        if not isinstance(event, dict) or "type" not in event:
            raise WebhookVerificationError(
                "Invalid webhook payload", code="INVALID_PAYLOAD"
            )

        logger.info(
            "Webhook event verified",
            event_id=event.get("id"),
            event_type=event["type"],
        )
        return event
