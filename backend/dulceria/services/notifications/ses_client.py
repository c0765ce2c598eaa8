"""
AWS SES client wrapper with error handling.

Send failures raise ``SESClientError``; the outbox dispatcher records them
and retries on its next pass, so this wrapper makes a single short retry
for throttling and connection errors only.
"""

import time
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
)

from dulceria.core.config import Settings, get_settings
from dulceria.core.logging import get_logger

logger = get_logger(__name__)

# Errors that will fail the same way on every attempt.
PERMANENT_ERROR_CODES = {
    "MessageRejected",
    "MailFromDomainNotVerified",
    "ConfigurationSetDoesNotExist",
    "AccountSendingPausedException",
}


class SESClientError(Exception):
    """Exception for SES send failures."""

    def __init__(self, message: str, permanent: bool = False, **context: Any) -> None:
        super().__init__(message)
        self.permanent = permanent
        self.context = context


class SESClient:
    """
    AWS SES client wrapper.

    Credentials fall back to the default boto3 chain when none are configured.
    """

    def __init__(
        self,
        from_address: str,
        region_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
    ) -> None:
        self.from_address = from_address
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

        client_kwargs: dict[str, Any] = {
            "region_name": region_name,
            "config": Config(connect_timeout=5, read_timeout=10, retries={"max_attempts": 1}),
        }
        if aws_access_key_id and aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key

        self._client = boto3.client("ses", **client_kwargs)

        logger.info("SES client initialized", region=region_name)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SESClient":
        settings = settings or get_settings()
        return cls(
            from_address=settings.ses_from_email,
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )

    def send_email(self, to_address: str, subject: str, body_text: str) -> str:
        """
        Send a plain-text email.

        Returns:
            SES message id

        Raises:
            SESClientError: If the message could not be sent
        """
        if not to_address:
            raise SESClientError("Recipient address is required", permanent=True)

        send_params: dict[str, Any] = {
            "Source": self.from_address,
            "Destination": {"ToAddresses": [to_address]},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Text": {"Data": body_text, "Charset": "UTF-8"}},
            },
        }

        last_exception: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = self._client.send_email(**send_params)
                message_id = response["MessageId"]
                logger.info(
                    "Email sent via SES",
                    message_id=message_id,
                    subject=subject,
                )
                return message_id

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))
                last_exception = e

                if error_code in PERMANENT_ERROR_CODES:
                    logger.error(
                        "SES rejected email",
                        error_code=error_code,
                        error_message=error_message,
                    )
                    raise SESClientError(
                        f"SES error: {error_message}",
                        permanent=True,
                        error_code=error_code,
                    ) from e

                logger.warning(
                    "SES client error",
                    attempt=attempt + 1,
                    error_code=error_code,
                    error_message=error_message,
                )

            except (EndpointConnectionError, BotoCoreError) as e:
                last_exception = e
                logger.warning("SES connection error", attempt=attempt + 1, error=str(e))

            if attempt < self.max_retries - 1:
                time.sleep(self.retry_backoff * (2**attempt))

        raise SESClientError(
            f"Failed to send email after {self.max_retries} attempts: {last_exception}",
            last_error=str(last_exception),
        ) from last_exception
