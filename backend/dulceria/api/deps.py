"""
FastAPI dependencies for sessions, processor clients, services and admin auth.

The Stripe and SES clients are built once during application startup and
kept on ``app.state``; request handlers receive them through the
dependencies below, which also makes them easy to override in tests.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger, set_admin_email
from dulceria.core.security import TokenError, decode_admin_token
from dulceria.database.connection import get_db
from dulceria.services.admin.service import AdminAuthService
from dulceria.services.catalog.repository import CatalogRepository
from dulceria.services.checkout.service import CheckoutService
from dulceria.services.content.repository import SiteSettingsRepository
from dulceria.services.notifications.ses_client import SESClient
from dulceria.services.orders.service import OrderService
from dulceria.services.payments.stripe_client import StripeClient
from dulceria.services.payments.webhooks import WebhookService
from dulceria.services.promotions.repository import PromoCodeRepository

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


def get_stripe_client(request: Request) -> StripeClient:
    """Stripe client created in the application lifespan."""
    client = getattr(request.app.state, "stripe_client", None)
    if client is None:
        logger.error("Stripe client requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": "Payments unavailable", "code": "SERVICE_UNAVAILABLE"},
        )
    return client


def get_ses_client(request: Request) -> Optional[SESClient]:
    return getattr(request.app.state, "ses_client", None)


StripeClientDep = Annotated[StripeClient, Depends(get_stripe_client)]
SESClientDep = Annotated[Optional[SESClient], Depends(get_ses_client)]


def get_checkout_service(db: DatabaseSession, stripe_client: StripeClientDep) -> CheckoutService:
    return CheckoutService(db, stripe_client)


def get_webhook_service(db: DatabaseSession, stripe_client: StripeClientDep) -> WebhookService:
    return WebhookService(db, stripe_client)


def get_order_service(db: DatabaseSession) -> OrderService:
    return OrderService(db)


def get_catalog_repository(db: DatabaseSession) -> CatalogRepository:
    return CatalogRepository(db)


def get_promo_repository(db: DatabaseSession) -> PromoCodeRepository:
    return PromoCodeRepository(db)


def get_site_settings_repository(db: DatabaseSession) -> SiteSettingsRepository:
    return SiteSettingsRepository(db)


def get_admin_auth_service(db: DatabaseSession) -> AdminAuthService:
    return AdminAuthService(db)


async def get_current_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth_service: Annotated[AdminAuthService, Depends(get_admin_auth_service)],
) -> dict[str, str]:
    """
    Validate the bearer token and resolve the admin it belongs to.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or
            the admin no longer exists
    """
    if credentials is None:
        logger.warning("Admin authentication failed: no credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "code": "NOT_AUTHENTICATED"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        email = decode_admin_token(credentials.credentials)
    except TokenError as e:
        logger.warning("Admin authentication failed", code=e.code)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": str(e), "code": e.code},
            headers={"WWW-Authenticate": "Bearer"},
        )

    admin = await auth_service.resolve_admin(email)
    if admin is None:
        logger.warning("Admin authentication failed: unknown admin", admin=email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid token", "code": "INVALID_TOKEN"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    set_admin_email(admin["email"])
    return admin


CurrentAdmin = Annotated[dict[str, str], Depends(get_current_admin)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
WebhookServiceDep = Annotated[WebhookService, Depends(get_webhook_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
CatalogRepositoryDep = Annotated[CatalogRepository, Depends(get_catalog_repository)]
PromoRepositoryDep = Annotated[PromoCodeRepository, Depends(get_promo_repository)]
SiteSettingsRepositoryDep = Annotated[
    SiteSettingsRepository, Depends(get_site_settings_repository)
]
AdminAuthServiceDep = Annotated[AdminAuthService, Depends(get_admin_auth_service)]
