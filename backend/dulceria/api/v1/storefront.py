"""
Public storefront endpoints: catalog, site copy, promo preview and order lookup.
"""

import uuid
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from dulceria.api.deps import (
    CatalogRepositoryDep,
    DatabaseSession,
    PromoRepositoryDep,
    SiteSettingsRepositoryDep,
)
from dulceria.core.logging import get_logger
from dulceria.core.rate_limit import limiter
from dulceria.schemas.checkout import PromoValidationRequest, PromoValidationResponse
from dulceria.services.checkout.pricing import preview_promo
from dulceria.services.orders.repository import OrderRepository

logger = get_logger(__name__)

router = APIRouter(tags=["storefront"])


@router.get("/products", summary="List active products")
async def list_products(
    catalog: CatalogRepositoryDep,
    category: Optional[str] = Query(None, max_length=100),
) -> list[dict[str, Any]]:
    products = await catalog.list_products(category=category, active_only=True)
    return [product.to_response() for product in products]


@router.get("/categories", summary="List active categories")
async def list_categories(catalog: CatalogRepositoryDep) -> list[dict[str, Any]]:
    categories = await catalog.list_categories(active_only=True)
    return [category.to_response() for category in categories]


@router.get("/site-settings", summary="Storefront copy")
async def get_site_settings(repository: SiteSettingsRepositoryDep) -> dict[str, str]:
    return await repository.get_all()


@router.post(
    "/promo-codes/validate",
    response_model=PromoValidationResponse,
    response_model_exclude_none=True,
    summary="Preview a promo code",
)
@limiter.limit("30/minute")
async def validate_promo_code(
    request: Request,
    body: PromoValidationRequest,
    promotions: PromoRepositoryDep,
) -> PromoValidationResponse:
    """Unknown or inactive codes report ``valid: false`` rather than an error."""
    return await preview_promo(promotions, body.code, body.subtotal)


@router.get("/orders/{order_id}", summary="Order confirmation")
async def get_order_confirmation(order_id: uuid.UUID, db: DatabaseSession) -> dict[str, Any]:
    """
    Customer-facing view of an order for the confirmation page.

    Raises:
        HTTPException: 404 if the order does not exist
    """
    order = await OrderRepository(db).get_by_id(order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Order not found", "code": "ORDER_NOT_FOUND"},
        )

    return {
        "id": str(order.id),
        "customerName": order.customer_name,
        "status": order.status,
        "items": order.items,
        "subtotal": order.subtotal,
        "discountAmount": order.discount_amount,
        "total": order.total,
        "paymentMethod": order.payment_method,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }
