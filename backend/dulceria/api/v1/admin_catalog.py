"""
Admin catalog endpoints: products, categories and promo codes.
"""

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, status

from dulceria.api.deps import CatalogRepositoryDep, CurrentAdmin, PromoRepositoryDep
from dulceria.core.logging import get_logger
from dulceria.schemas.admin import (
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductUpdate,
    PromoCreate,
    PromoUpdate,
)
from dulceria.services.catalog.repository import CatalogConflictError, CatalogRepositoryError
from dulceria.services.promotions.repository import PromoCodeConflictError

logger = get_logger(__name__)

router = APIRouter(tags=["admin-catalog"])


def _not_found(resource: str, identifier: Any) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "message": f"{resource} {identifier} not found",
            "code": f"{resource.upper()}_NOT_FOUND",
        },
    )


def _conflict(error: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": str(error), "code": "ALREADY_EXISTS"},
    )


def _write_failed(error: CatalogRepositoryError) -> HTTPException:
    logger.error("Catalog write failed", error=str(error), context=error.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": "Catalog update failed", "code": "CATALOG_WRITE_FAILED"},
    )


# ----------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------


@router.get("/products", summary="List all products")
async def list_products(admin: CurrentAdmin, catalog: CatalogRepositoryDep) -> list[dict[str, Any]]:
    products = await catalog.list_products(active_only=False)
    return [product.to_response() for product in products]


@router.post("/products", status_code=status.HTTP_201_CREATED, summary="Create product")
async def create_product(
    body: ProductCreate,
    admin: CurrentAdmin,
    catalog: CatalogRepositoryDep,
) -> dict[str, Any]:
    """
    Raises:
        HTTPException: 409 if the product id is taken
    """
    fields = body.model_dump(exclude={"id"})
    try:
        product = await catalog.create_product(body.id, **fields)
    except CatalogConflictError as e:
        raise _conflict(e)
    except CatalogRepositoryError as e:
        raise _write_failed(e)
    return product.to_response()


@router.post("/products/seed", summary="Seed default catalog")
async def seed_products(admin: CurrentAdmin, catalog: CatalogRepositoryDep) -> dict[str, int]:
    """Insert the default catalog, skipping ids that already exist."""
    try:
        imported, skipped = await catalog.seed_default_products()
    except CatalogRepositoryError as e:
        raise _write_failed(e)
    return {"imported": imported, "skipped": skipped}


@router.patch("/products/{product_id}", summary="Update product")
async def update_product(
    product_id: str,
    body: ProductUpdate,
    admin: CurrentAdmin,
    catalog: CatalogRepositoryDep,
) -> dict[str, Any]:
    try:
        product = await catalog.update_product(product_id, **body.model_dump(exclude_unset=True))
    except CatalogRepositoryError as e:
        raise _write_failed(e)
    if product is None:
        raise _not_found("Product", product_id)
    return product.to_response()


@router.delete(
    "/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product",
)
async def delete_product(product_id: str, admin: CurrentAdmin, catalog: CatalogRepositoryDep) -> None:
    if not await catalog.delete_product(product_id):
        raise _not_found("Product", product_id)


# ----------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------


@router.get("/categories", summary="List all categories")
async def list_categories(admin: CurrentAdmin, catalog: CatalogRepositoryDep) -> list[dict[str, Any]]:
    categories = await catalog.list_categories(active_only=False)
    return [category.to_response() for category in categories]


@router.post("/categories", status_code=status.HTTP_201_CREATED, summary="Create category")
async def create_category(
    body: CategoryCreate,
    admin: CurrentAdmin,
    catalog: CatalogRepositoryDep,
) -> dict[str, Any]:
    try:
        category = await catalog.create_category(**body.model_dump())
    except CatalogConflictError as e:
        raise _conflict(e)
    return category.to_response()


@router.patch("/categories/{category_id}", summary="Update category")
async def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    admin: CurrentAdmin,
    catalog: CatalogRepositoryDep,
) -> dict[str, Any]:
    try:
        category = await catalog.update_category(
            category_id, **body.model_dump(exclude_unset=True)
        )
    except CatalogConflictError as e:
        raise _conflict(e)
    if category is None:
        raise _not_found("Category", category_id)
    return category.to_response()


@router.delete(
    "/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete category",
)
async def delete_category(
    category_id: uuid.UUID,
    admin: CurrentAdmin,
    catalog: CatalogRepositoryDep,
) -> None:
    if not await catalog.delete_category(category_id):
        raise _not_found("Category", category_id)


# ----------------------------------------------------------------------
# Promo codes
# ----------------------------------------------------------------------


@router.get("/promo-codes", summary="List promo codes")
async def list_promo_codes(admin: CurrentAdmin, promotions: PromoRepositoryDep) -> list[dict[str, Any]]:
    codes = await promotions.list_codes()
    return [code.to_response() for code in codes]


@router.post("/promo-codes", status_code=status.HTTP_201_CREATED, summary="Create promo code")
async def create_promo_code(
    body: PromoCreate,
    admin: CurrentAdmin,
    promotions: PromoRepositoryDep,
) -> dict[str, Any]:
    """
    Raises:
        HTTPException: 409 if the code already exists
    """
    try:
        promo = await promotions.create_code(
            code=body.code,
            discount_type=body.discount_type,
            discount_value=body.discount_value,
            active=body.active,
        )
    except PromoCodeConflictError as e:
        raise _conflict(e)
    return promo.to_response()


@router.patch("/promo-codes/{promo_id}", summary="Update promo code")
async def update_promo_code(
    promo_id: uuid.UUID,
    body: PromoUpdate,
    admin: CurrentAdmin,
    promotions: PromoRepositoryDep,
) -> dict[str, Any]:
    try:
        promo = await promotions.update_code(promo_id, **body.model_dump(exclude_unset=True))
    except PromoCodeConflictError as e:
        raise _conflict(e)
    if promo is None:
        raise _not_found("Promo", promo_id)
    return promo.to_response()


@router.delete(
    "/promo-codes/{promo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete promo code",
)
async def delete_promo_code(
    promo_id: uuid.UUID,
    admin: CurrentAdmin,
    promotions: PromoRepositoryDep,
) -> None:
    if not await promotions.delete_code(promo_id):
        raise _not_found("Promo", promo_id)
