"""
Catalog repository for product and category data access.

Reads used by checkout revalidation run through the transient-error retry
helper so a dropped connection does not fail a customer's payment step.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.connection import execute_with_retry
from dulceria.database.models.product import Category, Product
from dulceria.services.catalog.defaults import DEFAULT_PRODUCTS

logger = get_logger(__name__)

PRODUCT_FIELDS = (
    "name",
    "description",
    "price",
    "batch",
    "category",
    "image",
    "is_custom",
    "trending",
    "active",
)

CATEGORY_FIELDS = ("slug", "name", "description", "sort_order", "active")


class CatalogRepositoryError(Exception):
    """Base exception for catalog repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class CatalogConflictError(CatalogRepositoryError):
    """Raised when a product id or category slug is already taken."""

    pass


class CatalogRepository:
    """
    Repository for catalog products and categories.

    Attributes:
        session: Async database session for executing queries
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def get_products_by_ids(self, product_ids: list[str]) -> dict[str, Product]:
        """
        Fetch products by id in a single query.

        Returns:
            Mapping of product id to product for the ids that exist
        """
        if not product_ids:
            return {}

        async def run() -> dict[str, Product]:
            stmt = select(Product).where(Product.id.in_(set(product_ids)))
            result = await self.session.execute(stmt)
            return {product.id: product for product in result.scalars().all()}

        return await execute_with_retry(run, "get_products_by_ids")

    async def find_product_by_name(self, name: str) -> Optional[Product]:
        """
        Find a product by exact name, ignoring case and surrounding whitespace.

        Active products win over inactive ones when names collide.
        """
        normalized = name.strip().lower()
        if not normalized:
            return None

        async def run() -> Optional[Product]:
            stmt = (
                select(Product)
                .where(func.lower(Product.name) == normalized)
                .order_by(Product.active.desc(), Product.id)
                .limit(1)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        return await execute_with_retry(run, "find_product_by_name")

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.session.get(Product, product_id)

    async def list_products(
        self,
        category: Optional[str] = None,
        active_only: bool = True,
    ) -> list[Product]:
        """List products ordered by category then name."""

        async def run() -> list[Product]:
            stmt = select(Product)
            if active_only:
                stmt = stmt.where(Product.active.is_(True))
            if category:
                stmt = stmt.where(Product.category == category)
            stmt = stmt.order_by(Product.category, Product.name)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await execute_with_retry(run, "list_products")

    async def create_product(self, product_id: str, **fields: Any) -> Product:
        """
        Create a catalog product.

        Raises:
            CatalogConflictError: If the product id already exists
            CatalogRepositoryError: If the write fails
        """
        product = Product(
            id=product_id,
            **{key: value for key, value in fields.items() if key in PRODUCT_FIELDS},
        )
        try:
            self.session.add(product)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Product id already exists", product_id=product_id)
            raise CatalogConflictError(
                f"Product already exists: {product_id}", product_id=product_id
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Product creation failed", product_id=product_id, error=str(e))
            raise CatalogRepositoryError(
                "Product creation failed", product_id=product_id, error=str(e)
            ) from e

        logger.info("Product created", product_id=product_id, price=product.price)
        return product

    async def update_product(self, product_id: str, **fields: Any) -> Optional[Product]:
        """Apply a partial update; returns None when the product does not exist."""
        product = await self.get_product(product_id)
        if product is None:
            return None

        for key, value in fields.items():
            if key in PRODUCT_FIELDS:
                setattr(product, key, value)

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Product update failed", product_id=product_id, error=str(e))
            raise CatalogRepositoryError(
                "Product update failed", product_id=product_id, error=str(e)
            ) from e

        logger.info("Product updated", product_id=product_id, fields=sorted(fields))
        return product

    async def delete_product(self, product_id: str) -> bool:
        result = await self.session.execute(delete(Product).where(Product.id == product_id))
        await self.session.commit()
        deleted = result.rowcount > 0
        logger.info("Product delete requested", product_id=product_id, deleted=deleted)
        return deleted

    async def seed_default_products(self) -> tuple[int, int]:
        """
        Insert the default catalog, skipping products whose id already exists.

        Returns:
            Tuple of (imported, skipped) counts
        """
        existing = await self.get_products_by_ids([p["id"] for p in DEFAULT_PRODUCTS])
        imported = 0
        skipped = 0

        for data in DEFAULT_PRODUCTS:
            if data["id"] in existing:
                skipped += 1
                continue
            fields = {key: value for key, value in data.items() if key != "id"}
            self.session.add(Product(id=data["id"], active=True, **fields))
            imported += 1

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Catalog seeding failed", error=str(e))
            raise CatalogRepositoryError("Catalog seeding failed", error=str(e)) from e

        logger.info("Default catalog seeded", imported=imported, skipped=skipped)
        return imported, skipped

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def list_categories(self, active_only: bool = True) -> list[Category]:
        async def run() -> list[Category]:
            stmt = select(Category)
            if active_only:
                stmt = stmt.where(Category.active.is_(True))
            stmt = stmt.order_by(Category.sort_order, Category.name)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await execute_with_retry(run, "list_categories")

    async def create_category(self, **fields: Any) -> Category:
        """
        Create a category.

        Raises:
            CatalogConflictError: If the slug already exists
        """
        category = Category(
            **{key: value for key, value in fields.items() if key in CATEGORY_FIELDS}
        )
        try:
            self.session.add(category)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise CatalogConflictError(
                f"Category already exists: {fields.get('slug')}",
                slug=fields.get("slug"),
            ) from e

        logger.info("Category created", slug=category.slug)
        return category

    async def update_category(
        self, category_id: uuid.UUID, **fields: Any
    ) -> Optional[Category]:
        category = await self.session.get(Category, category_id)
        if category is None:
            return None

        for key, value in fields.items():
            if key in CATEGORY_FIELDS:
                setattr(category, key, value)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise CatalogConflictError(
                f"Category already exists: {fields.get('slug')}",
                slug=fields.get("slug"),
            ) from e

        return category

    async def delete_category(self, category_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            delete(Category).where(Category.id == category_id)
        )
        await self.session.commit()
        return result.rowcount > 0
