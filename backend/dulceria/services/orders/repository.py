"""
Order repository for persistence of storefront orders.

Orders are written together with the outbox rows describing the emails they
trigger, in a single transaction. Creation is keyed on the payment intent
reference: a duplicate insert for an intent that already has an order
resolves to the existing order instead of raising.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dulceria.core.logging import get_logger
from dulceria.database.connection import execute_with_retry
from dulceria.database.models.order import Order, OrderStatus

logger = get_logger(__name__)

REVENUE_STATUSES = (
    OrderStatus.PAID.value,
    OrderStatus.READY.value,
    OrderStatus.COMPLETED.value,
)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderNotFoundError(OrderRepositoryError):
    """Raised when order is not found."""

    pass


class OrderRepository:
    """
    Repository for order data access.

    Attributes:
        session: Async database session for executing queries
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_order(
        self,
        order: Order,
        related: Iterable[Any] = (),
    ) -> tuple[Order, bool]:
        """
        Insert an order and its related rows in one transaction.

        Args:
            order: New order instance
            related: Additional rows (outbox entries) committed with the order

        Returns:
            Tuple of (order, created). ``created`` is False when another
            order already exists for the same payment intent, in which case
            that existing order is returned and nothing is written.

        Raises:
            OrderRepositoryError: If the insert fails for any other reason
        """
        related = list(related)

        async def insert() -> None:
            try:
                self.session.add(order)
                self.session.add_all(related)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        try:
            await execute_with_retry(insert, "create_order")
        except IntegrityError as e:
            if order.payment_intent_id:
                existing = await self.get_by_payment_intent_id(order.payment_intent_id)
                if existing is not None:
                    logger.info(
                        "Order already exists for payment intent",
                        order_id=str(existing.id),
                        payment_intent_id=order.payment_intent_id,
                    )
                    return existing, False

            logger.error("Order creation failed - integrity error", error=str(e))
            raise OrderRepositoryError(
                "Order creation failed - constraint violation",
                payment_intent_id=order.payment_intent_id,
                error=str(e),
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Order creation failed - database error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderRepositoryError("Order creation failed", error=str(e)) from e

        logger.info(
            "Order created",
            order_id=str(order.id),
            status=order.status,
            total=order.total,
            payment_intent_id=order.payment_intent_id,
            notifications=len(related),
        )
        return order, True

    async def get_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        async def run() -> Optional[Order]:
            result = await self.session.execute(select(Order).where(Order.id == order_id))
            return result.scalar_one_or_none()

        return await execute_with_retry(run, "get_order_by_id")

    async def get_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Order]:
        async def run() -> Optional[Order]:
            result = await self.session.execute(
                select(Order).where(Order.payment_intent_id == payment_intent_id)
            )
            return result.scalar_one_or_none()

        return await execute_with_retry(run, "get_order_by_payment_intent_id")

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        limit: int = 500,
    ) -> list[Order]:
        """List orders, newest first."""

        async def run() -> list[Order]:
            stmt = select(Order)
            if status is not None:
                stmt = stmt.where(Order.status == status.value)
            stmt = stmt.order_by(Order.created_at.desc()).limit(limit)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await execute_with_retry(run, "list_orders")

    async def mark_paid_if_pending(
        self,
        order_id: uuid.UUID,
        related_factory: Optional[Callable[[Order], Iterable[Any]]] = None,
    ) -> Optional[Order]:
        """
        Move an order from pending to paid with a conditional update.

        The update only matches while the row is still pending, so concurrent
        or repeated confirmations transition the order at most once.

        Args:
            order_id: Order to confirm
            related_factory: Builds rows to commit alongside the transition

        Returns:
            The updated order, or None if it was not pending (or not found)
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
            .values(status=OrderStatus.PAID.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                await self.session.rollback()
                return None

            order = await self.session.get(Order, order_id, populate_existing=True)
            if related_factory is not None:
                self.session.add_all(list(related_factory(order)))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to mark order paid", order_id=str(order_id), error=str(e))
            raise OrderRepositoryError(
                "Failed to mark order paid", order_id=str(order_id), error=str(e)
            ) from e

        logger.info("Order marked paid", order_id=str(order_id))
        return order

    async def save(self, order: Order, related: Iterable[Any] = ()) -> Order:
        """
        Commit pending changes to an order together with related rows.

        Raises:
            OrderRepositoryError: If the commit fails
        """
        try:
            self.session.add_all(list(related))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Order update failed", order_id=str(order.id), error=str(e))
            raise OrderRepositoryError(
                "Order update failed", order_id=str(order.id), error=str(e)
            ) from e
        return order

    async def delete_order(self, order_id: uuid.UUID) -> bool:
        try:
            result = await self.session.execute(delete(Order).where(Order.id == order_id))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise OrderRepositoryError(
                "Order deletion failed", order_id=str(order_id), error=str(e)
            ) from e

        deleted = result.rowcount > 0
        logger.info("Order deleted", order_id=str(order_id), deleted=deleted)
        return deleted

    async def get_statistics(self) -> dict[str, int]:
        """
        Dashboard counters.

        Returns:
            todaysOrders, pendingOrders (pending and paid), readyForPickup,
            totalRevenue (paid, ready and completed totals), totalOrders
        """
        start_of_day = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )

        async def run() -> dict[str, int]:
            stmt = select(
                func.count(Order.id),
                func.count(Order.id).filter(Order.created_at >= start_of_day),
                func.count(Order.id).filter(
                    Order.status.in_((OrderStatus.PENDING.value, OrderStatus.PAID.value))
                ),
                func.count(Order.id).filter(Order.status == OrderStatus.READY.value),
                func.coalesce(
                    func.sum(Order.total).filter(Order.status.in_(REVENUE_STATUSES)), 0
                ),
            )
            total, today, pending, ready, revenue = (await self.session.execute(stmt)).one()
            return {
                "todaysOrders": int(today),
                "pendingOrders": int(pending),
                "readyForPickup": int(ready),
                "totalRevenue": int(revenue),
                "totalOrders": int(total),
            }

        return await execute_with_retry(run, "get_order_statistics")
