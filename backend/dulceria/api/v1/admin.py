"""
Admin API endpoints: authentication, order management and dashboard stats.

All routes except login and setup require a bearer token issued by login.
"""

import uuid
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status

from dulceria.api.deps import AdminAuthServiceDep, CurrentAdmin, OrderServiceDep, SESClientDep
from dulceria.core.logging import get_logger
from dulceria.core.rate_limit import limiter
from dulceria.schemas.admin import (
    ContactRequest,
    LoginRequest,
    LoginResponse,
    NotesUpdateRequest,
    QuoteRequest,
    SetupRequest,
    StatusUpdateRequest,
)
from dulceria.services.admin.service import (
    AdminExistsError,
    InvalidCredentialsError,
    SetupForbiddenError,
)
from dulceria.services.notifications.service import dispatch_outbox
from dulceria.services.orders.repository import OrderNotFoundError

logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


def _order_not_found(order_id: uuid.UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": f"Order {order_id} not found", "code": "ORDER_NOT_FOUND"},
    )


def _invalid_status(error: ValueError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(error), "code": "INVALID_STATUS"},
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Admin login",
)
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: LoginRequest,
    auth_service: AdminAuthServiceDep,
) -> LoginResponse:
    """
    Raises:
        HTTPException: 401 if the credentials are wrong
    """
    try:
        result = await auth_service.login(body.email, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": str(e), "code": e.code},
        )
    return LoginResponse(**result)


@router.post(
    "/setup",
    status_code=status.HTTP_201_CREATED,
    summary="Create admin account",
)
@limiter.limit("5/minute")
async def setup_admin(
    request: Request,
    body: SetupRequest,
    auth_service: AdminAuthServiceDep,
) -> dict[str, Any]:
    """
    Create an admin account using the configured setup key.

    Raises:
        HTTPException: 403 for a wrong setup key, 409 if the admin exists
    """
    try:
        admin = await auth_service.setup(body.email, body.password, body.name, body.setup_key)
    except SetupForbiddenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": str(e), "code": e.code},
        )
    except AdminExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "code": e.code},
        )

    return {"success": True, "admin": {"email": admin.email, "name": admin.name}}


@router.get("/orders", summary="List orders")
async def list_orders(
    admin: CurrentAdmin,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(None, alias="status", max_length=20),
) -> list[dict[str, Any]]:
    """
    List orders newest first, optionally filtered by status.

    Raises:
        HTTPException: 400 for an unknown status
    """
    try:
        orders = await service.list_orders(status_filter)
    except ValueError as e:
        raise _invalid_status(e)
    return [order.to_response() for order in orders]


@router.get("/orders/{order_id}", summary="Get order")
async def get_order(
    order_id: uuid.UUID,
    admin: CurrentAdmin,
    service: OrderServiceDep,
) -> dict[str, Any]:
    try:
        order = await service.get_order(order_id)
    except OrderNotFoundError:
        raise _order_not_found(order_id)
    return order.to_response()


@router.patch("/orders/{order_id}/status", summary="Update order status")
async def update_order_status(
    order_id: uuid.UUID,
    body: StatusUpdateRequest,
    admin: CurrentAdmin,
    service: OrderServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
) -> dict[str, Any]:
    """
    Set an order's status. Any status may be set from any other.

    Raises:
        HTTPException: 400 for an unknown status, 404 if the order is missing
    """
    try:
        order = await service.update_status(order_id, body.status)
    except ValueError as e:
        raise _invalid_status(e)
    except OrderNotFoundError:
        raise _order_not_found(order_id)

    if ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)
    return order.to_response()


@router.patch("/orders/{order_id}/notes", summary="Update admin notes")
async def update_order_notes(
    order_id: uuid.UUID,
    body: NotesUpdateRequest,
    admin: CurrentAdmin,
    service: OrderServiceDep,
) -> dict[str, Any]:
    try:
        order = await service.update_notes(order_id, body.admin_notes)
    except OrderNotFoundError:
        raise _order_not_found(order_id)
    return order.to_response()


@router.post("/orders/{order_id}/quote", summary="Send quote")
async def send_quote(
    order_id: uuid.UUID,
    body: QuoteRequest,
    admin: CurrentAdmin,
    service: OrderServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
) -> dict[str, Any]:
    """Record a quoted price for a custom order and email it to the customer."""
    try:
        order = await service.send_quote(order_id, body.quoted_price, body.message)
    except OrderNotFoundError:
        raise _order_not_found(order_id)

    if ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)
    return order.to_response()


@router.post("/orders/{order_id}/contact", summary="Email customer")
async def contact_customer(
    order_id: uuid.UUID,
    body: ContactRequest,
    admin: CurrentAdmin,
    service: OrderServiceDep,
    background_tasks: BackgroundTasks,
    ses_client: SESClientDep,
) -> dict[str, Any]:
    try:
        await service.contact_customer(order_id, body.message, body.subject)
    except OrderNotFoundError:
        raise _order_not_found(order_id)

    if ses_client is not None:
        background_tasks.add_task(dispatch_outbox, ses_client)
    return {"success": True}


@router.delete(
    "/orders/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
)
async def delete_order(
    order_id: uuid.UUID,
    admin: CurrentAdmin,
    service: OrderServiceDep,
) -> None:
    try:
        await service.delete_order(order_id)
    except OrderNotFoundError:
        raise _order_not_found(order_id)
    logger.info("Order deleted by admin", order_id=str(order_id))


@router.get("/stats", summary="Dashboard statistics")
async def get_stats(admin: CurrentAdmin, service: OrderServiceDep) -> dict[str, Any]:
    return await service.get_statistics()
