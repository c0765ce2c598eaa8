"""
Integration tests for the admin API endpoints.

Services and repositories are replaced through dependency overrides;
tokens are real and signed with the test secret key.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import status

from dulceria.api import deps
from dulceria.core.security import create_admin_token
from dulceria.database.models.order import OrderStatus
from dulceria.database.models.site_setting import AdminUser
from dulceria.services.admin.service import (
    AdminAuthService,
    AdminExistsError,
    InvalidCredentialsError,
    SetupForbiddenError,
)
from dulceria.services.catalog.repository import CatalogRepository
from dulceria.services.content.repository import SiteSettingsRepository
from dulceria.services.orders.repository import OrderNotFoundError
from dulceria.services.orders.service import OrderService
from dulceria.services.promotions.repository import PromoCodeConflictError, PromoCodeRepository
from tests.conftest import build_order, build_product

ADMIN = {"email": "owner@diamonddulceria.com", "name": "Administrator"}


@pytest.fixture
def auth_service() -> Mock:
    service = Mock(spec=AdminAuthService)
    service.login = AsyncMock()
    service.setup = AsyncMock()
    service.resolve_admin = AsyncMock(return_value=ADMIN)
    return service


@pytest.fixture
def order_service() -> Mock:
    service = Mock(spec=OrderService)
    service.list_orders = AsyncMock(return_value=[])
    service.get_order = AsyncMock()
    service.update_status = AsyncMock()
    service.delete_order = AsyncMock(return_value=None)
    service.get_statistics = AsyncMock()
    return service


@pytest.fixture
def client(async_client, override_dependency, auth_service, order_service):
    override_dependency(deps.get_admin_auth_service, lambda: auth_service)
    override_dependency(deps.get_order_service, lambda: order_service)
    return async_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_admin_token(ADMIN['email'])}"}


class TestAuthentication:
    async def test_login(self, client, auth_service):
        auth_service.login.return_value = {"token": "signed-token", "admin": ADMIN}

        response = await client.post(
            "/api/admin/login",
            json={"email": ADMIN["email"], "password": "env-admin-pass"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"token": "signed-token", "admin": ADMIN}

    async def test_login_wrong_password(self, client, auth_service):
        auth_service.login.side_effect = InvalidCredentialsError()

        response = await client.post(
            "/api/admin/login",
            json={"email": ADMIN["email"], "password": "nope"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    async def test_setup(self, client, auth_service):
        auth_service.setup.return_value = AdminUser(
            email="baker@example.com", password_hash="hash", name="Baker"
        )

        response = await client.post(
            "/api/admin/setup",
            json={
                "email": "Baker@Example.com",
                "password": "baker-pass-1",
                "name": "Baker",
                "setupKey": "let-me-in",
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json() == {
            "success": True,
            "admin": {"email": "baker@example.com", "name": "Baker"},
        }
        auth_service.setup.assert_awaited_once_with(
            "baker@example.com", "baker-pass-1", "Baker", "let-me-in"
        )

    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (SetupForbiddenError(), status.HTTP_403_FORBIDDEN),
            (AdminExistsError(), status.HTTP_409_CONFLICT),
        ],
    )
    async def test_setup_rejected(self, client, auth_service, error, expected_status):
        auth_service.setup.side_effect = error

        response = await client.post(
            "/api/admin/setup",
            json={
                "email": "baker@example.com",
                "password": "baker-pass-1",
                "name": "Baker",
                "setupKey": "wrong",
            },
        )

        assert response.status_code == expected_status

    async def test_missing_token(self, client):
        response = await client.get("/api/admin/orders")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/admin/orders", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "INVALID_TOKEN"

    async def test_expired_token(self, client):
        token = create_admin_token(ADMIN["email"], expires_delta=timedelta(seconds=-10))

        response = await client.get(
            "/api/admin/orders", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "TOKEN_EXPIRED"

    async def test_removed_admin(self, client, auth_service, auth_headers):
        auth_service.resolve_admin.return_value = None

        response = await client.get("/api/admin/orders", headers=auth_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestOrderManagement:
    async def test_list_orders(self, client, order_service, auth_headers):
        order = build_order(OrderStatus.PAID, admin_notes="VIP")
        order_service.list_orders.return_value = [order]

        response = await client.get(
            "/api/admin/orders", params={"status": "paid"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data[0]["id"] == str(order.id)
        assert data[0]["adminNotes"] == "VIP"
        order_service.list_orders.assert_awaited_once_with("paid")

    async def test_list_orders_unknown_status(self, client, order_service, auth_headers):
        order_service.list_orders.side_effect = ValueError("Invalid order status: shipped")

        response = await client.get(
            "/api/admin/orders", params={"status": "shipped"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "INVALID_STATUS"

    async def test_update_status(self, client, order_service, auth_headers):
        order = build_order(OrderStatus.READY)
        order_service.update_status.return_value = order

        response = await client.patch(
            f"/api/admin/orders/{order.id}/status",
            json={"status": "ready"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ready"
        order_service.update_status.assert_awaited_once_with(order.id, "ready")

    async def test_update_status_missing_order(self, client, order_service, auth_headers):
        order_id = uuid.uuid4()
        order_service.update_status.side_effect = OrderNotFoundError("missing")

        response = await client.patch(
            f"/api/admin/orders/{order_id}/status",
            json={"status": "ready"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["code"] == "ORDER_NOT_FOUND"

    async def test_delete_order(self, client, order_service, auth_headers):
        response = await client.delete(f"/api/admin/orders/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == status.HTTP_204_NO_CONTENT

    async def test_stats(self, client, order_service, auth_headers):
        order_service.get_statistics.return_value = {
            "todaysOrders": 3,
            "pendingOrders": 1,
            "readyForPickup": 2,
            "totalRevenue": 420,
            "totalOrders": 9,
        }

        response = await client.get("/api/admin/stats", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["totalRevenue"] == 420


class TestCatalogManagement:
    async def test_seed_products(self, client, override_dependency, auth_headers):
        catalog = Mock(spec=CatalogRepository)
        catalog.seed_default_products = AsyncMock(return_value=(5, 2))
        override_dependency(deps.get_catalog_repository, lambda: catalog)

        response = await client.post("/api/admin/products/seed", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"imported": 5, "skipped": 2}

    async def test_list_includes_inactive(self, client, override_dependency, auth_headers):
        catalog = Mock(spec=CatalogRepository)
        catalog.list_products = AsyncMock(
            return_value=[build_product("retired-truffle", "Retired Truffle", 40, active=False)]
        )
        override_dependency(deps.get_catalog_repository, lambda: catalog)

        response = await client.get("/api/admin/products", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        catalog.list_products.assert_awaited_once_with(active_only=False)

    async def test_invalid_product_id(self, client, override_dependency, auth_headers):
        override_dependency(deps.get_catalog_repository, lambda: Mock(spec=CatalogRepository))

        response = await client.post(
            "/api/admin/products",
            json={"id": "Not A Slug", "name": "Truffle", "price": 10, "category": "chocolates"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_duplicate_promo_code(self, client, override_dependency, auth_headers):
        promotions = Mock(spec=PromoCodeRepository)
        promotions.create_code = AsyncMock(
            side_effect=PromoCodeConflictError("Promo code already exists: SWEET10")
        )
        override_dependency(deps.get_promo_repository, lambda: promotions)

        response = await client.post(
            "/api/admin/promo-codes",
            json={"code": "sweet10", "discountType": "percentage", "discountValue": 10},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "ALREADY_EXISTS"

    async def test_percentage_over_100_rejected(self, client, override_dependency, auth_headers):
        override_dependency(deps.get_promo_repository, lambda: Mock(spec=PromoCodeRepository))

        response = await client.post(
            "/api/admin/promo-codes",
            json={"code": "HUGE", "discountType": "percentage", "discountValue": 150},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestSiteSettings:
    async def test_upsert_setting(self, client, override_dependency, auth_headers):
        repository = Mock(spec=SiteSettingsRepository)
        repository.upsert = AsyncMock()
        override_dependency(deps.get_site_settings_repository, lambda: repository)

        response = await client.put(
            "/api/admin/site-settings/hero.title",
            json={"value": "Sweet things"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"key": "hero.title", "value": "Sweet things"}
        repository.upsert.assert_awaited_once_with("hero.title", "Sweet things")
