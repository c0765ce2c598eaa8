"""
Pytest configuration and shared test fixtures.

Settings are pinned to the test environment before the application is
imported. API tests run against the real FastAPI app over httpx's ASGI
transport with repositories and processor clients replaced through
``dependency_overrides``.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("APP_OWNER_EMAIL", "owner@diamonddulceria.com")

import uuid
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from httpx import ASGITransport, AsyncClient

from dulceria.api import deps
from dulceria.core.config import Settings
from dulceria.database.models.order import Order, OrderStatus, PaymentMethod
from dulceria.database.models.product import Product
from dulceria.database.models.promo_code import PromoCode
from dulceria.main import app
from dulceria.services.catalog.repository import CatalogRepository
from dulceria.services.checkout.service import CheckoutService
from dulceria.services.notifications.service import NotificationService
from dulceria.services.orders.repository import OrderRepository
from dulceria.services.payments.stripe_client import StripeClient
from dulceria.services.promotions.repository import PromoCodeRepository


# ============================================================================
# Model builders
# ============================================================================


def build_product(
    product_id: str,
    name: str,
    price: int,
    active: bool = True,
    is_custom: bool = False,
    category: str = "chocolates",
) -> Product:
    return Product(
        id=product_id,
        name=name,
        description="",
        price=price,
        batch=1,
        category=category,
        image=None,
        is_custom=is_custom,
        trending=False,
        active=active,
    )


def build_promo(code: str, discount_type: str, discount_value: int, active: bool = True) -> PromoCode:
    return PromoCode(
        id=uuid.uuid4(),
        code=code.upper(),
        discount_type=discount_type,
        discount_value=discount_value,
        active=active,
        usage_count=0,
    )


def build_order(
    status: OrderStatus = OrderStatus.PENDING,
    total: int = 100,
    payment_intent_id: Optional[str] = None,
    **overrides: Any,
) -> Order:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "customer_name": "Ana Flores",
        "customer_email": "ana@example.com",
        "customer_phone": "555-0100",
        "delivery_address": "12 Main St",
        "special_instructions": None,
        "items": [
            {"id": "dubai-chocolate", "name": "Dubai Chocolate", "price": 50, "quantity": 2}
        ],
        "subtotal": total,
        "discount_amount": 0,
        "promo_code": None,
        "total": total,
        "status": status.value,
        "payment_method": PaymentMethod.CARD.value,
        "payment_intent_id": payment_intent_id,
        "created_at": datetime.now(timezone.utc),
    }
    fields.update(overrides)
    return Order(**fields)


# ============================================================================
# Catalog, promotions and orders
# ============================================================================


@pytest.fixture
def catalog_products() -> dict[str, Product]:
    products = [
        build_product("dubai-chocolate", "Dubai Chocolate", 50),
        build_product("chocolate-strawberries", "Chocolate Strawberries", 25),
        build_product("bespoke-diamond", "Bespoke Diamond", 0, is_custom=True),
        build_product("retired-truffle", "Retired Truffle", 40, active=False),
    ]
    return {product.id: product for product in products}


@pytest.fixture
def mock_catalog(catalog_products) -> Mock:
    """Catalog repository answering from ``catalog_products``."""
    catalog = Mock(spec=CatalogRepository)

    async def get_products_by_ids(product_ids):
        return {pid: catalog_products[pid] for pid in product_ids if pid in catalog_products}

    async def find_product_by_name(name):
        normalized = name.strip().lower()
        matches = [p for p in catalog_products.values() if p.name.lower() == normalized]
        matches.sort(key=lambda p: not p.active)
        return matches[0] if matches else None

    catalog.get_products_by_ids = AsyncMock(side_effect=get_products_by_ids)
    catalog.find_product_by_name = AsyncMock(side_effect=find_product_by_name)
    return catalog


@pytest.fixture
def promo_codes() -> dict[str, PromoCode]:
    promos = [
        build_promo("SWEET10", "percentage", 10),
        build_promo("FIVEOFF", "fixed", 5),
        build_promo("EVERYTHING", "percentage", 110),
        build_promo("EXPIRED", "fixed", 20, active=False),
    ]
    return {promo.code: promo for promo in promos}


@pytest.fixture
def mock_promotions(promo_codes) -> Mock:
    promotions = Mock(spec=PromoCodeRepository)

    async def get_active_by_code(code):
        promo = promo_codes.get(code.strip().upper())
        return promo if promo is not None and promo.active else None

    promotions.get_active_by_code = AsyncMock(side_effect=get_active_by_code)
    promotions.increment_usage = AsyncMock(return_value=None)
    return promotions


@pytest.fixture
def mock_orders() -> Mock:
    """Order repository that accepts every new order."""
    orders = Mock(spec=OrderRepository)
    orders.get_by_payment_intent_id = AsyncMock(return_value=None)
    orders.get_by_id = AsyncMock(return_value=None)
    orders.create_order = AsyncMock(side_effect=lambda order, related=(): (order, True))
    orders.mark_paid_if_pending = AsyncMock(return_value=None)
    return orders


# ============================================================================
# Processor clients and services
# ============================================================================


@pytest.fixture
def mock_stripe() -> Mock:
    client = Mock(spec=StripeClient)
    client.create_payment_intent = AsyncMock(
        return_value={
            "id": "pi_test_123",
            "status": "requires_payment_method",
            "amount": 10000,
            "currency": "usd",
            "client_secret": "pi_test_123_secret_abc",
            "metadata": {},
        }
    )
    client.retrieve_payment_intent = AsyncMock()
    return client


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        owner_email="owner@diamonddulceria.com",
        notification_max_attempts=3,
    )


@pytest.fixture
def notification_service(test_settings) -> NotificationService:
    return NotificationService(session=None, settings=test_settings)


@pytest.fixture
def checkout_service(
    mock_stripe, notification_service, mock_catalog, mock_promotions, mock_orders
) -> CheckoutService:
    return CheckoutService(
        session=Mock(),
        stripe_client=mock_stripe,
        notifications=notification_service,
        catalog=mock_catalog,
        promotions=mock_promotions,
        orders=mock_orders,
    )


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def override_dependency():
    """Register dependency overrides for one test and clear them afterwards."""

    def register(dependency, replacement) -> None:
        app.dependency_overrides[dependency] = replacement

    yield register
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(override_dependency) -> AsyncGenerator[AsyncClient, None]:
    """
    Asynchronous client for the FastAPI app.

    Outbox dispatch is disabled by reporting no SES client.
    """
    override_dependency(deps.get_ses_client, lambda: None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
