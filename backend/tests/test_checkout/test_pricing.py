"""
Tests for cart revalidation and price calculation.

Covers catalog price authority, promo discount clamping, minor-unit
conversion and the order-insensitive cart fingerprint.
"""

import pytest

from dulceria.schemas.checkout import CartItemRequest
from dulceria.services.checkout.errors import CheckoutValidationError, ProductNotFoundError
from dulceria.services.checkout.pricing import (
    MAX_FINGERPRINT_LENGTH,
    CartValidator,
    ValidatedCart,
    cart_fingerprint,
    compute_discount,
    preview_promo,
    to_minor_units,
)


def item(product_id: str, quantity: int = 1, **extra) -> CartItemRequest:
    return CartItemRequest(id=product_id, quantity=quantity, **extra)


# ============================================================================
# Discounts
# ============================================================================


class TestComputeDiscount:
    @pytest.mark.parametrize(
        "subtotal,discount_type,value,expected",
        [
            (100, "percentage", 10, 10),
            (55, "percentage", 10, 6),
            (50, "percentage", 110, 50),
            (100, "fixed", 5, 5),
            (30, "fixed", 45, 30),
            (0, "fixed", 10, 0),
            (80, "percentage", 0, 0),
        ],
    )
    def test_discount_within_subtotal(self, subtotal, discount_type, value, expected):
        assert compute_discount(subtotal, discount_type, value) == expected

    @pytest.mark.parametrize("subtotal", [0, 1, 7, 49, 50, 999, 12345])
    @pytest.mark.parametrize("value", [0, 1, 33, 100, 150, 100000])
    def test_discount_never_exceeds_subtotal(self, subtotal, value):
        for discount_type in ("percentage", "fixed"):
            discount = compute_discount(subtotal, discount_type, value)
            assert 0 <= discount <= subtotal

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            compute_discount(100, "bogo", 1)

    def test_cart_discount_clamped(self):
        cart = ValidatedCart(items=[], subtotal=40)
        cart.apply_discount(75, "BIG")
        assert cart.discount_amount == 40
        assert cart.total == 0

        cart.apply_discount(-5, None)
        assert cart.discount_amount == 0
        assert cart.total == 40


class TestMinorUnits:
    def test_whole_units_to_cents(self):
        assert to_minor_units(100) == 10000
        assert to_minor_units(0) == 0
        assert to_minor_units(1) == 100


# ============================================================================
# Fingerprint
# ============================================================================


class TestCartFingerprint:
    def test_order_insensitive(self):
        a = [{"id": "b", "quantity": 2}, {"id": "a", "quantity": 1}]
        b = [{"id": "a", "quantity": 1}, {"id": "b", "quantity": 2}]
        assert cart_fingerprint(a) == cart_fingerprint(b) == "a:1,b:2"

    def test_composition_sensitive(self):
        one = [{"id": "dubai-chocolate", "quantity": 2}]
        other = [
            {"id": "dubai-chocolate", "quantity": 1},
            {"id": "chocolate-strawberries", "quantity": 2},
        ]
        assert cart_fingerprint(one) != cart_fingerprint(other)

    def test_long_cart_is_hashed(self):
        items = [{"id": f"product-with-a-long-slug-{n}", "quantity": n + 1} for n in range(40)]
        fingerprint = cart_fingerprint(items)

        assert fingerprint.startswith("sha256:")
        assert len(fingerprint) <= MAX_FINGERPRINT_LENGTH
        assert fingerprint == cart_fingerprint(list(reversed(items)))


# ============================================================================
# Cart validation
# ============================================================================


class TestCartValidator:
    async def test_catalog_price_replaces_client_price(self, mock_catalog):
        validator = CartValidator(mock_catalog)
        request = CartItemRequest.model_validate(
            {"id": "dubai-chocolate", "quantity": 2, "price": 1, "name": "cheap"}
        )

        cart = await validator.validate([request])

        assert cart.subtotal == 100
        assert cart.items == [
            {"id": "dubai-chocolate", "name": "Dubai Chocolate", "price": 50, "quantity": 2}
        ]

    async def test_subtotal_sums_lines(self, mock_catalog):
        validator = CartValidator(mock_catalog)

        cart = await validator.validate(
            [item("dubai-chocolate", 1), item("chocolate-strawberries", 3)]
        )

        assert cart.subtotal == 50 + 75
        assert cart.total == 125

    async def test_custom_notes_carried(self, mock_catalog):
        validator = CartValidator(mock_catalog)

        cart = await validator.validate(
            [item("bespoke-diamond", 1, custom_notes="Gold leaf, 3 tiers")]
        )

        assert cart.total == 0
        assert cart.items[0]["customNotes"] == "Gold leaf, 3 tiers"

    async def test_name_fallback(self, mock_catalog):
        validator = CartValidator(mock_catalog)

        cart = await validator.validate([item("legacy-7", 1, name="  dubai CHOCOLATE ")])

        assert cart.items[0]["id"] == "dubai-chocolate"
        assert cart.subtotal == 50

    async def test_unknown_product(self, mock_catalog):
        validator = CartValidator(mock_catalog)

        with pytest.raises(ProductNotFoundError) as exc_info:
            await validator.validate([item("dubai-chocolate"), item("gold-bar")])

        assert exc_info.value.code == "PRODUCT_NOT_FOUND"
        assert exc_info.value.identifier == "gold-bar"

    async def test_inactive_product_does_not_resolve(self, mock_catalog):
        validator = CartValidator(mock_catalog)

        with pytest.raises(ProductNotFoundError):
            await validator.validate([item("retired-truffle")])

    async def test_empty_cart(self, mock_catalog):
        with pytest.raises(CheckoutValidationError) as exc_info:
            await CartValidator(mock_catalog).validate([])
        assert exc_info.value.code == "VALIDATION_ERROR"

    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_quantity_must_be_positive(self, mock_catalog, quantity):
        with pytest.raises(CheckoutValidationError):
            await CartValidator(mock_catalog).validate([item("dubai-chocolate", quantity)])
        mock_catalog.get_products_by_ids.assert_not_awaited()

    async def test_large_quantity_accepted(self, mock_catalog):
        cart = await CartValidator(mock_catalog).validate([item("dubai-chocolate", 1001)])

        assert cart.subtotal == 50 * 1001
        assert cart.items[0]["quantity"] == 1001

    async def test_promo_applied(self, mock_catalog, mock_promotions):
        validator = CartValidator(mock_catalog, mock_promotions)

        cart = await validator.validate_with_promo([item("dubai-chocolate", 2)], "sweet10")

        assert cart.discount_amount == 10
        assert cart.promo_code == "SWEET10"
        assert cart.total == 90

    async def test_promo_over_100_percent_clamps_to_zero_total(self, mock_catalog, mock_promotions):
        validator = CartValidator(mock_catalog, mock_promotions)

        cart = await validator.validate_with_promo([item("dubai-chocolate", 1)], "EVERYTHING")

        assert cart.discount_amount == 50
        assert cart.total == 0

    async def test_inactive_promo_ignored(self, mock_catalog, mock_promotions):
        validator = CartValidator(mock_catalog, mock_promotions)

        cart = await validator.validate_with_promo([item("dubai-chocolate", 1)], "EXPIRED")

        assert cart.discount_amount == 0
        assert cart.promo_code is None
        assert cart.total == 50


class TestPreviewPromo:
    async def test_valid_code(self, mock_promotions):
        result = await preview_promo(mock_promotions, "fiveoff", 30)

        assert result.valid is True
        assert result.code == "FIVEOFF"
        assert result.discount_type == "fixed"
        assert result.discount_amount == 5

    async def test_unknown_code_is_not_an_error(self, mock_promotions):
        result = await preview_promo(mock_promotions, "NOPE", 30)

        assert result.valid is False
        assert result.discount_amount == 0
