"""
Cart revalidation and price calculation.

Client carts are hints. Every line is resolved against the catalog and the
catalog's name and price replace whatever the client sent. Amounts are whole
currency units throughout; conversion to processor minor units happens only
at the payment boundary via ``to_minor_units``.
"""

import hashlib
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from dulceria.core.logging import get_logger
from dulceria.database.models.product import Product
from dulceria.database.models.promo_code import DiscountType, PromoCode
from dulceria.schemas.checkout import CartItemRequest, PromoValidationResponse
from dulceria.services.catalog.repository import CatalogRepository
from dulceria.services.checkout.errors import (
    CheckoutValidationError,
    ProductNotFoundError,
)
from dulceria.services.promotions.repository import PromoCodeRepository

logger = get_logger(__name__)

# Processor metadata values are capped at 500 characters.
MAX_FINGERPRINT_LENGTH = 500


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(amount: int) -> int:
    """Convert whole currency units to processor minor units."""
    return round_half_up(Decimal(amount) * 100)


def compute_discount(subtotal: int, discount_type: str, discount_value: int) -> int:
    """
    Compute a promo discount clamped to ``[0, subtotal]``.

    Args:
        subtotal: Cart subtotal in whole currency units
        discount_type: ``percentage`` or ``fixed``
        discount_value: Percent for percentage codes, currency units for fixed

    Raises:
        ValueError: If the discount type is unknown
    """
    kind = DiscountType.from_string(discount_type)

    if kind is DiscountType.PERCENTAGE:
        discount = round_half_up(Decimal(subtotal) * Decimal(discount_value) / 100)
    else:
        discount = discount_value

    return max(0, min(discount, subtotal))


def cart_fingerprint(items: list[dict[str, Any]]) -> str:
    """
    Build the order-insensitive fingerprint of a revalidated cart.

    Sorted ``id:quantity`` pairs joined with commas. Carts whose fingerprint
    would not fit in processor metadata are hashed instead.
    """
    pairs = sorted(f"{item['id']}:{item['quantity']}" for item in items)
    fingerprint = ",".join(pairs)

    if len(fingerprint) > MAX_FINGERPRINT_LENGTH:
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
        return f"sha256:{digest}"

    return fingerprint


class ValidatedCart:
    """
    A cart whose every line has been resolved against the catalog.

    Attributes:
        items: Line items ``{id, name, price, quantity, customNotes?}``
        subtotal: Sum of price x quantity
        discount_amount: Promo discount applied to the subtotal
        promo_code: Normalized promo code, if one was applied
    """

    def __init__(self, items: list[dict[str, Any]], subtotal: int):
        self.items = items
        self.subtotal = subtotal
        self.discount_amount = 0
        self.promo_code: Optional[str] = None

    @property
    def total(self) -> int:
        return self.subtotal - self.discount_amount

    @property
    def fingerprint(self) -> str:
        return cart_fingerprint(self.items)

    def apply_discount(self, discount_amount: int, promo_code: Optional[str]) -> None:
        """Apply a discount, clamping it to the subtotal."""
        self.discount_amount = max(0, min(discount_amount, self.subtotal))
        self.promo_code = promo_code

    def apply_promo(self, promo: PromoCode) -> None:
        self.apply_discount(
            compute_discount(self.subtotal, promo.discount_type, promo.discount_value),
            promo.code,
        )


class CartValidator:
    """
    Resolves client carts against the catalog.

    Lines are resolved by product id first. Lines whose id is unknown fall
    back to an exact, case-insensitive match on the display name, which
    keeps carts saved before products were given slug ids working.
    Inactive products never resolve.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        promotions: Optional[PromoCodeRepository] = None,
    ):
        self.catalog = catalog
        self.promotions = promotions

    async def validate(self, items: list[CartItemRequest]) -> ValidatedCart:
        """
        Revalidate a cart.

        Raises:
            CheckoutValidationError: If the cart is empty or a quantity is invalid
            ProductNotFoundError: If a line does not resolve to an active product
        """
        if not items:
            raise CheckoutValidationError("Cart is empty")

        for index, item in enumerate(items):
            if item.quantity < 1:
                raise CheckoutValidationError(
                    f"Invalid quantity for {item.id}: {item.quantity}",
                    line=index,
                    quantity=item.quantity,
                )

        by_id = await self.catalog.get_products_by_ids([item.id for item in items])

        validated: list[dict[str, Any]] = []
        subtotal = 0

        for item in items:
            product = by_id.get(item.id)
            if product is None:
                product = await self.catalog.find_product_by_name(item.name or item.id)

            if product is None or not product.active:
                logger.warning(
                    "Cart line did not resolve to an active product",
                    product_id=item.id,
                    name=item.name,
                )
                raise ProductNotFoundError(item.id)

            validated.append(self._line_item(product, item))
            subtotal += product.price * item.quantity

        logger.debug(
            "Cart revalidated",
            lines=len(validated),
            subtotal=subtotal,
        )
        return ValidatedCart(validated, subtotal)

    async def validate_with_promo(
        self,
        items: list[CartItemRequest],
        promo_code: Optional[str],
    ) -> ValidatedCart:
        """
        Revalidate a cart and apply an optional promo code.

        Unknown and inactive codes are ignored.
        """
        cart = await self.validate(items)

        if promo_code and self.promotions is not None:
            promo = await self.promotions.get_active_by_code(promo_code)
            if promo is None:
                logger.info("Promo code ignored", promo_code=promo_code)
            else:
                cart.apply_promo(promo)
                logger.info(
                    "Promo code applied",
                    promo_code=promo.code,
                    discount_amount=cart.discount_amount,
                )

        return cart

    @staticmethod
    def _line_item(product: Product, item: CartItemRequest) -> dict[str, Any]:
        line: dict[str, Any] = {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "quantity": item.quantity,
        }
        if item.custom_notes:
            line["customNotes"] = item.custom_notes
        return line


async def preview_promo(
    promotions: PromoCodeRepository,
    code: str,
    subtotal: int,
) -> PromoValidationResponse:
    """Report whether a code is usable and the discount it would give."""
    promo = await promotions.get_active_by_code(code)
    if promo is None:
        return PromoValidationResponse(valid=False)

    return PromoValidationResponse(
        valid=True,
        code=promo.code,
        discount_type=promo.discount_type,
        discount_value=promo.discount_value,
        discount_amount=compute_discount(
            subtotal, promo.discount_type, promo.discount_value
        ),
    )
