"""
Coupon Validator

Asks the store whether a coupon code is valid for a subtotal, then checks
locally that the coupon may be used with the current fulfillment type.
The store's coupon info may carry eligibility tags such as ``retirada``,
``somente_delivery`` or ``pickup-only``; no tags means any type.

Version: 1.0.0
"""

import logging
from typing import Any, Iterable

from cafe_orders.core.exceptions import ValidationError
from cafe_orders.schemas import Coupon, FulfillmentType, parse_money
from cafe_orders.services.pricing import round_money

logger = logging.getLogger(__name__)

ELIGIBILITY_KEYS = ("tipo_pedido", "tipos", "elegibilidade")

_TAG_ALIASES = {
    "local": FulfillmentType.DINE_IN,
    "consumo": FulfillmentType.DINE_IN,
    "mesa": FulfillmentType.DINE_IN,
    "dine-in": FulfillmentType.DINE_IN,
    "dine_in": FulfillmentType.DINE_IN,
    "retirada": FulfillmentType.PICKUP,
    "pickup": FulfillmentType.PICKUP,
    "delivery": FulfillmentType.DELIVERY,
    "entrega": FulfillmentType.DELIVERY,
}

_TAG_PREFIXES = ("somente_", "apenas_", "only_")
_TAG_SUFFIXES = ("-only", "_only")


def parse_tag(tag: str):
    """Map one eligibility tag to a fulfillment type, or None if unknown."""
    text = tag.strip().lower()
    for prefix in _TAG_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
    for suffix in _TAG_SUFFIXES:
        if text.endswith(suffix):
            text = text[: -len(suffix)]
    return _TAG_ALIASES.get(text)


def parse_eligibility(info: Any) -> frozenset[FulfillmentType]:
    """Collect eligibility tags from the store's coupon info."""
    if not isinstance(info, dict):
        return frozenset()

    tags: list[str] = []
    for key in ELIGIBILITY_KEYS:
        value = info.get(key)
        if not value:
            continue
        if isinstance(value, str):
            tags.extend(value.split(","))
        elif isinstance(value, Iterable):
            tags.extend(str(item) for item in value)

    eligible = set()
    for tag in tags:
        if not tag.strip():
            continue
        fulfillment_type = parse_tag(tag)
        if fulfillment_type is None:
            logger.warning(f"Ignoring unknown coupon eligibility tag: {tag!r}")
            continue
        eligible.add(fulfillment_type)
    return frozenset(eligible)


def ineligible_message(code: str, coupon: Coupon) -> str:
    labels = ", ".join(sorted(ft.label for ft in coupon.eligibility))
    return f"Coupon {code} is only valid for: {labels}"


def clamp_discount(discount: float, subtotal: float) -> float:
    return round_money(min(max(discount, 0.0), max(subtotal, 0.0)))


class CouponValidator:
    """
    Validates coupon codes through the store gateway.

    Example:
        >>> validator = CouponValidator(gateway)
        >>> coupon = await validator.validate("BEMVINDO10", 40.0, FulfillmentType.PICKUP)
        >>> coupon.discount
        4.0
    """

    def __init__(self, gateway):
        self.gateway = gateway

    async def validate(
        self,
        code: str,
        subtotal: float,
        fulfillment_type: FulfillmentType,
    ) -> Coupon:
        """
        Validate ``code`` for ``subtotal`` and ``fulfillment_type``.

        Returns:
            Coupon with ``0 <= discount <= subtotal``

        Raises:
            ValidationError: Blank code, rejected by the store, or not
                eligible for the fulfillment type
            TransportError: The store could not be reached
        """
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Enter a coupon code")

        response = await self.gateway.validate_coupon(code, subtotal)
        if not isinstance(response, dict) or not response.get("valido"):
            message = (response or {}).get("mensagem") if isinstance(response, dict) else None
            logger.info(f"Coupon {code} rejected: {message}")
            raise ValidationError(message or f"Coupon {code} is not valid")

        coupon = Coupon(
            code=code,
            discount=clamp_discount(parse_money(response.get("valor_calculado")), subtotal),
            eligibility=parse_eligibility(response.get("cupom")),
            message=str(response.get("mensagem") or ""),
        )

        if not coupon.allows(fulfillment_type):
            logger.info(f"Coupon {code} not eligible for {fulfillment_type.value}")
            raise ValidationError(ineligible_message(code, coupon))

        logger.info(f"Coupon {code} applied: -{coupon.discount:.2f}")
        return coupon
