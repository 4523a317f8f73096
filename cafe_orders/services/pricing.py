"""
Pricing Engine

Pure functions for unit and line prices. Every money value that is
displayed or submitted goes through ``round_money`` so there is a single
rounding rule (half-up, two places).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from cafe_orders.core.exceptions import ValidationError
from cafe_orders.schemas import Option, Product

_CENT = Decimal("0.01")


def round_money(value: float) -> float:
    """Round to cents, half-up (2.675 -> 2.68)."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def selected_option(product: Product, group_id: str, option_id: str) -> Optional[Option]:
    group = product.find_group(group_id)
    if group is None:
        return None
    return group.find_option(option_id)


def unit_price(product: Product, selected_options: dict[str, str]) -> float:
    """
    Base price plus the surcharge of the option chosen in each group.

    Raises:
        ValidationError: If a selection names an unknown group or option
    """
    price = product.base_price
    for group_id, option_id in selected_options.items():
        option = selected_option(product, group_id, option_id)
        if option is None:
            raise ValidationError(
                f"Option '{option_id}' is not available for {product.name}"
            )
        price += option.surcharge
    return round_money(price)


def line_total(price: float, quantity: int) -> float:
    return round_money(price * quantity)


def option_labels(product: Product, selected_options: dict[str, str]) -> list[str]:
    """Labels of the selected options, in the product's group order."""
    labels = []
    for group in product.option_groups:
        option_id = selected_options.get(group.id)
        if not option_id:
            continue
        option = group.find_option(option_id)
        if option is not None:
            labels.append(option.label)
    return labels
