"""
Cart Ledger

Owns the customer's line items. Prices come from the pricing engine;
identical items (same product, same option selection, same note) merge
instead of duplicating. Every mutation writes a full snapshot to durable
storage, and a corrupt snapshot on load just means an empty cart.

Version: 1.0.0
"""

import json
import logging
from typing import Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from cafe_orders.core.config import get_settings
from cafe_orders.core.exceptions import ValidationError
from cafe_orders.schemas import CartItem, Product, identity_key
from cafe_orders.services import pricing
from cafe_orders.services.storage import CartStorage, MemoryStorage, dumps

logger = logging.getLogger(__name__)

_SNAPSHOT_ADAPTER = TypeAdapter(list[CartItem])


def check_selection(product: Product, selected_options: dict[str, str]) -> None:
    """
    Reject a product/selection pair that cannot go into the cart.

    Raises:
        ValidationError: Product unavailable, required group left empty,
            or a selection naming an unknown group/option
    """
    if not product.available:
        raise ValidationError(f"{product.name} is currently unavailable")

    missing = [
        group.label
        for group in product.option_groups
        if group.required and not selected_options.get(group.id)
    ]
    if missing:
        raise ValidationError(
            f"Please choose: {', '.join(missing)}"
        )

    for group_id, option_id in selected_options.items():
        if pricing.selected_option(product, group_id, option_id) is None:
            raise ValidationError(
                f"Option '{option_id}' is not available for {product.name}"
            )


class CartLedger:
    """
    Ordered list of cart items with persistence on every mutation.

    Example:
        >>> cart = CartLedger(MemoryStorage())
        >>> cart.add_item(espresso, quantity=2)
        >>> cart.subtotal()
        11.0
    """

    def __init__(self, storage: Optional[CartStorage] = None, storage_key: Optional[str] = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.storage_key = storage_key or get_settings().cart_storage_key
        self._items: list[CartItem] = []

    @classmethod
    def restore(cls, storage: CartStorage, storage_key: Optional[str] = None) -> "CartLedger":
        """Build a ledger and load its last snapshot."""
        ledger = cls(storage, storage_key)
        ledger.load()
        return ledger

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items)

    def subtotal(self) -> float:
        return pricing.round_money(sum(item.line_total for item in self._items))

    def item_count(self) -> int:
        """Total units across all lines."""
        return sum(item.quantity for item in self._items)

    def is_empty(self) -> bool:
        return not self._items

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(
        self,
        product: Product,
        selected_options: Optional[dict[str, str]] = None,
        note: str = "",
        quantity: int = 1,
    ) -> CartItem:
        """
        Add a product, merging with an identical line when one exists.

        Returns:
            The new or merged cart line

        Raises:
            ValidationError: See ``check_selection``; also quantity < 1
        """
        selected = {k: v for k, v in (selected_options or {}).items() if v}
        note = (note or "").strip()
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        check_selection(product, selected)

        price = pricing.unit_price(product, selected)
        key = identity_key(product.id, selected, note)

        for index, existing in enumerate(self._items):
            if existing.identity() == key:
                merged_quantity = existing.quantity + quantity
                merged = existing.model_copy(update={
                    "product": product,
                    "quantity": merged_quantity,
                    "unit_price": price,
                    "line_total": pricing.line_total(price, merged_quantity),
                })
                self._items[index] = merged
                logger.debug(f"Merged {product.name} into line {index} (qty={merged_quantity})")
                self._persist()
                return merged

        item = CartItem(
            product=product,
            quantity=quantity,
            selected_options=selected,
            note=note,
            unit_price=price,
            line_total=pricing.line_total(price, quantity),
        )
        self._items.append(item)
        logger.debug(f"Added {quantity}x {product.name} at {price:.2f}")
        self._persist()
        return item

    def update_quantity(self, index: int, quantity: int) -> Optional[CartItem]:
        """
        Set a line's quantity; anything below 1 removes the line.

        Returns:
            The updated line, or None when it was removed
        """
        self._check_index(index)
        if quantity < 1:
            self.remove_item(index)
            return None

        item = self._items[index]
        updated = item.model_copy(update={
            "quantity": quantity,
            "line_total": pricing.line_total(item.unit_price, quantity),
        })
        self._items[index] = updated
        self._persist()
        return updated

    def remove_item(self, index: int) -> CartItem:
        self._check_index(index)
        removed = self._items.pop(index)
        self._persist()
        return removed

    def clear(self) -> None:
        self._items = []
        self._persist()

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._items):
            raise ValidationError(f"No cart line at position {index}")

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _persist(self) -> None:
        snapshot = [item.model_dump(mode="json") for item in self._items]
        self.storage.write(self.storage_key, dumps(snapshot))

    def load(self) -> None:
        """
        Replace the in-memory lines with the stored snapshot.

        A missing, unparseable or invalid snapshot leaves the cart empty.
        """
        self._items = []
        raw = self.storage.read(self.storage_key)
        if not raw:
            return
        try:
            self._items = _SNAPSHOT_ADAPTER.validate_python(json.loads(raw))
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Discarding corrupt cart snapshot: {e.__class__.__name__}")
            self._items = []
            return
        logger.info(f"Restored cart with {len(self._items)} line(s)")
