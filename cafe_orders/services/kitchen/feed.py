"""
Kitchen Feed

Operator-side view of the order list. Polls ``getPedidos`` on a fixed
interval, raises a single alert per genuinely new order, and moves
orders through Recebido -> Preparando -> Pronto -> Entregue with at most
one status request in flight per order.

New-order rule:
    After sorting newest first, the newest order triggers an alert when
    its id differs from the last one seen and its status is Recebido.
    The last seen id is updated on every successful poll, whatever the
    status. The first poll only records a baseline unless
    KITCHEN_ALERT_ON_FIRST_POLL is set.

Version: 1.0.0
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from cafe_orders.core.config import Settings, get_settings
from cafe_orders.core.exceptions import StatusTransitionFailure, TransportError, ValidationError
from cafe_orders.schemas import FulfillmentType, OrderRecord, OrderStatus
from cafe_orders.services.kitchen.alerts import NotificationController
from cafe_orders.services.kitchen.scheduler import PeriodicTask

logger = logging.getLogger(__name__)


def parse_orders(rows: Any) -> list[OrderRecord]:
    """Validate ``pedidos`` rows, dropping the ones without an id."""
    if not isinstance(rows, list):
        return []
    orders = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            orders.append(OrderRecord.model_validate(row))
        except PydanticValidationError as e:
            logger.warning(f"Skipping order row: {e.error_count()} error(s)")
    return orders


def newest_first(orders: list[OrderRecord]) -> list[OrderRecord]:
    """Sort by timestamp descending; orders without one go last."""
    return sorted(
        orders,
        key=lambda order: (
            order.timestamp is None,
            -order.timestamp.timestamp() if order.timestamp else 0.0,
        ),
    )


class KitchenFeed:
    """
    Example:
        >>> feed = KitchenFeed(gateway)
        >>> await feed.poll()
        >>> await feed.transition("PED00001", OrderStatus.PREPARING)
        True
    """

    def __init__(
        self,
        gateway,
        controller: Optional[NotificationController] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.controller = controller or NotificationController(
            alert_seconds=self.settings.kitchen_alert_seconds
        )
        self.last_seen_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self._orders: list[OrderRecord] = []
        self._in_flight: set[str] = set()
        self._baseline_taken = False
        self._poll_lock = asyncio.Lock()
        self._task = PeriodicTask(
            self.settings.kitchen_poll_interval_seconds,
            self.poll,
            name="kitchen-feed",
        )

    # =========================================================================
    # POLLING
    # =========================================================================

    async def poll(self) -> bool:
        """
        Refresh the order list.

        Polls never overlap: a refresh started while another is running
        waits for it, so responses are applied in request order.

        Returns:
            True when a new-order alert was raised
        """
        async with self._poll_lock:
            return await self._refresh()

    async def _refresh(self) -> bool:
        try:
            response = await self.gateway.list_orders()
        except TransportError as e:
            self.last_error = e.message
            logger.error(f"Order list refresh failed: {e.message}")
            return False

        if not isinstance(response, dict) or response.get("success") is False:
            message = response.get("error") if isinstance(response, dict) else None
            self.last_error = message or "Store did not return the order list"
            logger.error(f"Order list refresh failed: {self.last_error}")
            return False

        self._orders = newest_first(parse_orders(response.get("pedidos")))
        self.last_error = None

        alerted = False
        if self._orders:
            newest = self._orders[0]
            is_new = newest.order_id != self.last_seen_id
            may_alert = self._baseline_taken or self.settings.kitchen_alert_on_first_poll
            if is_new and newest.status == OrderStatus.RECEIVED and may_alert:
                self.controller.notify(newest)
                alerted = True
            self.last_seen_id = newest.order_id

        self._baseline_taken = True
        logger.debug(f"Polled {len(self._orders)} order(s), newest={self.last_seen_id}")
        return alerted

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    def find(self, order_id: str) -> Optional[OrderRecord]:
        for order in self._orders:
            if order.order_id == order_id:
                return order
        return None

    def is_in_flight(self, order_id: str) -> bool:
        return order_id in self._in_flight

    async def transition(self, order_id: str, new_status: Union[OrderStatus, str]) -> bool:
        """
        Move an order one step forward.

        Returns:
            True when the store confirmed the change; False when the order
            already has a request in flight and this one was ignored

        Raises:
            ValidationError: Unknown order, unknown status, or not the
                single forward step from the displayed status
            StatusTransitionFailure: The store did not confirm the change
        """
        if order_id in self._in_flight:
            logger.debug(f"Order {order_id}: status change already in flight, ignoring")
            return False

        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown status: {new_status}")

        order = self.find(order_id)
        if order is None:
            raise ValidationError(f"Order {order_id} is not on the board")
        if order.status is None or order.status.next_status() != target:
            current = order.status.value if order.status else "unknown"
            raise ValidationError(f"Order {order_id} cannot go from {current} to {target.value}")

        self._in_flight.add(order_id)
        try:
            try:
                response = await self.gateway.update_status(order_id, target.value)
            except TransportError as e:
                raise StatusTransitionFailure(e.message, order_id, target.value) from e
            if not isinstance(response, dict) or not response.get("success"):
                error = response.get("error") if isinstance(response, dict) else None
                raise StatusTransitionFailure(
                    error or "Store did not confirm the status change", order_id, target.value
                )

            logger.info(f"Order {order_id}: {order.status.value} -> {target.value}")
            self.controller.clear()
            # Board still shows the old status until this refresh lands
            await self.poll()
        except StatusTransitionFailure as e:
            logger.error(f"Order {order_id} -> {target.value} failed: {e.message}")
            raise
        finally:
            self._in_flight.discard(order_id)

        return True

    # =========================================================================
    # RENDERING HELPERS
    # =========================================================================

    @property
    def orders(self) -> tuple[OrderRecord, ...]:
        return tuple(self._orders)

    def visible_orders(self, fulfillment_type: Optional[FulfillmentType] = None) -> list[OrderRecord]:
        """Orders for one tab; ``None`` is the "all" tab."""
        if fulfillment_type is None:
            return list(self._orders)
        return [order for order in self._orders if order.fulfillment_type == fulfillment_type]

    def status_counts(self) -> dict[OrderStatus, int]:
        counts = Counter(order.status for order in self._orders if order.status is not None)
        return {status: counts.get(status, 0) for status in OrderStatus}

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
        self.controller.dispose()
