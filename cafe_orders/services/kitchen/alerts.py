"""
New-order alerts for the kitchen screen.

``NotificationController`` owns every alert resource (sound, banner,
OS notification) and the timer that clears them, so there is one place
to create, replace and dispose them.
"""

import asyncio
import logging
from typing import Iterable, Optional, Protocol

from cafe_orders.core.config import get_settings
from cafe_orders.schemas import OrderRecord

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    """One alert channel (speaker, banner, OS notification center)."""

    def play_sound(self) -> None:
        ...

    def show_banner(self, text: str) -> None:
        ...

    def os_alert(self, title: str, body: str) -> None:
        ...

    def clear_banner(self) -> None:
        ...


class LoggingAlertSink:
    """Sink for headless kitchens: every alert becomes a log line."""

    def play_sound(self) -> None:
        logger.debug("Alert sound")

    def show_banner(self, text: str) -> None:
        logger.info(f"Banner: {text}")

    def os_alert(self, title: str, body: str) -> None:
        logger.info(f"{title}: {body}")

    def clear_banner(self) -> None:
        logger.debug("Banner cleared")


def alert_text(order: OrderRecord) -> tuple[str, str]:
    """Title and body of the alert for ``order``."""
    kind = order.fulfillment_type.label if order.fulfillment_type else "Pedido"
    who = order.customer_name or (f"Comanda {order.table_number}" if order.table_number else "cliente")
    return f"Novo pedido #{order.order_id}", f"{kind} - {who}"


class NotificationController:
    """
    Raises and clears the new-order alert.

    A second ``notify`` while an alert is up replaces it and restarts the
    auto-clear timer. Sink failures are logged and never reach the feed.
    """

    def __init__(
        self,
        sinks: Optional[Iterable[AlertSink]] = None,
        alert_seconds: Optional[float] = None,
    ):
        self.sinks = list(sinks) if sinks is not None else [LoggingAlertSink()]
        self.alert_seconds = (
            alert_seconds if alert_seconds is not None else get_settings().kitchen_alert_seconds
        )
        self.active: Optional[OrderRecord] = None
        self.notified_count = 0
        self._timer: Optional[asyncio.TimerHandle] = None

    def notify(self, order: OrderRecord) -> None:
        self._cancel_timer()
        self.active = order
        self.notified_count += 1

        title, body = alert_text(order)
        for sink in self.sinks:
            try:
                sink.play_sound()
                sink.show_banner(f"{title} - {body}")
                sink.os_alert(title, body)
            except Exception as e:
                logger.warning(f"Alert sink {sink.__class__.__name__} failed: {e}")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._timer = loop.call_later(self.alert_seconds, self.clear)
        logger.info(f"New order alert: {order.order_id}")

    def clear(self) -> None:
        self._cancel_timer()
        if self.active is None:
            return
        self.active = None
        for sink in self.sinks:
            try:
                sink.clear_banner()
            except Exception as e:
                logger.warning(f"Alert sink {sink.__class__.__name__} failed to clear: {e}")

    def dispose(self) -> None:
        """Release the timer and take the banner down."""
        self.clear()
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
