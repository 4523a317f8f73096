"""
Notification Dispatcher

Builds the order summary message and the messaging deep link that sends
it to the store's number. Opening the link may be blocked (pop-up
blockers, headless sessions); in that case the caller gets a manual
fallback that dismisses itself after a timeout.

Message layout:
    *NOVO PEDIDO #<id> - <store>*
    customer, fulfillment block, items, notes, payment, totals

Version: 1.0.0
"""

import asyncio
import logging
import re
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote

from cafe_orders.core.config import get_settings
from cafe_orders.core.exceptions import ValidationError
from cafe_orders.schemas import FulfillmentType, OrderPayload

logger = logging.getLogger(__name__)

LinkOpener = Callable[[str], bool]


def format_brl(value: float) -> str:
    """Format money the pt-BR way: 1234.5 -> 'R$ 1.234,50'."""
    text = f"{value:,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


# =============================================================================
# DELIVERY OUTCOME
# =============================================================================

class DeliveryStatus(str, Enum):
    OPENED = "opened"
    BLOCKED = "blocked"


class ManualFallback:
    """
    Manual "open the link" affordance shown when the deep link was blocked.

    Dismisses itself after ``timeout`` seconds when created inside a
    running event loop. ``open()`` and ``dismiss()`` cancel the timer.
    """

    def __init__(
        self,
        url: str,
        opener: Optional[LinkOpener] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url
        self.opener = opener or webbrowser.open
        self.timeout = timeout if timeout is not None else get_settings().fallback_timeout_seconds
        self.dismissed = False
        self._timer: Optional[asyncio.TimerHandle] = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None and self.timeout > 0:
            self._timer = loop.call_later(self.timeout, self._expire)

    @property
    def visible(self) -> bool:
        return not self.dismissed

    def _expire(self) -> None:
        self._timer = None
        self.dismissed = True
        logger.info("Manual messaging fallback auto-dismissed")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def open(self) -> bool:
        """User asked to open the link by hand."""
        self._cancel_timer()
        self.dismissed = True
        try:
            return bool(self.opener(self.url))
        except Exception as e:
            logger.warning(f"Manual open failed: {e}")
            return False

    def dismiss(self) -> None:
        self._cancel_timer()
        self.dismissed = True


@dataclass
class DeliveryOutcome:
    """Result of handing the message to the messaging app."""
    status: DeliveryStatus
    url: str
    fallback: Optional[ManualFallback] = field(default=None, repr=False)

    @property
    def opened(self) -> bool:
        return self.status == DeliveryStatus.OPENED


# =============================================================================
# DISPATCHER
# =============================================================================

class NotificationDispatcher:
    """
    Composes order messages and opens the messaging deep link.

    Example:
        >>> dispatcher = NotificationDispatcher(opener=lambda url: True)
        >>> outcome = dispatcher.deliver("hello", "(11) 98765-4321")
        >>> outcome.url
        'https://wa.me/5511987654321?text=hello'
    """

    def __init__(
        self,
        opener: Optional[LinkOpener] = None,
        store_name: Optional[str] = None,
        country_code: Optional[str] = None,
        messaging_host: Optional[str] = None,
        fallback_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.opener = opener or webbrowser.open
        self.store_name = store_name or settings.store_name
        self.country_code = country_code or settings.country_code
        self.messaging_host = messaging_host or settings.messaging_host
        self.fallback_timeout = (
            fallback_timeout if fallback_timeout is not None else settings.fallback_timeout_seconds
        )

    # =========================================================================
    # MESSAGE
    # =========================================================================

    def compose_message(self, order_id: str, order: OrderPayload) -> str:
        """Deterministic order summary; same input, same text."""
        lines = [f"*NOVO PEDIDO #{order_id} - {self.store_name}*", ""]

        lines.append(f"*Cliente:* {order.customer_name}")
        if order.customer_phone:
            lines.append(f"*WhatsApp:* {order.customer_phone}")
        lines.extend(self._fulfillment_lines(order))

        lines.append("")
        lines.append("*ITENS:*")
        for item in order.items:
            options = f" ({', '.join(item.options)})" if item.options else ""
            lines.append(
                f"{item.quantity}x {item.name}{options} - {format_brl(item.line_total)}"
                f" ({format_brl(item.unit_price)} cada)"
            )
            if item.note:
                lines.append(f"   Obs: {item.note}")

        lines.append("")
        if order.notes:
            lines.append(f"*Observações:* {order.notes}")
        lines.append(f"*Forma de Pagamento:* {order.payment_method.label}")

        lines.append("")
        lines.append(f"*Subtotal:* {format_brl(order.subtotal)}")
        if order.discount > 0:
            coupon = f" ({order.coupon_code})" if order.coupon_code else ""
            lines.append(f"*Desconto{coupon}:* -{format_brl(order.discount)}")
        if order.delivery_fee > 0:
            lines.append(f"*Taxa de entrega:* {format_brl(order.delivery_fee)}")
        lines.append(f"*TOTAL:* {format_brl(order.total)}")

        return "\n".join(lines)

    @staticmethod
    def _fulfillment_lines(order: OrderPayload) -> list[str]:
        if order.fulfillment_type == FulfillmentType.DINE_IN:
            return [
                f"*Comanda:* {order.table_number or '-'}",
                f"*Tipo:* {order.fulfillment_type.label}",
            ]
        if order.fulfillment_type == FulfillmentType.PICKUP:
            return [f"*Tipo:* {order.fulfillment_type.label}"]

        address = f"{order.street}, {order.number}"
        if order.complement:
            address += f" - {order.complement}"
        lines = [f"*Endereço:* {address}"]
        neighborhood = order.zone_name or order.neighborhood
        if neighborhood:
            lines.append(f"*Bairro:* {neighborhood}")
        lines.append(f"*Referência:* {order.reference or 'Não informada'}")
        lines.append(f"*Tipo:* {order.fulfillment_type.label}")
        return lines

    # =========================================================================
    # LINK
    # =========================================================================

    def normalize_phone(self, raw: str) -> str:
        """
        Turn a typed phone number into an MSISDN.

        - country-coded numbers (12 or 13 digits) are kept
        - a leading trunk zero is dropped
        - 10 or 11 digit national numbers get the country code
        - anything else gets the country code as a best effort

        Raises:
            ValidationError: No digits at all
        """
        digits = re.sub(r"\D", "", raw or "")
        if not digits:
            raise ValidationError("Phone number is required")

        code = self.country_code
        if digits.startswith(code) and len(digits) in (len(code) + 10, len(code) + 11):
            return digits
        if digits.startswith("0") and len(digits) in (11, 12):
            digits = digits[1:]
        if len(digits) not in (10, 11):
            logger.warning(f"Unusual phone number length ({len(digits)} digits)")
        return code + digits

    def build_link(self, message: str, phone: str) -> str:
        return f"https://{self.messaging_host}/{phone}?text={quote(message, safe='')}"

    def deliver(self, message: str, raw_phone: str) -> DeliveryOutcome:
        """
        Open the deep link for ``message``.

        A blocked or failing opener is not an error: the outcome carries a
        ``ManualFallback`` instead.

        Raises:
            ValidationError: ``raw_phone`` has no digits
        """
        url = self.build_link(message, self.normalize_phone(raw_phone))
        try:
            opened = bool(self.opener(url))
        except Exception as e:
            logger.warning(f"Opening messaging link failed: {e}")
            opened = False

        if opened:
            logger.info("Messaging link opened")
            return DeliveryOutcome(status=DeliveryStatus.OPENED, url=url)

        logger.info("Messaging link blocked, offering manual fallback")
        return DeliveryOutcome(
            status=DeliveryStatus.BLOCKED,
            url=url,
            fallback=ManualFallback(url, opener=self.opener, timeout=self.fallback_timeout),
        )
