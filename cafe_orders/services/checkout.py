"""
Order Submitter

Turns the cart plus checkout answers into one canonical, frozen order
payload and sends it to the store exactly once per user action.

Flow:
    1. build_payload - validate and freeze totals
    2. submit        - salvarPedido, no retry
    3. checkout      - both of the above, then clear the cart and notify
                       the store for pickup/delivery orders with opt-in

Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cafe_orders.core.config import Settings, get_settings
from cafe_orders.core.exceptions import TransportError, ValidationError, ZoneUnserved
from cafe_orders.schemas import (
    Coupon,
    CustomerInfo,
    FulfillmentType,
    OrderItemSnapshot,
    OrderPayload,
    PaymentMethod,
)
from cafe_orders.services import pricing
from cafe_orders.services.cart import CartLedger
from cafe_orders.services.coupons import clamp_discount, ineligible_message
from cafe_orders.services.delivery_zones import UNSERVED_MESSAGE, ZoneQuote
from cafe_orders.services.notifications import DeliveryOutcome, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    """Result from sending an order to the store."""
    success: bool
    order_id: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CheckoutResult:
    """Submission result plus what happened with the notification."""
    submit: SubmitResult
    payload: Optional[OrderPayload] = None
    notification: Optional[DeliveryOutcome] = None

    @property
    def success(self) -> bool:
        return self.submit.success


def snapshot_items(cart: CartLedger) -> list[OrderItemSnapshot]:
    """Freeze cart lines with their option labels in group order."""
    return [
        OrderItemSnapshot(
            product_id=item.product.id,
            name=item.product.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
            options=tuple(pricing.option_labels(item.product, item.selected_options)),
            note=item.note,
        )
        for item in cart.items
    ]


class OrderSubmitter:
    """
    Builds and submits orders.

    Example:
        >>> submitter = OrderSubmitter(gateway, NotificationDispatcher())
        >>> result = await submitter.checkout(
        ...     cart, FulfillmentType.PICKUP, customer,
        ...     payment_method=PaymentMethod.PIX,
        ... )
        >>> result.submit.order_id
        'PED00042'
    """

    def __init__(
        self,
        gateway,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.settings = settings or get_settings()

    # =========================================================================
    # BUILD
    # =========================================================================

    def build_payload(
        self,
        cart: CartLedger,
        fulfillment_type: FulfillmentType,
        customer: CustomerInfo,
        coupon: Optional[Coupon] = None,
        zone: Optional[ZoneQuote] = None,
        payment_method: PaymentMethod = PaymentMethod.AT_TABLE,
        notes: str = "",
    ) -> OrderPayload:
        """
        Validate checkout input and freeze it into an order payload.

        Raises:
            ValidationError: Empty cart, missing contact data, incomplete
                address, missing table number, ineligible coupon or a
                delivery below the minimum order
            ZoneUnserved: Delivery to a neighborhood that is not served
        """
        if cart.is_empty():
            raise ValidationError("Your cart is empty")

        name = customer.name.strip()
        phone = customer.phone.strip()
        table_number = (customer.table_number or "").strip() or None

        if fulfillment_type in (FulfillmentType.PICKUP, FulfillmentType.DELIVERY):
            if not name:
                raise ValidationError("Please enter your name")
            if not phone:
                raise ValidationError("Please enter your phone number")

        if fulfillment_type == FulfillmentType.DINE_IN and not table_number:
            raise ValidationError("Please enter your table number")

        subtotal = cart.subtotal()
        delivery_fee = 0.0
        zone_name = None
        address = customer.address

        if fulfillment_type == FulfillmentType.DELIVERY:
            if address is None or address.missing_fields():
                raise ValidationError("Incomplete delivery address")
            if zone is None or not zone.served:
                raise ZoneUnserved(
                    zone.message if zone and zone.message else UNSERVED_MESSAGE,
                    neighborhood=address.neighborhood,
                )
            minimum = self.settings.min_delivery_order
            if minimum > 0 and subtotal < minimum:
                raise ValidationError(
                    f"Minimum order for delivery is {minimum:.2f}"
                )
            delivery_fee = pricing.round_money(zone.fee)
            zone_name = zone.zone_name

        discount = 0.0
        coupon_code = None
        if coupon is not None:
            if not coupon.allows(fulfillment_type):
                raise ValidationError(ineligible_message(coupon.code, coupon))
            discount = clamp_discount(coupon.discount, subtotal)
            coupon_code = coupon.code

        total = pricing.round_money(subtotal - discount + delivery_fee)
        is_delivery = fulfillment_type == FulfillmentType.DELIVERY

        payload = OrderPayload(
            fulfillment_type=fulfillment_type,
            customer_name=name or f"Comanda {table_number}",
            customer_phone=phone,
            table_number=table_number if fulfillment_type == FulfillmentType.DINE_IN else None,
            street=address.street if is_delivery else None,
            number=address.number if is_delivery else None,
            complement=(address.complement or None) if is_delivery else None,
            neighborhood=address.neighborhood if is_delivery else None,
            city=(address.city or None) if is_delivery else None,
            reference=(address.reference or None) if is_delivery else None,
            items=tuple(snapshot_items(cart)),
            subtotal=subtotal,
            discount=discount,
            coupon_code=coupon_code,
            delivery_fee=delivery_fee,
            zone_name=zone_name,
            total=total,
            payment_method=payment_method,
            notes=notes.strip(),
        )
        logger.debug(
            f"Built {fulfillment_type.value} order: subtotal={subtotal:.2f} "
            f"discount={discount:.2f} fee={delivery_fee:.2f} total={total:.2f}"
        )
        return payload

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit(self, payload: OrderPayload) -> SubmitResult:
        """Send the payload once. Failures come back as ``success=False``."""
        try:
            response = await self.gateway.save_order(payload.to_wire())
        except TransportError as e:
            logger.error(f"Order submission failed: {e.message}")
            return SubmitResult(success=False, message=e.message)

        if not isinstance(response, dict) or not response.get("success"):
            message = None
            if isinstance(response, dict):
                message = response.get("message") or response.get("error")
            logger.warning(f"Store rejected order: {message}")
            return SubmitResult(success=False, message=message or "Order could not be saved")

        order_id = str(response.get("pedido_id") or "")
        logger.info(f"Order {order_id} submitted ({payload.fulfillment_type.value}, total={payload.total:.2f})")
        return SubmitResult(success=True, order_id=order_id, message="Order received")

    async def checkout(
        self,
        cart: CartLedger,
        fulfillment_type: FulfillmentType,
        customer: CustomerInfo,
        coupon: Optional[Coupon] = None,
        zone: Optional[ZoneQuote] = None,
        payment_method: PaymentMethod = PaymentMethod.AT_TABLE,
        notes: str = "",
    ) -> CheckoutResult:
        """
        Build, submit, and on success clear the cart and notify.

        Dine-in orders never notify. The cart is left untouched when the
        submission fails so the user can retry.

        Raises:
            ValidationError: See ``build_payload``
        """
        payload = self.build_payload(
            cart,
            fulfillment_type,
            customer,
            coupon=coupon,
            zone=zone,
            payment_method=payment_method,
            notes=notes,
        )
        result = await self.submit(payload)
        if not result.success:
            return CheckoutResult(submit=result, payload=payload)

        cart.clear()

        notification = None
        wants_message = (
            fulfillment_type in (FulfillmentType.PICKUP, FulfillmentType.DELIVERY)
            and customer.wants_notification
        )
        if wants_message:
            message = self.dispatcher.compose_message(result.order_id, payload)
            try:
                notification = self.dispatcher.deliver(message, self.settings.store_whatsapp)
            except ValidationError as e:
                logger.error(f"Store messaging number is invalid: {e.message}")

        return CheckoutResult(submit=result, payload=payload, notification=notification)
