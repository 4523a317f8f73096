"""
Order payload construction and the checkout flow.
"""

import pytest

from cafe_orders.core.config import Settings
from cafe_orders.core.exceptions import ValidationError, ZoneUnserved
from cafe_orders.schemas import (
    Coupon,
    CustomerInfo,
    DeliveryAddress,
    FulfillmentType,
    OrderStatus,
    PaymentMethod,
)
from cafe_orders.services.checkout import OrderSubmitter
from cafe_orders.services.delivery_zones import ZoneQuote, parse_zones, resolve
from cafe_orders.services.notifications import DeliveryStatus, NotificationDispatcher


class RecordingOpener:

    def __init__(self, result=True):
        self.result = result
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        return self.result


@pytest.fixture
def opener():
    return RecordingOpener()


@pytest.fixture
def submitter(gateway, opener, settings):
    return OrderSubmitter(gateway, NotificationDispatcher(opener=opener), settings)


@pytest.fixture
def filled_cart(cart, espresso, latte):
    cart.add_item(espresso, quantity=2)
    cart.add_item(latte, {"tamanho": "g"})
    return cart


@pytest.fixture
def served_zone(zone_rows):
    return resolve("Jardim América", parse_zones(zone_rows))


# ============================================================================
# BUILD PAYLOAD
# ============================================================================

class TestBuildPayload:

    def test_delivery_totals_are_frozen(self, submitter, filled_cart, delivery_customer, served_zone):
        coupon = Coupon(code="BEMVINDO10", discount=2.10)
        payload = submitter.build_payload(
            filled_cart,
            FulfillmentType.DELIVERY,
            delivery_customer,
            coupon=coupon,
            zone=served_zone,
            payment_method=PaymentMethod.PIX,
        )

        assert payload.subtotal == 21.00
        assert payload.discount == 2.10
        assert payload.delivery_fee == 7.50
        assert payload.total == 26.40
        assert payload.zone_name == "JARDIM AMERICA"
        assert payload.status == OrderStatus.RECEIVED

        filled_cart.clear()
        assert payload.subtotal == 21.00
        assert len(payload.items) == 2

    def test_snapshots_carry_option_labels(self, submitter, filled_cart, pickup_customer):
        payload = submitter.build_payload(filled_cart, FulfillmentType.PICKUP, pickup_customer)

        latte = payload.items[1]
        assert latte.name == "Latte"
        assert latte.options == ("Grande",)
        assert latte.unit_price == 10.00

    def test_wire_shape_uses_store_column_names(self, submitter, filled_cart, delivery_customer, served_zone):
        wire = submitter.build_payload(
            filled_cart, FulfillmentType.DELIVERY, delivery_customer, zone=served_zone,
            payment_method=PaymentMethod.CASH,
        ).to_wire()

        assert wire["tipo"] == "delivery"
        assert wire["cliente"] == "Bruno Souza"
        assert wire["formaPagamento"] == "dinheiro"
        assert wire["taxa_entrega"] == 7.5
        assert wire["bairro"] == "Jardim América"
        assert wire["status"] == "Recebido"
        assert wire["itens"][0]["produto_id"] == "esp"
        assert wire["itens"][0]["precoTotal"] == 11.0
        assert "comandaNumero" not in wire

    def test_pickup_ignores_zone(self, submitter, filled_cart, pickup_customer):
        payload = submitter.build_payload(
            filled_cart, FulfillmentType.PICKUP, pickup_customer, zone=ZoneQuote.unserved(),
        )
        assert payload.delivery_fee == 0.0
        assert payload.total == 21.00

    def test_empty_cart(self, submitter, cart, pickup_customer):
        with pytest.raises(ValidationError, match="empty"):
            submitter.build_payload(cart, FulfillmentType.PICKUP, pickup_customer)

    def test_pickup_needs_name_and_phone(self, submitter, filled_cart):
        with pytest.raises(ValidationError):
            submitter.build_payload(filled_cart, FulfillmentType.PICKUP, CustomerInfo(name="Ana"))

    def test_incomplete_address(self, submitter, filled_cart, served_zone):
        customer = CustomerInfo(
            name="Bruno", phone="11987654321",
            address=DeliveryAddress(street="Rua A", neighborhood="Centro"),
        )
        with pytest.raises(ValidationError, match="Incomplete delivery address"):
            submitter.build_payload(filled_cart, FulfillmentType.DELIVERY, customer, zone=served_zone)

    def test_unserved_zone(self, submitter, filled_cart, delivery_customer):
        with pytest.raises(ZoneUnserved) as info:
            submitter.build_payload(
                filled_cart, FulfillmentType.DELIVERY, delivery_customer, zone=ZoneQuote.unserved(),
            )
        assert info.value.neighborhood == "Jardim América"

    def test_dine_in_needs_table_number(self, submitter, filled_cart):
        with pytest.raises(ValidationError, match="table"):
            submitter.build_payload(filled_cart, FulfillmentType.DINE_IN, CustomerInfo())

    def test_dine_in_without_name_uses_table(self, submitter, filled_cart):
        payload = submitter.build_payload(
            filled_cart, FulfillmentType.DINE_IN, CustomerInfo(table_number="12"),
        )
        assert payload.customer_name == "Comanda 12"
        assert payload.table_number == "12"
        assert payload.payment_method == PaymentMethod.AT_TABLE

    def test_ineligible_coupon_is_rechecked(self, submitter, filled_cart, pickup_customer):
        coupon = Coupon(code="ENTREGA", discount=3, eligibility=frozenset({FulfillmentType.DELIVERY}))
        with pytest.raises(ValidationError):
            submitter.build_payload(filled_cart, FulfillmentType.PICKUP, pickup_customer, coupon=coupon)

    def test_coupon_discount_clamped_to_subtotal(self, submitter, cart, espresso, pickup_customer):
        cart.add_item(espresso)
        payload = submitter.build_payload(
            cart, FulfillmentType.PICKUP, pickup_customer, coupon=Coupon(code="BIG", discount=50),
        )
        assert payload.discount == 5.50
        assert payload.total == 0.0

    def test_minimum_delivery_order(self, gateway, opener, cart, espresso, delivery_customer, served_zone):
        submitter = OrderSubmitter(
            gateway, NotificationDispatcher(opener=opener), Settings(min_delivery_order=30),
        )
        cart.add_item(espresso)
        with pytest.raises(ValidationError, match="Minimum order"):
            submitter.build_payload(cart, FulfillmentType.DELIVERY, delivery_customer, zone=served_zone)


# ============================================================================
# SUBMIT & CHECKOUT
# ============================================================================

@pytest.mark.asyncio
class TestCheckout:

    async def test_pickup_checkout_clears_cart_and_notifies(
        self, submitter, gateway, opener, filled_cart, pickup_customer,
    ):
        result = await submitter.checkout(
            filled_cart, FulfillmentType.PICKUP, pickup_customer, payment_method=PaymentMethod.CARD,
        )

        assert result.success
        assert result.submit.order_id == "PED00001"
        assert filled_cart.is_empty()
        assert len(gateway.saved) == 1
        assert result.notification.status == DeliveryStatus.OPENED
        assert opener.urls[0].startswith("https://wa.me/5511999999999?text=")

    async def test_dine_in_never_notifies(self, submitter, opener, filled_cart):
        result = await submitter.checkout(
            filled_cart, FulfillmentType.DINE_IN, CustomerInfo(table_number="4"),
        )
        assert result.success
        assert result.notification is None
        assert opener.urls == []

    async def test_opt_out_skips_notification(self, submitter, opener, filled_cart):
        customer = CustomerInfo(name="Ana", phone="11987654321", wants_notification=False)
        result = await submitter.checkout(filled_cart, FulfillmentType.PICKUP, customer)

        assert result.success
        assert result.notification is None
        assert opener.urls == []

    async def test_blocked_link_returns_fallback(self, gateway, settings, filled_cart, pickup_customer):
        submitter = OrderSubmitter(gateway, NotificationDispatcher(opener=RecordingOpener(False)), settings)
        result = await submitter.checkout(filled_cart, FulfillmentType.PICKUP, pickup_customer)

        assert result.success
        assert result.notification.status == DeliveryStatus.BLOCKED
        assert result.notification.fallback is not None
        result.notification.fallback.dismiss()

    async def test_transport_failure_keeps_cart(self, submitter, gateway, opener, filled_cart, pickup_customer):
        gateway.fail.add("salvarPedido")
        result = await submitter.checkout(filled_cart, FulfillmentType.PICKUP, pickup_customer)

        assert not result.success
        assert result.submit.message == "store unreachable"
        assert filled_cart.item_count() == 3
        assert opener.urls == []

    async def test_store_rejection(self, submitter, gateway, filled_cart, pickup_customer):
        gateway.responses["salvarPedido"] = {"success": False, "message": "Sheet locked"}
        result = await submitter.checkout(filled_cart, FulfillmentType.PICKUP, pickup_customer)

        assert not result.success
        assert result.submit.message == "Sheet locked"
        assert not filled_cart.is_empty()

    async def test_validation_errors_make_no_call(self, submitter, gateway, cart, pickup_customer):
        with pytest.raises(ValidationError):
            await submitter.checkout(cart, FulfillmentType.PICKUP, pickup_customer)
        assert gateway.saved == []
