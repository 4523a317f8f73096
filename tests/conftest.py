"""
Shared fixtures: sample menu, an in-memory store gateway and settings.
"""

from typing import Any, Optional

import pytest

from cafe_orders.core.config import Settings
from cafe_orders.core.exceptions import TransportError
from cafe_orders.schemas import CustomerInfo, DeliveryAddress, Product
from cafe_orders.services.cart import CartLedger
from cafe_orders.services.gateway.base import BaseGateway
from cafe_orders.services.storage import MemoryStorage


class FakeGateway(BaseGateway):
    """
    In-memory store double.

    ``orders`` is what getPedidos returns; ``fail`` names actions that raise
    TransportError; ``responses`` overrides the reply of an action.
    """

    def __init__(self):
        self.zones: list[dict[str, Any]] = []
        self.orders: list[dict[str, Any]] = []
        self.coupon_reply: dict[str, Any] = {"valido": False, "mensagem": "Coupon not found"}
        self.saved: list[dict[str, Any]] = []
        self.status_calls: list[tuple[str, str]] = []
        self.coupon_calls: list[tuple[str, float]] = []
        self.fail: set[str] = set()
        self.responses: dict[str, Any] = {}
        self.next_id = 1

    @property
    def provider_name(self) -> str:
        return "fake"

    def _maybe_fail(self, action: str) -> Optional[Any]:
        if action in self.fail:
            raise TransportError("store unreachable", action=action)
        return self.responses.get(action)

    async def get_zones(self):
        override = self._maybe_fail("getBairros")
        return override if override is not None else list(self.zones)

    async def list_orders(self):
        override = self._maybe_fail("getPedidos")
        if override is not None:
            return override
        return {"success": True, "pedidos": [dict(order) for order in self.orders]}

    async def save_order(self, payload):
        override = self._maybe_fail("salvarPedido")
        if override is not None:
            return override
        order_id = f"PED{self.next_id:05d}"
        self.next_id += 1
        self.saved.append(payload)
        return {"success": True, "pedido_id": order_id}

    async def update_status(self, order_id, new_status):
        self.status_calls.append((order_id, new_status))
        override = self._maybe_fail("atualizarStatus")
        if override is not None:
            return override
        for order in self.orders:
            if order["pedido_id"] == order_id:
                order["status"] = new_status
                return {"success": True}
        return {"success": False, "error": "not found"}

    async def validate_coupon(self, code, subtotal):
        self.coupon_calls.append((code, subtotal))
        override = self._maybe_fail("validarCupom")
        return override if override is not None else dict(self.coupon_reply)

    async def health_check(self) -> bool:
        return "getBairros" not in self.fail


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_name="Roast Coffee",
        store_whatsapp="(11) 99999-9999",
        kitchen_alert_seconds=10,
        kitchen_poll_interval_seconds=10,
    )


@pytest.fixture
def espresso() -> Product:
    return Product(id="esp", name="Espresso", base_price=5.50)


@pytest.fixture
def latte() -> Product:
    return Product.model_validate({
        "produto_id": "lat",
        "nome": "Latte",
        "preco": "8,00",
        "opcoes": [
            {
                "id": "tamanho",
                "label": "Tamanho",
                "required": True,
                "options": [
                    {"id": "p", "label": "Pequeno", "surcharge": 0},
                    {"id": "g", "label": "Grande", "surcharge": 2.0},
                ],
            },
            {
                "id": "leite",
                "label": "Leite",
                "options": [
                    {"id": "integral", "label": "Integral"},
                    {"id": "aveia", "label": "Aveia", "surcharge": 1.5},
                ],
            },
        ],
    })


@pytest.fixture
def sold_out() -> Product:
    return Product(id="tor", name="Torta", base_price=12.0, available=False)


@pytest.fixture
def cart() -> CartLedger:
    return CartLedger(MemoryStorage())


@pytest.fixture
def pickup_customer() -> CustomerInfo:
    return CustomerInfo(name="Ana Silva", phone="(11) 98765-4321")


@pytest.fixture
def delivery_customer() -> CustomerInfo:
    return CustomerInfo(
        name="Bruno Souza",
        phone="11987654321",
        address=DeliveryAddress(
            street="Rua das Flores",
            number="120",
            neighborhood="Jardim América",
            city="São Paulo",
        ),
    )


@pytest.fixture
def zone_rows() -> list[dict[str, Any]]:
    return [
        {"Bairro": "Centro", "taxa_entrega": 5, "tempo_min": 20, "tempo_max": 35, "ativo": True},
        {"Bairro": "JARDIM AMERICA", "taxa_entrega": "7,50", "tempo_min": "30", "tempo_max": "45 min", "ativo": "TRUE"},
        {"Bairro": "Vila Nova", "taxa_entrega": 6.0, "tempo_min": 25, "tempo_max": 40, "ativo": True},
        {"Bairro": "Distrito Industrial", "taxa_entrega": 12, "ativo": False},
    ]
