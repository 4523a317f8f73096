"""
Workbook store: orders, status updates and coupons in a local .xlsx file.
"""

import pytest

from cafe_orders.services.gateway import get_gateway, reset_gateway
from cafe_orders.services.gateway.workbook import WorkbookGateway


@pytest.fixture
def workbook(tmp_path):
    gateway = WorkbookGateway(str(tmp_path / "store.xlsx"), lock_timeout=5)
    gateway.seed()
    return gateway


def payload(**overrides):
    data = {
        "tipo": "retirada",
        "cliente": "Ana Silva",
        "telefone": "11987654321",
        "itens": [{"produto_id": "esp", "nome": "Espresso", "quantidade": 2, "precoUnitario": 5.5, "precoTotal": 11.0}],
        "subtotal": 11.0,
        "total": 11.0,
        "formaPagamento": "pix",
        "status": "Recebido",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
class TestOrders:

    async def test_ids_are_sequential(self, workbook):
        first = await workbook.save_order(payload())
        second = await workbook.save_order(payload(cliente="Bruno"))

        assert first == {"success": True, "pedido_id": "PED00001"}
        assert second["pedido_id"] == "PED00002"

    async def test_items_survive_the_round_trip(self, workbook):
        await workbook.save_order(payload())
        orders = (await workbook.list_orders())["pedidos"]

        assert len(orders) == 1
        assert isinstance(orders[0]["itens"], str)
        assert '"Espresso"' in orders[0]["itens"]
        assert orders[0]["status"] == "Recebido"
        assert orders[0]["timestamp"]

    async def test_order_without_items_is_rejected(self, workbook):
        result = await workbook.save_order(payload(itens=[]))
        assert result["success"] is False
        assert (await workbook.list_orders())["pedidos"] == []

    async def test_update_status(self, workbook):
        await workbook.save_order(payload())

        assert await workbook.update_status("PED00001", "Preparando") == {"success": True}
        orders = (await workbook.list_orders())["pedidos"]
        assert orders[0]["status"] == "Preparando"

    async def test_update_status_errors(self, workbook):
        await workbook.save_order(payload())

        assert (await workbook.update_status("PED00099", "Pronto"))["success"] is False
        assert (await workbook.update_status("PED00001", "Cancelado"))["success"] is False

    async def test_dispatch_by_wire_name(self, workbook):
        await workbook.dispatch("salvarPedido", payload())
        result = await workbook.dispatch("atualizarStatus", {"pedidoId": "PED00001", "novoStatus": "Preparando"})
        assert result == {"success": True}


@pytest.mark.asyncio
class TestZonesAndCoupons:

    async def test_seeded_zones(self, workbook):
        zones = await workbook.get_zones()
        assert [zone["Bairro"] for zone in zones][:2] == ["Centro", "JARDIM AMERICA"]

    async def test_percent_coupon(self, workbook):
        result = await workbook.validate_coupon("bemvindo10", 40.0)

        assert result["valido"] is True
        assert result["valor_calculado"] == 4.0
        assert result["cupom"]["codigo"] == "BEMVINDO10"

    async def test_fixed_coupon_carries_eligibility_tag(self, workbook):
        result = await workbook.validate_coupon("RETIRA5", 25.0)

        assert result["valido"] is True
        assert result["valor_calculado"] == 5.0
        assert result["cupom"]["tipo_pedido"] == "retirada"

    async def test_below_minimum(self, workbook):
        result = await workbook.validate_coupon("RETIRA5", 10.0)
        assert result["valido"] is False

    async def test_inactive_and_unknown(self, tmp_path):
        gateway = WorkbookGateway(str(tmp_path / "other.xlsx"))
        gateway.seed(coupons=[{"codigo": "OLD", "tipo": "fixo", "valor": 5, "ativo": False}])

        assert (await gateway.validate_coupon("OLD", 50.0))["valido"] is False
        assert (await gateway.validate_coupon("NOPE", 50.0))["mensagem"] == "Coupon not found"

    async def test_health_and_clear(self, workbook):
        assert await workbook.health_check() is True

        workbook.clear()
        assert not workbook.path.exists()


class TestFactory:

    def test_development_uses_the_workbook(self):
        reset_gateway()
        try:
            gateway = get_gateway()
            assert isinstance(gateway, WorkbookGateway)
            assert get_gateway() is gateway
        finally:
            reset_gateway()
