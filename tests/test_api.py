"""
Action gateway endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from cafe_orders import main
from cafe_orders.core.config import Settings
from cafe_orders.main import app, get_store
from cafe_orders.services.gateway.workbook import WorkbookGateway


@pytest.fixture
def store(gateway):
    app.dependency_overrides[get_store] = lambda: gateway
    yield gateway
    app.dependency_overrides.clear()


@pytest.fixture
def client(store):
    return TestClient(app)


class TestActionValidation:

    def test_missing_action(self, client):
        response = client.get("/api")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["examples"]["GET"] == ["getBairros", "getPedidos"]
        assert "validarCupom" in body["examples"]["POST"]

    def test_write_action_over_get_is_rejected(self, client):
        response = client.get("/api", params={"action": "salvarPedido"})

        assert response.status_code == 400
        assert response.json()["error"] == "GET action not allowed"
        assert response.json()["allowed_actions"] == ["getBairros", "getPedidos"]

    def test_unknown_post_action(self, client, store):
        response = client.post("/api", params={"action": "deleteProduto"}, json={})

        assert response.status_code == 400
        assert response.json()["error"] == "POST action not allowed"
        assert store.saved == []

    def test_body_must_be_json(self, client):
        response = client.post(
            "/api",
            params={"action": "salvarPedido"},
            content="not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Request body must be JSON"

    def test_body_must_be_an_object(self, client):
        response = client.post("/api", params={"action": "salvarPedido"}, json=[1, 2])
        assert response.status_code == 400

    def test_misconfigured_remote_store(self, client, monkeypatch):
        monkeypatch.setattr(main, "settings", Settings(env_mode="production"))

        response = client.get("/api", params={"action": "getPedidos"})

        assert response.status_code == 500
        assert response.json()["missing"] == ["SHEET_SCRIPT_URL", "SHEET_API_KEY"]


class TestForwarding:

    def test_get_zones(self, client, store, zone_rows):
        store.zones = zone_rows
        response = client.get("/api", params={"action": "getBairros"})

        assert response.status_code == 200
        assert response.json()[0]["Bairro"] == "Centro"

    def test_save_order(self, client, store):
        response = client.post("/api", params={"action": "salvarPedido"}, json={"cliente": "Ana", "itens": []})

        assert response.status_code == 200
        assert response.json() == {"success": True, "pedido_id": "PED00001"}
        assert store.saved == [{"cliente": "Ana", "itens": []}]

    def test_update_status_body_is_mapped(self, client, store):
        store.orders = [{"pedido_id": "PED00001", "status": "Recebido"}]
        response = client.post(
            "/api",
            params={"action": "atualizarStatus"},
            json={"pedidoId": "PED00001", "novoStatus": "Preparando"},
        )

        assert response.json() == {"success": True}
        assert store.status_calls == [("PED00001", "Preparando")]

    def test_store_failure_is_502(self, client, store):
        store.fail.add("getPedidos")
        response = client.get("/api", params={"action": "getPedidos"})

        assert response.status_code == 502
        assert response.json()["error"] == "Store unavailable"
        assert response.json()["detail"] == "store unreachable"


class TestHealth:

    def test_healthy(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "operational"
        assert response.json()["provider"] == "fake"

    def test_degraded(self, client, store):
        store.fail.add("getBairros")
        assert client.get("/health").json()["store"] == "unhealthy"


class TestWorkbookEndToEnd:

    def test_order_lifecycle(self, tmp_path):
        workbook = WorkbookGateway(str(tmp_path / "store.xlsx"))
        workbook.seed()
        app.dependency_overrides[get_store] = lambda: workbook
        try:
            client = TestClient(app)
            saved = client.post(
                "/api",
                params={"action": "salvarPedido"},
                json={"cliente": "Ana", "tipo": "retirada", "itens": [{"nome": "Espresso", "quantidade": 1}]},
            ).json()
            client.post(
                "/api",
                params={"action": "atualizarStatus"},
                json={"pedidoId": saved["pedido_id"], "novoStatus": "Preparando"},
            )
            orders = client.get("/api", params={"action": "getPedidos"}).json()["pedidos"]
        finally:
            app.dependency_overrides.clear()

        assert orders[0]["pedido_id"] == "PED00001"
        assert orders[0]["status"] == "Preparando"
