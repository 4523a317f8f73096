"""
HTTP Store Gateway Implementation

Talks to an action-dispatch endpoint over HTTP: either the action gateway
app (``<gateway_base_url>/api``) or, from inside that app, the spreadsheet
script itself (with the API key appended as ``key``).

Used when ENV_MODE=production or ENV_MODE=staging.

Errors:
    Network failures, non-2xx responses and bodies that are not JSON all
    surface as ``TransportError``. Nothing is retried here.

Version: 1.0.0
"""

import json
import logging
from typing import Any, Optional

import httpx

from cafe_orders.core.config import get_settings
from cafe_orders.core.exceptions import TransportError
from cafe_orders.services.gateway.base import BaseGateway, GET_ACTIONS, POST_ACTIONS

logger = logging.getLogger(__name__)


class HttpGateway(BaseGateway):
    """
    Async client for ``?action=<name>`` endpoints.

    Example:
        >>> gateway = HttpGateway("https://cafe.example.com/api")
        >>> zones = await gateway.get_zones()
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.endpoint = endpoint or f"{settings.gateway_base_url}/api"
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self._transport = transport

        logger.info(f"HttpGateway initialized ({self.endpoint})")

    @property
    def provider_name(self) -> str:
        return "http"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    def _params(self, action: str) -> dict[str, str]:
        params = {"action": action}
        if self.api_key:
            params["key"] = self.api_key
        return params

    async def request(self, action: str, body: Any = None) -> Any:
        """
        Send one action and return the decoded JSON response.

        GET actions carry no body; POST actions send ``body`` as JSON.

        Raises:
            TransportError: Network failure, non-2xx status or invalid JSON
        """
        method = "GET" if action in GET_ACTIONS else "POST"
        try:
            async with self._client() as client:
                if method == "GET":
                    response = await client.get(self.endpoint, params=self._params(action))
                else:
                    response = await client.post(
                        self.endpoint,
                        params=self._params(action),
                        content=json.dumps(body if body is not None else {}, ensure_ascii=False),
                        headers={"Content-Type": "application/json"},
                    )
        except httpx.TimeoutException as e:
            logger.error(f"{action}: timed out after {self.timeout}s")
            raise TransportError(f"Request timed out: {e}", action=action) from e
        except httpx.HTTPError as e:
            logger.error(f"{action}: network error - {e}")
            raise TransportError(f"Network error: {e}", action=action) from e

        if not response.is_success:
            logger.error(f"{action}: HTTP {response.status_code} - {response.text[:200]}")
            raise TransportError(
                f"Store returned HTTP {response.status_code}",
                action=action,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{action}: response is not JSON - {response.text[:200]}")
            raise TransportError(
                "Store returned an invalid response",
                action=action,
                status_code=response.status_code,
            ) from e

        logger.debug(f"{action}: HTTP {response.status_code}")
        return data

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def get_zones(self) -> list[dict[str, Any]]:
        data = await self.request("getBairros")
        if isinstance(data, dict):
            # Some script versions wrap the rows
            data = data.get("bairros", [])
        return data if isinstance(data, list) else []

    async def list_orders(self) -> dict[str, Any]:
        data = await self.request("getPedidos")
        if isinstance(data, list):
            return {"success": True, "pedidos": data}
        return data if isinstance(data, dict) else {"success": False, "pedidos": []}

    async def save_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("salvarPedido", payload)

    async def update_status(self, order_id: str, new_status: str) -> dict[str, Any]:
        return await self.request(
            "atualizarStatus", {"pedidoId": order_id, "novoStatus": new_status}
        )

    async def validate_coupon(self, code: str, subtotal: float) -> dict[str, Any]:
        return await self.request("validarCupom", {"codigo": code, "subtotal": subtotal})

    async def dispatch(self, action: str, body: Any = None) -> Any:
        """Forward the action untouched, for proxying."""
        if action not in GET_ACTIONS + POST_ACTIONS:
            raise ValueError(f"Unknown action: {action}")
        return await self.request(action, body)

    async def health_check(self) -> bool:
        try:
            await self.request("getBairros")
        except TransportError:
            return False
        return True
