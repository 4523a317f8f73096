"""
Store Gateway Abstract Base Class

Defines the action-dispatch interface of the spreadsheet store:
getBairros, getPedidos, salvarPedido, atualizarStatus and validarCupom.
Supports both Workbook (development) and HTTP (production) implementations.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any


# Actions the gateway may forward, by HTTP method
GET_ACTIONS = ("getBairros", "getPedidos")
POST_ACTIONS = ("salvarPedido", "atualizarStatus", "validarCupom")


class BaseGateway(ABC):
    """Abstract base class for store gateways."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def get_zones(self) -> list[dict[str, Any]]:
        """Raw ``getBairros`` rows."""
        pass

    @abstractmethod
    async def list_orders(self) -> dict[str, Any]:
        """``getPedidos`` response: ``{success, pedidos}``."""
        pass

    @abstractmethod
    async def save_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        """``salvarPedido``: ``{success, pedido_id}`` or ``{success: false, message}``."""
        pass

    @abstractmethod
    async def update_status(self, order_id: str, new_status: str) -> dict[str, Any]:
        """``atualizarStatus``: ``{success, error?}``."""
        pass

    @abstractmethod
    async def validate_coupon(self, code: str, subtotal: float) -> dict[str, Any]:
        """``validarCupom``: ``{valido, valor_calculado, cupom, mensagem}``."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check store connectivity."""
        pass

    async def dispatch(self, action: str, body: Any = None) -> Any:
        """
        Run an action by its wire name.

        Used by the action gateway app so one code path serves both
        store implementations.

        Raises:
            ValueError: Unknown action
        """
        body = body or {}
        if action == "getBairros":
            return await self.get_zones()
        if action == "getPedidos":
            return await self.list_orders()
        if action == "salvarPedido":
            return await self.save_order(body)
        if action == "atualizarStatus":
            return await self.update_status(
                str(body.get("pedidoId", "")), str(body.get("novoStatus", ""))
            )
        if action == "validarCupom":
            return await self.validate_coupon(
                str(body.get("codigo", "")), body.get("subtotal") or 0
            )
        raise ValueError(f"Unknown action: {action}")
