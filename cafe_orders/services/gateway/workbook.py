"""
Workbook Store Gateway with Concurrency Control

Development stand-in for the spreadsheet script. Keeps the three sheets
the ordering core talks to in a single local Excel workbook:

- Pedidos: one row per order, ``itens`` stored as a JSON string
- Bairros: delivery zones
- Cupons: coupon definitions (percent or fixed value)

Every read-modify-write happens under a file lock. The blocking pandas
I/O runs in a worker thread so the event loop stays free.

Used when ENV_MODE=development.

Version: 1.0.0
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from cafe_orders.core.config import get_settings
from cafe_orders.core.exceptions import TransportError
from cafe_orders.schemas import OrderStatus, parse_flag, parse_money
from cafe_orders.services.gateway.base import BaseGateway

logger = logging.getLogger(__name__)


ORDERS_SHEET = "Pedidos"
ZONES_SHEET = "Bairros"
COUPONS_SHEET = "Cupons"

ORDER_COLUMNS = [
    "pedido_id",
    "timestamp",
    "cliente",
    "telefone",
    "tipo",
    "comandaNumero",
    "endereco",
    "numero",
    "complemento",
    "bairro",
    "cidade",
    "referencia",
    "zona_entrega",
    "itens",
    "subtotal",
    "desconto",
    "cupom",
    "taxa_entrega",
    "total",
    "formaPagamento",
    "status",
    "observacoes",
]

ZONE_COLUMNS = ["Bairro", "taxa_entrega", "tempo_min", "tempo_max", "ativo"]

COUPON_COLUMNS = [
    "codigo",
    "tipo",
    "valor",
    "valor_minimo",
    "ativo",
    "tipo_pedido",
    "mensagem",
]

SHEET_COLUMNS = {
    ORDERS_SHEET: ORDER_COLUMNS,
    ZONES_SHEET: ZONE_COLUMNS,
    COUPONS_SHEET: COUPON_COLUMNS,
}

DEFAULT_ZONES = [
    {"Bairro": "Centro", "taxa_entrega": 5.0, "tempo_min": 20, "tempo_max": 35, "ativo": True},
    {"Bairro": "JARDIM AMERICA", "taxa_entrega": 7.5, "tempo_min": 30, "tempo_max": 45, "ativo": True},
    {"Bairro": "Vila Nova", "taxa_entrega": 6.0, "tempo_min": 25, "tempo_max": 40, "ativo": True},
    {"Bairro": "Distrito Industrial", "taxa_entrega": 12.0, "tempo_min": 40, "tempo_max": 60, "ativo": False},
]

DEFAULT_COUPONS = [
    {"codigo": "BEMVINDO10", "tipo": "percentual", "valor": 10, "valor_minimo": 0, "ativo": True,
     "tipo_pedido": "", "mensagem": "10% off your first order"},
    {"codigo": "RETIRA5", "tipo": "fixo", "valor": 5, "valor_minimo": 20, "ativo": True,
     "tipo_pedido": "retirada", "mensagem": "R$ 5 off pickup orders"},
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as dicts with empty cells as None."""
    return [
        {key: (None if _is_blank(value) else value) for key, value in row.items()}
        for row in df.to_dict("records")
    ]


class WorkbookGateway(BaseGateway):
    """
    Spreadsheet store kept in a local ``.xlsx`` file.

    Example:
        >>> gateway = WorkbookGateway("data/store.xlsx")
        >>> gateway.seed()
        >>> result = await gateway.save_order(payload.to_wire())
        >>> result["pedido_id"]
        'PED00001'
    """

    def __init__(self, path: Optional[str] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.path = Path(path) if path else Path(settings.data_directory) / settings.workbook_filename
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.file_lock_timeout
        self.lock_path = self.path.with_name(self.path.name + ".lock")

        logger.info(f"WorkbookGateway initialized ({self.path})")

    @property
    def provider_name(self) -> str:
        return "workbook"

    # =========================================================================
    # FILE ACCESS
    # =========================================================================

    def _ensure_directory(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _lock(self) -> FileLock:
        return FileLock(str(self.lock_path), timeout=self.lock_timeout)

    def _load_sheets(self) -> dict[str, pd.DataFrame]:
        """Load every sheet, creating empty ones that are missing."""
        sheets: dict[str, pd.DataFrame] = {}
        if self.path.exists():
            try:
                sheets = pd.read_excel(self.path, sheet_name=None, engine="openpyxl", dtype=object)
            except (OSError, ValueError) as e:
                logger.warning(f"Error reading {self.path}: {e}")
                sheets = {}

        for name, columns in SHEET_COLUMNS.items():
            df = sheets.get(name)
            if df is None:
                df = pd.DataFrame(columns=columns)
            for column in columns:
                if column not in df.columns:
                    df[column] = None
            sheets[name] = df.astype(object)
        return sheets

    def _save_sheets(self, sheets: dict[str, pd.DataFrame]) -> None:
        self._ensure_directory()
        with pd.ExcelWriter(str(self.path), engine="openpyxl") as writer:
            for name, df in sheets.items():
                df.to_excel(writer, sheet_name=name, index=False)

    def _read_sheet(self, name: str) -> list[dict[str, Any]]:
        try:
            with self._lock():
                return _records(self._load_sheets()[name])
        except Timeout as e:
            logger.error(f"Lock timeout reading {name}")
            raise TransportError(f"Workbook lock timeout ({self.lock_timeout}s)") from e

    def _mutate(self, name: str, change) -> Any:
        """Run ``change(df) -> (df, result)`` on one sheet under the lock."""
        try:
            with self._lock():
                sheets = self._load_sheets()
                sheets[name], result = change(sheets[name])
                self._save_sheets(sheets)
                return result
        except Timeout as e:
            logger.error(f"Lock timeout writing {name}")
            raise TransportError(f"Workbook lock timeout ({self.lock_timeout}s)") from e

    def seed(
        self,
        zones: Optional[list[dict[str, Any]]] = None,
        coupons: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        """Write zone and coupon tables, keeping existing orders."""
        with self._lock():
            sheets = self._load_sheets()
            sheets[ZONES_SHEET] = pd.DataFrame(
                zones if zones is not None else DEFAULT_ZONES, columns=ZONE_COLUMNS
            ).astype(object)
            sheets[COUPONS_SHEET] = pd.DataFrame(
                coupons if coupons is not None else DEFAULT_COUPONS, columns=COUPON_COLUMNS
            ).astype(object)
            self._save_sheets(sheets)
        logger.info(f"Workbook seeded: {self.path}")

    # =========================================================================
    # SYNC OPERATIONS (run in a worker thread)
    # =========================================================================

    def _save_order_sync(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not payload.get("cliente") or not payload.get("itens"):
            return {"success": False, "message": "Order needs a customer and at least one item"}

        def change(df: pd.DataFrame):
            order_id = f"PED{len(df) + 1:05d}"
            existing = set(df["pedido_id"].astype(str))
            while order_id in existing:
                order_id = f"PED{int(order_id[3:]) + 1:05d}"

            row = {column: payload.get(column) for column in ORDER_COLUMNS}
            row["pedido_id"] = order_id
            row["timestamp"] = payload.get("timestamp") or datetime.now(timezone.utc).isoformat()
            row["status"] = payload.get("status") or OrderStatus.RECEIVED.value
            if not isinstance(row["itens"], str):
                row["itens"] = json.dumps(row["itens"], ensure_ascii=False)

            new_row = pd.DataFrame([row], columns=ORDER_COLUMNS).astype(object)
            df = new_row if df.empty else pd.concat([df, new_row], ignore_index=True)
            return df, order_id

        order_id = self._mutate(ORDERS_SHEET, change)
        logger.info(f"Order {order_id} saved to workbook")
        return {"success": True, "pedido_id": order_id}

    def _update_status_sync(self, order_id: str, new_status: str) -> dict[str, Any]:
        valid = [status.value for status in OrderStatus]
        if new_status not in valid:
            return {"success": False, "error": f"Invalid status: {new_status}"}

        def change(df: pd.DataFrame):
            mask = df["pedido_id"].astype(str) == str(order_id)
            if not mask.any():
                return df, False
            df.loc[mask, "status"] = new_status
            return df, True

        if not self._mutate(ORDERS_SHEET, change):
            return {"success": False, "error": f"Order {order_id} not found"}

        logger.info(f"Order {order_id} -> {new_status}")
        return {"success": True}

    def _validate_coupon_sync(self, code: str, subtotal: float) -> dict[str, Any]:
        wanted = code.strip().upper()
        subtotal = parse_money(subtotal)

        for row in self._read_sheet(COUPONS_SHEET):
            if str(row.get("codigo") or "").strip().upper() != wanted:
                continue

            if not parse_flag(row.get("ativo"), default=True):
                return {"valido": False, "valor_calculado": 0, "mensagem": "Coupon is no longer active"}

            minimum = parse_money(row.get("valor_minimo"))
            if subtotal < minimum:
                return {
                    "valido": False,
                    "valor_calculado": 0,
                    "mensagem": f"Coupon requires a subtotal of at least {minimum:.2f}",
                }

            value = parse_money(row.get("valor"))
            if str(row.get("tipo") or "").strip().lower().startswith("percent"):
                discount = subtotal * value / 100
            else:
                discount = value
            discount = round(min(max(discount, 0.0), subtotal), 2)

            return {
                "valido": True,
                "valor_calculado": discount,
                "cupom": {
                    "codigo": wanted,
                    "tipo": row.get("tipo"),
                    "valor": value,
                    "tipo_pedido": row.get("tipo_pedido") or "",
                },
                "mensagem": row.get("mensagem") or "Coupon applied",
            }

        return {"valido": False, "valor_calculado": 0, "mensagem": "Coupon not found"}

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def get_zones(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_sheet, ZONES_SHEET)

    async def list_orders(self) -> dict[str, Any]:
        rows = await asyncio.to_thread(self._read_sheet, ORDERS_SHEET)
        return {"success": True, "pedidos": rows}

    async def save_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._save_order_sync, payload)

    async def update_status(self, order_id: str, new_status: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._update_status_sync, order_id, new_status)

    async def validate_coupon(self, code: str, subtotal: float) -> dict[str, Any]:
        return await asyncio.to_thread(self._validate_coupon_sync, code, subtotal)

    async def health_check(self) -> bool:
        try:
            await self.get_zones()
        except TransportError:
            return False
        return True

    def clear(self) -> None:
        """Delete the workbook and its lock file."""
        for path in (self.path, self.lock_path):
            if path.exists():
                path.unlink()
        logger.info("Workbook cleared")
