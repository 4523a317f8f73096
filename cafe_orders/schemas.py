"""
Pydantic Schemas for the Ordering Core

Menu, cart, coupon, delivery zone and order shapes. Field names are
English; the aliases are the column names the spreadsheet store uses,
so records read from the store validate directly and payloads dump
straight to the wire with ``by_alias=True``.

Version: 1.0.0
"""

import json
import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class FulfillmentType(str, Enum):
    """How the customer receives the order."""
    DINE_IN = "local"
    PICKUP = "retirada"
    DELIVERY = "delivery"

    @property
    def label(self) -> str:
        return {
            FulfillmentType.DINE_IN: "Consumo no Local",
            FulfillmentType.PICKUP: "Retirada no Local",
            FulfillmentType.DELIVERY: "Delivery",
        }[self]


class PaymentMethod(str, Enum):
    CASH = "dinheiro"
    CARD = "cartao"
    PIX = "pix"
    AT_TABLE = "local"

    @property
    def label(self) -> str:
        return {
            PaymentMethod.CASH: "Dinheiro",
            PaymentMethod.CARD: "Cartão",
            PaymentMethod.PIX: "PIX",
            PaymentMethod.AT_TABLE: "Pagamento no local",
        }[self]


class OrderStatus(str, Enum):
    """Kitchen workflow. Each status has at most one forward step."""
    RECEIVED = "Recebido"
    PREPARING = "Preparando"
    READY = "Pronto"
    DELIVERED = "Entregue"

    def next_status(self) -> Optional["OrderStatus"]:
        order = list(OrderStatus)
        position = order.index(self)
        if position + 1 < len(order):
            return order[position + 1]
        return None

    @property
    def is_terminal(self) -> bool:
        return self.next_status() is None


# =============================================================================
# WIRE VALUE HELPERS
# =============================================================================

_TRUTHY = {"true", "1", "sim", "yes", "ativo", "x"}


def parse_money(value: Any) -> float:
    """
    Parse a spreadsheet money cell.

    Accepts numbers, plain numeric strings ("5.50") and Brazilian
    formatted strings ("R$ 1.234,50"). Anything unreadable is 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("R$", "").strip()
    if not text:
        return 0.0
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_flag(value: Any, default: bool = False) -> bool:
    """Parse a spreadsheet boolean cell (TRUE, "1", "sim", ...)."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUTHY


def parse_minutes(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    match = re.search(r"\d+", str(value))
    return int(match.group()) if match else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# MENU SCHEMAS
# =============================================================================

class Option(BaseModel):
    """A selectable option inside a group, e.g. size "Grande"."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "opcao_id"))
    label: str = Field(validation_alias=AliasChoices("label", "rotulo", "nome"))
    surcharge: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("surcharge", "acrescimo", "preco_adicional"),
    )

    @field_validator("id", "label", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("surcharge", mode="before")
    @classmethod
    def coerce_surcharge(cls, v: Any) -> float:
        return parse_money(v)


class OptionGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "grupo_id"))
    label: str = Field(validation_alias=AliasChoices("label", "titulo", "nome"))
    required: bool = Field(
        default=False,
        validation_alias=AliasChoices("required", "obrigatorio"),
    )
    options: tuple[Option, ...] = Field(
        default=(),
        validation_alias=AliasChoices("options", "opcoes"),
    )

    @field_validator("id", "label", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("required", mode="before")
    @classmethod
    def coerce_required(cls, v: Any) -> bool:
        return parse_flag(v)

    def find_option(self, option_id: str) -> Optional[Option]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Product(BaseModel):
    """Menu product with its ordered option groups."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "produto_id"))
    name: str = Field(validation_alias=AliasChoices("name", "nome"))
    base_price: float = Field(
        ge=0,
        validation_alias=AliasChoices("base_price", "preco"),
    )
    option_groups: tuple[OptionGroup, ...] = Field(
        default=(),
        validation_alias=AliasChoices("option_groups", "opcoes", "opcoes_json"),
    )
    available: bool = Field(
        default=True,
        validation_alias=AliasChoices("available", "disponivel"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v) if v is not None else v

    @field_validator("base_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> float:
        return parse_money(v)

    @field_validator("available", mode="before")
    @classmethod
    def coerce_available(cls, v: Any) -> bool:
        return parse_flag(v, default=True)

    @field_validator("option_groups", mode="before")
    @classmethod
    def decode_option_groups(cls, v: Any) -> Any:
        # Sheets store the groups as a JSON cell
        if v is None or v == "":
            return ()
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                logger.warning("Discarding unreadable option groups cell")
                return ()
        return v

    def find_group(self, group_id: str) -> Optional[OptionGroup]:
        for group in self.option_groups:
            if group.id == group_id:
                return group
        return None


# =============================================================================
# CART SCHEMAS
# =============================================================================

class CartItem(BaseModel):
    """
    One line of the cart.

    ``unit_price`` is frozen when the line is created or merged;
    ``line_total`` always equals ``round(unit_price * quantity, 2)``.
    """
    product: Product
    quantity: int = Field(ge=1)
    selected_options: dict[str, str] = Field(default_factory=dict)
    note: str = ""
    unit_price: float = Field(ge=0)
    line_total: float = Field(ge=0)

    def identity(self) -> tuple:
        return identity_key(self.product.id, self.selected_options, self.note)


def identity_key(product_id: str, selected_options: dict[str, str], note: str) -> tuple:
    """Two cart lines are the same item iff these keys match."""
    return (product_id, tuple(sorted(selected_options.items())), note or "")


# =============================================================================
# COUPON & ZONE SCHEMAS
# =============================================================================

class Coupon(BaseModel):
    """A coupon already validated for a given subtotal and fulfillment type."""
    model_config = ConfigDict(frozen=True)

    code: str
    discount: float = Field(ge=0)
    eligibility: frozenset[FulfillmentType] = frozenset()
    message: str = ""

    def allows(self, fulfillment_type: FulfillmentType) -> bool:
        return not self.eligibility or fulfillment_type in self.eligibility


class DeliveryZone(BaseModel):
    """Neighborhood row from the ``Bairros`` sheet."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(validation_alias=AliasChoices("name", "Bairro", "bairro", "nome"))
    fee: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("fee", "taxa_entrega", "taxa"),
    )
    eta_min_minutes: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("eta_min_minutes", "tempo_min"),
    )
    eta_max_minutes: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("eta_max_minutes", "tempo_max"),
    )
    active: bool = Field(
        default=True,
        validation_alias=AliasChoices("active", "ativo"),
    )

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("fee", mode="before")
    @classmethod
    def coerce_fee(cls, v: Any) -> float:
        return parse_money(v)

    @field_validator("eta_min_minutes", "eta_max_minutes", mode="before")
    @classmethod
    def coerce_minutes(cls, v: Any) -> Optional[int]:
        return parse_minutes(v)

    @field_validator("active", mode="before")
    @classmethod
    def coerce_active(cls, v: Any) -> bool:
        return parse_flag(v, default=True)


# =============================================================================
# CUSTOMER SCHEMAS
# =============================================================================

class DeliveryAddress(BaseModel):
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    reference: str = ""

    def missing_fields(self) -> list[str]:
        required = {
            "street": self.street,
            "number": self.number,
            "neighborhood": self.neighborhood,
        }
        return [name for name, value in required.items() if not value.strip()]


class CustomerInfo(BaseModel):
    name: str = ""
    phone: str = ""
    address: Optional[DeliveryAddress] = None
    table_number: Optional[str] = None
    wants_notification: bool = True


# =============================================================================
# ORDER SCHEMAS
# =============================================================================

class OrderItemSnapshot(BaseModel):
    """Denormalized item as stored in the ``itens`` column."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str = Field(default="", alias="produto_id")
    name: str = Field(default="Item", alias="nome")
    quantity: int = Field(default=1, ge=1, alias="quantidade")
    unit_price: float = Field(default=0.0, alias="precoUnitario")
    line_total: float = Field(default=0.0, alias="precoTotal")
    options: tuple[str, ...] = Field(default=(), alias="opcoes")
    note: str = Field(default="", alias="observacao")

    @field_validator("product_id", "name", "note", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> int:
        try:
            return max(int(float(v)), 1)
        except (TypeError, ValueError):
            return 1

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def coerce_money(cls, v: Any) -> float:
        return parse_money(v)

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v: Any) -> Any:
        if v is None or v == "":
            return ()
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v

    @model_validator(mode="after")
    def fill_line_total(self) -> "OrderItemSnapshot":
        if not self.line_total and self.unit_price:
            object.__setattr__(self, "line_total", round(self.unit_price * self.quantity, 2))
        return self


_ITEMS_ADAPTER = TypeAdapter(list[OrderItemSnapshot])


def normalize_items(value: Any) -> list[OrderItemSnapshot]:
    """
    Normalize an ``itens`` cell into a typed list.

    The store hands back either a JSON-encoded string or an already
    decoded list. Anything that does not parse yields an empty list.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Unparseable itens cell, treating as empty")
            return []
    if not isinstance(value, list):
        return []
    try:
        return _ITEMS_ADAPTER.validate_python(value)
    except PydanticValidationError:
        logger.warning("Invalid itens entries, treating as empty")
        return []


class OrderPayload(BaseModel):
    """
    Canonical order sent to ``salvarPedido``.

    Built once at checkout; every total is frozen at that moment so later
    cart mutations cannot leak into a submitted order.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fulfillment_type: FulfillmentType = Field(alias="tipo")
    customer_name: str = Field(alias="cliente")
    customer_phone: str = Field(default="", alias="telefone")
    table_number: Optional[str] = Field(default=None, alias="comandaNumero")
    street: Optional[str] = Field(default=None, alias="endereco")
    number: Optional[str] = Field(default=None, alias="numero")
    complement: Optional[str] = Field(default=None, alias="complemento")
    neighborhood: Optional[str] = Field(default=None, alias="bairro")
    city: Optional[str] = Field(default=None, alias="cidade")
    reference: Optional[str] = Field(default=None, alias="referencia")
    items: tuple[OrderItemSnapshot, ...] = Field(alias="itens")
    subtotal: float
    discount: float = Field(default=0.0, alias="desconto")
    coupon_code: Optional[str] = Field(default=None, alias="cupom")
    delivery_fee: float = Field(default=0.0, alias="taxa_entrega")
    zone_name: Optional[str] = Field(default=None, alias="zona_entrega")
    total: float
    payment_method: PaymentMethod = Field(alias="formaPagamento")
    status: OrderStatus = OrderStatus.RECEIVED
    notes: str = Field(default="", alias="observacoes")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="timestamp",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderRecord(BaseModel):
    """
    An order as listed by ``getPedidos``.

    Sheet rows are loosely typed, so every field is coerced leniently.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    order_id: str = Field(validation_alias=AliasChoices("order_id", "pedido_id", "id"))
    timestamp: Optional[datetime] = None
    customer_name: str = Field(default="", validation_alias=AliasChoices("customer_name", "cliente"))
    customer_phone: str = Field(default="", validation_alias=AliasChoices("customer_phone", "telefone"))
    fulfillment_type: Optional[FulfillmentType] = Field(
        default=None,
        validation_alias=AliasChoices("fulfillment_type", "tipo"),
    )
    status: Optional[OrderStatus] = OrderStatus.RECEIVED
    items: list[OrderItemSnapshot] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "itens"),
    )
    subtotal: float = 0.0
    discount: float = Field(default=0.0, validation_alias=AliasChoices("discount", "desconto"))
    delivery_fee: float = Field(default=0.0, validation_alias=AliasChoices("delivery_fee", "taxa_entrega"))
    total: float = 0.0
    payment_method: str = Field(default="", validation_alias=AliasChoices("payment_method", "formaPagamento"))
    table_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("table_number", "comandaNumero"))
    notes: str = Field(default="", validation_alias=AliasChoices("notes", "observacoes"))

    @field_validator("order_id", mode="before")
    @classmethod
    def coerce_order_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("order id is required")
        return str(v).strip()

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("customer_name", mode="before")
    @classmethod
    def coerce_customer(cls, v: Any) -> str:
        if isinstance(v, dict):
            v = v.get("nome") or v.get("name")
        return "" if v is None else str(v)

    @field_validator("customer_phone", "payment_method", "notes", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("table_number", mode="before")
    @classmethod
    def coerce_table(cls, v: Any) -> Optional[str]:
        if v is None or str(v).strip() == "":
            return None
        return str(v).strip()

    @field_validator("fulfillment_type", mode="before")
    @classmethod
    def coerce_fulfillment(cls, v: Any) -> Optional[FulfillmentType]:
        try:
            return FulfillmentType(str(v).strip().lower())
        except ValueError:
            return None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Optional[OrderStatus]:
        if v is None or str(v).strip() == "":
            return OrderStatus.RECEIVED
        text = str(v).strip().lower()
        for status in OrderStatus:
            if status.value.lower() == text:
                return status
        # Unknown statuses (e.g. cancelled) never count as new orders
        return None

    @field_validator("items", mode="before")
    @classmethod
    def coerce_items(cls, v: Any) -> list[OrderItemSnapshot]:
        return normalize_items(v)

    @field_validator("subtotal", "discount", "delivery_fee", "total", mode="before")
    @classmethod
    def coerce_money(cls, v: Any) -> float:
        return parse_money(v)


# =============================================================================
# API SCHEMAS
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    store: str
    provider: str
    environment: str
    timestamp: datetime
