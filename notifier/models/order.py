"""Order and courier models, plus the normalization adapter for raw store rows.

Store rows arrive with field names that changed over the life of the ordering
site (English and Portuguese, flat and nested). Every logical field has an
ordered alias list below; the first non-empty value wins. Anything missing or
malformed degrades to a default so the order is still dispatched.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class OrderStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class OrderType(StrEnum):
    DELIVERY = "delivery"
    PICKUP = "pickup"
    DINE_IN = "dine_in"


STATUS_ALIASES: dict[str, OrderStatus] = {
    "pendente": OrderStatus.PENDING,
    "confirmado": OrderStatus.CONFIRMED,
    "preparando": OrderStatus.PREPARING,
    "em_preparo": OrderStatus.PREPARING,
    "pronto": OrderStatus.READY,
    "saiu_entrega": OrderStatus.OUT_FOR_DELIVERY,
    "saiu_para_entrega": OrderStatus.OUT_FOR_DELIVERY,
    "entregue": OrderStatus.DELIVERED,
    "finalizado": OrderStatus.COMPLETED,
    "concluido": OrderStatus.COMPLETED,
    "cancelado": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
}

ORDER_TYPE_ALIASES: dict[str, OrderType] = {
    "delivery": OrderType.DELIVERY,
    "entrega": OrderType.DELIVERY,
    "pickup": OrderType.PICKUP,
    "retirada": OrderType.PICKUP,
    "takeout": OrderType.PICKUP,
    "balcao": OrderType.PICKUP,
    "dine_in": OrderType.DINE_IN,
    "local": OrderType.DINE_IN,
    "mesa": OrderType.DINE_IN,
    "consumo_no_local": OrderType.DINE_IN,
}

# Ordered precedence per logical field. Dotted names reach into nested objects.
ORDER_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "order_id", "uuid"),
    "created_at": ("created_at", "createdAt", "data_criacao"),
    "updated_at": ("updated_at", "updatedAt", "data_atualizacao"),
    "status": ("status", "order_status", "situacao"),
    "order_type": (
        "order_type",
        "tipo_entrega",
        "delivery_type",
        "opcao_entrega.type",
        "opcao_entrega.tipo",
    ),
    "customer_phone": (
        "customer_phone",
        "telefone",
        "phone",
        "customer.phone",
        "cliente.telefone",
    ),
    "customer_name": ("customer_name", "nome_cliente", "customer.name", "cliente.nome"),
    "order_number": ("order_number", "numero_pedido", "numero"),
    "total_amount": ("total", "total_amount", "valor_total"),
}

COURIER_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "courier_id"),
    "name": ("nome", "name"),
    "phone": ("telefone", "phone", "whatsapp"),
    "active": ("ativo", "active"),
}


@dataclass(frozen=True)
class Order:
    id: str
    created_at: str
    status: OrderStatus
    order_type: OrderType
    customer_phone: str | None
    total_amount: float
    customer_name: str = ""
    order_number: str = ""
    updated_at: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_delivery(self) -> bool:
        return self.order_type == OrderType.DELIVERY

    @property
    def label(self) -> str:
        return self.order_number or self.id[:8]


@dataclass(frozen=True)
class Courier:
    id: str
    name: str
    phone: str | None
    active: bool = True


def parse_status(value: Any) -> OrderStatus:
    """Map a raw status (canonical or localized alias) to OrderStatus."""
    key = _text(value).lower().replace(" ", "_").replace("-", "_")
    if not key:
        return OrderStatus.UNKNOWN
    try:
        return OrderStatus(key)
    except ValueError:
        return STATUS_ALIASES.get(key, OrderStatus.UNKNOWN)


def parse_order_type(value: Any) -> OrderType:
    key = _text(value).lower().replace(" ", "_").replace("-", "_")
    return ORDER_TYPE_ALIASES.get(key, OrderType.PICKUP)


def normalize_order(raw: dict[str, Any]) -> Order:
    """Build a strictly-typed Order from a loosely-typed store row."""
    created_at = _text(_first(raw, ORDER_FIELDS["created_at"]))
    order_id = _text(_first(raw, ORDER_FIELDS["id"]))
    if not order_id:
        logger.warning("Order row without id (created_at=%s), deriving one", created_at)
        order_id = f"anon-{created_at}"

    phone = _text(_first(raw, ORDER_FIELDS["customer_phone"]))
    updated_at = _text(_first(raw, ORDER_FIELDS["updated_at"]))

    return Order(
        id=order_id,
        created_at=created_at,
        updated_at=updated_at or None,
        status=parse_status(_first(raw, ORDER_FIELDS["status"])),
        order_type=parse_order_type(_first(raw, ORDER_FIELDS["order_type"])),
        customer_phone=phone or None,
        customer_name=_text(_first(raw, ORDER_FIELDS["customer_name"])),
        order_number=_text(_first(raw, ORDER_FIELDS["order_number"])),
        total_amount=_number(_first(raw, ORDER_FIELDS["total_amount"])),
        raw=dict(raw),
    )


def normalize_courier(raw: dict[str, Any]) -> Courier:
    active = _first(raw, COURIER_FIELDS["active"])
    phone = _text(_first(raw, COURIER_FIELDS["phone"]))
    return Courier(
        id=_text(_first(raw, COURIER_FIELDS["id"])),
        name=_text(_first(raw, COURIER_FIELDS["name"])) or "Entregador",
        phone=phone or None,
        active=True if active is None else _truthy(active),
    )


def _first(raw: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = _lookup(raw, name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _lookup(raw: dict[str, Any], dotted: str) -> Any:
    obj: Any = raw
    for part in dotted.split("."):
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    text = str(value).strip()
    if text.lower() in ("null", "undefined", "none"):
        return ""
    return text


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = _text(value).replace("R$", "").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return 0.0


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "sim", "t")
    return bool(value)
