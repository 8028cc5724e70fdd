"""Message text for the store, customers and couriers (pt-BR)."""

from typing import Any

from notifier.models.common import digits_only
from notifier.models.order import Order, OrderStatus, OrderType

ESTIMATED_TIME = "30-45 minutos"

PAYMENT_LABELS = {
    "cash": "💵 Dinheiro",
    "dinheiro": "💵 Dinheiro",
    "pix": "📱 PIX",
    "credit": "💳 Cartão de Crédito",
    "credit_card": "💳 Cartão de Crédito",
    "credito": "💳 Cartão de Crédito",
    "cartao": "💳 Cartão",
    "cartão": "💳 Cartão",
    "debit": "💳 Cartão de Débito",
    "debit_card": "💳 Cartão de Débito",
    "debito": "💳 Cartão de Débito",
    "dividido": "💳 Pagamento Dividido",
    "crediario": "📒 Crediário",
}

STATUS_TEXT: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.PENDING: ("⏳", "Aguardando confirmação"),
    OrderStatus.CONFIRMED: ("✅", "Pedido confirmado"),
    OrderStatus.PREPARING: ("👨‍🍳", "Preparando pedido"),
    OrderStatus.READY: ("🍽️", "Pedido pronto"),
    OrderStatus.OUT_FOR_DELIVERY: ("🛵", "Saiu para entrega"),
    OrderStatus.DELIVERED: ("✅", "Pedido entregue"),
    OrderStatus.COMPLETED: ("🎉", "Pedido finalizado"),
    OrderStatus.CANCELLED: ("❌", "Pedido cancelado"),
}

ORDER_TYPE_TEXT = {
    OrderType.DELIVERY: "🛵 Delivery",
    OrderType.PICKUP: "🏪 Retirada no balcão",
    OrderType.DINE_IN: "🍽️ Consumo no local",
}


def format_currency(value: float | None) -> str:
    """12.5 -> 'R$ 12,50'."""
    return f"R$ {float(value or 0):.2f}".replace(".", ",")


def format_phone(phone: str | None) -> str:
    """5586999999999 -> '(86) 99999-9999'."""
    if not phone:
        return "Não informado"
    digits = digits_only(phone)
    if digits.startswith("55") and len(digits) > 11:
        digits = digits[2:]
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return phone


def payment_label(method: Any) -> str:
    if not method or not isinstance(method, str):
        return "Não informado"
    return PAYMENT_LABELS.get(method.strip().lower(), method)


def _raw(order: Order, *names: str) -> Any:
    for name in names:
        value = order.raw.get(name)
        if value not in (None, ""):
            return value
    return None


def _amount(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _delivery_option(order: Order) -> dict:
    option = order.raw.get("delivery_option") or order.raw.get("opcao_entrega")
    return option if isinstance(option, dict) else {}


def _address(order: Order) -> str:
    direct = _raw(order, "customer_address", "endereco")
    if isinstance(direct, str) and direct.strip():
        return direct.strip()
    option = _delivery_option(order)
    parts = [
        option.get("endereco") or option.get("address") or option.get("street"),
        option.get("bairro") or option.get("neighborhood"),
        option.get("complemento") or option.get("complement"),
    ]
    reference = option.get("referencia") or option.get("reference")
    if reference:
        parts.append(f"Ref: {reference}")
    text = ", ".join(str(p).strip() for p in parts if p and str(p).strip())
    return text or "Não informado"


def _item_lines(order: Order, with_price: bool) -> str:
    items = _raw(order, "items", "itens_pedido")
    if not isinstance(items, list) or not items:
        return "   • Itens não informados"
    lines = []
    for item in items:
        if not isinstance(item, dict):
            continue
        qty = int(_amount(item.get("quantidade") or item.get("quantity") or 1)) or 1
        name = item.get("nome") or item.get("name") or item.get("product_name") or "Item"
        line = f"   • {qty}x {name}"
        if with_price:
            unit = _amount(item.get("preco_unitario") or item.get("price") or item.get("preco"))
            total = _amount(item.get("subtotal") or item.get("total")) or unit * qty
            line += f" - {format_currency(total)}"
        notes = item.get("observacoes") or item.get("notes")
        if notes:
            line += f"\n      📝 _{notes}_"
        lines.append(line)
    return "\n".join(lines) or "   • Itens não informados"


def _change_line(order: Order, label: str) -> str:
    paid = _amount(_raw(order, "valor_pago"))
    if paid > order.total_amount > 0:
        return f"\n💵 *{label}:* {format_currency(paid - order.total_amount)}"
    change = _amount(_raw(order, "troco"))
    if change > 0:
        return f"\n💵 *{label}:* {format_currency(change)}"
    return ""


def store_new_order(order: Order, store_name: str) -> str:
    payment = payment_label(_raw(order, "payment_method", "forma_pagamento"))
    lines = [
        f"🔥🥩 *NOVO PEDIDO - {store_name.upper()}* 🔥🥩",
        "",
        f"*Pedido #{order.label}*",
        "",
        f"*👤 Cliente:* {order.customer_name or 'Cliente'}",
    ]
    if order.customer_phone:
        lines.append(f"*📞 Telefone:* {order.customer_phone}")
    lines += [
        "",
        "*📋 Itens:*",
        _item_lines(order, with_price=True),
        "",
        f"*💰 TOTAL: {format_currency(order.total_amount)}*",
        "",
        f"*📦 Tipo:* {ORDER_TYPE_TEXT[order.order_type]}",
        f"*💳 Pagamento:* {payment}{_change_line(order, 'Troco')}",
    ]
    if order.is_delivery:
        lines += ["", f"*📍 Endereço:*\n{_address(order)}"]
    notes = _raw(order, "notes", "observacoes")
    if notes:
        lines += ["", f"*📝 Observações:* {notes}"]
    lines += ["", f"⏱️ Tempo estimado: *{ESTIMATED_TIME}*"]
    return "\n".join(lines)


def customer_confirmation(order: Order, store_name: str) -> str:
    lines = [
        f"🔥🥩 *{store_name.upper()}* 🔥🥩",
        "",
        "✅ *Pedido Confirmado!*",
        "",
        f"Olá, {order.customer_name or 'Cliente'}! 👋",
        "",
        "Seu pedido foi recebido com sucesso!",
        "",
        "*📋 Itens:*",
        _item_lines(order, with_price=False),
        "",
        f"*💰 Total: {format_currency(order.total_amount)}*",
        f"*📦 Tipo:* {ORDER_TYPE_TEXT[order.order_type]}",
    ]
    if order.is_delivery:
        lines += ["", f"📍 *Entregar em:*\n{_address(order)}"]
    lines += [
        "",
        f"⏱️ *Tempo estimado: {ESTIMATED_TIME}*",
        "",
        "Obrigado pela preferência! ❤️🔥",
    ]
    return "\n".join(lines)


def courier_new_delivery(order: Order, store_name: str) -> str:
    payment = payment_label(_raw(order, "payment_method", "forma_pagamento"))
    return "\n".join([
        f"🛵 *NOVA ENTREGA - {store_name.upper()}* 🛵",
        "",
        f"*Pedido #{order.label}*",
        "",
        f"*👤 Cliente:* {order.customer_name or 'Cliente'}",
        f"*📞 Telefone:* {format_phone(order.customer_phone)}",
        f"*📍 Endereço:* {_address(order)}",
        "",
        "*📋 Itens:*",
        _item_lines(order, with_price=False),
        "",
        f"*💰 Total: {format_currency(order.total_amount)}*",
        f"*💳 Pagamento:* {payment}{_change_line(order, 'Levar troco de')}",
        "",
        "_Aguarde o pedido ficar pronto!_ ⏳",
    ])


def status_update(order: Order, status: OrderStatus, store_name: str) -> str:
    emoji, text = STATUS_TEXT.get(status, ("📋", str(status)))
    extra = ""
    if status == OrderStatus.PREPARING:
        extra = "\n\nEstamos preparando com carinho! 🔥🥩"
    elif status == OrderStatus.READY:
        if order.order_type == OrderType.PICKUP:
            extra = "\n\nPedido pronto para retirada!"
        elif order.order_type == OrderType.DINE_IN:
            extra = "\n\nPedido pronto para consumo no local!"
        else:
            extra = "\n\nPedido pronto para entrega!"
    elif status == OrderStatus.OUT_FOR_DELIVERY:
        extra = "\n\nEntregador a caminho! 🏍️"
    elif status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED):
        extra = "\n\nObrigado pela preferência! ❤️🔥"
    return (
        f"🔥🥩 *{store_name.upper()}* 🔥🥩\n\n"
        f"{emoji} *Atualização do Pedido #{order.label}*\n\n"
        f"*Status:* {text}{extra}"
    )
