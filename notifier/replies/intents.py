"""Keyword intent detection for incoming chat messages."""

import unicodedata
from enum import StrEnum


class Intent(StrEnum):
    PAYMENT = "payment"
    HOURS = "hours"
    ORDER = "order"
    DELIVERY = "delivery"
    MARMITA = "marmita"
    LOCATION = "location"
    CHURRASCO = "churrasco"
    GREETING = "greeting"


PAYMENT_TERMS = (
    "pix", "chave pix", "qual o pix", "manda o pix", "passa o pix",
    "forma de pagamento", "formas de pagamento", "como pagar", "como pago",
    "pagamento", "transferencia", "transferir",
)

HOURS_TERMS = (
    "horario", "que horas abre", "que horas fecha", "ta aberto", "esta aberto",
    "aberto", "fechado", "que horas", "funciona ate", "funcionamento",
)

ORDER_TERMS = (
    "quero pedir", "quero fazer pedido", "fazer pedido", "como faco pedido",
    "como pedir", "como faz pra pedir", "aceita pedido", "pedido", "menu", "site",
)

DELIVERY_TERMS = (
    "entrega", "delivery", "entregam", "taxa de entrega", "taxa entrega",
    "frete", "faz entrega",
)

MARMITA_TERMS = (
    "marmita", "marmitex", "quentinha", "viagem", "pra levar", "embalagem",
)

LOCATION_TERMS = (
    "endereco", "onde fica", "localizacao", "como chegar", "onde voces ficam",
    "onde e", "mapa", "rua", "local",
)

CHURRASCO_TERMS = (
    "churrasco", "carne", "picanha", "costela", "maminha", "carneiro", "suino",
    "frango", "linguica", "toscana", "mignon", "file", "pernil", "carre",
    "tira gosto", "tiragosto", "porcao", "porcoes", "cardapio",
    "bebida", "cerveja", "heineken", "budweiser", "skol", "whisky", "vodka",
    "gin", "dose", "suco",
)

# Matched as whole message, leading word or trailing word only
GREETING_TERMS = (
    "boa noite", "boa tarde", "bom dia", "boa madrugada", "oi", "oii", "oiii",
    "ola", "opa", "opaa", "eae", "e ai", "salve", "hello", "hey", "hi", "oie",
    "fala", "tudo bem", "tudo bom", "como vai", "beleza", "blz",
)

# Checked in order; the first group with a hit wins
INTENT_TERMS: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.PAYMENT, PAYMENT_TERMS),
    (Intent.HOURS, HOURS_TERMS),
    (Intent.ORDER, ORDER_TERMS),
    (Intent.DELIVERY, DELIVERY_TERMS),
    (Intent.MARMITA, MARMITA_TERMS),
    (Intent.LOCATION, LOCATION_TERMS),
    (Intent.CHURRASCO, CHURRASCO_TERMS),
]


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return " ".join(stripped.split())


def detect_intent(text: str) -> Intent | None:
    normalized = normalize_text(text or "")
    if not normalized:
        return None
    for intent, terms in INTENT_TERMS:
        if any(term in normalized for term in terms):
            return intent
    for term in GREETING_TERMS:
        if (
            normalized == term
            or normalized.startswith(term + " ")
            or normalized.endswith(" " + term)
        ):
            return Intent.GREETING
    return None
