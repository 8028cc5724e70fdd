"""Automated replies to incoming chat messages."""

import logging
import time
from collections.abc import Callable
from datetime import datetime

from notifier.availability.schedule import WeeklySchedule
from notifier.config.schema import ReplyConfig
from notifier.dispatch.dispatcher import MessageSender
from notifier.models.connection import IncomingMessage
from notifier.models.dispatch import SendResult
from notifier.replies.intents import Intent, detect_intent
from notifier.rotation.key_selector import KeyRotationSelector
from notifier.transport.addressing import jid_to_phone

logger = logging.getLogger(__name__)


def greeting_for(hour: int) -> str:
    if 5 <= hour < 12:
        return "Bom dia"
    if 12 <= hour < 18:
        return "Boa tarde"
    return "Boa noite"


class AutoResponder:
    """Answers recognised keywords; everything else is ignored.

    Each sender gets at most one reply per cooldown window, except payment
    requests, which are always answered.
    """

    def __init__(
        self,
        sender: MessageSender,
        schedule: WeeklySchedule,
        is_open: Callable[[], bool] | None = None,
        selector: KeyRotationSelector | None = None,
        config: ReplyConfig | None = None,
        store_name: str = "Rei do Churrasco",
        detect: Callable[[str], Intent | None] = detect_intent,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.sender = sender
        self.schedule = schedule
        self.is_open = is_open or schedule.is_open
        self.selector = selector
        self.config = config or ReplyConfig()
        self.store_name = store_name
        self.detect = detect
        self.clock = clock
        self.sleep = sleep
        self._last_reply: dict[str, float] = {}
        self.replies_sent = 0

    def handle(self, message: IncomingMessage, now: datetime | None = None) -> list[SendResult]:
        if not self.config.enabled:
            return []
        if message.from_me or message.is_group or message.is_broadcast:
            return []
        text = (message.text or "").strip()
        if not text:
            return []

        intent = self.detect(text)
        if intent is None:
            return []

        requester = jid_to_phone(message.sender or message.chat_id)
        if intent != Intent.PAYMENT and not self._can_reply(requester):
            logger.info("Cooldown active for %s, not replying", requester)
            return []

        parts = self.build_reply(intent, requester, now)
        if not parts:
            return []
        self._last_reply[requester] = self.clock()
        logger.info("Replying to %s (intent=%s, %d parts)", requester, intent.value, len(parts))

        results = []
        for i, part in enumerate(parts):
            if i > 0 and self.config.message_delay_ms:
                self.sleep(self.config.message_delay_ms / 1000)
            result = self.sender.deliver(message.chat_id, part)
            results.append(result)
            if not result.ok:
                logger.warning("Reply to %s failed: %s", requester, result.status.value)
                break
        self.replies_sent += sum(1 for r in results if r.ok)
        return results

    def build_reply(self, intent: Intent, requester: str, now: datetime | None = None) -> list[str]:
        greeting = greeting_for(self.schedule.local_time(now).hour)
        site = f"\n{self.config.site_url}" if self.config.site_url else ""

        if intent == Intent.PAYMENT:
            if self.selector is None:
                logger.warning("Payment key requested but none are configured")
                return []
            key = self.selector.select(requester)
            info = (
                f"{greeting}! 💰\n\n"
                "Segue nossa chave *PIX* para pagamento:\n\n"
                f"*Tipo:* {key.label}\n"
                f"*Titular:* {key.owner_name or self.store_name}\n\n"
                "A chave está na próxima mensagem, é só copiar! 👇"
            )
            return [info, key.value]

        is_open = self.is_open()
        if intent == Intent.HOURS:
            status = "✅ *Estamos abertos agora!*" if is_open else "🔴 *Estamos fechados no momento*"
            hours = "\n".join(self.schedule.describe())
            return [f"{greeting}! ⏰\n\n{status}\n\n*Nosso horário:*\n{hours}{site}"]

        if intent == Intent.ORDER:
            if is_open:
                return [f"{greeting}! 📋\n\nFaça seu pedido pelo nosso site:{site or ' (em breve)'}"]
            return [f"{greeting}! 📋\n\nNo momento estamos *fechados*, mas você já pode conferir o cardápio:{site or ' (em breve)'}"]

        if intent == Intent.DELIVERY:
            return [
                f"{greeting}! 🛵\n\n"
                "Sim, fazemos *delivery*! A taxa de entrega varia conforme o bairro.\n\n"
                f"Veja os bairros atendidos e faça seu pedido pelo site:{site or ' (em breve)'}\n\n"
                "Também temos *retirada no balcão* e *consumo no local*! 🥩🔥"
            ]

        if intent == Intent.MARMITA:
            if is_open:
                return [f"{greeting}! 🍱\n\nSim, temos *marmitas/quentinhas*! Estamos abertos 🔥\n\nConfira as opções e faça seu pedido:{site or ' (em breve)'}"]
            return [f"{greeting}! 🍱\n\nSim, temos *marmitas/quentinhas*! Mas estamos fechados no momento.\n\nConfira nosso cardápio:{site or ' (em breve)'}"]

        if intent == Intent.LOCATION:
            lines = [f"{greeting}! 📍\n"]
            if self.config.address:
                lines.append(f"O *{self.store_name}* fica na:\n*{self.config.address}*\n")
            if self.config.contact_phone:
                lines.append(f"📞 Contato: *{self.config.contact_phone}*\n")
            if len(lines) == 1:
                logger.warning("Location requested but no address or contact is configured")
                return []
            if site:
                lines.append(f"Confira nosso cardápio:{site}\n")
            lines.append("Esperamos você! 🔥🥩")
            return ["\n".join(lines)]

        if intent == Intent.CHURRASCO:
            if is_open:
                return [
                    f"{greeting}! 🔥🥩\n\nTemos o melhor *churrasco* da região! Estamos abertos 🔥\n\n"
                    "Picanha, costela, maminha, carneiro, tira gostos, porções e muito mais!\n\n"
                    f"Veja o cardápio e peça pelo site:{site or ' (em breve)'}"
                ]
            return [f"{greeting}! 🔥🥩\n\nTemos o melhor *churrasco* da região! Mas estamos fechados no momento.\n\nConfira nosso cardápio:{site or ' (em breve)'}"]

        state = "Estamos abertos! 🔥" if is_open else "No momento estamos *fechados*."
        return [f"{greeting}! 👋\n\nObrigado por entrar em contato com *{self.store_name}* 🔥🥩\n\n{state}{site}"]

    def reset_cooldown(self, requester: str | None = None) -> None:
        if requester:
            self._last_reply.pop(jid_to_phone(requester), None)
        else:
            self._last_reply.clear()

    def _can_reply(self, requester: str) -> bool:
        now = self.clock()
        window = self.config.cooldown_minutes * 60
        stale = [r for r, ts in self._last_reply.items() if now - ts >= window]
        for r in stale:
            del self._last_reply[r]
        return requester not in self._last_reply
