"""Tests for keyword intent detection."""

import pytest

from notifier.replies.intents import Intent, detect_intent, normalize_text


class TestNormalize:
    def test_strips_accents_and_spaces(self):
        assert normalize_text("  Olá,   Cardápio ") == "ola, cardapio"


class TestDetectIntent:
    @pytest.mark.parametrize("text, expected", [
        ("Qual o PIX?", Intent.PAYMENT),
        ("como pago o pedido?", Intent.PAYMENT),
        ("Vocês estão abertos? que horas fecha", Intent.HOURS),
        ("Horário de funcionamento", Intent.HOURS),
        ("quero pedir uma picanha", Intent.ORDER),
        ("manda o cardápio", Intent.CHURRASCO),
        ("Vocês fazem entrega no Centro?", Intent.DELIVERY),
        ("qual o valor do frete", Intent.DELIVERY),
        ("tem marmitex hoje", Intent.MARMITA),
        ("qual o endereço de vocês", Intent.LOCATION),
        ("onde fica a loja", Intent.LOCATION),
        ("tem picanha hoje", Intent.CHURRASCO),
        ("tem cerveja gelada", Intent.CHURRASCO),
        ("oii", Intent.GREETING),
        ("opaa", Intent.GREETING),
        ("Boa noite", Intent.GREETING),
        ("oi tudo certo", Intent.GREETING),
        ("beleza, obrigado blz", Intent.GREETING),
        ("obrigado", None),
        ("", None),
    ])
    def test_intents(self, text, expected):
        assert detect_intent(text) == expected

    def test_payment_wins_over_order(self):
        assert detect_intent("pix do pedido") == Intent.PAYMENT

    def test_greeting_not_matched_inside_words(self):
        assert detect_intent("coisa") is None

    def test_order_wins_over_churrasco(self):
        assert detect_intent("quero pedir uma costela") == Intent.ORDER

    @pytest.mark.parametrize("text, expected", [
        ("entrega de marmita", Intent.DELIVERY),
        ("marmita de picanha", Intent.MARMITA),
        ("endereço do churrasco", Intent.LOCATION),
        ("horario da entrega", Intent.HOURS),
    ])
    def test_precedence(self, text, expected):
        assert detect_intent(text) == expected
