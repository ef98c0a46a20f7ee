import pytest

from inboxpilot.services.intent_service import Intent, classify_intent, normalize_for_matching


class TestIntentEnum:
    def test_all_intents_defined(self):
        assert {i.value for i in Intent} == {"pricing", "booking", "availability", "general_question"}


class TestClassifyIntent:
    def test_pricing(self):
        assert classify_intent("What's the price for ceramic coating?") == Intent.PRICING

    def test_booking(self):
        assert classify_intent("Can I book an appointment?") == Intent.BOOKING

    def test_general(self):
        assert classify_intent("hello") == Intent.GENERAL_QUESTION

    def test_availability(self):
        assert classify_intent("Are you available on Saturday?") == Intent.AVAILABILITY

    def test_pricing_beats_booking(self):
        assert classify_intent("How much does it cost to book a wash?") == Intent.PRICING

    def test_booking_beats_availability(self):
        assert classify_intent("I want to schedule, what hours do you have?") == Intent.BOOKING

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Cuál es el PRECIO?", Intent.PRICING),
            ("Quiero una cotización", Intent.PRICING),
            ("Quiero agendar una cita", Intent.BOOKING),
            ("¿Qué horario tienen?", Intent.AVAILABILITY),
        ],
    )
    def test_spanish_keywords(self, text, expected):
        assert classify_intent(text) == expected

    def test_empty_text(self):
        assert classify_intent("") == Intent.GENERAL_QUESTION


class TestNormalizeForMatching:
    def test_lowercases_and_strips_accents(self):
        assert normalize_for_matching("Cotización RÁPIDA") == "cotizacion rapida"
