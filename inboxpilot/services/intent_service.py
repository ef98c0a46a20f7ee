import unicodedata
from enum import Enum


class Intent(str, Enum):
    PRICING = "pricing"  # price, quote, cost questions
    BOOKING = "booking"  # wants to book or schedule
    AVAILABILITY = "availability"  # hours, open slots
    GENERAL_QUESTION = "general_question"  # everything else


# Checked in order; the first intent with a matching keyword wins.
INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.PRICING, ("price", "pricing", "cost", "quote", "estimate", "precio", "costo", "cotizacion")),
    (Intent.BOOKING, ("book", "booking", "appointment", "reserve", "schedule", "cita", "agendar", "reservar")),
    (Intent.AVAILABILITY, ("availability", "available", "slots", "open", "hours", "horario", "disponible")),
)

SALES_INTENTS = {Intent.PRICING, Intent.BOOKING}


def normalize_for_matching(text: str) -> str:
    """Lowercase and drop accents so "Cotización" matches "cotizacion"."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def classify_intent(text: str) -> Intent:
    """Rule-based intent label. Coarse routing signal, no confidence."""
    normalized = normalize_for_matching(text)
    if not normalized:
        return Intent.GENERAL_QUESTION
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return intent
    return Intent.GENERAL_QUESTION
