"""Outbound reply generation for WhatsApp conversations.

Replies come from an ordered chain of generators; the first one that returns
a draft wins. With a model credential the chain is model then static fallback,
without one it is knowledge-base snippet then static fallback. Provider errors
never reach the customer.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from inboxpilot.config import settings
from inboxpilot.logging_config import get_logger
from inboxpilot.schemas.message import Channel, NormalizedMessage
from inboxpilot.services.business_context import BusinessContext, ServiceInfo
from inboxpilot.services.echo_service import is_echo
from inboxpilot.services.knowledge_service import retrieve_knowledge_chunks
from inboxpilot.services.llm import LLMProvider, OpenAIProvider
from inboxpilot.services.thread_service import recent_messages

logger = get_logger("ai_service")

RULE_AI = "ai"
RULE_KNOWLEDGE = "knowledge"
RULE_FALLBACK = "fallback"

FALLBACK_REPLIES = {
    "en": "Thanks for your message. Our team will reply shortly.",
    "es": "Gracias por tu mensaje. Nuestro equipo te respondera pronto.",
}
KNOWLEDGE_PREFIXES = {
    "en": "From our knowledge base: ",
    "es": "De nuestra base de conocimiento: ",
}
LANGUAGE_NAMES = {"en": "English", "es": "Spanish"}

MAX_SNIPPET_CHARS = 280
RECENT_MESSAGE_LIMIT = 4
SERVICE_SUMMARY_LIMIT = 5


@dataclass
class ReplyDraft:
    text: str
    rule: str  # ai, knowledge, fallback


ReplyGenerator = Callable[[Session, NormalizedMessage, BusinessContext], Optional[ReplyDraft]]


def get_llm_provider() -> Optional[LLMProvider]:
    """Provider for the configured credential, or None when the AI tier is off."""
    if not settings.openai_api_key:
        return None
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.llm_model,
        base_url=settings.llm_base_url,
    )


def format_knowledge_snippet(content: str, language: str) -> str:
    snippet = re.sub(r"\s+", " ", content).strip()
    if len(snippet) > MAX_SNIPPET_CHARS:
        snippet = snippet[: MAX_SNIPPET_CHARS - 3] + "..."
    return f"{KNOWLEDGE_PREFIXES.get(language, KNOWLEDGE_PREFIXES['en'])}{snippet}"


def _format_service(service: ServiceInfo) -> str:
    parts = [service.name]
    if service.base_price is not None:
        parts.append(f"${service.base_price:.2f}")
    if service.duration_minutes:
        parts.append(f"{service.duration_minutes} min")
    return " - ".join(parts)


def summarize_services(services: Sequence[ServiceInfo]) -> str:
    if not services:
        return "No services configured."
    return " | ".join(_format_service(s) for s in services[:SERVICE_SUMMARY_LIMIT])


def build_recent_context(db: Session, message: NormalizedMessage) -> list[str]:
    """Up to four prior lines, oldest first, without the triggering inbound text."""
    rows = recent_messages(
        db,
        message.business_id,
        message.conversation_key,
        Channel.WHATSAPP.value,
        limit=RECENT_MESSAGE_LIMIT + 1,
    )
    lines = []
    for row in rows:
        if row.direction == "inbound" and row.message_text == message.message_text:
            continue
        speaker = "Customer" if row.direction == "inbound" else "Assistant"
        lines.append(f"{speaker}: {row.message_text}")
        if len(lines) == RECENT_MESSAGE_LIMIT:
            break
    lines.reverse()
    return lines


def build_system_prompt(context: BusinessContext, recent_lines: list[str]) -> str:
    language = LANGUAGE_NAMES.get(context.reply_language, "English")
    lines = [
        "You are a professional customer support assistant for a small business.",
        "Answer in 1-3 short sentences.",
        "Do not confirm bookings or take payments. Never ask for sensitive information.",
        f"Reply in {language}.",
        f"Business name: {context.business_name or 'our business'}",
        f"Office hours: {context.office_hours or 'not provided'}",
        f"Services: {summarize_services(context.services)}",
    ]
    if recent_lines:
        lines.append("Recent conversation:")
        lines.extend(recent_lines)
    return "\n".join(lines)


def fallback_reply(db: Session, message: NormalizedMessage, context: BusinessContext) -> ReplyDraft:
    return ReplyDraft(text=FALLBACK_REPLIES.get(context.reply_language, FALLBACK_REPLIES["en"]), rule=RULE_FALLBACK)


def knowledge_reply(db: Session, message: NormalizedMessage, context: BusinessContext) -> Optional[ReplyDraft]:
    chunks = retrieve_knowledge_chunks(message.business_id, message.message_text, k=1)
    if not chunks:
        return None
    return ReplyDraft(text=format_knowledge_snippet(chunks[0].content, context.reply_language), rule=RULE_KNOWLEDGE)


def model_reply_generator(provider: LLMProvider) -> ReplyGenerator:
    def model_reply(db: Session, message: NormalizedMessage, context: BusinessContext) -> Optional[ReplyDraft]:
        system_prompt = build_system_prompt(context, build_recent_context(db, message))
        result = provider.complete(
            system_prompt,
            f"Latest customer message: {message.message_text}",
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        )
        if not result.ok:
            logger.warning(
                "Model reply unavailable, degrading",
                extra={"context": {"business_id": message.business_id, "error_code": result.error_code}},
            )
            return None
        return ReplyDraft(text=result.value, rule=RULE_AI)

    return model_reply


def reply_chain(provider: Optional[LLMProvider]) -> list[ReplyGenerator]:
    if provider is not None:
        return [model_reply_generator(provider), fallback_reply]
    return [knowledge_reply, fallback_reply]


def build_reply(db: Session, message: NormalizedMessage, context: BusinessContext) -> Optional[ReplyDraft]:
    """Reply text for an inbound WhatsApp message, or None when we should stay quiet."""
    if message.channel != Channel.WHATSAPP or message.is_outbound:
        return None
    if not context.ai_reply_enabled:
        return None
    if is_echo(db, message):
        return None

    for generator in reply_chain(get_llm_provider()):
        draft = generator(db, message, context)
        if draft is not None:
            logger.info(
                "Reply generated",
                extra={"context": {"business_id": message.business_id, "rule": draft.rule}},
            )
            return draft
    return None
