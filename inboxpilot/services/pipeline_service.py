"""Per-message processing of an inbound webhook delivery.

Stages run in order and each commits on its own. A failing stage is rolled
back and reported on the message outcome; later independent stages still
run, and sibling messages in the same delivery are never affected.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.config import settings
from inboxpilot.errors import PersistenceError, PipelineError
from inboxpilot.logging_config import get_logger
from inboxpilot.schemas.message import NormalizedMessage
from inboxpilot.services.ai_service import build_reply
from inboxpilot.services.alert_service import alert_error
from inboxpilot.services.business_context import BusinessContext, BusinessContextCache
from inboxpilot.services.channel_service import IntegrationConfig, get_integration_config, send_text
from inboxpilot.services.crm_sync_service import sync_lead_to_crm
from inboxpilot.services.echo_service import is_echo
from inboxpilot.services.flyer_service import maybe_send_flyer
from inboxpilot.services.intent_service import classify_intent
from inboxpilot.services.lead_service import qualify_lead
from inboxpilot.services.thread_service import record_inbound_message, record_outbound_message
from inboxpilot.services.usage_service import track_conversation_window

logger = get_logger("pipeline_service")

_FAILED = object()


@dataclass
class StageError:
    stage: str
    code: str
    detail: Optional[str] = None


@dataclass
class MessageOutcome:
    conversation_id: str
    status: str = "processed"  # processed, partial, echo, duplicate, failed
    intent: Optional[str] = None
    reply_rule: Optional[str] = None
    response_sent: bool = False
    delivery_error: Optional[str] = None
    flyer_sent: bool = False
    qualified: bool = False
    lead_id: Optional[str] = None
    errors: list[StageError] = field(default_factory=list)

    @property
    def persistence_failed(self) -> bool:
        return any(error.code == PersistenceError.code for error in self.errors)


def _error_code(exc: Exception) -> str:
    if isinstance(exc, PipelineError):
        return exc.code
    if isinstance(exc, SQLAlchemyError):
        return PersistenceError.code
    return "unexpected_error"


def _run_stage(db: Session, outcome: MessageOutcome, message: NormalizedMessage, stage: str, fn: Callable[[], Any]):
    try:
        value = fn()
        db.commit()
        return value
    except Exception as exc:
        db.rollback()
        code = _error_code(exc)
        log_context = {
            "business_id": message.business_id,
            "conversation_id": message.conversation_key,
            "stage": stage,
            "error_code": code,
            "error": str(exc),
        }
        logger.error(f"Pipeline stage failed: {stage}", extra={"context": log_context}, exc_info=code == "unexpected_error")
        if code == PersistenceError.code:
            alert_error("Pipeline persistence failure", log_context)
        outcome.errors.append(StageError(stage=stage, code=code, detail=str(exc)))
        return _FAILED


def _send_reply(
    db: Session,
    message: NormalizedMessage,
    context: BusinessContext,
    integration: Optional[IntegrationConfig],
    outcome: MessageOutcome,
) -> None:
    draft = build_reply(db, message, context)
    if draft is None:
        return
    outcome.reply_rule = draft.rule

    integration = integration or get_integration_config(db, message.business_id)
    result = send_text(integration, message.channel.value, message.sender_handle, draft.text)
    outcome.response_sent = result.sent
    outcome.delivery_error = result.error

    record_outbound_message(
        db,
        message,
        draft.text,
        provider_message_id=result.provider_message_id,
        metadata={
            "reply_to": message.provider_message_id,
            "provider_message_id": result.provider_message_id,
            "status": "sent" if result.sent else "failed",
            "rule": draft.rule,
        },
    )


def process_message(
    db: Session,
    message: NormalizedMessage,
    context: BusinessContext,
    integration: Optional[IntegrationConfig] = None,
) -> MessageOutcome:
    outcome = MessageOutcome(conversation_id=message.conversation_key)
    intent = classify_intent(message.message_text)
    outcome.intent = intent.value

    echo = _run_stage(db, outcome, message, "echo_filter", lambda: is_echo(db, message))
    if echo is _FAILED:
        outcome.status = "failed"
        return outcome
    if echo:
        outcome.status = "echo"
        return outcome

    recorded = _run_stage(db, outcome, message, "record_inbound", lambda: record_inbound_message(db, message, intent.value))
    if recorded is _FAILED:
        outcome.status = "failed"
        return outcome
    # Redeliveries skip the append, metering and reply but re-run the idempotent lead stages.
    duplicate = recorded.duplicate

    if not duplicate:
        _run_stage(db, outcome, message, "usage", lambda: track_conversation_window(db, message))

    if context.ai_reply_enabled and not duplicate:
        _run_stage(db, outcome, message, "reply", lambda: _send_reply(db, message, context, integration, outcome))

        if outcome.response_sent and intent.value in settings.flyer_intents:
            flyer = _run_stage(
                db,
                outcome,
                message,
                "flyer",
                lambda: maybe_send_flyer(
                    db, message, context, integration or get_integration_config(db, message.business_id)
                ),
            )
            if flyer is not _FAILED:
                outcome.flyer_sent = flyer.sent

    qualification = _run_stage(db, outcome, message, "qualify", lambda: qualify_lead(db, message, intent))
    if qualification is not _FAILED and qualification.qualified:
        outcome.qualified = True
        outcome.lead_id = str(qualification.lead_id)
        _run_stage(
            db,
            outcome,
            message,
            "crm_sync",
            lambda: sync_lead_to_crm(
                db,
                qualification.lead_id,
                message.business_id,
                message.conversation_key,
                message.sender_name,
                qualification.phone,
                booking_intent=qualification.booking_intent,
            ),
        )

    if outcome.errors:
        outcome.status = "partial"
    elif duplicate:
        outcome.status = "duplicate"
    return outcome


def process_messages(
    db: Session,
    messages: list[NormalizedMessage],
    context_cache: BusinessContextCache,
) -> list[MessageOutcome]:
    """Run every message of one delivery through the pipeline."""
    outcomes = []
    integrations: dict[str, IntegrationConfig] = {}
    for message in messages:
        try:
            context = context_cache.get(db, message.business_id)
            if message.business_id not in integrations:
                integrations[message.business_id] = get_integration_config(db, message.business_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Failed to load business configuration",
                extra={"context": {"business_id": message.business_id, "error": str(exc)}},
            )
            outcome = MessageOutcome(conversation_id=message.conversation_key, status="failed")
            outcome.errors.append(StageError(stage="context", code=PersistenceError.code, detail=str(exc)))
            outcomes.append(outcome)
            continue

        outcome = process_message(db, message, context, integrations[message.business_id])
        logger.info(
            "Message processed",
            extra={
                "context": {
                    "business_id": message.business_id,
                    "conversation_id": outcome.conversation_id,
                    "status": outcome.status,
                    "intent": outcome.intent,
                    "reply_rule": outcome.reply_rule,
                    "qualified": outcome.qualified,
                }
            },
        )
        outcomes.append(outcome)
    return outcomes
