"""Meta webhook endpoints for WhatsApp and Instagram."""

import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.config import settings
from inboxpilot.database import get_db
from inboxpilot.dependencies import get_context_cache
from inboxpilot.errors import MalformedPayload, PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.schemas.message import Channel
from inboxpilot.schemas.webhook import MessageResult, StageErrorSchema, WebhookResponse
from inboxpilot.services.business_context import BusinessContextCache
from inboxpilot.services.channel_service import get_integration_config
from inboxpilot.services.ingest_service import parse
from inboxpilot.services.pipeline_service import MessageOutcome, process_messages

logger = get_logger("webhook")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _verify_signature(body: bytes, signature: Optional[str]) -> None:
    """Check X-Hub-Signature-256 when an app secret is configured."""
    if not settings.meta_app_secret:
        return
    if not signature or not signature.startswith("sha256="):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    expected = hmac.new(settings.meta_app_secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature[len("sha256=") :]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")


def _verify_handshake(
    db: Session,
    business_id: Optional[str],
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
) -> PlainTextResponse:
    expected = get_integration_config(db, business_id).webhook_verify_token if business_id else settings.meta_verify_token
    if mode == "subscribe" and expected and token and challenge is not None and hmac.compare_digest(token, expected):
        return PlainTextResponse(challenge)
    logger.warning("Webhook verification failed", extra={"context": {"business_id": business_id}})
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


def _to_result(outcome: MessageOutcome) -> MessageResult:
    return MessageResult(
        conversation_id=outcome.conversation_id,
        status=outcome.status,
        intent=outcome.intent,
        reply_rule=outcome.reply_rule,
        response_sent=outcome.response_sent,
        delivery_error=outcome.delivery_error,
        flyer_sent=outcome.flyer_sent,
        qualified=outcome.qualified,
        lead_id=outcome.lead_id,
        errors=[StageErrorSchema(stage=e.stage, code=e.code, detail=e.detail) for e in outcome.errors],
    )


async def _handle_delivery(
    channel: Channel,
    request: Request,
    business_id: Optional[str],
    signature: Optional[str],
    db: Session,
    context_cache: BusinessContextCache,
):
    body = await request.body()
    _verify_signature(body, signature)

    try:
        payload = json.loads(body or b"null")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body") from None

    if isinstance(payload, dict) and not payload.get("business_id") and business_id:
        payload["business_id"] = business_id

    try:
        messages = parse(channel.value, payload)
    except MalformedPayload as exc:
        logger.warning("Malformed webhook payload", extra={"context": {"channel": channel.value, "error": str(exc)}})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not messages:
        return WebhookResponse(success=True, message="No text messages")

    try:
        context = await run_in_threadpool(context_cache.get, db, messages[0].business_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Failed to load business configuration",
            extra={"context": {"business_id": messages[0].business_id, "error": str(exc)}},
        )
        error = StageErrorSchema(stage="context", code=PersistenceError.code, detail=str(exc))
        response = WebhookResponse(
            success=False,
            message="Business configuration unavailable",
            received=len(messages),
            failed=len(messages),
            results=[
                MessageResult(conversation_id=m.conversation_key, status="failed", errors=[error]) for m in messages
            ],
        )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=response.model_dump())

    if not context.chatbot_enabled:
        logger.info("Chatbot disabled, skipping", extra={"context": {"business_id": context.business_id}})
        return WebhookResponse(success=True, message="Chatbot disabled", received=len(messages))

    outcomes = await run_in_threadpool(process_messages, db, messages, context_cache)
    response = WebhookResponse(
        success=not any(o.errors for o in outcomes),
        message="Processed",
        received=len(messages),
        processed=sum(1 for o in outcomes if o.status in {"processed", "partial"}),
        sent=sum(1 for o in outcomes if o.response_sent),
        failed=sum(1 for o in outcomes if o.errors or o.delivery_error),
        results=[_to_result(o) for o in outcomes],
    )
    if any(o.persistence_failed for o in outcomes):
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=response.model_dump())
    return response


@router.get("/whatsapp")
def verify_whatsapp_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    business_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return _verify_handshake(db, business_id, hub_mode, hub_verify_token, hub_challenge)


@router.get("/instagram")
def verify_instagram_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    business_id: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    return _verify_handshake(db, business_id, hub_mode, hub_verify_token, hub_challenge)


@router.post("/whatsapp", response_model=WebhookResponse)
async def whatsapp_webhook(
    request: Request,
    business_id: Optional[str] = Query(default=None),
    x_business_id: Optional[str] = Header(default=None),
    x_hub_signature_256: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    context_cache: BusinessContextCache = Depends(get_context_cache),
):
    return await _handle_delivery(
        Channel.WHATSAPP, request, business_id or x_business_id, x_hub_signature_256, db, context_cache
    )


@router.post("/instagram", response_model=WebhookResponse)
async def instagram_webhook(
    request: Request,
    business_id: Optional[str] = Query(default=None),
    x_business_id: Optional[str] = Header(default=None),
    x_hub_signature_256: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    context_cache: BusinessContextCache = Depends(get_context_cache),
):
    return await _handle_delivery(
        Channel.INSTAGRAM, request, business_id or x_business_id, x_hub_signature_256, db, context_cache
    )
