"""Outbound delivery through the Meta Graph API (WhatsApp Cloud, Instagram)."""

import hashlib
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from inboxpilot.config import settings
from inboxpilot.logging_config import get_logger
from inboxpilot.models import BusinessIntegration
from inboxpilot.schemas.message import Channel
from inboxpilot.services.alert_service import alert_critical

logger = get_logger("channel_service")


@dataclass
class IntegrationConfig:
    business_id: str
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_access_token: Optional[str] = None
    instagram_business_id: Optional[str] = None
    instagram_access_token: Optional[str] = None
    webhook_verify_token: Optional[str] = None


@dataclass
class SendResult:
    sent: bool
    error: Optional[str] = None
    provider_message_id: Optional[str] = None


def _hash_identifier(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def get_integration_config(db: Session, business_id: str) -> IntegrationConfig:
    """Tenant credentials, falling back to the environment per field."""
    row = db.query(BusinessIntegration).filter(BusinessIntegration.business_id == business_id).first()
    return IntegrationConfig(
        business_id=business_id,
        whatsapp_phone_number_id=(row and row.whatsapp_phone_number_id) or settings.whatsapp_phone_number_id,
        whatsapp_access_token=(row and row.whatsapp_access_token) or settings.whatsapp_access_token,
        instagram_business_id=(row and row.instagram_business_id) or settings.instagram_business_id,
        instagram_access_token=(row and row.instagram_access_token) or settings.instagram_access_token,
        webhook_verify_token=(row and row.webhook_verify_token) or settings.meta_verify_token,
    )


def _graph_url(node_id: str) -> str:
    return f"{settings.graph_api_base_url.rstrip('/')}/{settings.graph_api_version}/{node_id}/messages"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"HTTP {response.status_code}: {error['message']}"
    return f"HTTP {response.status_code}"


def _post(url: str, token: str, payload: dict[str, Any], *, channel: str, recipient: str) -> tuple[SendResult, dict]:
    log_context = {"channel": channel, "to_hash": _hash_identifier(recipient)}
    try:
        with httpx.Client(timeout=settings.send_timeout_seconds) as client:
            response = client.post(
                url,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                json=payload,
            )
    except httpx.HTTPError as e:
        logger.error("Outbound send failed", extra={"context": {**log_context, "error": type(e).__name__}})
        alert_critical("Outbound send failed", {**log_context, "error": str(e)})
        return SendResult(sent=False, error=f"transport error: {type(e).__name__}"), {}

    if response.status_code // 100 != 2:
        error = _error_message(response)
        logger.warning("Outbound send rejected", extra={"context": {**log_context, "error": error}})
        return SendResult(sent=False, error=error), {}

    try:
        data = response.json()
    except ValueError:
        data = {}
    logger.info("Outbound message sent", extra={"context": log_context})
    return SendResult(sent=True), data if isinstance(data, dict) else {}


def _whatsapp_message_id(data: dict) -> Optional[str]:
    messages = data.get("messages") or []
    if messages and isinstance(messages[0], dict):
        return messages[0].get("id")
    return None


def send_text(integration: IntegrationConfig, channel: str, recipient: Optional[str], text: str) -> SendResult:
    """Send a plain text message to ``recipient`` on ``channel``."""
    if not text or not text.strip():
        return SendResult(sent=False, error="empty message")
    if not recipient:
        return SendResult(sent=False, error="missing recipient")

    if channel == Channel.WHATSAPP:
        if not integration.whatsapp_phone_number_id or not integration.whatsapp_access_token:
            logger.info("WhatsApp integration not configured", extra={"context": {"business_id": integration.business_id}})
            return SendResult(sent=False, error="whatsapp integration not configured")
        result, data = _post(
            _graph_url(integration.whatsapp_phone_number_id),
            integration.whatsapp_access_token,
            {"messaging_product": "whatsapp", "to": recipient, "type": "text", "text": {"body": text}},
            channel=Channel.WHATSAPP.value,
            recipient=recipient,
        )
        result.provider_message_id = _whatsapp_message_id(data)
        return result

    if channel == Channel.INSTAGRAM:
        if not integration.instagram_business_id or not integration.instagram_access_token:
            logger.info("Instagram integration not configured", extra={"context": {"business_id": integration.business_id}})
            return SendResult(sent=False, error="instagram integration not configured")
        result, data = _post(
            _graph_url(integration.instagram_business_id),
            integration.instagram_access_token,
            {"messaging_type": "RESPONSE", "recipient": {"id": recipient}, "message": {"text": text}},
            channel=Channel.INSTAGRAM.value,
            recipient=recipient,
        )
        result.provider_message_id = data.get("message_id")
        return result

    return SendResult(sent=False, error=f"unsupported channel: {channel}")


def send_image(
    integration: IntegrationConfig,
    recipient: Optional[str],
    image_url: str,
    caption: Optional[str] = None,
) -> SendResult:
    """Send an image by link on WhatsApp."""
    if not recipient:
        return SendResult(sent=False, error="missing recipient")
    if not integration.whatsapp_phone_number_id or not integration.whatsapp_access_token:
        return SendResult(sent=False, error="whatsapp integration not configured")

    image: dict[str, Any] = {"link": image_url}
    if caption:
        image["caption"] = caption
    result, data = _post(
        _graph_url(integration.whatsapp_phone_number_id),
        integration.whatsapp_access_token,
        {"messaging_product": "whatsapp", "to": recipient, "type": "image", "image": image},
        channel=Channel.WHATSAPP.value,
        recipient=recipient,
    )
    result.provider_message_id = _whatsapp_message_id(data)
    return result
