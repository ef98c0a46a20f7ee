"""Turn WhatsApp Cloud API and Instagram Messaging webhooks into NormalizedMessage."""

import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

from inboxpilot.errors import MalformedPayload
from inboxpilot.schemas.message import Channel, NormalizedMessage

_DIGITS_RE = re.compile(r"^\d+$")


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _id_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    return _clean_str(value)


def _from_epoch(value: float) -> datetime:
    seconds = value / 1000 if value > 1e12 else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def normalize_timestamp(value: Any, now: Optional[datetime] = None) -> datetime:
    """Best-effort conversion of a platform timestamp to an aware UTC datetime.

    Epoch numbers above 1e12 are milliseconds, digit strings longer than ten
    characters are milliseconds too. Strings may be ISO 8601 or RFC 2822.
    Unparseable values fall back to ``now``, which loses the original send time.
    """
    fallback = now or datetime.now(timezone.utc)
    try:
        if isinstance(value, bool) or value is None:
            return fallback
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                return fallback
            return _from_epoch(value)
        if isinstance(value, str):
            raw = value.strip()
            if _DIGITS_RE.match(raw):
                number = int(raw)
                seconds = number / 1000 if len(raw) > 10 else number
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            if not raw:
                return fallback
            try:
                parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                parsed = parsedate_to_datetime(raw)
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return fallback
    return fallback


def _require_business_id(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise MalformedPayload("Webhook payload must be a JSON object")
    business_id = _clean_str(payload.get("business_id"))
    if not business_id:
        raise MalformedPayload("business_id is required")
    return business_id


def _require_entries(payload: dict) -> list:
    entries = payload.get("entry")
    if not isinstance(entries, list) or not entries:
        raise MalformedPayload("Webhook payload has no entry items")
    return entries


def _parse_whatsapp(business_id: str, entries: list) -> list[NormalizedMessage]:
    messages: list[NormalizedMessage] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry_id = _id_str(entry.get("id"))
        for change in entry.get("changes") or []:
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                continue

            contacts = value.get("contacts") if isinstance(value.get("contacts"), list) else []
            contact = contacts[0] if contacts and isinstance(contacts[0], dict) else {}
            profile = contact.get("profile") if isinstance(contact.get("profile"), dict) else {}
            contact_name = _clean_str(profile.get("name"))
            contact_id = _id_str(contact.get("wa_id"))

            for item in value.get("messages") or []:
                if not isinstance(item, dict):
                    continue
                text_block = item.get("text") if isinstance(item.get("text"), dict) else {}
                text = _clean_str(text_block.get("body"))
                if not text:
                    continue

                message_id = _id_str(item.get("id"))
                sender_handle = _id_str(item.get("from")) or contact_id
                context = item.get("context") if isinstance(item.get("context"), dict) else {}
                conversation_id = _id_str(context.get("id")) or message_id or sender_handle or "whatsapp"

                messages.append(
                    NormalizedMessage(
                        business_id=business_id,
                        channel=Channel.WHATSAPP,
                        conversation_id=conversation_id,
                        sender_name=contact_name,
                        sender_handle=sender_handle,
                        message_text=text,
                        timestamp=normalize_timestamp(item.get("timestamp")),
                        metadata={"provider": "whatsapp", "message_id": message_id, "entry_id": entry_id},
                    )
                )
    return messages


def _parse_instagram(business_id: str, entries: list) -> list[NormalizedMessage]:
    messages: list[NormalizedMessage] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry_id = _id_str(entry.get("id"))
        for event in entry.get("messaging") or []:
            if not isinstance(event, dict):
                continue
            body = event.get("message") if isinstance(event.get("message"), dict) else {}
            text = _clean_str(body.get("text"))
            if not text:
                continue

            sender = event.get("sender") if isinstance(event.get("sender"), dict) else {}
            recipient = event.get("recipient") if isinstance(event.get("recipient"), dict) else {}
            sender_id = _id_str(sender.get("id"))
            recipient_id = _id_str(recipient.get("id"))
            mid = _id_str(body.get("mid"))

            messages.append(
                NormalizedMessage(
                    business_id=business_id,
                    channel=Channel.INSTAGRAM,
                    conversation_id=mid or recipient_id or sender_id or "instagram",
                    sender_name=_clean_str(sender.get("username")),
                    sender_handle=sender_id,
                    message_text=text,
                    timestamp=normalize_timestamp(event.get("timestamp")),
                    metadata={"provider": "instagram", "message_mid": mid, "entry_id": entry_id},
                )
            )
    return messages


def parse(channel: str, payload: Any) -> list[NormalizedMessage]:
    """Parse a raw webhook body. Items without text are skipped silently."""
    try:
        channel = Channel(channel)
    except ValueError:
        raise MalformedPayload(f"Unsupported channel: {channel}") from None

    business_id = _require_business_id(payload)
    entries = _require_entries(payload)

    if channel == Channel.WHATSAPP:
        return _parse_whatsapp(business_id, entries)
    return _parse_instagram(business_id, entries)
