from datetime import datetime, timezone

from inboxpilot.schemas.message import Channel, NormalizedMessage


def make_message(
    text: str = "hello",
    *,
    business_id: str = "biz-1",
    channel: Channel = Channel.WHATSAPP,
    sender_handle: str = "15551234567",
    sender_name: str = "Ana",
    message_id: str = "wamid.1",
    timestamp: datetime = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc),
    metadata: dict = None,
) -> NormalizedMessage:
    if metadata is None:
        key = "message_id" if channel == Channel.WHATSAPP else "message_mid"
        metadata = {"provider": channel.value, key: message_id, "entry_id": "entry-1"}
    return NormalizedMessage(
        business_id=business_id,
        channel=channel,
        conversation_id=message_id,
        sender_name=sender_name,
        sender_handle=sender_handle,
        message_text=text,
        timestamp=timestamp,
        metadata=metadata,
    )


def whatsapp_payload(*messages, business_id="biz-1", contact_name="Ana", wa_id="15551234567"):
    return {
        "business_id": business_id,
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "entry-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "contacts": [{"profile": {"name": contact_name}, "wa_id": wa_id}],
                            "messages": list(messages),
                        },
                    }
                ],
            }
        ],
    }


def whatsapp_text(body, message_id="wamid.1", sender="15551234567", timestamp="1715342400", context_id=None):
    item = {"from": sender, "id": message_id, "timestamp": timestamp, "type": "text", "text": {"body": body}}
    if context_id:
        item["context"] = {"id": context_id}
    return item
