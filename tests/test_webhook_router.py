import hashlib
import hmac
import json
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from inboxpilot.config import settings
from inboxpilot.errors import PersistenceError
from inboxpilot.main import app
from inboxpilot.models import Lead, ThreadMessage
from inboxpilot.services.channel_service import SendResult
from tests.factories import whatsapp_payload, whatsapp_text


def _instagram_payload(text="hi", mid="mid.1", business_id=None):
    payload = {
        "object": "instagram",
        "entry": [
            {
                "id": "ig-456",
                "time": 1715342400000,
                "messaging": [
                    {
                        "sender": {"id": "ig-user-1", "username": "ana.ig"},
                        "recipient": {"id": "ig-456"},
                        "timestamp": 1715342400000,
                        "message": {"mid": mid, "text": text},
                    }
                ],
            }
        ],
    }
    if business_id:
        payload["business_id"] = business_id
    return payload


class TestVerificationHandshake:
    def test_global_token_returns_challenge(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
        )

        assert response.status_code == 200
        assert response.text == "12345"

    def test_tenant_token(self, client, business):
        response = client.get(
            "/webhooks/instagram",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "tenant-verify",
                "hub.challenge": "abc",
                "business_id": "biz-1",
            },
        )

        assert response.status_code == 200
        assert response.text == "abc"

    def test_wrong_token_forbidden(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345"},
        )

        assert response.status_code == 403

    def test_wrong_mode_forbidden(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
        )

        assert response.status_code == 403


class TestMalformedDelivery:
    def test_invalid_json(self, client):
        response = client.post(
            "/webhooks/whatsapp", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    def test_missing_business_id(self, client):
        payload = whatsapp_payload(whatsapp_text("hi"))
        del payload["business_id"]

        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 400
        assert "business_id" in response.json()["detail"]

    def test_missing_entry(self, client):
        response = client.post("/webhooks/whatsapp", json={"business_id": "biz-1"})

        assert response.status_code == 400

    def test_status_only_delivery(self, client, business):
        payload = whatsapp_payload()

        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 200
        assert response.json()["message"] == "No text messages"


@patch("inboxpilot.services.pipeline_service.send_text")
class TestWhatsAppDelivery:
    def test_processes_and_replies(self, mock_send, client, business, db):
        mock_send.return_value = SendResult(sent=True, provider_message_id="wamid.reply")
        payload = whatsapp_payload(whatsapp_text("How much does it cost?", message_id="wamid.in"))

        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["received"] == 1
        assert body["processed"] == 1
        assert body["sent"] == 1
        result = body["results"][0]
        assert result["conversation_id"] == "15551234567"
        assert result["intent"] == "pricing"
        assert result["reply_rule"] == "fallback"
        assert result["qualified"] is True
        assert db.query(ThreadMessage).count() == 2
        assert db.query(Lead).count() == 1

    def test_redelivery_reported_as_duplicate(self, mock_send, client, business):
        mock_send.return_value = SendResult(sent=True, provider_message_id="wamid.reply")
        payload = whatsapp_payload(whatsapp_text("hello", message_id="wamid.in"))

        client.post("/webhooks/whatsapp", json=payload)
        response = client.post("/webhooks/whatsapp", json=payload)

        assert response.status_code == 200
        assert response.json()["results"][0]["status"] == "duplicate"
        assert mock_send.call_count == 1

    def test_business_id_from_query(self, mock_send, client, business):
        mock_send.return_value = SendResult(sent=True)
        payload = whatsapp_payload(whatsapp_text("hello"))
        del payload["business_id"]

        response = client.post("/webhooks/whatsapp", params={"business_id": "biz-1"}, json=payload)

        assert response.status_code == 200
        assert response.json()["processed"] == 1

    def test_chatbot_disabled(self, mock_send, client, business, db):
        business.chatbot_enabled = False
        db.commit()

        response = client.post("/webhooks/whatsapp", json=whatsapp_payload(whatsapp_text("hello")))

        assert response.status_code == 200
        assert response.json()["message"] == "Chatbot disabled"
        assert db.query(ThreadMessage).count() == 0
        mock_send.assert_not_called()

    def test_unknown_tenant_treated_as_disabled(self, mock_send, client):
        response = client.post(
            "/webhooks/whatsapp", json=whatsapp_payload(whatsapp_text("hello"), business_id="nobody")
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Chatbot disabled"

    @patch("inboxpilot.services.pipeline_service.alert_error")
    @patch("inboxpilot.services.pipeline_service.record_inbound_message")
    def test_persistence_failure_returns_500(self, mock_record, mock_alert, mock_send, client, business):
        mock_record.side_effect = PersistenceError("insert failed")

        response = client.post("/webhooks/whatsapp", json=whatsapp_payload(whatsapp_text("hello")))

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["results"][0]["errors"][0]["code"] == "persistence_error"


class TestContextFailure:
    def test_context_load_failure_returns_structured_500(self, client):
        cache = app.state.context_cache

        with patch.object(cache, "get", side_effect=OperationalError("SELECT", {}, Exception("db down"))):
            response = client.post("/webhooks/whatsapp", json=whatsapp_payload(whatsapp_text("hello")))

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["received"] == 1
        assert body["failed"] == 1
        result = body["results"][0]
        assert result["conversation_id"] == "15551234567"
        assert result["status"] == "failed"
        assert [(e["stage"], e["code"]) for e in result["errors"]] == [("context", "persistence_error")]


class TestInstagramDelivery:
    @patch("inboxpilot.services.pipeline_service.send_text")
    def test_business_id_from_header(self, mock_send, client, business, db):
        response = client.post("/webhooks/instagram", headers={"X-Business-Id": "biz-1"}, json=_instagram_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] == 1
        assert body["results"][0]["conversation_id"] == "ig-user-1"
        mock_send.assert_not_called()
        message = db.query(ThreadMessage).one()
        assert message.sender_name == "ana.ig"


class TestSignature:
    def test_missing_signature_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "meta_app_secret", "app-secret")

        response = client.post("/webhooks/whatsapp", json=whatsapp_payload(whatsapp_text("hello")))

        assert response.status_code == 401

    def test_bad_signature_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "meta_app_secret", "app-secret")

        response = client.post(
            "/webhooks/whatsapp",
            content=json.dumps(whatsapp_payload(whatsapp_text("hello"))).encode(),
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": "sha256=deadbeef"},
        )

        assert response.status_code == 401

    @patch("inboxpilot.services.pipeline_service.send_text")
    def test_valid_signature_accepted(self, mock_send, client, business, monkeypatch):
        monkeypatch.setattr(settings, "meta_app_secret", "app-secret")
        mock_send.return_value = SendResult(sent=True)
        body = json.dumps(whatsapp_payload(whatsapp_text("hello"))).encode()
        signature = hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()

        response = client.post(
            "/webhooks/whatsapp",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={signature}"},
        )

        assert response.status_code == 200
