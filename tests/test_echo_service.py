from inboxpilot.models import ProcessedEvent
from inboxpilot.schemas.message import Channel
from inboxpilot.services.echo_service import claim_inbound_event, is_echo
from inboxpilot.services.thread_service import record_inbound_message, record_outbound_message
from tests.factories import make_message


def _send_reply(db, provider_message_id, business_id="biz-1"):
    inbound = make_message("hi", business_id=business_id, message_id="wamid.customer")
    record_outbound_message(db, inbound, "Thanks!", provider_message_id=provider_message_id)
    db.commit()


class TestIsEcho:
    def test_matching_outbound_is_echo(self, db):
        _send_reply(db, "wamid.sent-1")

        assert is_echo(db, make_message("Thanks!", message_id="wamid.sent-1")) is True

    def test_fresh_provider_id_is_not_echo(self, db):
        _send_reply(db, "wamid.sent-1")

        assert is_echo(db, make_message("hello", message_id="wamid.new")) is False

    def test_other_business_is_not_echo(self, db):
        _send_reply(db, "wamid.sent-1", business_id="biz-2")

        assert is_echo(db, make_message("Thanks!", message_id="wamid.sent-1")) is False

    def test_inbound_with_same_id_is_not_echo(self, db):
        inbound = make_message("hi", message_id="wamid.in-1")

        record_inbound_message(db, inbound)
        db.commit()

        assert is_echo(db, inbound) is False

    def test_instagram_never_echo(self, db):
        _send_reply(db, "mid.sent-1")
        message = make_message("Thanks!", channel=Channel.INSTAGRAM, message_id="mid.sent-1")

        assert is_echo(db, message) is False

    def test_outbound_marked_message_is_not_echo(self, db):
        _send_reply(db, "wamid.sent-1")
        message = make_message(
            "Thanks!",
            metadata={"provider": "whatsapp", "message_id": "wamid.sent-1", "direction": "outbound"},
        )

        assert is_echo(db, message) is False

    def test_message_without_provider_id(self, db):
        message = make_message("hi", metadata={"provider": "whatsapp"})

        assert is_echo(db, message) is False


class TestClaimInboundEvent:
    def test_first_claim_wins(self, db):
        message = make_message("hi", message_id="wamid.1")

        assert claim_inbound_event(db, message) is True
        assert claim_inbound_event(db, message) is False
        assert db.query(ProcessedEvent).count() == 1

    def test_same_id_on_other_business_is_separate(self, db):
        assert claim_inbound_event(db, make_message("hi", message_id="wamid.1")) is True
        assert claim_inbound_event(db, make_message("hi", message_id="wamid.1", business_id="biz-2")) is True

    def test_without_provider_id_always_claims(self, db):
        message = make_message("hi", metadata={"provider": "whatsapp"})

        assert claim_inbound_event(db, message) is True
        assert claim_inbound_event(db, message) is True
        assert db.query(ProcessedEvent).count() == 0
