from datetime import datetime, timedelta, timezone

import pytest

from inboxpilot.models import UsageCounter
from inboxpilot.services.thread_service import record_inbound_message
from inboxpilot.services.usage_service import (
    METRIC_CONVERSATIONS,
    get_usage_counters,
    increment_qualified_leads,
    increment_usage_counter,
    track_conversation_window,
    usage_period,
)
from tests.factories import make_message

T0 = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _deliver(db, message_id, at):
    message = make_message("hi", message_id=message_id, timestamp=at)
    record_inbound_message(db, message)
    counter = track_conversation_window(db, message)
    db.commit()
    return counter


def _conversation_count(db, period="2024-05"):
    row = db.query(UsageCounter).filter_by(business_id="biz-1", metric=METRIC_CONVERSATIONS, period=period).first()
    return row.value if row else 0


class TestTrackConversationWindow:
    def test_first_message_opens_window(self, db):
        counter = _deliver(db, "wamid.1", T0)

        assert counter is not None
        assert counter.metric == "conversations_24h"
        assert counter.period == "2024-05"
        assert counter.value == 1

    def test_messages_23_hours_apart_count_once(self, db):
        _deliver(db, "wamid.1", T0)
        second = _deliver(db, "wamid.2", T0 + timedelta(hours=23))

        assert second is None
        assert _conversation_count(db) == 1

    def test_messages_25_hours_apart_count_twice(self, db):
        _deliver(db, "wamid.1", T0)
        second = _deliver(db, "wamid.2", T0 + timedelta(hours=25))

        assert second is not None
        assert _conversation_count(db) == 2

    def test_exactly_24_hours_opens_new_window(self, db):
        _deliver(db, "wamid.1", T0)
        _deliver(db, "wamid.2", T0 + timedelta(hours=24))

        assert _conversation_count(db) == 2

    def test_window_counts_in_message_month(self, db):
        _deliver(db, "wamid.1", datetime(2024, 5, 31, 23, 0, tzinfo=timezone.utc))
        _deliver(db, "wamid.2", datetime(2024, 6, 2, 9, 0, tzinfo=timezone.utc))

        assert _conversation_count(db, "2024-05") == 1
        assert _conversation_count(db, "2024-06") == 1

    def test_no_thread_returns_none(self, db):
        assert track_conversation_window(db, make_message("hi")) is None


class TestCounters:
    def test_increment_creates_then_adds(self, db):
        first = increment_usage_counter(db, "biz-1", "qualified_leads", "2024-05")
        second = increment_usage_counter(db, "biz-1", "qualified_leads", "2024-05", amount=3)
        db.commit()

        assert first.value == 1
        assert second.value == 4
        assert db.query(UsageCounter).count() == 1

    def test_increment_qualified_leads_uses_period(self, db):
        counter = increment_qualified_leads(db, "biz-1", at=datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc))

        assert counter.period == "2023-12"
        assert counter.metric == "qualified_leads"

    def test_get_usage_counters_defaults_to_zero(self, db):
        increment_usage_counter(db, "biz-1", "conversations_24h", "2024-05", amount=7)
        db.commit()

        usage = get_usage_counters(db, "biz-1", "2024-05")

        assert usage == {"period": "2024-05", "counters": {"conversations_24h": 7, "qualified_leads": 0}}


class TestUsagePeriod:
    @pytest.mark.parametrize(
        "at,expected",
        [
            (datetime(2024, 1, 5, tzinfo=timezone.utc), "2024-01"),
            (datetime(2024, 2, 1, 1, 0, tzinfo=timezone(timedelta(hours=3))), "2024-01"),
        ],
    )
    def test_period_is_utc_month(self, at, expected):
        assert usage_period(at) == expected
