import threading
from unittest.mock import Mock

from inboxpilot.models import Business
from inboxpilot.services.business_context import BusinessContext, BusinessContextCache, load_business_context


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestLoadBusinessContext:
    def test_loads_active_services_ordered_by_name(self, db, business):
        context = load_business_context(db, "biz-1")

        assert context.business_name == "Shine Auto Detailing"
        assert [s.name for s in context.services] == ["Ceramic Coating", "Interior Clean"]
        assert context.services[0].base_price == 450.0
        assert context.services[0].duration_minutes == 240
        assert context.office_hours == "Mon-Fri 9:00-18:00"
        assert context.booking_rules == {"min_notice_hours": 24}
        assert context.ai_reply_enabled is True

    def test_unsupported_language_becomes_none(self, db):
        db.add(Business(id="biz-fr", name="Chez Nous", language_preference="fr", booking_rules=["weekends"]))
        db.commit()

        context = load_business_context(db, "biz-fr")

        assert context.language_preference is None
        assert context.reply_language == "en"
        assert context.booking_rules == {}

    def test_missing_business_gives_empty_context(self, db):
        context = load_business_context(db, "nobody")

        assert context.business_id == "nobody"
        assert context.business_name is None
        assert context.services == ()
        assert context.chatbot_enabled is False
        assert context.ai_reply_enabled is False


class TestBusinessContextCache:
    def _cache(self, clock, loader=None):
        loader = loader or Mock(side_effect=lambda db, business_id: BusinessContext(business_id=business_id))
        return BusinessContextCache(ttl_seconds=300, clock=clock, loader=loader), loader

    def test_hit_within_ttl(self, db_session):
        clock = FakeClock()
        cache, loader = self._cache(clock)

        first = cache.get(db_session, "biz-1")
        clock.now += 299
        second = cache.get(db_session, "biz-1")

        assert first is second
        assert loader.call_count == 1

    def test_expired_entry_reloads(self, db_session):
        clock = FakeClock()
        cache, loader = self._cache(clock)

        cache.get(db_session, "biz-1")
        clock.now += 300
        cache.get(db_session, "biz-1")

        assert loader.call_count == 2

    def test_invalidate_single_business(self, db_session):
        clock = FakeClock()
        cache, loader = self._cache(clock)
        cache.get(db_session, "biz-1")
        cache.get(db_session, "biz-2")

        cache.invalidate("biz-1")
        cache.get(db_session, "biz-1")
        cache.get(db_session, "biz-2")

        assert [c.args[1] for c in loader.call_args_list] == ["biz-1", "biz-2", "biz-1"]

    def test_invalidate_all(self, db_session):
        cache, _ = self._cache(FakeClock())
        cache.get(db_session, "biz-1")
        cache.get(db_session, "biz-2")

        cache.invalidate()

        assert len(cache) == 0

    def test_missing_tenant_is_cached(self, db):
        loader = Mock(wraps=load_business_context)
        cache = BusinessContextCache(clock=FakeClock(), loader=loader)

        cache.get(db, "ghost")
        cache.get(db, "ghost")

        assert loader.call_count == 1

    def test_concurrent_access(self, db_session):
        cache, _ = self._cache(FakeClock())
        errors = []

        def worker(index: int):
            try:
                for i in range(200):
                    cache.get(db_session, f"biz-{(index + i) % 5}")
                    if i % 50 == 0:
                        cache.invalidate(f"biz-{index % 5}")
            except Exception as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) <= 5
