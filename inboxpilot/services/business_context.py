"""Tenant configuration snapshot and the process-wide TTL cache in front of it."""

import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

from inboxpilot.logging_config import get_logger
from inboxpilot.models import Business, Service

logger = get_logger("business_context")

SUPPORTED_LANGUAGES = {"en", "es"}
DEFAULT_CACHE_TTL_SECONDS = 300


@dataclass(frozen=True)
class ServiceInfo:
    name: str
    description: Optional[str] = None
    base_price: Optional[float] = None
    duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class BusinessContext:
    business_id: str
    business_name: Optional[str] = None
    services: tuple[ServiceInfo, ...] = ()
    office_hours: Optional[str] = None
    language_preference: Optional[str] = None
    booking_rules: dict = field(default_factory=dict)
    chatbot_enabled: bool = False
    ai_reply_enabled: bool = False
    flyer_cooldown_hours: int = 24

    @property
    def reply_language(self) -> str:
        return self.language_preference or "en"


def _normalize_language(value: Optional[str]) -> Optional[str]:
    if value in SUPPORTED_LANGUAGES:
        return value
    return None


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def load_business_context(db: Session, business_id: str) -> BusinessContext:
    """Read tenant record and active services. Unknown tenants get an empty context."""
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        logger.warning(
            "Business not found, using empty context",
            extra={"context": {"business_id": business_id}},
        )
        return BusinessContext(business_id=business_id)

    services = (
        db.query(Service)
        .filter(Service.business_id == business_id, Service.is_active.is_(True))
        .order_by(Service.name)
        .all()
    )
    booking_rules = business.booking_rules if isinstance(business.booking_rules, dict) else {}

    return BusinessContext(
        business_id=business_id,
        business_name=business.name,
        services=tuple(
            ServiceInfo(
                name=s.name,
                description=s.description,
                base_price=_to_float(s.base_price),
                duration_minutes=s.duration_minutes,
            )
            for s in services
        ),
        office_hours=business.office_hours,
        language_preference=_normalize_language(business.language_preference),
        booking_rules=dict(booking_rules),
        chatbot_enabled=bool(business.chatbot_enabled),
        ai_reply_enabled=bool(business.ai_reply_enabled),
        flyer_cooldown_hours=business.flyer_cooldown_hours or 24,
    )


@dataclass
class _CacheEntry:
    context: BusinessContext
    expires_at: float


class BusinessContextCache:
    """Read-through cache of BusinessContext with a fixed TTL.

    One instance is created at startup and shared by all request handlers, so
    every access to the entry map goes through a lock. Loading happens outside
    the lock; two concurrent misses for the same tenant may both hit the
    database and the later write wins.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        loader: Callable[[Session, str], BusinessContext] = load_business_context,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._loader = loader
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, db: Session, business_id: str) -> BusinessContext:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(business_id)
            if entry is not None:
                if now < entry.expires_at:
                    return entry.context
                del self._entries[business_id]

        context = self._loader(db, business_id)
        with self._lock:
            self._entries[business_id] = _CacheEntry(context=context, expires_at=self._clock() + self.ttl_seconds)
        return context

    def invalidate(self, business_id: Optional[str] = None) -> None:
        with self._lock:
            if business_id is None:
                self._entries.clear()
            else:
                self._entries.pop(business_id, None)
        logger.info("Business context invalidated", extra={"context": {"business_id": business_id or "*"}})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
