import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import dialect_insert, ensure_utc, utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import ConversationThread, UsageCounter
from inboxpilot.schemas.message import NormalizedMessage

logger = get_logger("usage_service")

METRIC_CONVERSATIONS = "conversations_24h"
METRIC_QUALIFIED_LEADS = "qualified_leads"
USAGE_METRICS = (METRIC_CONVERSATIONS, METRIC_QUALIFIED_LEADS)
USAGE_WINDOW = timedelta(hours=24)


@dataclass
class CounterValue:
    business_id: str
    metric: str
    period: str
    value: int


def usage_period(at: Optional[datetime] = None) -> str:
    """Billing period label, YYYY-MM in UTC."""
    return ensure_utc(at or utcnow()).strftime("%Y-%m")


def increment_usage_counter(
    db: Session,
    business_id: str,
    metric: str,
    period: str,
    amount: int = 1,
) -> CounterValue:
    """Atomically add ``amount`` to the counter row, creating it at zero if missing."""
    stmt = dialect_insert(db, UsageCounter).values(
        id=uuid.uuid4(),
        business_id=business_id,
        metric=metric,
        period=period,
        value=amount,
        updated_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["business_id", "metric", "period"],
        set_={
            "value": UsageCounter.value + stmt.excluded.value,
            "updated_at": stmt.excluded.updated_at,
        },
    ).returning(UsageCounter.value)
    try:
        value = db.execute(stmt).scalar_one()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to increment usage counter {metric}") from exc
    return CounterValue(business_id=business_id, metric=metric, period=period, value=value)


def track_conversation_window(db: Session, message: NormalizedMessage) -> Optional[CounterValue]:
    """Count a conversation once per rolling 24h window.

    The window stamp on the thread is moved with a conditional UPDATE, so only
    one of several concurrent messages can open a given window.
    """
    at = ensure_utc(message.timestamp)
    cutoff = at - USAGE_WINDOW
    stmt = (
        update(ConversationThread)
        .where(
            ConversationThread.business_id == message.business_id,
            ConversationThread.channel == message.channel.value,
            ConversationThread.conversation_key == message.conversation_key,
            or_(
                ConversationThread.last_usage_window_at.is_(None),
                ConversationThread.last_usage_window_at <= cutoff,
            ),
        )
        .values(last_usage_window_at=at)
        .execution_options(synchronize_session=False)
    )
    try:
        opened = db.execute(stmt).rowcount > 0
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to update usage window") from exc

    if not opened:
        return None

    counter = increment_usage_counter(db, message.business_id, METRIC_CONVERSATIONS, usage_period(at))
    logger.info(
        "Conversation window opened",
        extra={"context": {"business_id": message.business_id, "period": counter.period, "value": counter.value}},
    )
    return counter


def increment_qualified_leads(
    db: Session,
    business_id: str,
    amount: int = 1,
    at: Optional[datetime] = None,
) -> CounterValue:
    return increment_usage_counter(db, business_id, METRIC_QUALIFIED_LEADS, usage_period(at), amount)


def get_usage_counters(db: Session, business_id: str, period: Optional[str] = None) -> dict:
    period = period or usage_period()
    rows = (
        db.query(UsageCounter)
        .filter(
            UsageCounter.business_id == business_id,
            UsageCounter.period == period,
            UsageCounter.metric.in_(USAGE_METRICS),
        )
        .all()
    )
    counters = {metric: 0 for metric in USAGE_METRICS}
    for row in rows:
        counters[row.metric] = row.value or 0
    return {"period": period, "counters": counters}
