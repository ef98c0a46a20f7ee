"""Operator alerts for pipeline failures, delivered through a Telegram bot.

Alerts are tenant scoped: the business, pipeline stage and channel are pulled
out of the context and shown in the header, the rest goes into a detail block.
"""

from dataclasses import dataclass, field
from typing import Optional

import httpx

from inboxpilot.config import settings
from inboxpilot.logging_config import get_logger

logger = get_logger("alert_service")

SEVERITY_MARKERS = {"WARNING": "[!]", "ERROR": "[x]", "CRITICAL": "[!!]"}
HEADER_FIELDS = ("business_id", "stage", "channel")
TELEGRAM_TIMEOUT_SECONDS = 10.0


@dataclass
class OperatorAlert:
    severity: str
    summary: str
    business_id: Optional[str] = None
    stage: Optional[str] = None
    channel: Optional[str] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def from_context(cls, severity: str, summary: str, context: Optional[dict] = None) -> "OperatorAlert":
        details = dict(context or {})
        header = {name: details.pop(name, None) for name in HEADER_FIELDS}
        return cls(
            severity=severity,
            summary=summary,
            business_id=header["business_id"],
            stage=header["stage"],
            channel=header["channel"],
            details=details,
        )

    def render(self) -> str:
        marker = SEVERITY_MARKERS.get(self.severity, "[-]")
        lines = [f"{marker} *{self.severity}* {self.summary}"]
        scope = [f"{name}={value}" for name, value in self._header() if value]
        if scope:
            lines.append(" ".join(scope))
        if self.details:
            body = "\n".join(f"  {key}: {value}" for key, value in self.details.items())
            lines.append(f"```\n{body}\n```")
        return "\n\n".join(lines)

    def _header(self):
        return (("tenant", self.business_id), ("stage", self.stage), ("channel", self.channel))


def deliver_alert(alert: OperatorAlert) -> bool:
    """Post the alert to the operator chat. True only when Telegram accepted it."""
    if not settings.alert_bot_token or not settings.alert_chat_id:
        logger.warning(
            f"Alert not delivered, bot not configured: {alert.summary}",
            extra={"context": {"severity": alert.severity, "business_id": alert.business_id, "stage": alert.stage}},
        )
        return False

    try:
        with httpx.Client(timeout=TELEGRAM_TIMEOUT_SECONDS) as client:
            response = client.post(
                f"https://api.telegram.org/bot{settings.alert_bot_token}/sendMessage",
                json={"chat_id": settings.alert_chat_id, "text": alert.render(), "parse_mode": "Markdown"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Alert delivery failed: {type(e).__name__}")
        return False

    if response.status_code != 200:
        logger.error(f"Alert rejected by Telegram: {response.status_code}")
        return False
    return True


def send_alert(severity: str, summary: str, context: Optional[dict] = None) -> bool:
    return deliver_alert(OperatorAlert.from_context(severity, summary, context))


def alert_warning(summary: str, context: Optional[dict] = None) -> bool:
    return send_alert("WARNING", summary, context)


def alert_error(summary: str, context: Optional[dict] = None) -> bool:
    return send_alert("ERROR", summary, context)


def alert_critical(summary: str, context: Optional[dict] = None) -> bool:
    return send_alert("CRITICAL", summary, context)
