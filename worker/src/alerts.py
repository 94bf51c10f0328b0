"""Keyword alert rule evaluated against processed log events."""

import logging
from typing import Protocol, runtime_checkable

from shared.models import LogEvent, utc_now_iso

logger = logging.getLogger(__name__)


@runtime_checkable
class AlertHandler(Protocol):
    def handle(self, alert: dict) -> None: ...


class LoggingAlertHandler:
    def handle(self, alert: dict) -> None:
        logger.warning("[ALERT:%s] [%s] job %s: %s",
                       alert["level"], alert["rule"], alert["job_id"], alert["message"])


class KeywordAlertRule:
    """Fires when a message contains any keyword, ignoring case."""

    def __init__(self, keywords=("error",), handlers=None):
        self._keywords = tuple(k.lower() for k in keywords if k)
        self._handlers = list(handlers) if handlers is not None else [LoggingAlertHandler()]

    def add_handler(self, handler: AlertHandler) -> None:
        self._handlers.append(handler)

    def matches(self, event: LogEvent) -> str | None:
        """Return the first keyword found in the event message, if any."""
        message = (event.message or "").lower()
        for keyword in self._keywords:
            if keyword in message:
                return keyword
        return None

    def evaluate(self, event: LogEvent, job_id: str) -> dict | None:
        keyword = self.matches(event)
        if keyword is None:
            return None
        alert = {
            "rule": f"keyword:{keyword}",
            "level": "WARNING",
            "message": event.message,
            "job_id": job_id,
            "log_type": event.log_type,
            "timestamp": utc_now_iso(),
        }
        for handler in self._handlers:
            try:
                handler.handle(alert)
            except Exception:
                logger.exception("Alert handler %s failed for job %s",
                                 type(handler).__name__, job_id)
        return alert
