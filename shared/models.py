"""Data model for events moving through the relay: LogEvent, Job, ProcessedRecord."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone

import jsonschema

LOG_TYPES = ("info", "warn", "error", "debug")

# Minimal structural check only: an object carrying a text message.
LOG_EVENT_SCHEMA = {
    "type": "object",
    "required": ["message"],
    "properties": {
        "message": {"type": "string"},
        "timestamp": {"type": "string"},
        "log_type": {"type": "string"},
    },
}

_validator = jsonschema.Draft202012Validator(LOG_EVENT_SCHEMA)


class MalformedLogEvent(ValueError):
    """Raised when raw text cannot be parsed into a LogEvent."""

    def __init__(self, raw: str, reason: str):
        super().__init__(f"malformed log event: {reason}")
        self.raw = raw
        self.reason = reason


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogEvent:
    message: str
    timestamp: str | None = None
    log_type: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def is_known_type(self) -> bool:
        return (self.log_type or "").lower() in LOG_TYPES

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["message"] = self.message
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        if self.log_type is not None:
            data["log_type"] = self.log_type
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LogEvent":
        extra = {k: v for k, v in data.items() if k not in ("message", "timestamp", "log_type")}
        return cls(
            message=data["message"],
            timestamp=data.get("timestamp"),
            log_type=data.get("log_type"),
            extra=extra,
        )


def parse_log_event(text: str, wrap_unparseable: bool = False) -> LogEvent:
    """Parse one serialized line into a LogEvent.

    With *wrap_unparseable* set, text that is not JSON becomes the message of
    an otherwise empty event instead of raising.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        if wrap_unparseable and isinstance(text, str):
            return LogEvent(message=text.rstrip("\n"))
        raise MalformedLogEvent(text, f"invalid JSON ({e})") from e

    errors = sorted(_validator.iter_errors(data), key=lambda err: list(err.path))
    if errors:
        raise MalformedLogEvent(text, "; ".join(err.message for err in errors))
    return LogEvent.from_dict(data)


@dataclass
class Job:
    """A Job Queue record. Its state follows the list that holds it."""

    id: str
    name: str
    data: dict
    attempts: int = 1
    backoff_type: str = "fixed"
    backoff_delay: float = 1.0
    remove_on_complete: bool | int = True
    remove_on_fail: bool | int = 1000
    attempts_made: int = 0
    errors: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    available_at: float = 0.0
    finished_at: str | None = None
    state: str = "pending"
    # Exact text the record was leased as; needed to release it by value.
    raw: str | None = field(default=None, repr=False, compare=False)

    def to_json(self) -> str:
        return json.dumps({
            "id": self.id,
            "name": self.name,
            "data": self.data,
            "opts": {
                "attempts": self.attempts,
                "backoff": {"type": self.backoff_type, "delay": self.backoff_delay},
                "removeOnComplete": self.remove_on_complete,
                "removeOnFail": self.remove_on_fail,
            },
            "attemptsMade": self.attempts_made,
            "errors": self.errors,
            "createdAt": self.created_at,
            "availableAt": self.available_at,
            "finishedAt": self.finished_at,
            "state": self.state,
        })

    @classmethod
    def from_json(cls, raw: str) -> "Job":
        d = json.loads(raw)
        opts = d.get("opts", {})
        backoff = opts.get("backoff", {})
        return cls(
            id=d["id"],
            name=d["name"],
            data=d["data"],
            attempts=opts.get("attempts", 1),
            backoff_type=backoff.get("type", "fixed"),
            backoff_delay=backoff.get("delay", 1.0),
            remove_on_complete=opts.get("removeOnComplete", True),
            remove_on_fail=opts.get("removeOnFail", 1000),
            attempts_made=d.get("attemptsMade", 0),
            errors=list(d.get("errors", [])),
            created_at=d.get("createdAt") or utc_now_iso(),
            available_at=d.get("availableAt", 0.0),
            finished_at=d.get("finishedAt"),
            state=d.get("state", "pending"),
            raw=raw,
        )

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state,
            "attemptsMade": self.attempts_made,
            "errors": list(self.errors),
            "createdAt": self.created_at,
            "finishedAt": self.finished_at,
            "data": self.data,
        }


@dataclass(frozen=True)
class ProcessedRecord:
    processed_at: str
    job_id: str
    data: dict

    def to_line(self) -> str:
        return json.dumps({
            "processedAt": self.processed_at,
            "jobId": self.job_id,
            "data": self.data,
        }) + "\n"
