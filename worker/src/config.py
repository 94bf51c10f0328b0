"""Worker configuration loaded from the YAML worker section."""

import socket
from dataclasses import dataclass, field


@dataclass(frozen=True)
class WorkerConfig:
    name: str = field(default_factory=socket.gethostname)
    concurrency: int = 4
    output_file: str = "logs/processed_logs.log"
    alert_keywords: tuple = ("error",)
    dedupe: bool = False
    poll_timeout: float = 1.0
    metrics_file: str | None = None
    metrics_interval: int = 10

    @classmethod
    def from_dict(cls, d: dict) -> "WorkerConfig":
        return cls(
            name=d.get("name") or socket.gethostname(),
            concurrency=max(1, int(d.get("concurrency", 4))),
            output_file=d.get("output_file", "logs/processed_logs.log"),
            alert_keywords=tuple(d.get("alert_keywords", ["error"])),
            dedupe=bool(d.get("dedupe", False)),
            poll_timeout=float(d.get("poll_timeout", 1.0)),
            metrics_file=d.get("metrics_file"),
            metrics_interval=int(d.get("metrics_interval", 10)),
        )
