"""Bridge configuration loaded from the YAML bridge section."""

from dataclasses import dataclass

JOB_ID_STRATEGIES = ("uuid", "content-hash")


@dataclass(frozen=True)
class BridgeConfig:
    raw_list: str = "logs"
    in_processing_list: str = "logs:in-processing"
    job_name: str = "log-job"
    retry_delay: float = 10.0
    block_timeout: float = 1.0
    job_id_strategy: str = "uuid"
    wrap_unparseable: bool = False
    metrics_file: str | None = None
    metrics_interval: int = 10

    def __post_init__(self):
        if self.job_id_strategy not in JOB_ID_STRATEGIES:
            raise ValueError(
                f"job_id_strategy must be one of {JOB_ID_STRATEGIES}, got {self.job_id_strategy!r}"
            )
        if self.raw_list == self.in_processing_list:
            raise ValueError("raw_list and in_processing_list must differ")

    @classmethod
    def from_dict(cls, d: dict) -> "BridgeConfig":
        return cls(
            raw_list=d.get("raw_list", cls.raw_list),
            in_processing_list=d.get("in_processing_list", cls.in_processing_list),
            job_name=d.get("job_name", cls.job_name),
            retry_delay=float(d.get("retry_delay", cls.retry_delay)),
            block_timeout=float(d.get("block_timeout", cls.block_timeout)),
            job_id_strategy=d.get("job_id_strategy", cls.job_id_strategy),
            wrap_unparseable=bool(d.get("wrap_unparseable", cls.wrap_unparseable)),
            metrics_file=d.get("metrics_file"),
            metrics_interval=int(d.get("metrics_interval", cls.metrics_interval)),
        )
