"""Per-job processing: build the record, append it durably, evaluate alerts."""

import logging

from shared.metrics import Metrics
from shared.models import Job, LogEvent, ProcessedRecord, utc_now_iso
from worker.src.alerts import KeywordAlertRule
from worker.src.output import ProcessedLogWriter

logger = logging.getLogger(__name__)


class LogProcessor:
    def __init__(self, writer: ProcessedLogWriter, alert_rule: KeywordAlertRule | None = None,
                 metrics: Metrics | None = None):
        self._writer = writer
        self._alert_rule = alert_rule or KeywordAlertRule()
        self._metrics = metrics or Metrics()

    def build_record(self, job: Job) -> ProcessedRecord:
        return ProcessedRecord(processed_at=utc_now_iso(), job_id=job.id, data=job.data)

    def __call__(self, job: Job) -> dict:
        """Handle one job. Raises if the record could not be appended."""
        logger.info("Processing job %s", job.id)
        record = self.build_record(job)
        self._writer.append(record.to_line())
        self._metrics.increment("records_written")

        # The record is durable from here on; alerting cannot fail the job.
        message = job.data.get("message")
        event = LogEvent.from_dict(job.data) if isinstance(message, str) else LogEvent(message="")
        if self._alert_rule.evaluate(event, job.id) is not None:
            self._metrics.increment("alerts_emitted")

        return {"status": "Completed", "writtenToFile": True}
