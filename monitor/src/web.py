"""Flask status app for operators: list depths, failures, metrics snapshots."""

from flask import Flask, jsonify, request

from bridge.src.config import BridgeConfig
from shared.job_queue import JobQueue
from shared.metrics import load_snapshot
from shared.queue_client import QueueClient


def create_app(client: QueueClient, job_queue: JobQueue, bridge_config: BridgeConfig,
               metrics_files: dict[str, str] | None = None) -> Flask:
    app = Flask(__name__)
    app.config["METRICS_FILES"] = dict(metrics_files or {})

    @app.route("/health")
    def health():
        if client.ping():
            return jsonify(status="ok")
        return jsonify(status="unavailable"), 503

    @app.route("/api/queues")
    def queues():
        return jsonify(
            raw={
                "key": bridge_config.raw_list,
                "length": client.length(bridge_config.raw_list),
            },
            in_processing={
                "key": bridge_config.in_processing_list,
                "length": client.length(bridge_config.in_processing_list),
            },
            jobs={"queue": job_queue.name, **job_queue.counts()},
        )

    @app.route("/api/in-processing")
    def in_processing():
        entries = client.items(bridge_config.in_processing_list)
        return jsonify(entries=entries, count=len(entries))

    @app.route("/api/failed")
    def failed():
        limit = max(0, request.args.get("limit", 50, type=int))
        jobs = [job.to_summary() for job in job_queue.failed_jobs(limit)]
        return jsonify(jobs=jobs, count=len(jobs))

    @app.route("/api/metrics")
    def metrics():
        files = app.config["METRICS_FILES"]
        return jsonify({name: load_snapshot(path) for name, path in files.items()})

    return app
