"""Local control script for the relay: run the components, inspect, inject logs.

    python pipeline.py start [--only bridge worker]
    python pipeline.py stop
    python pipeline.py status
    python pipeline.py push "db error" --log-type error
"""

import argparse
import json
import os
import signal
import subprocess
import sys
import time

from bridge.src.config import BridgeConfig
from shared.config_loader import load_yaml
from shared.job_queue import JobQueue, QueueConfig
from shared.models import LOG_TYPES, utc_now_iso
from shared.queue_client import QueueClientError, connect

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PID_FILE = os.path.join(BASE_DIR, ".pipeline.pids")

COMPONENTS = {
    "bridge": "bridge.main",
    "worker": "worker.main",
    "monitor": "monitor.main",
}


def read_pids(path: str = PID_FILE) -> list[tuple[str, int]]:
    """Parse ``name:pid`` lines; an absent file means nothing is running."""
    if not os.path.exists(path):
        return []
    pids = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            name, pid_str = line.split(":", 1)
            pids.append((name, int(pid_str)))
    return pids


def write_pids(pids: list[tuple[str, int]], path: str = PID_FILE) -> None:
    with open(path, "w") as f:
        for name, pid in pids:
            f.write(f"{name}:{pid}\n")


def is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def build_entry(message: str, log_type: str | None = None,
                timestamp: str | None = None) -> str:
    """Serialize one raw log entry the way the shipper writes it."""
    entry = {"message": message, "timestamp": timestamp or utc_now_iso()}
    if log_type:
        entry["log_type"] = log_type
    return json.dumps(entry)


def cmd_start(args) -> int:
    if any(is_alive(pid) for _, pid in read_pids()):
        print("Pipeline appears to be running. Run 'stop' first.")
        return 1

    env = os.environ.copy()
    env.setdefault("CONFIG_PATH", os.path.join(BASE_DIR, "config.yml"))
    env["PYTHONPATH"] = BASE_DIR
    for d in ("logs", "data"):
        os.makedirs(os.path.join(BASE_DIR, d), exist_ok=True)

    procs: list[tuple[str, subprocess.Popen]] = []
    for name in args.only or list(COMPONENTS):
        p = subprocess.Popen([sys.executable, "-m", COMPONENTS[name]], cwd=BASE_DIR, env=env)
        procs.append((name, p))
        print(f"Started {name} (PID {p.pid})")
        time.sleep(0.5)
    write_pids([(name, p.pid) for name, p in procs])
    print("Use 'python pipeline.py stop' to shut down.")

    def _shutdown(signum, frame):
        print("\nStopping components...")
        for _, p in procs:
            p.send_signal(signal.SIGTERM)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    codes = [p.wait() for _, p in procs]
    if os.path.exists(PID_FILE):
        os.remove(PID_FILE)
    print("All components stopped.")
    return max(codes, default=0)


def cmd_stop(args) -> int:
    pids = read_pids()
    if not pids:
        print("No PID file found. Pipeline may not be running.")
        return 0
    for name, pid in pids:
        try:
            os.kill(pid, signal.SIGTERM)
            print(f"Sent SIGTERM to {name} (PID {pid})")
        except ProcessLookupError:
            print(f"{name} (PID {pid}) already stopped")
    os.remove(PID_FILE)
    return 0


def _connect_from_config():
    raw = load_yaml(os.path.join(BASE_DIR, "config.yml"))
    client = connect(raw["redis"]["url"])
    return client, JobQueue(client, QueueConfig.from_dict(raw["queue"])), \
        BridgeConfig.from_dict(raw["bridge"])


def cmd_status(args) -> int:
    for name, pid in read_pids():
        print(f"{name:<8} PID {pid:<8} {'running' if is_alive(pid) else 'dead'}")

    client, job_queue, bridge_cfg = _connect_from_config()
    try:
        print(f"{bridge_cfg.raw_list}: {client.length(bridge_cfg.raw_list)}")
        print(f"{bridge_cfg.in_processing_list}: {client.length(bridge_cfg.in_processing_list)}")
        for state, count in job_queue.counts().items():
            print(f"{job_queue.name}:{state}: {count}")
    except QueueClientError as e:
        print(f"Store unavailable: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_push(args) -> int:
    client, _, bridge_cfg = _connect_from_config()
    for _ in range(args.count):
        client.push_head(bridge_cfg.raw_list, build_entry(args.message, args.log_type))
    print(f"Pushed {args.count} entr{'y' if args.count == 1 else 'ies'} to {bridge_cfg.raw_list}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control the log relay pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Run components in the foreground")
    start.add_argument("--only", nargs="+", choices=list(COMPONENTS),
                       help="Components to start (default: all)")
    start.set_defaults(func=cmd_start)

    sub.add_parser("stop", help="Signal running components").set_defaults(func=cmd_stop)
    sub.add_parser("status", help="Show processes and list depths").set_defaults(func=cmd_status)

    push = sub.add_parser("push", help="Write a log entry to the raw list")
    push.add_argument("message")
    push.add_argument("--log-type", choices=list(LOG_TYPES))
    push.add_argument("--count", type=int, default=1)
    push.set_defaults(func=cmd_push)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
