from __future__ import annotations

import json
import time

from flask import current_app


def task_log(task_name: str, *, status: str, started_at: float, trace_id: str = "", **extra) -> None:
    payload = {
        "event": "celery.task",
        "task": task_name,
        "status": status,
        "duration_ms": int(max(0.0, time.perf_counter() - float(started_at)) * 1000.0),
        "trace_id": str(trace_id or ""),
    }
    payload.update(extra)
    level = "warning" if status == "failed" else "info"
    getattr(current_app.logger, level)(json.dumps(payload, separators=(",", ":"), default=str))
