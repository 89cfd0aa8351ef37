"""
Structured JSON event logging.

One flat, queryable record per milestone computation, guest import and
geocoding batch. Operational logs keep going through module loggers.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# Dedicated logger for trace events (separate from operational logs)
_trace_logger: Optional[logging.Logger] = None


def _get_trace_logger() -> logging.Logger:
    """Get or create the trace logger with JSON formatting."""
    global _trace_logger
    if _trace_logger is not None:
        return _trace_logger

    _trace_logger = logging.getLogger("weddingplan.trace")
    _trace_logger.setLevel(logging.INFO)
    _trace_logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)

    class JsonFormatter(logging.Formatter):
        def format(self, record: logging.LogRecord) -> str:
            if isinstance(record.msg, dict):
                return json.dumps(record.msg, default=str, ensure_ascii=False)
            return super().format(record)

    handler.setFormatter(JsonFormatter())
    _trace_logger.addHandler(handler)

    return _trace_logger


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_milestone_run(
    *,
    wedding_id: str,
    completed_count: int,
    total_count: int,
    next_milestone: Optional[str],
    missing_inputs: list[str],
) -> None:
    """
    Log one record per milestone computation.

    Args:
        wedding_id: Tenant the report was computed for
        completed_count / total_count: Report counts
        next_milestone: id of the first non-complete milestone, if any
        missing_inputs: Collections whose fetch failed and were treated as empty
    """
    record: dict[str, Any] = {
        "type": "milestone_run",
        "ts": _now_iso(),
        "wedding_id": wedding_id,
        "completed": completed_count,
        "total": total_count,
        "next": next_milestone,
    }
    if missing_inputs:
        record["missing_inputs"] = missing_inputs

    _get_trace_logger().info(record)


def log_guest_import(
    *,
    wedding_id: str,
    imported: int,
    duplicates_skipped: int,
    rows_skipped: int,
) -> None:
    _get_trace_logger().info({
        "type": "guest_import",
        "ts": _now_iso(),
        "wedding_id": wedding_id,
        "imported": imported,
        "duplicates_skipped": duplicates_skipped,
        "rows_skipped": rows_skipped,
    })


def log_geocode_batch(*, wedding_id: str, requested: int, resolved: int) -> None:
    _get_trace_logger().info({
        "type": "geocode_batch",
        "ts": _now_iso(),
        "wedding_id": wedding_id,
        "requested": requested,
        "resolved": resolved,
    })
