"""
app/core/logging.py — loguru structured JSON logging setup
Every assignment, prayer, cache refresh, rate-limit decision and error is
emitted as one JSON record on stdout.
"""
from __future__ import annotations

import json
import sys
import traceback
from typing import Any, Optional

from loguru import logger

from app.utils.timezone import iso_utc


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru for structured JSON output to stdout.
    The hosting platform collects stdout.
    """
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,
        backtrace=True,
        diagnose=False,  # no local variable dumps in production
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": iso_utc(),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Log event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_cache_refresh(
    pool_size: int,
    reason: str,  # cold_start | ttl_expired | low_watermark | manual
    latency_ms: float,
) -> None:
    record = _build_log_record("candidate_pool", "refresh", {
        "pool_size": pool_size,
        "reason": reason,
        "latency_ms": round(latency_ms, 2),
    })
    logger.info(json.dumps(record))


def log_assignment(
    person_id: Optional[str],
    branch: Optional[str],  # low_count | exploration
    pool_size: int,
) -> None:
    """Every assignment attempt is logged, including empty-pool outcomes."""
    record = _build_log_record("assignment_selector", "assign", {
        "person_id": person_id,
        "branch": branch,
        "pool_size": pool_size,
    })
    logger.info(json.dumps(record))


def log_prayer_recorded(
    prayer_id: str,
    person_id: str,
    cemetery_id: str,
    prayer_type: str,
    first_prayer: bool,
) -> None:
    record = _build_log_record("prayer_recorder", "record", {
        "prayer_id": prayer_id,
        "person_id": person_id,
        "cemetery_id": cemetery_id,
        "prayer_type": prayer_type,
        "first_prayer": first_prayer,
    })
    logger.info(json.dumps(record))


def log_rate_limit(
    namespace: str,
    window_key: str,
    allowed: bool,
    session_count: Optional[int] = None,
    ip_count: Optional[int] = None,
    retry_after_seconds: Optional[int] = None,
) -> None:
    """Denials at INFO, admissions at DEBUG."""
    record = _build_log_record("rate_limiter", "decision", {
        "namespace": namespace or "assign",
        "window_key": window_key,
        "allowed": allowed,
        "session_count": session_count,
        "ip_count": ip_count,
        "retry_after_seconds": retry_after_seconds,
    })
    if allowed:
        logger.debug(json.dumps(record))
    else:
        logger.info(json.dumps(record))


def log_store_operation(
    table: str,
    operation: str,  # get | put | update | query | scan
    success: bool,
    latency_ms: float,
    error: Optional[str] = None,
) -> None:
    record = _build_log_record("store", operation, {
        "table": table,
        "success": success,
        "latency_ms": round(latency_ms, 2),
        "error": error,
    })
    if success:
        logger.debug(json.dumps(record))
    else:
        logger.warning(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every error is logged with full context."""
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
