"""Logging and observability for Projitive.

Every logger lives under the ``projitive`` tree. Console output goes to
stderr; an optional file handler writes one JSON object per line. Ledger
events (loads, saves, transitions, selections, confidence scores) are
emitted through :class:`ObservabilityHooks` so that callers can subscribe
to them without touching the workflow code.
"""

from __future__ import annotations

import json
import logging as std_logging
import sys
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Union

ROOT_LOGGER = "projitive"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s"

# Samples kept per metric; older ones are dropped first.
MAX_SAMPLES_PER_METRIC = 500

# Fields lifted to the top level of a JSON entry when present on a record.
LEDGER_FIELDS = ("governance_dir", "task_id", "operation")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure the ``projitive`` logger tree.

    Calling it again replaces the previous handlers.
    """
    root = std_logging.getLogger(ROOT_LOGGER)
    root.setLevel(log_level)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    console = std_logging.StreamHandler(sys.stderr)
    console.setLevel(log_level)
    console.setFormatter(std_logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(console)

    if log_file:
        json_handler = std_logging.FileHandler(log_file, encoding="utf-8")
        json_handler.setLevel(std_logging.DEBUG)
        json_handler.setFormatter(JsonFormatter())
        root.addHandler(json_handler)

    root.info("Projitive logging initialized")


class JsonFormatter(std_logging.Formatter):
    """One JSON object per record, with ``extra_fields`` merged in."""

    def format(self, record: std_logging.LogRecord) -> str:
        extra: Dict[str, Any] = getattr(record, "extra_fields", None) or {}
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for name in LEDGER_FIELDS:
            if name in extra:
                entry[name] = extra[name]
        entry.update(extra)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class PerformanceMonitor:
    """Keeps the most recent timings of workflow operations in memory, keyed by metric name."""

    def __init__(self, max_samples: int = MAX_SAMPLES_PER_METRIC):
        self.max_samples = max_samples
        self.metrics: Dict[str, Deque[Dict[str, Any]]] = {}
        self._logger = std_logging.getLogger(f"{ROOT_LOGGER}.performance")

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        sample = {"timestamp": _utc_now(), "name": name, "value": value, "tags": dict(tags or {})}
        self.metrics.setdefault(name, deque(maxlen=self.max_samples)).append(sample)
        self._logger.debug("Metric recorded: %s=%s", name, value, extra={"extra_fields": sample})

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        if name:
            return {name: list(self.metrics.get(name, []))}
        return {key: list(samples) for key, samples in self.metrics.items()}

    def summary(self, name: str) -> Dict[str, float]:
        """Count, total and max of the numeric samples recorded under ``name``."""
        values = [s["value"] for s in self.metrics.get(name, []) if isinstance(s["value"], (int, float))]
        return {
            "count": len(values),
            "total": float(sum(values)),
            "max": float(max(values)) if values else 0.0,
        }

    def reset(self) -> None:
        self.metrics.clear()


performance_monitor = PerformanceMonitor()


class _Timer:
    def __init__(self):
        self._start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._start


def _failure_fields(error: BaseException) -> Dict[str, Any]:
    return {"error_type": type(error).__name__, "error_message": str(error)}


def log_performance(operation_name: str):
    """Record how long ``operation_name`` takes, tagging the sample with its outcome.

    Exceptions are logged at warning level and re-raised unchanged.
    """
    metric_name = f"{operation_name}_duration"
    logger = std_logging.getLogger(f"{ROOT_LOGGER}.performance")

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            timer = _Timer()
            logger.debug("Starting operation: %s", operation_name)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                elapsed = timer.elapsed
                performance_monitor.record_metric(
                    metric_name, elapsed, {"status": "error", "error_type": type(exc).__name__}
                )
                logger.warning(
                    "Failed operation: %s after %.3fs - %s", operation_name, elapsed, exc,
                    extra={"extra_fields": {
                        "operation": operation_name, "duration": elapsed, "status": "error", **_failure_fields(exc),
                    }},
                )
                raise
            elapsed = timer.elapsed
            performance_monitor.record_metric(metric_name, elapsed, {"status": "success"})
            logger.info(
                "Completed operation: %s in %.3fs", operation_name, elapsed,
                extra={"extra_fields": {"operation": operation_name, "duration": elapsed, "status": "success"}},
            )
            return result

        return wrapper

    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields) -> Iterator[None]:
    """Wrap a block (typically a ledger write) in started/completed/failed records."""
    logger = std_logging.getLogger(f"{ROOT_LOGGER}.operations")
    fields = {"operation": operation_name, **extra_fields}
    timer = _Timer()
    logger.debug("Starting operation: %s", operation_name, extra={"extra_fields": {**fields, "status": "started"}})
    try:
        yield
    except Exception as exc:
        logger.error(
            "Failed operation: %s after %.3fs - %s", operation_name, timer.elapsed, exc,
            extra={"extra_fields": {**fields, "status": "failed", "duration": timer.elapsed, **_failure_fields(exc)}},
            exc_info=True,
        )
        raise
    logger.info(
        "Completed operation: %s in %.3fs", operation_name, timer.elapsed,
        extra={"extra_fields": {**fields, "status": "completed", "duration": timer.elapsed}},
    )


class ObservabilityHooks:
    """Subscribers for ledger events, keyed by event type."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = std_logging.getLogger(f"{ROOT_LOGGER}.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug("Registered hook for event: %s", event_type)

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        callbacks = self.hooks.get(event_type)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Call every subscriber of ``event_type``.

        A subscriber that raises is logged and skipped; the rest still run.
        """
        for callback in list(self.hooks.get(event_type, [])):
            try:
                callback(**data)
            except Exception as exc:
                self.logger.error("Hook failed for event %s: %s", event_type, exc, exc_info=True)

    def log_workflow_event(self, event_type: str, governance_dir: Optional[str] = None, **data) -> None:
        payload = {"timestamp": _utc_now(), "governance_dir": governance_dir, **data}
        self.logger.info(
            "Workflow event: %s", event_type,
            extra={"extra_fields": {"event_type": event_type, **payload}},
        )
        self.trigger_hooks(event_type, **payload)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log ``error`` with the tool context that produced it; ProjitiveError codes are included."""
    logger = std_logging.getLogger(f"{ROOT_LOGGER}.errors")
    operation = context.get("operation", "unknown operation")
    logger.error(
        "Error in %s: %s", operation, error,
        extra={"extra_fields": {
            "timestamp": _utc_now(),
            "error_code": getattr(error, "code", None),
            "context": context,
            **_failure_fields(error),
            **extra_fields,
        }},
    )


def log_ledger_loaded(governance_dir: str, tasks_path: str, task_count: int, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "ledger_loaded", governance_dir, tasks_path=tasks_path, task_count=task_count, **extra_fields
    )


def log_ledger_saved(governance_dir: str, tasks_path: str, task_count: int, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "ledger_saved", governance_dir, tasks_path=tasks_path, task_count=task_count, **extra_fields
    )


def log_task_transition(governance_dir: str, task_id: str, from_status: str, to_status: str, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "task_transition", governance_dir,
        task_id=task_id, from_status=from_status, to_status=to_status, **extra_fields
    )


def log_task_selected(governance_dir: str, task_id: str, candidate_count: int, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "task_selected", governance_dir, task_id=task_id, candidate_count=candidate_count, **extra_fields
    )


def log_confidence_calculated(governance_dir: str, score: float, recommendation: str, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "confidence_calculated", governance_dir, score=score, recommendation=recommendation, **extra_fields
    )
