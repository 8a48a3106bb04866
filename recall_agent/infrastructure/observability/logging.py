import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from recall_agent import __version__

_TURN_KEYS = ("turn_id", "user_id", "conversation_id")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "recall-agent"
) -> None:
    """Route structlog through stdlib logging with one renderer for the whole process"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            add_turn_context,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name, version=__version__)


def add_turn_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy turn identifiers bound by the orchestrator onto entries that lack them"""

    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    bound = structlog.contextvars.get_contextvars()
    for key in _TURN_KEYS:
        if bound.get(key) is not None:
            event_dict.setdefault(key, bound[key])

    return event_dict


class TurnLogger:
    """Event names and fields shared by everything that touches a turn"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_turn_event(self, step: str, turn_id: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.logger.info("turn_event", step=step, turn_id=turn_id, data=data or {}, **kwargs)

    def log_provider_call(
        self,
        provider: str,
        operation: str,
        duration_ms: float,
        success: bool = True,
        error: Optional[str] = None
    ):
        log = self.logger.info if success else self.logger.warning
        log(
            "provider_call",
            provider=provider,
            operation=operation,
            duration_ms=round(duration_ms, 2),
            success=success,
            error=error
        )

    def log_action(self, turn_id: str, kind: str, executed: bool, details: Optional[Dict[str, Any]] = None):
        self.logger.info("action_directive", turn_id=turn_id, kind=kind, executed=executed, details=details or {})


turn_logger = TurnLogger("recall_agent.turn")


@dataclass
class LatencyStats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: float = 0.0

    def add(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0.0,
            "min": self.min_ms or 0.0,
            "max": self.max_ms,
        }


class MetricsCollector:
    """In-process latency and counter metrics, reported by the health endpoint"""

    def __init__(self):
        self.latencies: Dict[str, LatencyStats] = {}
        self.counters: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)
        turn_logger.logger.debug("metric", kind="latency", operation=operation, duration_ms=duration_ms, tags=tags or {})

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        # Tags are logged, not part of the counter key
        self.counters[name] = self.counters.get(name, 0) + value
        turn_logger.logger.debug("metric", kind="counter", name=name, value=value, tags=tags or {})

    def get_metrics_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {f"latency.{op}": stats.summary() for op, stats in self.latencies.items()}
        summary.update(self.counters)
        return summary


metrics = MetricsCollector()
