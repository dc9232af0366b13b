"""Observability helpers for carouselsearch."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "carouselsearch") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class RetrievalMetrics:
    """Prometheus metrics for indexing and search."""

    search_latency = Histogram(
        "carouselsearch_search_duration_seconds",
        "Time spent answering a search, by the strategy that answered it.",
        ["strategy"],
        buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    )
    search_results = Histogram(
        "carouselsearch_search_result_count",
        "Number of hits returned per search.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    fallbacks = Counter(
        "carouselsearch_search_fallback_total",
        "Searches that fell back to lexical ranking.",
        ["reason"],
    )
    hydration_misses = Counter(
        "carouselsearch_hydration_miss_total",
        "Vector matches dropped because the document could not be fetched.",
    )
    lexical_candidates = Histogram(
        "carouselsearch_lexical_candidate_count",
        "Documents scanned by the lexical ranker per search.",
        buckets=(0, 5, 10, 25, 50, 100),
    )
    upserts = Counter(
        "carouselsearch_upsert_total",
        "Single-document index operations, by outcome.",
        ["outcome"],
    )
    upsert_latency = Histogram(
        "carouselsearch_upsert_duration_seconds",
        "Time spent indexing one document.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0),
    )

    @classmethod
    def observe_search(cls, strategy: str, duration_seconds: float, hit_count: int) -> None:
        cls.search_latency.labels(strategy=strategy).observe(duration_seconds)
        cls.search_results.observe(hit_count)

    @classmethod
    def observe_fallback(cls, reason: str) -> None:
        cls.fallbacks.labels(reason=reason).inc()

    @classmethod
    def observe_upsert(cls, outcome: str, duration_seconds: float) -> None:
        cls.upserts.labels(outcome=outcome).inc()
        cls.upsert_latency.observe(duration_seconds)


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.elapsed = time.perf_counter() - self._start


__all__ = [
    "RetrievalMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
