"""Prometheus counters for a filter run.

Each observer owns its own ``CollectorRegistry`` so that several runs in one
process (tests, library use) never collide on metric names. The registry can
be rendered with ``generate_latest`` or written in text exposition format for
the node-exporter textfile collector.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest, write_to_textfile

from ..core.models import FilterDecision, FilterEvent, FilterStats

_log = logging.getLogger("dumpfilter.metrics")


class MetricsObserver:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._statements = Counter(
            "dumpfilter_statements_total",
            "Statements seen by the dump filter",
            ["kind", "decision"],
            registry=self.registry,
        )
        self._bytes = Counter(
            "dumpfilter_bytes_total",
            "Dump bytes seen by the dump filter",
            ["decision"],
            registry=self.registry,
        )
        self._dropped = Counter(
            "dumpfilter_dropped_statements_total",
            "Insert statements dropped per table",
            ["table"],
            registry=self.registry,
        )
        self._unterminated = Counter(
            "dumpfilter_unterminated_statements_total",
            "Spans that ended without a statement terminator",
            registry=self.registry,
        )
        self._finished = Gauge(
            "dumpfilter_last_run_completed",
            "1 when the last run reached end of input",
            registry=self.registry,
        )

    def on_event(self, event: FilterEvent) -> None:
        self._statements.labels(kind=event.kind.value, decision=event.decision.value).inc()
        self._bytes.labels(decision=event.decision.value).inc(event.byte_length)
        if event.decision == FilterDecision.DROP and event.table:
            self._dropped.labels(table=event.table).inc()
        if not event.terminated:
            self._unterminated.inc()

    def on_finish(self, stats: FilterStats) -> None:
        self._finished.set(1)

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        value = self.registry.get_sample_value(name, labels or {})
        return float(value) if value is not None else 0.0

    def render(self) -> bytes:
        return generate_latest(self.registry)

    def write_textfile(self, path: Union[str, Path]) -> None:
        write_to_textfile(str(path), self.registry)
        _log.info("wrote metrics to %s", path)
