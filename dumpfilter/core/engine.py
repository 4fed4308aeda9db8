"""Filter engine: scanner + classifier + exclusion set -> output sink.

For every span, in input order:

1. classify it,
2. drop it when it is an ``INSERT`` into an excluded table, keep it otherwise,
3. write kept spans to the sink byte for byte,
4. notify observers with a ``FilterEvent``.

Observers are fire-and-forget: an observer that raises is logged and
ignored, it never changes what is written.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, BinaryIO, Iterable, List, Optional, Union

from .classifier import classify
from .models import Classification, FilterDecision, FilterEvent, FilterStats, StatementKind, StatementSpan
from .scanner import DEFAULT_CHUNK_SIZE, StatementScanner
from .sink import OutputSink
from ..observers import FilterObserver

_log = logging.getLogger("dumpfilter.engine")


def is_excluded_table(table: str, exclude: AbstractSet[str]) -> bool:
    """Exact, case-sensitive match: ``shop.users`` is not excluded by ``users``."""
    return table in exclude


class FilterEngine:
    def __init__(
        self,
        exclude: Iterable[str] = (),
        *,
        scanner: Optional[StatementScanner] = None,
        observers: Iterable[FilterObserver] = (),
    ):
        self.exclude = frozenset(exclude)
        self.scanner = scanner or StatementScanner()
        self._observers: List[FilterObserver] = list(observers)

    def add_observer(self, observer: FilterObserver) -> None:
        self._observers.append(observer)

    def is_excluded(self, table: str) -> bool:
        return is_excluded_table(table, self.exclude)

    def decide(self, classification: Classification) -> FilterDecision:
        if classification.kind == StatementKind.DATA_INSERTION and classification.table is not None:
            if self.is_excluded(classification.table):
                return FilterDecision.DROP
        return FilterDecision.KEEP

    def process(self, span: StatementSpan) -> FilterEvent:
        if span.trivia:
            classification = Classification.other()
        else:
            classification = classify(span.data)
        decision = self.decide(classification)

        if not span.terminated and not span.trivia:
            if decision == FilterDecision.DROP:
                _log.warning(
                    "dropping unterminated final statement for excluded table %s (%d bytes at offset %d)",
                    classification.table,
                    len(span),
                    span.start,
                )
            else:
                _log.info("passing through unterminated final statement (%d bytes at offset %d)", len(span), span.start)

        return FilterEvent(
            offset=span.start,
            kind=classification.kind,
            decision=decision,
            byte_length=len(span),
            table=classification.table,
            keyword=classification.keyword,
            terminated=span.terminated or span.trivia,
        )

    def run(self, source: BinaryIO, sink: OutputSink) -> FilterStats:
        stats = FilterStats()
        for span in self.scanner.scan(source):
            event = self.process(span)
            if event.decision == FilterDecision.KEEP:
                sink.write(span.data)
            stats.record(event)
            self._notify("on_event", event)
        sink.flush()

        _log.info(
            "filtered %d statements: kept=%d dropped=%d bytes_read=%d bytes_written=%d",
            stats.statements_total,
            stats.statements_kept,
            stats.statements_dropped,
            stats.bytes_read,
            stats.bytes_written,
        )
        self._notify("on_finish", stats)
        return stats

    def _notify(self, hook: str, payload: Union[FilterEvent, FilterStats]) -> None:
        for observer in self._observers:
            try:
                getattr(observer, hook)(payload)
            except Exception as exc:
                _log.warning("observer %s.%s failed: %s", type(observer).__name__, hook, exc)


def filter_dump(
    source: BinaryIO,
    output: BinaryIO,
    exclude: Iterable[str] = (),
    *,
    observers: Iterable[FilterObserver] = (),
    dialect: str = "mysql",
    backslash_escapes: Optional[bool] = None,
    chunk_size: Optional[int] = None,
) -> FilterStats:
    scanner = StatementScanner(
        dialect=dialect,
        backslash_escapes=backslash_escapes,
        chunk_size=chunk_size or DEFAULT_CHUNK_SIZE,
    )
    engine = FilterEngine(exclude, scanner=scanner, observers=observers)
    return engine.run(source, OutputSink(output))
