"""Per-table timing log.

Measures how long each ``CREATE TABLE`` phase and each ``INSERT INTO`` phase
of a table takes to stream through the filter and reports one line per
phase:

    default:  CREATE TABLE users took 12 ms
    csv:      CREATE,users,12

A create phase runs from ``CREATE TABLE t`` to the next phase boundary. An
insert phase starts at the first kept insert for a table and ends at
``UNLOCK TABLES``, the next ``CREATE TABLE`` or an insert for another table.
Excluded inserts are not timed.
"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional

from ..core.models import FilterDecision, FilterEvent, FilterStats, StatementKind

_log = logging.getLogger("dumpfilter.observers")

LogFormat = Literal["default", "csv"]

PHASE_CREATE = "CREATE TABLE"
PHASE_INSERT = "INSERT INTO"

_CSV_LABELS = {PHASE_CREATE: "CREATE", PHASE_INSERT: "INSERT"}


def _stderr_line(line: str) -> None:
    print(line, file=sys.stderr)


def format_timing(fmt: LogFormat, phase: str, table: str, elapsed_ms: int) -> str:
    if fmt == "csv":
        return f"{_CSV_LABELS[phase]},{table},{elapsed_ms}"
    return f"{phase} {table} took {elapsed_ms} ms"


@dataclass
class _Phase:
    name: str
    table: str
    started: float


@dataclass(frozen=True)
class TimingRecord:
    phase: str
    table: str
    elapsed_ms: int


class TimingObserver:
    def __init__(
        self,
        fmt: LogFormat = "default",
        *,
        emit: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if fmt not in ("default", "csv"):
            raise ValueError(f"unknown log format: {fmt!r}")
        self.fmt = fmt
        self._emit = emit or _stderr_line
        self._clock = clock
        self._current: Optional[_Phase] = None
        self.records: List[TimingRecord] = []

    def _close_phase(self) -> None:
        phase = self._current
        self._current = None
        if phase is None:
            return
        elapsed_ms = int((self._clock() - phase.started) * 1000)
        record = TimingRecord(phase=phase.name, table=phase.table, elapsed_ms=elapsed_ms)
        self.records.append(record)
        self._emit(format_timing(self.fmt, record.phase, record.table, record.elapsed_ms))

    def _open_phase(self, name: str, table: str) -> None:
        self._current = _Phase(name=name, table=table, started=self._clock())

    def on_event(self, event: FilterEvent) -> None:
        if event.keyword == PHASE_CREATE and event.table:
            self._close_phase()
            self._open_phase(PHASE_CREATE, event.table)
            return

        if event.kind == StatementKind.DATA_INSERTION and event.table:
            cur = self._current
            if cur is not None and cur.name == PHASE_INSERT and cur.table == event.table:
                return
            self._close_phase()
            if event.decision == FilterDecision.KEEP:
                self._open_phase(PHASE_INSERT, event.table)
            return

        if event.keyword == "UNLOCK TABLES":
            self._close_phase()

    def on_finish(self, stats: FilterStats) -> None:
        self._close_phase()
        _log.debug("timing log finished with %d phases", len(self.records))
