from __future__ import annotations

import os
import stat
import sys
from typing import AbstractSet, BinaryIO, Optional, TextIO

from tqdm import tqdm

from ..core.engine import is_excluded_table
from ..core.models import FilterEvent, FilterStats

IDLE_MESSAGE = "Processing..."


def stream_size(stream: BinaryIO) -> Optional[int]:
    """Size of a regular-file stream, or None for pipes and in-memory buffers."""
    try:
        st = os.fstat(stream.fileno())
    except (AttributeError, OSError, ValueError):
        return None
    if not stat.S_ISREG(st.st_mode):
        return None
    return st.st_size


class ProgressObserver:
    """
    Byte progress bar on stderr, driven by the span lengths in filter events.

    The postfix names the table currently being streamed and marks it with
    "(skip)" when its inserts are excluded.
    """

    def __init__(
        self,
        total: Optional[int] = None,
        *,
        exclude: AbstractSet[str] = frozenset(),
        file: Optional[TextIO] = None,
        disable: bool = False,
        mininterval: float = 0.1,
    ):
        self.exclude = exclude
        self._bar = tqdm(
            total=total,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            file=file if file is not None else sys.stderr,
            disable=disable,
            mininterval=mininterval,
            dynamic_ncols=True,
        )
        self._bar.set_postfix_str(IDLE_MESSAGE, refresh=False)
        self.message = IDLE_MESSAGE

    @property
    def bar(self) -> tqdm:
        return self._bar

    def write(self, line: str) -> None:
        """Print a line above the bar without corrupting it."""
        self._bar.write(line, file=self._bar.fp)

    def _set_message(self, message: str) -> None:
        if message != self.message:
            self.message = message
            self._bar.set_postfix_str(message, refresh=False)

    def on_event(self, event: FilterEvent) -> None:
        if event.keyword == "CREATE TABLE" and event.table:
            suffix = " (skip)" if is_excluded_table(event.table, self.exclude) else ""
            self._set_message(f"Table: {event.table}{suffix}")
        elif event.keyword == "UNLOCK TABLES":
            self._set_message(IDLE_MESSAGE)
        self._bar.update(event.byte_length)

    def on_finish(self, stats: FilterStats) -> None:
        self._bar.refresh()

    def close(self) -> None:
        self._bar.close()

    def __enter__(self) -> "ProgressObserver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
