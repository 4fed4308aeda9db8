from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..core.models import FilterEvent, FilterStats


class FilterObserver(Protocol):
    """
    Receives one FilterEvent per span, then the run totals on clean completion.
    Implementations must not write to stdout: it carries the filtered dump.
    """

    def on_event(self, event: "FilterEvent") -> None:
        ...

    def on_finish(self, stats: "FilterStats") -> None:
        ...
