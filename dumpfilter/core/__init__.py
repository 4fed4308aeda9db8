from .classifier import classify, extract_identifier
from .engine import FilterEngine, filter_dump
from .errors import DumpFilterError, DumpReadError, DumpWriteError, MalformedStatementError
from .models import (
    Classification,
    FilterDecision,
    FilterEvent,
    FilterStats,
    ScanState,
    StatementKind,
    StatementSpan,
)
from .scanner import DEFAULT_CHUNK_SIZE, DIALECTS, StatementScanner, iter_statements
from .sink import OutputSink

__all__ = [
    "Classification",
    "DEFAULT_CHUNK_SIZE",
    "DIALECTS",
    "DumpFilterError",
    "DumpReadError",
    "DumpWriteError",
    "FilterDecision",
    "FilterEngine",
    "FilterEvent",
    "FilterStats",
    "MalformedStatementError",
    "OutputSink",
    "ScanState",
    "StatementKind",
    "StatementScanner",
    "StatementSpan",
    "classify",
    "extract_identifier",
    "filter_dump",
    "iter_statements",
]
