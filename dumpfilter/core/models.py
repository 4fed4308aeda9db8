from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ScanState(str, Enum):
    NORMAL = "NORMAL"
    SINGLE_QUOTED = "SINGLE_QUOTED"
    DOUBLE_QUOTED = "DOUBLE_QUOTED"
    BACKTICK_QUOTED = "BACKTICK_QUOTED"
    ESCAPE = "ESCAPE"
    LINE_COMMENT = "LINE_COMMENT"
    BLOCK_COMMENT = "BLOCK_COMMENT"

    # one-byte lookahead for two-byte markers ("--", "/*", "*/")
    DASH_PENDING = "DASH_PENDING"
    DOUBLE_DASH_PENDING = "DOUBLE_DASH_PENDING"
    SLASH_PENDING = "SLASH_PENDING"
    COMMENT_OPEN = "COMMENT_OPEN"
    STAR_PENDING = "STAR_PENDING"

    # PostgreSQL $tag$...$tag$ strings and COPY ... FROM stdin data rows
    DOLLAR_TAG = "DOLLAR_TAG"
    DOLLAR_QUOTED = "DOLLAR_QUOTED"
    COPY_DATA = "COPY_DATA"

    # whitespace and newline following a terminator
    TRAILER = "TRAILER"


class StatementKind(str, Enum):
    DATA_INSERTION = "data_insertion"
    OTHER = "other"


class FilterDecision(str, Enum):
    KEEP = "keep"
    DROP = "drop"


@dataclass(frozen=True)
class StatementSpan:
    start: int
    data: bytes
    terminated: bool = True
    trivia: bool = False

    @property
    def end(self) -> int:
        return self.start + len(self.data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Classification:
    kind: StatementKind
    table: Optional[str] = None
    keyword: Optional[str] = None

    @staticmethod
    def other(keyword: Optional[str] = None, table: Optional[str] = None) -> "Classification":
        return Classification(kind=StatementKind.OTHER, table=table, keyword=keyword)

    @staticmethod
    def insertion(table: str) -> "Classification":
        return Classification(kind=StatementKind.DATA_INSERTION, table=table, keyword="INSERT INTO")


@dataclass(frozen=True)
class FilterEvent:
    offset: int
    kind: StatementKind
    decision: FilterDecision
    byte_length: int
    table: Optional[str] = None
    keyword: Optional[str] = None
    terminated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offset": self.offset,
            "kind": self.kind.value,
            "decision": self.decision.value,
            "byte_length": self.byte_length,
            "table": self.table,
            "keyword": self.keyword,
            "terminated": self.terminated,
        }


@dataclass
class FilterStats:
    statements_kept: int = 0
    statements_dropped: int = 0
    bytes_read: int = 0
    bytes_written: int = 0
    unterminated: int = 0
    dropped_by_table: Counter = field(default_factory=Counter)

    @property
    def statements_total(self) -> int:
        return self.statements_kept + self.statements_dropped

    @property
    def bytes_dropped(self) -> int:
        return self.bytes_read - self.bytes_written

    def record(self, event: FilterEvent) -> None:
        self.bytes_read += event.byte_length
        if not event.terminated:
            self.unterminated += 1
        if event.decision == FilterDecision.DROP:
            self.statements_dropped += 1
            if event.table:
                self.dropped_by_table[event.table] += 1
        else:
            self.statements_kept += 1
            self.bytes_written += event.byte_length

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statements_total": self.statements_total,
            "statements_kept": self.statements_kept,
            "statements_dropped": self.statements_dropped,
            "bytes_read": self.bytes_read,
            "bytes_written": self.bytes_written,
            "bytes_dropped": self.bytes_dropped,
            "unterminated": self.unterminated,
            "dropped_by_table": dict(self.dropped_by_table),
        }
