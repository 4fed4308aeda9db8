"""Streaming statement scanner for SQL dump files.

Splits a binary stream into ``StatementSpan`` objects at top-level ``;``
terminators. Quoted literals, backslash escapes and comments are tracked with
an explicit ``ScanState`` so that a ``;`` inside ``'a;b'`` or ``-- x;`` never
ends a statement.

Only the bytes of the statement currently being scanned are buffered. Spans
are yielded in order and, concatenated, reproduce the input exactly.

Whitespace and plain comments between statements ("trivia") are yielded as
their own spans right before the next statement starts, so dropping a
statement never takes a preceding comment block with it.

Dialects:

- ``mysql``: backslash escapes inside strings, ``#`` line comments, and
  ``--`` starts a comment only when followed by a blank or control byte.
- ``postgresql``: backslash is literal (``standard_conforming_strings``),
  ``--`` always starts a comment, and ``$tag$ ... $tag$`` strings are inert.

In both dialects the rows of a ``COPY ... FROM stdin;`` block, up to the
closing ``\\.`` line, belong to the COPY statement's span.
"""

from __future__ import annotations

import logging
import re
from typing import BinaryIO, Iterator, Optional

from .errors import DumpReadError
from .models import ScanState, StatementSpan

_log = logging.getLogger("dumpfilter.scanner")

DEFAULT_CHUNK_SIZE = 64 * 1024
DIALECTS = ("mysql", "postgresql")

_SEMICOLON = ord(";")
_SINGLE = ord("'")
_DOUBLE = ord('"')
_BACKTICK = ord("`")
_BACKSLASH = ord("\\")
_DASH = ord("-")
_SLASH = ord("/")
_STAR = ord("*")
_HASH = ord("#")
_DOLLAR = ord("$")
_NEWLINE = ord("\n")
_TRAILER_SPACE = frozenset(b" \t\r")
# /*!40101 ... */ and /*+ ... */ are executed by MySQL, so they are content
_EXECUTABLE_COMMENT = frozenset(b"!+")
# bytes that may follow "--" in a MySQL comment
_COMMENT_BLANK = frozenset(range(0x21)) | {0x7F}

_TAG_BYTES = frozenset(b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_") | frozenset(
    range(0x80, 0x100)
)
_IDENT_BYTES = _TAG_BYTES | {_DOLLAR}
_DIGITS = frozenset(b"0123456789")

_NON_SPACE = re.compile(rb"[^ \t\r\n\f\v]")
_COPY_FROM_STDIN = re.compile(rb"COPY\s.*?\sFROM\s+STDIN\b[^;]*;\Z", re.IGNORECASE | re.DOTALL)
_COPY_END = (b"\\.\n", b"\\.\r\n")


class StatementScanner:
    """Single-pass scanner. ``scan`` may be called again for a new stream."""

    def __init__(
        self,
        *,
        dialect: str = "mysql",
        backslash_escapes: Optional[bool] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if dialect not in DIALECTS:
            raise ValueError(f"unknown dialect {dialect!r}, expected one of {', '.join(DIALECTS)}")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.dialect = dialect
        self.backslash_escapes = (dialect == "mysql") if backslash_escapes is None else backslash_escapes
        self.chunk_size = int(chunk_size)
        self._mysql = dialect == "mysql"

        if self.backslash_escapes:
            single, double = rb"['\\]", rb"[\"\\]"
        else:
            single, double = rb"'", rb'"'
        normal = rb"[;'\"`/\-#]" if self._mysql else rb"[;'\"`/\-$]"
        self._special = {
            ScanState.NORMAL: re.compile(normal),
            ScanState.SINGLE_QUOTED: re.compile(single),
            ScanState.DOUBLE_QUOTED: re.compile(double),
            ScanState.BACKTICK_QUOTED: re.compile(rb"`"),
            ScanState.LINE_COMMENT: re.compile(rb"\n"),
            ScanState.BLOCK_COMMENT: re.compile(rb"\*"),
            ScanState.DOLLAR_QUOTED: re.compile(rb"\$"),
            ScanState.COPY_DATA: re.compile(rb"\n"),
        }

    def _read_chunks(self, stream: BinaryIO) -> Iterator[bytes]:
        offset = 0
        while True:
            try:
                chunk = stream.read(self.chunk_size)
            except OSError as exc:
                raise DumpReadError(f"failed to read dump input: {exc}", offset=offset) from exc
            if not chunk:
                return
            offset += len(chunk)
            yield bytes(chunk)

    def scan(self, stream: BinaryIO) -> Iterator[StatementSpan]:
        special = self._special
        mysql = self._mysql
        state = ScanState.NORMAL
        resume = ScanState.NORMAL  # quoted state to return to after ESCAPE
        buf = bytearray()
        start = 0
        significant = False  # buf holds more than whitespace and plain comments
        mark = 0  # buf index where a pending "-" or "/" was seen
        copy_pending = False  # the terminated statement is COPY ... FROM stdin
        line_start = 0  # buf index of the current COPY data row
        tag = b""  # dollar-quote delimiter, "$$" or "$name$"
        tag_start = 0
        body_start = 0

        for chunk in self._read_chunks(stream):
            i = 0
            n = len(chunk)
            while i < n:
                if state is ScanState.NORMAL and not significant:
                    m = _NON_SPACE.search(chunk, i)
                    if m is None:
                        buf += chunk[i:]
                        break
                    j = m.start()
                    buf += chunk[i:j]
                    i = j
                    b = chunk[i]
                    if b == _DASH or b == _SLASH:
                        mark = len(buf)
                        buf.append(b)
                        i += 1
                        state = ScanState.DASH_PENDING if b == _DASH else ScanState.SLASH_PENDING
                        continue
                    if b == _HASH and mysql:
                        buf.append(b)
                        i += 1
                        state = ScanState.LINE_COMMENT
                        continue
                    if buf:
                        yield self._trivia(start, buf, len(buf))
                        start += len(buf)
                        del buf[:]
                    significant = True
                    continue

                if state in special:
                    m = special[state].search(chunk, i)
                    if m is None:
                        buf += chunk[i:]
                        break
                    j = m.start()
                    buf += chunk[i:j + 1]
                    i = j + 1
                    b = chunk[j]

                    if state is ScanState.NORMAL:
                        if b == _SEMICOLON:
                            copy_pending = _COPY_FROM_STDIN.match(buf) is not None
                            state = ScanState.TRAILER
                        elif b == _SINGLE:
                            state = ScanState.SINGLE_QUOTED
                        elif b == _DOUBLE:
                            state = ScanState.DOUBLE_QUOTED
                        elif b == _BACKTICK:
                            state = ScanState.BACKTICK_QUOTED
                        elif b == _HASH:
                            state = ScanState.LINE_COMMENT
                        elif b == _DOLLAR:
                            # "a$b" is an identifier, "$1" a parameter
                            if len(buf) < 2 or buf[-2] not in _IDENT_BYTES:
                                tag_start = len(buf) - 1
                                state = ScanState.DOLLAR_TAG
                        elif b == _DASH:
                            mark = len(buf) - 1
                            state = ScanState.DASH_PENDING
                        else:
                            mark = len(buf) - 1
                            state = ScanState.SLASH_PENDING
                    elif state is ScanState.BLOCK_COMMENT:
                        state = ScanState.STAR_PENDING
                    elif state is ScanState.DOLLAR_QUOTED:
                        if len(buf) - len(tag) >= body_start and buf.endswith(tag):
                            state = ScanState.NORMAL
                    elif state is ScanState.COPY_DATA:
                        if len(buf) - line_start <= 4 and bytes(buf[line_start:]) in _COPY_END:
                            yield StatementSpan(start=start, data=bytes(buf), terminated=True)
                            start += len(buf)
                            del buf[:]
                            significant = False
                            state = ScanState.NORMAL
                        else:
                            line_start = len(buf)
                    elif b == _BACKSLASH:
                        resume = state
                        state = ScanState.ESCAPE
                    else:
                        # closing quote, or the newline ending a line comment
                        state = ScanState.NORMAL
                    continue

                b = chunk[i]

                if state is ScanState.ESCAPE:
                    buf.append(b)
                    i += 1
                    state = resume

                elif state is ScanState.TRAILER:
                    if b in _TRAILER_SPACE or b == _NEWLINE:
                        buf.append(b)
                        i += 1
                    if b == _NEWLINE and copy_pending:
                        copy_pending = False
                        line_start = len(buf)
                        state = ScanState.COPY_DATA
                    elif b not in _TRAILER_SPACE:
                        yield StatementSpan(start=start, data=bytes(buf), terminated=True)
                        start += len(buf)
                        del buf[:]
                        significant = False
                        copy_pending = False
                        state = ScanState.NORMAL

                elif state is ScanState.DASH_PENDING or state is ScanState.SLASH_PENDING:
                    opener = _DASH if state is ScanState.DASH_PENDING else _STAR
                    if b == opener:
                        buf.append(b)
                        i += 1
                        if b == _STAR:
                            state = ScanState.COMMENT_OPEN
                        elif mysql:
                            state = ScanState.DOUBLE_DASH_PENDING
                        else:
                            state = ScanState.LINE_COMMENT
                    else:
                        # a lone "-" or "/" is ordinary statement content
                        if not significant:
                            if mark:
                                yield self._trivia(start, buf, mark)
                                start += mark
                                del buf[:mark]
                            significant = True
                        state = ScanState.NORMAL

                elif state is ScanState.DOUBLE_DASH_PENDING:
                    if b in _COMMENT_BLANK:
                        state = ScanState.LINE_COMMENT
                    else:
                        # "5--1" is arithmetic, not a comment
                        if not significant:
                            if mark:
                                yield self._trivia(start, buf, mark)
                                start += mark
                                del buf[:mark]
                            significant = True
                        state = ScanState.NORMAL

                elif state is ScanState.COMMENT_OPEN:
                    if b in _EXECUTABLE_COMMENT and not significant:
                        if mark:
                            yield self._trivia(start, buf, mark)
                            start += mark
                            del buf[:mark]
                        significant = True
                    state = ScanState.BLOCK_COMMENT

                elif state is ScanState.STAR_PENDING:
                    buf.append(b)
                    i += 1
                    if b == _SLASH:
                        state = ScanState.NORMAL
                    elif b != _STAR:
                        state = ScanState.BLOCK_COMMENT

                elif state is ScanState.DOLLAR_TAG:
                    if b == _DOLLAR:
                        buf.append(b)
                        i += 1
                        tag = bytes(buf[tag_start:])
                        body_start = len(buf)
                        state = ScanState.DOLLAR_QUOTED
                    elif b in _TAG_BYTES and not (len(buf) - tag_start == 1 and b in _DIGITS):
                        buf.append(b)
                        i += 1
                    else:
                        state = ScanState.NORMAL

        if buf:
            yield from self._finish(start, buf, state, significant, mark, line_start)

    @staticmethod
    def _trivia(start: int, buf: bytearray, length: int) -> StatementSpan:
        return StatementSpan(start=start, data=bytes(buf[:length]), terminated=False, trivia=True)

    def _finish(
        self,
        start: int,
        buf: bytearray,
        state: ScanState,
        significant: bool,
        mark: int,
        line_start: int,
    ) -> Iterator[StatementSpan]:
        if state is ScanState.TRAILER:
            yield StatementSpan(start=start, data=bytes(buf), terminated=True)
            return
        if state is ScanState.COPY_DATA and bytes(buf[line_start:]) == b"\\.":
            yield StatementSpan(start=start, data=bytes(buf), terminated=True)
            return

        if not significant:
            if state in (ScanState.NORMAL, ScanState.LINE_COMMENT, ScanState.DOUBLE_DASH_PENDING):
                yield self._trivia(start, buf, len(buf))
                return
            if state in (ScanState.DASH_PENDING, ScanState.SLASH_PENDING):
                if mark:
                    yield self._trivia(start, buf, mark)
                    start += mark
                    del buf[:mark]

        reason = _unterminated_reason(state)
        _log.debug("input ended inside a statement at byte %d (%s)", start, reason)
        yield StatementSpan(start=start, data=bytes(buf), terminated=False)


def _unterminated_reason(state: ScanState) -> str:
    if state in (ScanState.SINGLE_QUOTED, ScanState.DOUBLE_QUOTED, ScanState.BACKTICK_QUOTED, ScanState.ESCAPE):
        return "unclosed quote"
    if state in (ScanState.BLOCK_COMMENT, ScanState.STAR_PENDING, ScanState.COMMENT_OPEN):
        return "unclosed block comment"
    if state is ScanState.DOLLAR_QUOTED:
        return "unclosed dollar quote"
    if state is ScanState.COPY_DATA:
        return "COPY data without closing \\. line"
    return "missing terminator"


def iter_statements(
    stream: BinaryIO,
    *,
    dialect: str = "mysql",
    backslash_escapes: Optional[bool] = None,
    chunk_size: Optional[int] = None,
) -> Iterator[StatementSpan]:
    scanner = StatementScanner(
        dialect=dialect,
        backslash_escapes=backslash_escapes,
        chunk_size=chunk_size or DEFAULT_CHUNK_SIZE,
    )
    return scanner.scan(stream)
