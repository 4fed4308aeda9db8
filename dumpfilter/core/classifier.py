"""Cheap statement classification.

Only the leading keywords of a statement are inspected. ``INSERT ... INTO``
statements are classified as ``DATA_INSERTION`` with their target table;
everything else is ``OTHER``. ``CREATE TABLE``, ``LOCK TABLES`` and
``UNLOCK TABLES`` additionally carry a keyword (and table) so observers can
follow per-table progress, but they never affect keep/drop decisions.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from .errors import MalformedStatementError
from .models import Classification

_log = logging.getLogger("dumpfilter.classifier")

_INSERT = re.compile(
    rb"INSERT\s+(?:(?:LOW_PRIORITY|DELAYED|HIGH_PRIORITY)\s+)?(?:IGNORE\s+)?INTO\b\s*",
    re.IGNORECASE,
)
_CREATE_TABLE = re.compile(
    rb"CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?",
    re.IGNORECASE,
)
_LOCK_TABLES = re.compile(rb"LOCK\s+TABLES?\s+", re.IGNORECASE)
_UNLOCK_TABLES = re.compile(rb"UNLOCK\s+TABLES?\b", re.IGNORECASE)

_SPACE = re.compile(rb"\s+")
# "#" and "-- " comments; MySQL needs a blank or control byte after "--"
_LINE_COMMENT = re.compile(rb"(?:--(?=[\x00-\x20\x7f]|\Z)|#)[^\n]*(?:\n|\Z)")
_BLOCK_COMMENT = re.compile(rb"/\*(?![!+]).*?\*/", re.DOTALL)
_BARE_IDENT = re.compile(rb"[A-Za-z0-9_$\x80-\xff]+")
_DELIMITERS = (ord("`"), ord('"'))
_DOT = ord(".")
# bare words that cannot start a table name in the positions parsed here
_RESERVED = frozenset({b"VALUES", b"VALUE", b"SET", b"SELECT", b"WITH"})


def skip_trivia(data: bytes, pos: int = 0) -> int:
    """Return the index of the first byte that is not whitespace or a plain comment."""
    while True:
        m = _SPACE.match(data, pos) or _LINE_COMMENT.match(data, pos) or _BLOCK_COMMENT.match(data, pos)
        if m is None or m.end() == pos:
            return pos
        pos = m.end()


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def _identifier_part(data: bytes, pos: int) -> Tuple[str, int]:
    if pos >= len(data):
        raise MalformedStatementError(reason="expected identifier, found end of statement", offset=pos)

    delim = data[pos]
    if delim in _DELIMITERS:
        out = bytearray()
        i = pos + 1
        while True:
            j = data.find(bytes([delim]), i)
            if j < 0:
                raise MalformedStatementError(reason="unclosed quoted identifier", offset=pos)
            out += data[i:j]
            # a doubled delimiter stands for one literal delimiter
            if j + 1 < len(data) and data[j + 1] == delim:
                out.append(delim)
                i = j + 2
                continue
            if not out:
                raise MalformedStatementError(reason="empty quoted identifier", offset=pos)
            return _decode(bytes(out)), j + 1

    m = _BARE_IDENT.match(data, pos)
    if m is None:
        raise MalformedStatementError(reason="expected identifier", offset=pos)
    if m.group(0).upper() in _RESERVED:
        raise MalformedStatementError(reason=f"keyword {_decode(m.group(0))!r} where identifier expected", offset=pos)
    return _decode(m.group(0)), m.end()


def extract_identifier(data: bytes, pos: int) -> Tuple[str, int]:
    """
    Parse a possibly schema-qualified identifier starting at ``pos``.

    Delimiters are stripped from each part and parts are joined with ".", so
    ``"public"."users"`` becomes ``public.users``. Returns the name and the
    index just past it.
    """
    parts: List[str] = []
    name, pos = _identifier_part(data, pos)
    parts.append(name)
    while pos < len(data) and data[pos] == _DOT:
        name, pos = _identifier_part(data, pos + 1)
        parts.append(name)
    return ".".join(parts), pos


def classify(data: bytes) -> Classification:
    pos = skip_trivia(data)

    m = _INSERT.match(data, pos)
    if m is not None:
        try:
            table, _ = extract_identifier(data, m.end())
        except MalformedStatementError as exc:
            _log.debug("INSERT without a usable table name, passing through: %s", exc)
            return Classification.other(keyword="INSERT INTO")
        return Classification.insertion(table)

    m = _CREATE_TABLE.match(data, pos)
    if m is not None:
        return Classification.other(keyword="CREATE TABLE", table=_optional_identifier(data, m.end()))

    m = _LOCK_TABLES.match(data, pos)
    if m is not None:
        return Classification.other(keyword="LOCK TABLES", table=_optional_identifier(data, m.end()))

    if _UNLOCK_TABLES.match(data, pos) is not None:
        return Classification.other(keyword="UNLOCK TABLES")

    return Classification.other()


def _optional_identifier(data: bytes, pos: int) -> Optional[str]:
    try:
        name, _ = extract_identifier(data, pos)
    except MalformedStatementError:
        return None
    return name
