"""Dump filter exceptions.

Read and write failures are fatal for a run. A malformed statement is never
fatal: the classifier recovers from it locally and passes the bytes through.
"""

from __future__ import annotations

from typing import Optional


class DumpFilterError(Exception):
    pass


class DumpReadError(DumpFilterError):
    def __init__(self, message: str = "failed to read dump input", *, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class DumpWriteError(DumpFilterError):
    def __init__(self, message: str = "failed to write filtered output", *, bytes_written: int = 0):
        self.bytes_written = int(bytes_written)
        super().__init__(message)


class MalformedStatementError(DumpFilterError):
    def __init__(self, *, reason: str, offset: int = 0):
        self.reason = reason
        self.offset = offset
        super().__init__(f"malformed statement: {reason} (at statement byte {offset})")
