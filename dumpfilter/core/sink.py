from __future__ import annotations

from typing import BinaryIO

from .errors import DumpWriteError


class OutputSink:
    """
    Pass-through writer for kept statement bytes.

    Any ``OSError`` from the underlying stream (a closed pipe included) is
    turned into ``DumpWriteError``; bytes already written are not retracted.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.bytes_written = 0

    def write(self, data: bytes) -> None:
        if not data:
            return
        try:
            self._stream.write(data)
        except OSError as exc:
            raise DumpWriteError(f"failed to write filtered output: {exc}", bytes_written=self.bytes_written) from exc
        self.bytes_written += len(data)

    def flush(self) -> None:
        try:
            self._stream.flush()
        except OSError as exc:
            raise DumpWriteError(f"failed to flush filtered output: {exc}", bytes_written=self.bytes_written) from exc
