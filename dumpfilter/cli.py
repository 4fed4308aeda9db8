"""Command-line entry point: ``dump-filter`` / ``python -m dumpfilter``.

Reads a dump from FILE (or standard input), drops INSERT statements for the
excluded tables and writes the rest to standard output. Diagnostics, timing
lines and the progress bar go to standard error only.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import os
import sys
from typing import BinaryIO, List, Optional, Sequence, TextIO

from . import __version__
from .config import ConfigError, FilterSettings, resolve_settings
from .core.engine import FilterEngine
from .core.errors import DumpReadError, DumpWriteError
from .core.scanner import StatementScanner
from .core.sink import OutputSink
from .observability.metrics import MetricsObserver
from .observers import FilterObserver
from .observers.progress import ProgressObserver, stream_size
from .observers.timing import TimingObserver

_log = logging.getLogger("dumpfilter.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="dump-filter",
        description="Stream a SQL dump to stdout without the INSERT statements of selected tables.",
    )
    ap.add_argument("file", nargs="?", default="-", help="Dump file to read (default: standard input)")
    ap.add_argument(
        "-e",
        "--except",
        "--ignore",
        "--exclude",
        dest="exclude",
        action="append",
        metavar="TABLE",
        help="Drop INSERT statements for TABLE (repeatable, comma-separated lists allowed)",
    )
    ap.add_argument(
        "--log",
        action="store_true",
        default=None,
        help="Log time spent on each CREATE TABLE and INSERT INTO phase to stderr",
    )
    ap.add_argument(
        "--format",
        dest="log_format",
        choices=["default", "csv"],
        default=None,
        help="Format of the timing log (default: default)",
    )
    ap.add_argument("--progress", action="store_true", default=None, help="Show a progress bar on stderr")
    ap.add_argument("--config", default=None, metavar="PATH", help="YAML or JSON settings file")
    ap.add_argument("--metrics-file", default=None, metavar="PATH", help="Write Prometheus metrics here at the end")
    ap.add_argument(
        "--dialect",
        choices=["mysql", "postgresql"],
        default=None,
        help="Dump dialect: mysqldump (default) or pg_dump plain SQL",
    )
    ap.add_argument(
        "--no-backslash-escapes",
        dest="backslash_escapes",
        action="store_false",
        default=None,
        help="Treat backslash as a literal character in strings (MySQL NO_BACKSLASH_ESCAPES)",
    )
    ap.add_argument("--chunk-size", type=int, default=None, metavar="BYTES", help="Read size in bytes")
    ap.add_argument("--log-level", default=None, help="Diagnostics level (default: WARNING)")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def configure_logging(level: str, stream: Optional[TextIO] = None) -> None:
    root = logging.getLogger("dumpfilter")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)


def _open_input(path: str, stdin: BinaryIO, stack: contextlib.ExitStack) -> BinaryIO:
    if path == "-":
        return stdin
    try:
        return stack.enter_context(open(path, "rb"))
    except OSError as exc:
        raise DumpReadError(f"cannot open {path}: {exc.strerror or exc}") from exc


def run(
    settings: FilterSettings,
    source: BinaryIO,
    output: BinaryIO,
    *,
    stderr: TextIO,
    stack: contextlib.ExitStack,
) -> int:
    observers: List[FilterObserver] = []

    def emit(line: str) -> None:
        print(line, file=stderr)

    if settings.progress:
        progress = stack.enter_context(
            ProgressObserver(stream_size(source), exclude=settings.exclude_set, file=stderr)
        )
        observers.append(progress)
        emit = progress.write

    if settings.log:
        observers.append(TimingObserver(settings.log_format, emit=emit))

    metrics: Optional[MetricsObserver] = None
    if settings.metrics_file:
        metrics = MetricsObserver()
        observers.append(metrics)

    engine = FilterEngine(
        settings.exclude_set,
        scanner=StatementScanner(
            dialect=settings.dialect,
            backslash_escapes=settings.backslash_escapes,
            chunk_size=settings.chunk_size,
        ),
        observers=observers,
    )
    stats = engine.run(source, OutputSink(output))

    if metrics is not None and settings.metrics_file:
        try:
            metrics.write_textfile(settings.metrics_file)
        except OSError as exc:
            _log.warning("could not write metrics file %s: %s", settings.metrics_file, exc)

    for table, count in sorted(stats.dropped_by_table.items()):
        _log.info("dropped %d INSERT statements for %s", count, table)
    return EXIT_OK


def _silence_stdout() -> None:
    # keep the interpreter from failing again when it flushes stdout at exit
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError, AttributeError):
        pass


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    err = stderr if stderr is not None else sys.stderr
    args = build_parser().parse_args(argv)

    overrides = {
        "exclude": args.exclude,
        "progress": args.progress,
        "log": args.log,
        "log_format": args.log_format,
        "log_level": args.log_level,
        "dialect": args.dialect,
        "backslash_escapes": args.backslash_escapes,
        "chunk_size": args.chunk_size,
        "metrics_file": args.metrics_file,
    }
    try:
        settings = resolve_settings(overrides, config_path=args.config)
    except ConfigError as exc:
        print(f"dump-filter: {exc}", file=err)
        return EXIT_USAGE

    configure_logging(settings.log_level, err)
    _log.debug("settings: %s", settings.model_dump())

    in_stream = stdin if stdin is not None else sys.stdin.buffer
    out_stream = stdout if stdout is not None else sys.stdout.buffer

    try:
        with contextlib.ExitStack() as stack:
            source = _open_input(args.file, in_stream, stack)
            return run(settings, source, out_stream, stderr=err, stack=stack)
    except DumpWriteError as exc:
        print(f"dump-filter: {exc}", file=err)
        if stdout is None and isinstance(exc.__cause__, BrokenPipeError):
            _silence_stdout()
        return EXIT_FAILURE
    except DumpReadError as exc:
        print(f"dump-filter: {exc}", file=err)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("dump-filter: interrupted", file=err)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
