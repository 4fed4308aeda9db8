import io

import pytest

from dumpfilter.core.engine import filter_dump
from dumpfilter.core.models import FilterDecision, FilterEvent, FilterStats, StatementKind
from dumpfilter.observers.timing import TimingObserver, format_timing


def _clock(*ticks):
    it = iter(ticks)
    return lambda: next(it)


def _event(kind=StatementKind.OTHER, keyword=None, table=None, decision=FilterDecision.KEEP):
    return FilterEvent(offset=0, kind=kind, decision=decision, byte_length=1, table=table, keyword=keyword)


def _insert(table, decision=FilterDecision.KEEP):
    return _event(StatementKind.DATA_INSERTION, "INSERT INTO", table, decision)


def _feed(observer):
    observer.on_event(_event(keyword="CREATE TABLE", table="users"))
    observer.on_event(_event(keyword="LOCK TABLES", table="users"))
    observer.on_event(_insert("users"))
    observer.on_event(_insert("users"))
    observer.on_event(_event(keyword="UNLOCK TABLES"))
    observer.on_event(_event(keyword="CREATE TABLE", table="comments"))
    observer.on_event(_insert("comments", FilterDecision.DROP))
    observer.on_event(_event(keyword="UNLOCK TABLES"))
    observer.on_finish(FilterStats())


def test_default_format_lines():
    lines = []
    obs = TimingObserver("default", emit=lines.append, clock=_clock(0.0, 0.25, 0.25, 1.0, 2.0, 2.5))
    _feed(obs)
    assert lines == [
        "CREATE TABLE users took 250 ms",
        "INSERT INTO users took 750 ms",
        "CREATE TABLE comments took 500 ms",
    ]


def test_csv_format_lines():
    lines = []
    obs = TimingObserver("csv", emit=lines.append, clock=_clock(0.0, 0.25, 0.25, 1.0, 2.0, 2.5))
    _feed(obs)
    assert lines == ["CREATE,users,250", "INSERT,users,750", "CREATE,comments,500"]


def test_open_phase_is_closed_at_end_of_input():
    lines = []
    obs = TimingObserver(emit=lines.append, clock=_clock(0.0, 0.5, 0.5, 1.5))
    obs.on_event(_event(keyword="CREATE TABLE", table="t"))
    obs.on_event(_insert("t"))
    obs.on_finish(FilterStats())
    assert lines == ["CREATE TABLE t took 500 ms", "INSERT INTO t took 1000 ms"]
    assert [(r.phase, r.table) for r in obs.records] == [("CREATE TABLE", "t"), ("INSERT INTO", "t")]


def test_unknown_format_rejected():
    with pytest.raises(ValueError):
        TimingObserver("json")


def test_format_timing():
    assert format_timing("default", "INSERT INTO", "t", 3) == "INSERT INTO t took 3 ms"
    assert format_timing("csv", "CREATE TABLE", "t", 3) == "CREATE,t,3"


def test_timing_through_engine(sample_dump):
    lines = []
    obs = TimingObserver("csv", emit=lines.append, clock=lambda: 0.0)
    out = io.BytesIO()
    filter_dump(io.BytesIO(sample_dump), out, {"comments"}, observers=[obs])
    assert lines == ["CREATE,comments,0", "CREATE,users,0", "INSERT,users,0"]
    # timing never touches the dump stream
    assert b"CREATE,users" not in out.getvalue()
