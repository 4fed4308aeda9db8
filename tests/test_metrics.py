"""Prometheus counters for filter runs.

Counters live on a per-observer registry; these tests read sample values
from it and check the textfile export.
"""

import io

from dumpfilter.core.engine import filter_dump
from dumpfilter.observability.metrics import MetricsObserver


def test_counters_follow_decisions(sample_dump, comments_insert):
    metrics = MetricsObserver()
    filter_dump(io.BytesIO(sample_dump), io.BytesIO(), {"comments"}, observers=[metrics])

    assert metrics.sample("dumpfilter_statements_total", {"kind": "data_insertion", "decision": "drop"}) == 1
    assert metrics.sample("dumpfilter_statements_total", {"kind": "data_insertion", "decision": "keep"}) == 2
    assert metrics.sample("dumpfilter_bytes_total", {"decision": "drop"}) == len(comments_insert)
    assert metrics.sample("dumpfilter_bytes_total", {"decision": "keep"}) == len(sample_dump) - len(comments_insert)
    assert metrics.sample("dumpfilter_dropped_statements_total", {"table": "comments"}) == 1
    assert metrics.sample("dumpfilter_last_run_completed") == 1


def test_separate_observers_do_not_share_counters(sample_dump):
    first = MetricsObserver()
    second = MetricsObserver()
    filter_dump(io.BytesIO(sample_dump), io.BytesIO(), (), observers=[first])
    assert second.sample("dumpfilter_bytes_total", {"decision": "keep"}) == 0
    assert first.sample("dumpfilter_bytes_total", {"decision": "keep"}) == len(sample_dump)


def test_unterminated_counter():
    metrics = MetricsObserver()
    filter_dump(io.BytesIO(b"SELECT 1;\nSELECT 'x"), io.BytesIO(), (), observers=[metrics])
    assert metrics.sample("dumpfilter_unterminated_statements_total") == 1


def test_write_textfile(tmp_path, sample_dump):
    metrics = MetricsObserver()
    filter_dump(io.BytesIO(sample_dump), io.BytesIO(), {"users"}, observers=[metrics])
    path = tmp_path / "dumpfilter.prom"
    metrics.write_textfile(path)
    text = path.read_text(encoding="utf-8")
    assert 'dumpfilter_dropped_statements_total{table="users"} 2.0' in text
    assert b"dumpfilter_statements_total" in metrics.render()
