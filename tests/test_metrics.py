"""Tests for the metric sink."""
from __future__ import annotations

import pytest
from prometheus_client import CONTENT_TYPE_LATEST

from pbm_exporter.metrics import METRIC_FAMILIES, MetricPoint, MetricSink


def test_families_cover_exported_names():
    assert [f.name for f in METRIC_FAMILIES] == [
        "pbm_snapshots_total",
        "pbm_snapshots",
        "pbm_last_snapshot",
        "pbm_last_snapshot_error",
        "pbm_last_snapshot_since_seconds",
        "pbm_nodes_total",
        "pbm_nodes",
        "pbm_pitr_chunks_total",
        "pbm_pitr_error",
        "pbm_last_pitr_chunk_since_seconds",
    ]


def test_set_overwrites_value():
    sink = MetricSink()
    sink.set("pbm_snapshots_total", {"status": "done"}, 3)
    sink.set("pbm_snapshots_total", {"status": "done"}, 1)
    assert sink.get("pbm_snapshots_total", {"status": "done"}) == 1.0


def test_unknown_family_rejected():
    sink = MetricSink()
    with pytest.raises(ValueError, match="Unknown metric family"):
        sink.set("pbm_unknown", {}, 1)


def test_label_names_must_match_exactly():
    sink = MetricSink()
    with pytest.raises(ValueError):
        sink.set("pbm_nodes", {"rs": "rs0", "status": "ok"}, 1)
    with pytest.raises(ValueError):
        sink.set("pbm_pitr_error", {"status": "ok"}, 1)


def test_apply_is_all_or_nothing():
    sink = MetricSink()
    points = [
        MetricPoint("pbm_snapshots_total", {"status": "done"}, 2),
        MetricPoint("pbm_nodes", {"rs": "rs0"}, 1),
    ]
    with pytest.raises(ValueError):
        sink.apply(points)
    assert sink.get("pbm_snapshots_total", {"status": "done"}) is None


def test_render_groups_families_and_sorts_labels():
    sink = MetricSink()
    sink.apply(
        [
            MetricPoint("pbm_snapshots_total", {"status": "error"}, 1),
            MetricPoint("pbm_last_snapshot_error", {}, 0),
            MetricPoint("pbm_snapshots_total", {"status": "done"}, 4),
        ]
    )
    text = sink.render().decode("utf-8")

    assert text.count("# HELP pbm_snapshots_total Number of snapshots per status") == 1
    assert text.count("# TYPE pbm_snapshots_total gauge") == 1
    assert text.index('pbm_snapshots_total{status="done"} 4.0') < text.index(
        'pbm_snapshots_total{status="error"} 1.0'
    )
    assert "pbm_last_snapshot_error 0.0" in text
    # Families without points are not rendered.
    assert "pbm_nodes_total" not in text


def test_render_empty_sink():
    assert MetricSink().render() == b""


def test_content_type():
    assert MetricSink.content_type == CONTENT_TYPE_LATEST


def test_sinks_are_independent():
    first, second = MetricSink(), MetricSink()
    first.set("pbm_pitr_error", {}, 1)
    assert second.get("pbm_pitr_error") is None
    assert second.registry.get_sample_value("pbm_pitr_error") is None
