from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

SNAPSHOTS_TOTAL = "pbm_snapshots_total"
SNAPSHOTS = "pbm_snapshots"
LAST_SNAPSHOT = "pbm_last_snapshot"
LAST_SNAPSHOT_ERROR = "pbm_last_snapshot_error"
LAST_SNAPSHOT_SINCE = "pbm_last_snapshot_since_seconds"
NODES_TOTAL = "pbm_nodes_total"
NODES = "pbm_nodes"
PITR_CHUNKS_TOTAL = "pbm_pitr_chunks_total"
PITR_ERROR = "pbm_pitr_error"
LAST_PITR_CHUNK_SINCE = "pbm_last_pitr_chunk_since_seconds"


@dataclass(frozen=True)
class MetricFamily:
    name: str
    documentation: str
    labelnames: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricPoint:
    name: str
    labels: Mapping[str, str] = field(default_factory=dict)
    value: float = 0.0


METRIC_FAMILIES: tuple[MetricFamily, ...] = (
    MetricFamily(SNAPSHOTS_TOTAL, "Number of snapshots per status", ("status",)),
    MetricFamily(SNAPSHOTS, "Detail of snapshots with statuses", ("name", "status")),
    MetricFamily(LAST_SNAPSHOT, "Status of last snapshot", ("status",)),
    MetricFamily(LAST_SNAPSHOT_ERROR, "1 if last snapshot is in error"),
    MetricFamily(LAST_SNAPSHOT_SINCE, "Time since last snapshot"),
    MetricFamily(NODES_TOTAL, "Number of nodes per status", ("status",)),
    MetricFamily(NODES, "Detail of nodes with statuses", ("rs", "host", "status")),
    MetricFamily(PITR_CHUNKS_TOTAL, "Number of PITR chunks"),
    MetricFamily(PITR_ERROR, "1 if PITR is in error"),
    MetricFamily(LAST_PITR_CHUNK_SINCE, "Time since last PITR chunk"),
)


class MetricSink(Collector):
    """Last-value-wins gauge store exposed through its own registry.

    Values are keyed by (family, label values). A batch passed to ``apply`` is
    validated as a whole before anything is written, so a bad point never
    leaves a half-updated sink behind.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, families: Iterable[MetricFamily] = METRIC_FAMILIES):
        self._families = {family.name: family for family in families}
        self._values: dict[str, dict[tuple[str, ...], float]] = {name: {} for name in self._families}
        self._lock = threading.Lock()
        self.registry = CollectorRegistry()
        self.registry.register(self)

    def _key(self, name: str, labels: Mapping[str, str]) -> tuple[str, ...]:
        family = self._families.get(name)
        if family is None:
            raise ValueError(f"Unknown metric family: {name}")
        if set(labels) != set(family.labelnames):
            raise ValueError(
                f"Label names for {name} must be {sorted(family.labelnames)}, got {sorted(labels)}"
            )
        return tuple(str(labels[label]) for label in family.labelnames)

    def set(self, name: str, labels: Mapping[str, str], value: float) -> None:
        key = self._key(name, labels)
        with self._lock:
            self._values[name][key] = float(value)

    def apply(self, points: Iterable[MetricPoint]) -> int:
        staged = [(point.name, self._key(point.name, point.labels), float(point.value)) for point in points]
        with self._lock:
            for name, key, value in staged:
                self._values[name][key] = value
        return len(staged)

    def get(self, name: str, labels: Mapping[str, str] | None = None) -> float | None:
        key = self._key(name, labels or {})
        with self._lock:
            return self._values[name].get(key)

    def describe(self) -> Iterator[GaugeMetricFamily]:
        for family in self._families.values():
            yield GaugeMetricFamily(family.name, family.documentation, labels=family.labelnames)

    def collect(self) -> Iterator[GaugeMetricFamily]:
        with self._lock:
            snapshot = {name: dict(values) for name, values in self._values.items()}
        for name, values in snapshot.items():
            if not values:
                continue
            family = self._families[name]
            metric = GaugeMetricFamily(family.name, family.documentation, labels=family.labelnames)
            for key in sorted(values):
                metric.add_metric(list(key), values[key])
            yield metric

    def render(self) -> bytes:
        return generate_latest(self.registry)
