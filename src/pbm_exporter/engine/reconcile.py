"""Turn one read of the PBM status collections into gauge points.

Label combinations that stop applying are written as explicit zeros instead
of being dropped: count-based alert rules cannot tell a vanished series from
one that still holds its last value.
"""
from __future__ import annotations

import logging
import re
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from pbm_exporter.engine.labels import LabelMemory
from pbm_exporter.metrics import (
    LAST_PITR_CHUNK_SINCE,
    LAST_SNAPSHOT,
    LAST_SNAPSHOT_ERROR,
    LAST_SNAPSHOT_SINCE,
    NODES,
    NODES_TOTAL,
    PITR_CHUNKS_TOTAL,
    PITR_ERROR,
    SNAPSHOTS,
    SNAPSHOTS_TOTAL,
    MetricPoint,
)
from pbm_exporter.schemas.models import AgentEntry, BackupEntry, PITRState

logger = logging.getLogger(__name__)

NODE_STATUSES = ("ok", "error")
ERROR_STATUS = "error"
PITR_HEARTBEAT_TIMEOUT_SECONDS = 30

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(?:([Zz])|([+-])(\d{2}):(\d{2}))",
    re.ASCII,
)


def parse_snapshot_time(name: str) -> datetime | None:
    """Parse an RFC 3339 backup name such as ``2024-01-01T00:00:00Z``.

    Returns None unless the name is a full date-time carrying a UTC offset.
    Fractions beyond microseconds are truncated.
    """
    match = _RFC3339.fullmatch(name)
    if match is None:
        return None
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        if zulu:
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(off_h), minutes=int(off_m))
            tz = timezone(-offset if sign == "-" else offset)
        parsed = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
        )
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _flag(condition: bool) -> float:
    return 1.0 if condition else 0.0


class Reconciler:
    def __init__(self, labels: LabelMemory):
        self._labels = labels

    def reconcile(
        self,
        backups: Sequence[BackupEntry],
        agents: Sequence[AgentEntry],
        pitr: PITRState,
        now: float | None = None,
    ) -> list[MetricPoint]:
        """Compute every point for this read without touching any sink.

        ``backups`` must already be sorted newest first.
        """
        now = time.time() if now is None else now
        points: list[MetricPoint] = []
        points.extend(self._backup_points(backups, now))
        points.extend(self._node_points(agents))
        points.extend(self._pitr_points(pitr, now))
        return points

    def _backup_points(self, backups: Sequence[BackupEntry], now: float) -> Iterable[MetricPoint]:
        for backup in backups:
            self._labels.observe(backup.status)
        known = sorted(self._labels.known_statuses())

        counts = Counter(backup.status for backup in backups)
        for status in known:
            yield MetricPoint(SNAPSHOTS_TOTAL, {"status": status}, float(counts.get(status, 0)))

        statuses_by_name: dict[str, set[str]] = {}
        for backup in backups:
            statuses_by_name.setdefault(backup.name, set()).add(backup.status)
        for name, statuses in statuses_by_name.items():
            for status in known:
                yield MetricPoint(SNAPSHOTS, {"name": name, "status": status}, _flag(status in statuses))

        if not backups:
            return
        last = backups[0]
        for status in known:
            yield MetricPoint(LAST_SNAPSHOT, {"status": status}, _flag(status == last.status))
        yield MetricPoint(LAST_SNAPSHOT_ERROR, {}, _flag(last.status == ERROR_STATUS))

        taken_at = parse_snapshot_time(last.name)
        if taken_at is None:
            logger.debug("reconcile.snapshot_name_not_a_time name=%s", last.name)
            return
        yield MetricPoint(LAST_SNAPSHOT_SINCE, {}, now - taken_at.timestamp())

    def _node_points(self, agents: Sequence[AgentEntry]) -> Iterable[MetricPoint]:
        counts = Counter(agent.health for agent in agents)
        for status in NODE_STATUSES:
            yield MetricPoint(NODES_TOTAL, {"status": status}, float(counts.get(status, 0)))

        health_by_host: dict[tuple[str, str], set[str]] = {}
        for agent in agents:
            health_by_host.setdefault((agent.replica_set, agent.host), set()).add(agent.health)
        for (replica_set, host), health in health_by_host.items():
            for status in NODE_STATUSES:
                yield MetricPoint(
                    NODES,
                    {"rs": replica_set, "host": host, "status": status},
                    _flag(status in health),
                )

    def _pitr_points(self, pitr: PITRState, now: float) -> Iterable[MetricPoint]:
        # Disabled PITR leaves the previously exported values untouched.
        if not pitr.enabled:
            return
        now_s = int(now)
        stale = pitr.lock_heartbeat is None or pitr.lock_heartbeat + PITR_HEARTBEAT_TIMEOUT_SECONDS < now_s
        if stale:
            logger.debug("reconcile.pitr_stale heartbeat=%s now=%d", pitr.lock_heartbeat, now_s)
        yield MetricPoint(PITR_ERROR, {}, _flag(stale))

        if pitr.chunk_count is not None:
            yield MetricPoint(PITR_CHUNKS_TOTAL, {}, float(pitr.chunk_count))
        if pitr.last_chunk_end is not None:
            yield MetricPoint(LAST_PITR_CHUNK_SINCE, {}, float(now_s - pitr.last_chunk_end))
