from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from typing import Callable

from pymongo.database import Database

from pbm_exporter.config import ExporterConfig, MongoConfig
from pbm_exporter.engine.labels import LabelMemory
from pbm_exporter.engine.reconcile import Reconciler
from pbm_exporter.metrics import MetricSink
from pbm_exporter.schemas.models import PITRState
from pbm_exporter.store.client import open_database
from pbm_exporter.store.reader import StatusReader

logger = logging.getLogger(__name__)

StoreOpener = Callable[[MongoConfig], AbstractContextManager[Database]]


class PBMExporter:
    """One scrape: read the PBM collections, reconcile, publish to the sink.

    Label memory and the sink live as long as the exporter; the store
    connection only as long as a single ``update_metrics`` call.
    """

    def __init__(
        self,
        config: ExporterConfig,
        *,
        sink: MetricSink | None = None,
        labels: LabelMemory | None = None,
        open_store: StoreOpener = open_database,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self.sink = sink if sink is not None else MetricSink()
        self.labels = labels if labels is not None else LabelMemory()
        self._reconciler = Reconciler(self.labels)
        self._open_store = open_store
        self._clock = clock

    def update_metrics(self) -> int:
        started = time.monotonic()
        with self._open_store(self._config.mongo) as db:
            reader = StatusReader(db, limit=self._config.mongo.query_limit)
            pitr_enabled = reader.read_config()
            backups = reader.read_backups()
            agents = reader.read_agents()
            pitr = reader.read_pitr_state() if pitr_enabled else PITRState(enabled=False)

        points = self._reconciler.reconcile(backups, agents, pitr, now=self._clock())
        written = self.sink.apply(points)
        logger.info(
            "exporter.updated backups=%d agents=%d pitr_enabled=%s points=%d duration_ms=%d",
            len(backups), len(agents), pitr_enabled, written, int((time.monotonic() - started) * 1000),
        )
        return written

    def scrape(self) -> bytes:
        self.update_metrics()
        return self.sink.render()
