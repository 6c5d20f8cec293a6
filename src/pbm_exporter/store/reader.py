"""Read-only access to the PBM status collections.

Collection layout follows what ``pbm status`` itself consults: ``pbmConfig``,
``pbmBackups``, ``pbmAgents``, ``pbmLock``/``pbmLockOp`` and ``pbmPITRChunks``.
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from pbm_exporter.engine.errors import QueryError
from pbm_exporter.schemas.models import AgentEntry, BackupEntry, PITRState, epoch_seconds

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 10000
PITR_LOCK_FILTER = {"type": "pitr"}


class StatusReader:
    def __init__(self, db: Database, *, limit: int = DEFAULT_QUERY_LIMIT):
        self._db = db
        self._limit = limit

    def read_config(self) -> bool:
        """Return whether PITR is enabled; a missing or unreadable config counts as disabled."""
        try:
            doc = self._db["pbmConfig"].find_one({})
        except PyMongoError as exc:
            logger.warning("reader.config_failed error=%s", exc)
            return False
        if doc is None:
            logger.debug("reader.config_missing")
            return False
        pitr = doc.get("pitr") or {}
        if not isinstance(pitr, dict):
            logger.warning("reader.config_invalid pitr=%r", pitr)
            return False
        return bool(pitr.get("enabled", False))

    def read_backups(self) -> list[BackupEntry]:
        """Backups newest first (descending name)."""
        docs = self._find("pbmBackups", sort=[("name", DESCENDING)])
        try:
            return [BackupEntry.model_validate(doc) for doc in docs]
        except ValidationError as exc:
            raise QueryError("decode backups", exc) from exc

    def read_agents(self) -> list[AgentEntry]:
        docs = self._find("pbmAgents", sort=[("n", ASCENDING)])
        try:
            return [AgentEntry.model_validate(doc) for doc in docs]
        except ValidationError as exc:
            raise QueryError("decode agents", exc) from exc

    def read_pitr_state(self) -> PITRState:
        """Collect PITR heartbeat and chunk information.

        Every sub-read degrades independently: a failed lookup is logged and
        leaves its field unset.
        """
        lock = self._find_pitr_lock()
        heartbeat = epoch_seconds(lock.get("hb")) if lock else None

        chunk_count: int | None = None
        try:
            chunk_count = int(self._db["pbmPITRChunks"].estimated_document_count())
        except PyMongoError as exc:
            logger.warning("reader.pitr_count_failed error=%s", exc)

        last_chunk_end: int | None = None
        try:
            # end_ts breaks ties between chunks sharing a start_ts.
            chunks = list(
                self._db["pbmPITRChunks"].find(
                    {},
                    sort=[("start_ts", DESCENDING), ("end_ts", DESCENDING)],
                    limit=1,
                )
            )
        except PyMongoError as exc:
            logger.warning("reader.pitr_last_chunk_failed error=%s", exc)
            chunks = []
        if chunks:
            last_chunk_end = epoch_seconds(chunks[0].get("end_ts"))

        return PITRState(
            enabled=True,
            lock_heartbeat=heartbeat,
            chunk_count=chunk_count,
            last_chunk_end=last_chunk_end,
        )

    def _find_pitr_lock(self) -> dict[str, Any] | None:
        for collection in ("pbmLock", "pbmLockOp"):
            try:
                lock = self._db[collection].find_one(PITR_LOCK_FILTER)
            except PyMongoError as exc:
                logger.warning("reader.pitr_lock_failed collection=%s error=%s", collection, exc)
                return None
            if lock is not None:
                logger.debug("reader.pitr_lock_found collection=%s", collection)
                return lock
        return None

    def _find(self, collection: str, *, sort: list[tuple[str, int]]) -> list[dict[str, Any]]:
        try:
            return list(self._db[collection].find({}, sort=sort, limit=self._limit))
        except PyMongoError as exc:
            raise QueryError(f"find {collection}", exc) from exc
