from __future__ import annotations

from contextlib import contextmanager

import pytest

from fakes import FakeDatabase
from pbm_exporter.config import ExporterConfig, MongoConfig, ServerConfig


@pytest.fixture
def config() -> ExporterConfig:
    return ExporterConfig(
        mongo=MongoConfig(uri="mongodb://localhost:27017"),
        server=ServerConfig(port=9090, warmup=False),
    )


@pytest.fixture
def make_store():
    """Return a store opener backed by a FakeDatabase, counting open/close."""

    def _make(db: FakeDatabase, error: Exception | None = None):
        stats = {"opened": 0, "closed": 0}

        @contextmanager
        def _open(_mongo_config):
            if error is not None:
                raise error
            stats["opened"] += 1
            try:
                yield db
            finally:
                stats["closed"] += 1

        _open.stats = stats
        return _open

    return _make
