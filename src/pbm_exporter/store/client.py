from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from pbm_exporter.config import MongoConfig
from pbm_exporter.engine.errors import ConnectError
from pbm_exporter.engine.retries import RetryPolicy, with_retries

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., MongoClient]


def _connect(config: MongoConfig, client_factory: ClientFactory) -> MongoClient:
    try:
        client = client_factory(
            config.uri,
            maxPoolSize=1,
            connectTimeoutMS=config.connect_timeout_ms,
            serverSelectionTimeoutMS=config.timeout_ms,
            timeoutMS=config.timeout_ms,
            appname="pbm-exporter",
        )
    except PyMongoError as exc:
        raise ConnectError("connect to MongoDB", exc) from exc

    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise ConnectError("ping MongoDB", exc) from exc
    return client


@contextmanager
def open_database(config: MongoConfig, *, client_factory: ClientFactory = MongoClient) -> Iterator[Database]:
    """Yield the PBM control database over a short-lived single-connection client.

    The initial connection is retried once after ``retry_delay_ms``; query
    failures are never retried. The client is closed on every exit path.
    """
    policy = RetryPolicy(attempts=2, min_delay_ms=config.retry_delay_ms, max_delay_ms=config.retry_delay_ms)
    client = with_retries(
        lambda: _connect(config, client_factory),
        policy,
        retry_on=(ConnectError,),
        operation="mongo.connect",
    )
    logger.debug("store.connected database=%s", config.database)
    try:
        yield client[config.database]
    finally:
        client.close()
        logger.debug("store.closed database=%s", config.database)
