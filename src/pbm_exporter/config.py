from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PORT = 9090
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class MongoConfig:
    uri: str
    database: str = "admin"
    connect_timeout_ms: int = 10000
    timeout_ms: int = 30000
    retry_delay_ms: int = 1000
    query_limit: int = 10000


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    graceful_shutdown_seconds: int = 10
    warmup: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    json_format: bool = True
    redact: bool = True


@dataclass(frozen=True)
class ExporterConfig:
    mongo: MongoConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _default_config_path() -> Path | None:
    raw = os.getenv("PBM_EXPORTER_CONFIG")
    if raw is None or not raw.strip():
        return None
    return Path(raw.strip())


def _resolve_env(value: str) -> str:
    if not value.startswith("env:"):
        return value
    key = value[4:].strip()
    if not key:
        raise ValueError("Invalid env ref: empty key")
    resolved = os.getenv(key)
    if resolved is None or not resolved.strip():
        raise ValueError(f"Environment variable '{key}' referenced in config is missing/empty")
    return resolved.strip()


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config.{key} must be an object")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Missing/invalid config.{key}")
    if not value.strip():
        return None
    return _resolve_env(value.strip())


def _coerce_int(value: Any, key: str, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Missing/invalid config.{key}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        resolved = _resolve_env(value.strip())
        try:
            return int(resolved)
        except ValueError as exc:
            raise ValueError(f"Missing/invalid config.{key}") from exc
    raise ValueError(f"Missing/invalid config.{key}")


def load_config(path: Path | None = None) -> ExporterConfig:
    """Build the exporter configuration.

    Values come from the optional YAML file (``PBM_EXPORTER_CONFIG``), then
    from the environment: ``PBM_MONGODB_URI`` (required), ``PORT`` and
    ``PBM_LOG_LEVEL`` override whatever the file says.
    """
    cfg_path = path or _default_config_path()
    raw: dict[str, Any] = {}
    if cfg_path is not None:
        loaded = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError("Config must be an object")
        raw = loaded or {}

    mongo_raw = _section(raw, "mongodb")
    server_raw = _section(raw, "server")
    logging_raw = _section(raw, "logging")

    uri = (os.getenv("PBM_MONGODB_URI") or "").strip() or _optional_str(mongo_raw, "uri")
    if not uri:
        raise ValueError("PBM_MONGODB_URI environment variable is required")

    mongo = MongoConfig(
        uri=uri,
        database=_optional_str(mongo_raw, "database") or "admin",
        connect_timeout_ms=_coerce_int(mongo_raw.get("connect_timeout_ms"), "mongodb.connect_timeout_ms", 10000),
        timeout_ms=_coerce_int(mongo_raw.get("timeout_ms"), "mongodb.timeout_ms", 30000),
        retry_delay_ms=_coerce_int(mongo_raw.get("retry_delay_ms"), "mongodb.retry_delay_ms", 1000),
        query_limit=_coerce_int(mongo_raw.get("query_limit"), "mongodb.query_limit", 10000),
    )
    if not 1000 <= mongo.timeout_ms <= 30000:
        raise ValueError("config.mongodb.timeout_ms must be between 1000 and 30000")
    if mongo.connect_timeout_ms < 100:
        raise ValueError("config.mongodb.connect_timeout_ms must be >= 100")
    if mongo.retry_delay_ms < 0:
        raise ValueError("config.mongodb.retry_delay_ms must be >= 0")
    if mongo.query_limit < 1:
        raise ValueError("config.mongodb.query_limit must be >= 1")

    port_env = os.getenv("PORT")
    if port_env and port_env.strip():
        port = _coerce_int(port_env, "PORT")
    else:
        port = _coerce_int(server_raw.get("port"), "server.port", DEFAULT_PORT)
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")

    server = ServerConfig(
        host=_optional_str(server_raw, "host") or "0.0.0.0",
        port=port,
        graceful_shutdown_seconds=_coerce_int(
            server_raw.get("graceful_shutdown_seconds"), "server.graceful_shutdown_seconds", 10
        ),
        warmup=bool(server_raw.get("warmup", True)),
    )

    level = (os.getenv("PBM_LOG_LEVEL") or _optional_str(logging_raw, "level") or "INFO").strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"config.logging.level must be one of {sorted(LOG_LEVELS)}")
    log_cfg = LoggingConfig(
        level=level,
        json_format=bool(logging_raw.get("json", True)),
        redact=bool(logging_raw.get("redact", True)),
    )

    return ExporterConfig(mongo=mongo, server=server, logging=log_cfg)
