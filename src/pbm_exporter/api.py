from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response

from pbm_exporter.config import ExporterConfig
from pbm_exporter.engine.errors import ExporterError
from pbm_exporter.engine.exporter import PBMExporter
from pbm_exporter.version import __version__

logger = logging.getLogger(__name__)


def build_app(config: ExporterConfig, exporter: PBMExporter) -> FastAPI:
    app = FastAPI(title="pbm-exporter", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)

    @app.on_event("startup")
    def on_startup() -> None:
        logger.info(
            "api.started metrics_url=http://localhost:%d/metrics version=%s", config.server.port, __version__
        )
        if not config.server.warmup:
            return
        try:
            exporter.update_metrics()
        except ExporterError as exc:
            logger.warning("api.initial_update_failed operation=%s error=%s", exc.operation, exc.cause)
        except Exception:
            logger.exception("api.initial_update_failed")

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        logger.info("api.stopped")

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    # Sync handler: each scrape runs on its own threadpool worker.
    @app.get("/metrics")
    def metrics() -> Response:
        try:
            body = exporter.scrape()
        except ExporterError as exc:
            logger.error("api.metrics_failed operation=%s error=%s", exc.operation, exc.cause)
            return PlainTextResponse("Internal Server Error", status_code=500)
        except Exception:
            logger.exception("api.metrics_failed")
            return PlainTextResponse("Internal Server Error", status_code=500)
        return Response(body, media_type=exporter.sink.content_type)

    return app


def create_app(config: ExporterConfig) -> FastAPI:
    return build_app(config, PBMExporter(config))
