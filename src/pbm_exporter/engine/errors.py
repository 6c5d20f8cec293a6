from __future__ import annotations


class ExporterError(RuntimeError):
    """A failure that aborts a scrape before any metric is updated."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        message = f"{operation} failed" if cause is None else f"{operation} failed: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class ConnectError(ExporterError):
    """The coordination store could not be reached, even after the retry."""


class QueryError(ExporterError):
    """A read the metrics cannot be derived without failed."""
