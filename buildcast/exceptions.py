"""
Error types raised by the forecasting engine.

Each error carries an ``http_status`` hint that the web layer uses
when turning it into a response.
"""


class BuildcastError(Exception):
    """Base class for all Buildcast errors."""
    http_status = 500


class NotFound(BuildcastError):
    """Project or entity does not exist, or the caller has no access to it."""
    http_status = 404


class ValidationError(BuildcastError, ValueError):
    """Request cannot be served with the given input (no tasks, negative days, ...)."""
    http_status = 400


class GraphCycleError(BuildcastError):
    """Dependency graph could not be fully resolved topologically.

    Signals data corruption upstream: cycles are rejected when a
    dependency is added, so the forecaster should never see one.
    """
    http_status = 500

    def __init__(self, message: str, unresolved=None):
        super().__init__(message)
        self.unresolved = list(unresolved or [])


class CacheError(BuildcastError):
    """Cache backend is unavailable or returned unusable data."""
    http_status = 503
