# echoverse/errors.py
from __future__ import annotations


class EchoverseError(Exception):
    """Base error; `status` is the HTTP status the router answers with."""

    status = 500

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ValidationError(EchoverseError):
    status = 400


class NotFoundError(EchoverseError):
    status = 404


class PersistenceError(EchoverseError):
    status = 500


class GenerationError(EchoverseError):
    """Template pools are misconfigured. Never reaches a client."""


class AnalyticsError(EchoverseError):
    """Raised inside the analytics sink only; logged and dropped there."""
