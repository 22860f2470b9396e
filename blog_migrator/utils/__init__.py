"""
Utility helpers used by the migration engine.

This subpackage exposes the error taxonomy and the structured outcome
reports.  Retry, rate limiting, logging and taxonomy helpers live in their
own modules.
"""

from .errors import (
    EVENTS,
    ConfigurationError,
    DestinationApiError,
    MediaDownloadError,
    MigrationError,
    PersistenceError,
    PreFlightCheckError,
    report_error,
    report_ok,
)

__all__ = [
    "EVENTS",
    "ConfigurationError",
    "DestinationApiError",
    "MediaDownloadError",
    "MigrationError",
    "PersistenceError",
    "PreFlightCheckError",
    "report_error",
    "report_ok",
]
