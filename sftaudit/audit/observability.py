"""Observability primitives for the audit poll loop.

Provides structured logging and error categorization for poll cycles. Every
event is emitted as a single ``[event.type] key=value ...`` line through
femtologging, suitable for parsing by log aggregators. Failures always carry
the failing component's name and the upstream error message.
"""

from __future__ import annotations

import enum
import typing as typ

from sftaudit.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)

from .errors import (
    AuditConfigError,
    AuditResponseShapeError,
    AuthFailure,
    FetchFailure,
    PersistFailure,
    SinkFailure,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sftaudit.logging import SupportsLog

    from .poller import PollCycleResult

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class PollEventType(enum.StrEnum):
    """Structured log event types for poll loop observability."""

    CHECKPOINT_LOADED = "poll.checkpoint.loaded"
    CYCLE_STARTED = "poll.cycle.started"
    CYCLE_COMPLETED = "poll.cycle.completed"
    CYCLE_FAILED = "poll.cycle.failed"
    TOKEN_REFRESHED = "poll.token.refreshed"
    PERSIST_FAILED = "poll.checkpoint.persist_failed"
    SINK_FAILED = "poll.sink.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    AUTH = "auth"
    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    PERSISTENCE = "persistence"
    SINK = "sink"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_COMPONENT_NAMES: tuple[tuple[type[BaseException], str], ...] = (
    (AuthFailure, "token_manager"),
    (FetchFailure, "event_fetcher"),
    (PersistFailure, "checkpoint_store"),
    (SinkFailure, "sink"),
)


def component_for(exc: BaseException) -> str:
    """Return the name of the component that raised ``exc``."""
    for exc_type, name in _COMPONENT_NAMES:
        if isinstance(exc, exc_type):
            return name
    return "poll_loop"


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    if isinstance(exc, AuthFailure):
        return ErrorCategory.AUTH
    if isinstance(exc, AuditResponseShapeError):
        return ErrorCategory.SCHEMA_DRIFT

    # FetchFailure requires special handling for status code distinction
    if isinstance(exc, FetchFailure):
        if (
            exc.status_code is None
            or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    if isinstance(exc, PersistFailure):
        return ErrorCategory.PERSISTENCE
    if isinstance(exc, SinkFailure):
        return ErrorCategory.SINK
    if isinstance(exc, AuditConfigError):
        return ErrorCategory.CONFIGURATION
    return ErrorCategory.UNKNOWN


class PollEventLogger:
    """Emit structured poll loop events via femtologging.

    Events are emitted at INFO for progress, DEBUG for token refreshes and
    checkpoint loads, WARNING for per-event sink failures, and ERROR for
    aborted cycles and lost durability.
    """

    def __init__(self, logger: SupportsLog | None = None) -> None:
        """Bind the event logger to ``logger`` or this module's logger."""
        self._logger = logger if logger is not None else get_logger(__name__)

    def log_checkpoint_loaded(
        self, input_name: str, watermark: dt.datetime | None
    ) -> None:
        """Log the watermark restored at startup."""
        log_debug(
            self._logger,
            "[%s] input=%s watermark=%s",
            PollEventType.CHECKPOINT_LOADED,
            input_name,
            watermark.isoformat() if watermark is not None else "unset",
        )

    def log_cycle_started(self, input_name: str) -> None:
        """Log the start of a poll cycle."""
        log_info(
            self._logger,
            "[%s] input=%s",
            PollEventType.CYCLE_STARTED,
            input_name,
        )

    def log_token_refreshed(self, input_name: str, expires_at: dt.datetime) -> None:
        """Log that a new bearer credential was obtained."""
        log_debug(
            self._logger,
            "[%s] input=%s expires_at=%s",
            PollEventType.TOKEN_REFRESHED,
            input_name,
            expires_at.isoformat(),
        )

    def log_cycle_completed(self, input_name: str, result: PollCycleResult) -> None:
        """Log a completed cycle with its counters."""
        log_info(
            self._logger,
            "[%s] input=%s fetched=%d emitted=%d dropped=%d sink_failures=%d "
            "watermark=%s persisted=%s",
            PollEventType.CYCLE_COMPLETED,
            input_name,
            result.fetched,
            result.emitted,
            result.dropped,
            result.sink_failures,
            result.watermark.isoformat() if result.watermark is not None else "unset",
            result.persisted,
        )

    def log_cycle_failed(self, input_name: str, error: BaseException) -> None:
        """Log a cycle aborted by an auth or fetch failure."""
        log_error(
            self._logger,
            "[%s] input=%s component=%s error_type=%s error_category=%s "
            "error_message=%s",
            PollEventType.CYCLE_FAILED,
            input_name,
            component_for(error),
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_persist_failed(
        self, input_name: str, watermark: dt.datetime, error: BaseException
    ) -> None:
        """Log a checkpoint write failure; duplicates are possible after a crash."""
        log_error(
            self._logger,
            "[%s] input=%s component=%s watermark=%s durability_at_risk=true "
            "error_message=%s",
            PollEventType.PERSIST_FAILED,
            input_name,
            component_for(error),
            watermark.isoformat(),
            str(error),
            exc_info=error,
        )

    def log_sink_failed(self, input_name: str, error: SinkFailure) -> None:
        """Log one event that the sink failed to accept."""
        log_warning(
            self._logger,
            "[%s] input=%s component=%s event_id=%s error_message=%s",
            PollEventType.SINK_FAILED,
            input_name,
            component_for(error),
            error.event_id,
            str(error),
        )
