"""Unit tests for poll loop observability."""

from __future__ import annotations

import pytest

from sftaudit.audit.errors import (
    AuditConfigError,
    AuthFailure,
    FetchFailure,
    PersistFailure,
    SinkFailure,
)
from sftaudit.audit.observability import (
    ErrorCategory,
    PollEventType,
    categorize_error,
    component_for,
)
from sftaudit.audit.poller import PollCycleResult
from tests.helpers.audit_events import at_offset, recording_event_logger


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (AuthFailure.http_error(401), ErrorCategory.AUTH),
        (FetchFailure.http_error(503), ErrorCategory.TRANSIENT),
        (FetchFailure.http_error(404), ErrorCategory.CLIENT_ERROR),
        (FetchFailure.network_error("reset"), ErrorCategory.TRANSIENT),
        (FetchFailure.malformed("no list"), ErrorCategory.SCHEMA_DRIFT),
        (PersistFailure.write_failed("/x", "disk full"), ErrorCategory.PERSISTENCE),
        (SinkFailure.emit_failed("evt-1", "closed"), ErrorCategory.SINK),
        (AuditConfigError.missing("team_name"), ErrorCategory.CONFIGURATION),
        (ValueError("boom"), ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error(error: BaseException, expected: ErrorCategory) -> None:
    """Errors map to alert categories."""
    assert categorize_error(error) == expected


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (AuthFailure.expired(), "token_manager"),
        (FetchFailure.malformed("x"), "event_fetcher"),
        (PersistFailure("x"), "checkpoint_store"),
        (SinkFailure("x"), "sink"),
        (RuntimeError("x"), "poll_loop"),
    ],
)
def test_component_for(error: BaseException, expected: str) -> None:
    """Failures name the component that raised them."""
    assert component_for(error) == expected


def test_cycle_completed_logs_counters() -> None:
    """Completion lines carry the cycle counters and watermark."""
    event_logger, log = recording_event_logger()
    result = PollCycleResult(
        fetched=5,
        emitted=3,
        dropped=1,
        sink_failures=1,
        watermark=at_offset(0),
        persisted=True,
    )

    event_logger.log_cycle_completed("sft-audit-events", result)

    assert log.calls == [
        (
            "INFO",
            f"[{PollEventType.CYCLE_COMPLETED}] input=sft-audit-events fetched=5 "
            "emitted=3 dropped=1 sink_failures=1 "
            "watermark=2099-01-01T00:00:00+00:00 persisted=True",
            None,
            False,
        )
    ]


def test_checkpoint_loaded_reports_unset_watermark() -> None:
    """An absent checkpoint is logged as unset."""
    event_logger, log = recording_event_logger()

    event_logger.log_checkpoint_loaded("sft-audit-events", None)

    assert log.messages("DEBUG") == [
        "[poll.checkpoint.loaded] input=sft-audit-events watermark=unset"
    ]


def test_persist_failure_is_logged_with_exception() -> None:
    """Durability warnings attach the failure as exc_info."""
    event_logger, log = recording_event_logger()
    error = PersistFailure.write_failed("/ckpt", "disk full")

    event_logger.log_persist_failed("sft-audit-events", at_offset(0), error)

    level, message, exc_info, _ = log.calls[0]
    assert level == "ERROR"
    assert exc_info is error
    assert "component=checkpoint_store" in message
    assert "durability_at_risk=true" in message
    assert "disk full" in message


def test_cycle_failed_includes_category_and_message() -> None:
    """Aborted cycles name the component, category, and upstream message."""
    event_logger, log = recording_event_logger()

    event_logger.log_cycle_failed("sft-audit-events", AuthFailure.http_error(403))

    assert log.messages("ERROR") == [
        "[poll.cycle.failed] input=sft-audit-events component=token_manager "
        "error_type=AuthFailure error_category=auth "
        "error_message=service token HTTP 403"
    ]
