"""Shared audit event builders and fakes for tests.

This module provides deterministic RawAuditEvent constructors plus small
in-memory collaborators for the poll loop used across unit and behavioural
tests.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

from sftaudit.audit.checkpoint import CheckpointStore
from sftaudit.audit.config import AuditInputConfig
from sftaudit.audit.errors import AuthFailure, FetchFailure, PersistFailure
from sftaudit.audit.models import Credential, RawAuditEvent
from sftaudit.audit.observability import PollEventLogger

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sftaudit.audit.checkpoint import CheckpointEncoding
    from sftaudit.audit.sink import AuditRecord

BASE_TIME = dt.datetime(2099, 1, 1, tzinfo=dt.UTC)
CLIENT_KEY = "8c4b9f3e-2f1a-4c3b-9d7e-5a6b7c8d9e0f"


def at_offset(seconds: int) -> dt.datetime:
    """Return ``BASE_TIME`` shifted by ``seconds``."""
    return BASE_TIME + dt.timedelta(seconds=seconds)


def make_config(checkpoint_dir: Path, **overrides: typ.Any) -> AuditInputConfig:
    """Return a valid input configuration rooted at ``checkpoint_dir``."""
    values: dict[str, typ.Any] = {
        "team_name": "acme",
        "instance_address": "https://app.scaleft.test",
        "client_key": CLIENT_KEY,
        "client_secret": "key-secret",
        "checkpoint_dir": checkpoint_dir,
        "polling_interval_s": 60,
    }
    values.update(overrides)
    return AuditInputConfig(**values)


def make_event(
    event_id: str,
    timestamp: dt.datetime,
    details: dict[str, typ.Any] | None = None,
) -> RawAuditEvent:
    """Create a raw audit event with an optional details mapping."""
    return RawAuditEvent(
        id=event_id,
        timestamp=timestamp,
        details=details if details is not None else {"type": "user.login"},
    )


def make_page(*offsets: int) -> list[RawAuditEvent]:
    """Create a descending page of events at the given second offsets."""
    return [make_event(f"evt-{offset}", at_offset(offset)) for offset in offsets]


class FakeCredentialProvider:
    """CredentialProvider that hands out a long-lived token or fails."""

    def __init__(self, *, fail: bool = False) -> None:
        """Start with no credential; ``fail`` makes every refresh raise."""
        self.fail = fail
        self.refreshes = 0
        self._credential = Credential()

    @property
    def credential(self) -> Credential:
        """Return the cached credential."""
        return self._credential

    async def ensure_valid(self) -> Credential:
        """Return a cached credential, issuing one on first use."""
        if self.fail:
            raise AuthFailure.http_error(401)
        if not self._credential.token:
            self.refreshes += 1
            self._credential = Credential(
                token="bearer-token",
                expires_at=dt.datetime.max.replace(tzinfo=dt.UTC),
            )
        return self._credential


class FakeAuditSource:
    """Deterministic AuditEventSource returning queued pages."""

    def __init__(self, pages: list[list[RawAuditEvent] | Exception]) -> None:
        """Store pages (or exceptions) returned by successive fetches."""
        self._pages = list(pages)
        self.calls: list[dt.datetime | None] = []

    def queue(self, page: list[RawAuditEvent] | Exception) -> None:
        """Append another page to return."""
        self._pages.append(page)

    async def fetch(
        self, credential: Credential, *, since: dt.datetime | None = None
    ) -> list[RawAuditEvent]:
        """Return the next queued page, or an empty page once exhausted."""
        assert credential.token, "Poller must present a credential"
        self.calls.append(since)
        if not self._pages:
            return []
        page = self._pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


def fetch_timeout() -> FetchFailure:
    """Return a transport failure as raised by the audit client."""
    return FetchFailure.network_error("timed out")


class RecordingSink:
    """EventSink that records records and can fail for chosen event ids."""

    def __init__(self, *, fail_ids: typ.Collection[str] = ()) -> None:
        """Create a sink that raises for any event id in ``fail_ids``."""
        self.records: list[AuditRecord] = []
        self._fail_ids = set(fail_ids)

    async def emit(self, record: AuditRecord) -> None:
        """Record ``record`` or raise for configured failures."""
        if record.data["id"] in self._fail_ids:
            msg = f"sink rejected {record.data['id']}"
            raise OSError(msg)
        self.records.append(record)

    @property
    def emitted_ids(self) -> list[str]:
        """Return emitted event ids in delivery order."""
        return [record.data["id"] for record in self.records]


class FailingCheckpointStore(CheckpointStore):
    """CheckpointStore whose saves always fail."""

    async def save(
        self,
        watermark: dt.datetime,
        *,
        encoding: CheckpointEncoding | None = None,
    ) -> None:
        """Raise a persistence failure."""
        del watermark, encoding
        raise PersistFailure.write_failed(str(self.path), "disk full")


class FakeLogger:
    """Collects log calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message

    def messages(self, level: str | None = None) -> list[str]:
        """Return logged messages, optionally filtered by level."""
        return [
            message
            for logged_level, message, _, _ in self.calls
            if level is None or logged_level == level
        ]


def recording_event_logger() -> tuple[PollEventLogger, FakeLogger]:
    """Return a PollEventLogger wired to a FakeLogger."""
    fake = FakeLogger()
    return PollEventLogger(fake), fake
