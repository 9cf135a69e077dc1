"""Checkpointed incremental audit event poll loop.

The poller fetches the most recent page of ScaleFT audit events, emits the
events newer than its watermark, and persists the newest timestamp of the
page as the next watermark. Each cycle runs to completion before the next
begins; cycles are separated by a fixed sleep.

Failure handling per cycle:

- ``AuthFailure`` / ``FetchFailure``: the cycle is abandoned with no emission
  and no watermark change.
- ``SinkFailure``: logged for the one event; the rest of the page is still
  emitted and the watermark still advances.
- ``PersistFailure``: logged as a durability risk; the in-memory watermark
  still advances, so a duplicate is only possible if the process stops before
  a later save succeeds.

There is no backoff. The polling interval is the only retry delay.
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import typing as typ

import httpx

from .checkpoint import CheckpointStore
from .client import ScaleFTAuditClient
from .errors import (
    AuditInputError,
    AuthFailure,
    FetchFailure,
    PersistFailure,
    SinkFailure,
)
from .normalizer import normalize_event
from .observability import PollEventLogger
from .sink import AuditRecord
from .tokens import TokenManager

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .client import AuditEventSource
    from .config import AuditInputConfig
    from .models import RawAuditEvent, Watermark
    from .sink import EventSink
    from .tokens import CredentialProvider


@dataclasses.dataclass(slots=True)
class PollSession:
    """Mutable state carried from one poll cycle to the next.

    Attributes
    ----------
    watermark
        Timestamp of the newest event already delivered, or None before the
        first delivery. None sorts before every timestamp.

    """

    watermark: Watermark = None

    def accepts(self, timestamp: dt.datetime) -> bool:
        """Return True when an event at ``timestamp`` has not been delivered."""
        return self.watermark is None or timestamp > self.watermark


@dataclasses.dataclass(frozen=True, slots=True)
class PollCycleResult:
    """Summary of a single poll cycle."""

    fetched: int = 0
    emitted: int = 0
    dropped: int = 0
    sink_failures: int = 0
    watermark: Watermark = None
    persisted: bool = False
    error: AuditInputError | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class _EmitOutcome:
    emitted: int
    dropped: int
    sink_failures: int


class AuditPoller:
    """Poll the audit endpoint and deliver each new event exactly once."""

    def __init__(  # noqa: PLR0913
        self,
        config: AuditInputConfig,
        *,
        tokens: CredentialProvider,
        source: AuditEventSource,
        checkpoints: CheckpointStore,
        sink: EventSink,
        event_logger: PollEventLogger | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Create a poller from its collaborators."""
        self._config = config
        self._tokens = tokens
        self._source = source
        self._checkpoints = checkpoints
        self._sink = sink
        self._event_logger = event_logger or PollEventLogger()
        self._sleep = sleep
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: AuditInputConfig,
        sink: EventSink,
        *,
        event_logger: PollEventLogger | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> AuditPoller:
        """Build a poller with HTTP collaborators sharing one client.

        When ``http_client`` is omitted the poller creates one and closes it
        in :meth:`aclose`.
        """
        client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        poller = cls(
            config,
            tokens=TokenManager(config, http_client=client),
            source=ScaleFTAuditClient(config, http_client=client),
            checkpoints=CheckpointStore.for_config(config),
            sink=sink,
            event_logger=event_logger,
        )
        if http_client is None:
            poller._http_client = client
        return poller

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def start(self) -> PollSession:
        """Return a session seeded from the stored checkpoint."""
        watermark = await self._checkpoints.load()
        self._event_logger.log_checkpoint_loaded(self._config.input_name, watermark)
        return PollSession(watermark=watermark)

    async def run_forever(self, session: PollSession | None = None) -> typ.NoReturn:
        """Poll, sleep for the configured interval, and repeat indefinitely."""
        active = session if session is not None else await self.start()
        while True:
            await self.poll_once(active)
            await self._sleep(self._config.polling_interval_s)

    async def poll_once(self, session: PollSession) -> PollCycleResult:
        """Run one poll cycle against ``session``.

        Auth, fetch, sink, and persistence failures are logged and reported
        on the result rather than raised.
        """
        input_name = self._config.input_name
        self._event_logger.log_cycle_started(input_name)

        try:
            page = await self._fetch_page(session)
        except (AuthFailure, FetchFailure) as exc:
            self._event_logger.log_cycle_failed(input_name, exc)
            return PollCycleResult(watermark=session.watermark, error=exc)

        if not page:
            result = PollCycleResult(watermark=session.watermark)
            self._event_logger.log_cycle_completed(input_name, result)
            return result

        newest = page[0].timestamp
        outcome = await self._emit_new_events(session, page)
        if session.watermark is None or newest > session.watermark:
            session.watermark = newest

        persisted = True
        error: AuditInputError | None = None
        try:
            await self._checkpoints.save(session.watermark)
        except PersistFailure as exc:
            self._event_logger.log_persist_failed(input_name, session.watermark, exc)
            persisted = False
            error = exc

        result = PollCycleResult(
            fetched=len(page),
            emitted=outcome.emitted,
            dropped=outcome.dropped,
            sink_failures=outcome.sink_failures,
            watermark=session.watermark,
            persisted=persisted,
            error=error,
        )
        self._event_logger.log_cycle_completed(input_name, result)
        return result

    async def _fetch_page(self, session: PollSession) -> list[RawAuditEvent]:
        previous = self._tokens.credential
        credential = await self._tokens.ensure_valid()
        if credential is not previous:
            self._event_logger.log_token_refreshed(
                self._config.input_name, credential.expires_at
            )
        return await self._source.fetch(credential, since=session.watermark)

    async def _emit_new_events(
        self, session: PollSession, page: list[RawAuditEvent]
    ) -> _EmitOutcome:
        """Emit events newer than the pre-cycle watermark in page order."""
        emitted = dropped = failures = 0
        for event in page:
            if not session.accepts(event.timestamp):
                dropped += 1
                continue
            try:
                await self._emit(event)
            except SinkFailure as exc:
                self._event_logger.log_sink_failed(self._config.input_name, exc)
                failures += 1
                continue
            emitted += 1
        return _EmitOutcome(emitted=emitted, dropped=dropped, sink_failures=failures)

    async def _emit(self, event: RawAuditEvent) -> None:
        record = AuditRecord(self._config.input_name, normalize_event(event))
        try:
            await self._sink.emit(record)
        except Exception as exc:  # noqa: BLE001
            raise SinkFailure.emit_failed(event.id, str(exc)) from exc
