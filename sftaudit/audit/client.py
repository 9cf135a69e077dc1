"""ScaleFT audit events client used by the poll loop."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from sftaudit.common.time import ensure_utc, utcnow

from .errors import AuthFailure, FetchFailure
from .models import AuditPage, RawAuditEvent

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .config import AuditInputConfig
    from .models import Credential

_HTTP_ERROR_STATUS_THRESHOLD = 400


class AuditEventSource(typ.Protocol):
    """Interface for fetching one page of recent audit events."""

    async def fetch(
        self, credential: Credential, *, since: dt.datetime | None = None
    ) -> list[RawAuditEvent]:
        """Return recent audit events, newest first.

        ``since`` is passed to the server as a lower-bound hint; callers must
        still filter the page against their own watermark.
        """
        ...


class ScaleFTAuditClient:
    """HTTP implementation of :class:`AuditEventSource`."""

    def __init__(
        self,
        config: AuditInputConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Initialise the client for the configured team and instance."""
        self._config = config
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(
        self, credential: Credential, *, since: dt.datetime | None = None
    ) -> list[RawAuditEvent]:
        """Fetch the most recent page of audit events in descending order.

        Raises
        ------
        AuthFailure
            If ``credential`` has already expired.
        FetchFailure
            On transport errors, non-2xx statuses, or undecodable bodies.

        """
        if not credential.is_valid(self._clock()):
            raise AuthFailure.expired()

        params = {"descending": "1"}
        if since is not None:
            params["after_time"] = ensure_utc(since).isoformat()

        try:
            response = await self._client.get(
                self._config.team_url("/audits"),
                params=params,
                headers={
                    "Authorization": f"Bearer {credential.token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise FetchFailure.network_error(str(exc) or type(exc).__name__) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise FetchFailure.http_error(response.status_code)

        return _decode_page(response.content)


def _decode_page(content: bytes) -> list[RawAuditEvent]:
    """Decode an audit page body into events with UTC timestamps."""
    try:
        page = msgspec.json.decode(content, type=AuditPage)
    except msgspec.DecodeError as exc:
        raise FetchFailure.malformed(str(exc)) from exc
    if not page.events:
        return []
    return [
        msgspec.structs.replace(event, timestamp=ensure_utc(event.timestamp))
        for event in page.events
    ]
