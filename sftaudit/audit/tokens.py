"""Bearer credential management for the ScaleFT API.

``TokenManager`` caches the service token and refreshes it only when the
cached credential has expired. The poll loop drives one cycle at a time, so at
most one refresh is ever in flight for a manager and no lock is needed.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import httpx
import msgspec

from sftaudit.common.time import utcnow

from .errors import AuthFailure
from .models import Credential, ServiceTokenResponse

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import AuditInputConfig

TOKEN_LIFETIME = dt.timedelta(hours=1)
_HTTP_ERROR_STATUS_THRESHOLD = 400


class CredentialProvider(typ.Protocol):
    """Interface the poll loop uses to obtain a usable credential."""

    @property
    def credential(self) -> Credential:
        """Return the currently cached credential, valid or not."""
        ...

    async def ensure_valid(self) -> Credential:
        """Return a credential that is valid now."""
        ...


class TokenManager:
    """Obtain and cache a bearer credential for one configured input.

    Parameters
    ----------
    config
        Input configuration supplying the instance, team, and key pair.
    http_client
        Optional ``httpx.AsyncClient``; when omitted the manager creates and
        owns one.
    clock
        Callable returning the current aware UTC time.

    """

    def __init__(
        self,
        config: AuditInputConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create a manager with no credential."""
        self._config = config
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._credential = Credential()

    @property
    def credential(self) -> Credential:
        """Return the currently cached credential, valid or not."""
        return self._credential

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def ensure_valid(self) -> Credential:
        """Return a credential that is valid now, refreshing it if needed.

        Raises
        ------
        AuthFailure
            If the token endpoint is unreachable, rejects the key pair, or
            returns a body without a bearer token. The cached credential is
            left untouched.

        """
        if self._credential.is_valid(self._clock()):
            return self._credential

        issued_at = self._clock()
        token = await self._request_token()
        self._credential = Credential(token=token, expires_at=issued_at + TOKEN_LIFETIME)
        return self._credential

    async def _request_token(self) -> str:
        try:
            response = await self._client.post(
                self._config.team_url("/service_token"),
                json={
                    "key_id": self._config.client_key,
                    "key_secret": self._config.client_secret,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise AuthFailure.network_error(str(exc) or type(exc).__name__) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise AuthFailure.http_error(response.status_code)

        try:
            body = msgspec.json.decode(response.content, type=ServiceTokenResponse)
        except msgspec.DecodeError as exc:
            raise AuthFailure.malformed(str(exc)) from exc

        if not body.bearer_token.strip():
            raise AuthFailure.malformed("empty bearer_token")
        return body.bearer_token
