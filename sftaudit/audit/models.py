"""Typed domain models for audit event polling."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ

import msgspec

_NEVER = dt.datetime.min.replace(tzinfo=dt.UTC)


@dataclasses.dataclass(frozen=True, slots=True)
class Credential:
    """Bearer credential issued by the service token endpoint.

    Attributes
    ----------
    token
        Opaque bearer string; empty until the first refresh.
    expires_at
        Aware UTC instant after which the token must not be presented.

    """

    token: str = ""
    expires_at: dt.datetime = _NEVER

    def is_valid(self, now: dt.datetime) -> bool:
        """Return True when the token may still be presented at ``now``."""
        return bool(self.token) and self.expires_at > now


class ServiceTokenResponse(msgspec.Struct, kw_only=True):
    """Body returned by ``POST /v1/teams/<team>/service_token``."""

    bearer_token: str


class RawAuditEvent(msgspec.Struct, kw_only=True, frozen=True):
    """Audit event as returned by the remote API.

    Attributes
    ----------
    id
        Opaque unique identifier assigned by the remote system.
    timestamp
        Instant the event occurred; the source of ordering and dedup.
    details
        Open mapping of event fields. The reserved ``actor`` key holds a
        space-delimited actor encoding such as ``U=alice T=eng``.

    """

    id: str
    timestamp: dt.datetime
    details: dict[str, typ.Any] | None = None


class AuditPage(msgspec.Struct, kw_only=True):
    """Body returned by ``GET /v1/teams/<team>/audits``."""

    events: list[RawAuditEvent] | None = msgspec.field(default=None, name="list")


type NormalizedEvent = dict[str, typ.Any]
type Watermark = dt.datetime | None
