"""Flatten raw audit events into sink-ready records.

Events carry an ``actor`` detail describing who acted, encoded as
space-separated ``CODE=value`` pairs::

    >>> decode_actor("U=alice T=eng")
    {'user': 'alice', 'team': 'eng'}

Unknown codes pass through as-is and later pairs overwrite earlier pairs of
the same type.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .models import NormalizedEvent, RawAuditEvent

ACTOR_FIELD = "actor"

_ACTOR_TYPE_NAMES: dict[str, str] = {
    "T": "team",
    "U": "user",
    "I": "instance",
    "D": "device",
    "DT": "device type",
}


def actor_type_name(code: str) -> str:
    """Return the readable actor type for ``code``, or ``code`` when unknown."""
    return _ACTOR_TYPE_NAMES.get(code.upper(), code)


def decode_actor(actor: str) -> dict[str, str | None]:
    """Decode an actor string into a mapping of actor type to value.

    Each space-separated token is split on its first ``=``. A token without
    ``=`` maps its type to ``None``.
    """
    decoded: dict[str, str | None] = {}
    for token in actor.split(" "):
        if not token:
            continue
        code, sep, value = token.partition("=")
        decoded[actor_type_name(code)] = value if sep else None
    return decoded


def normalize_event(raw: RawAuditEvent) -> NormalizedEvent:
    """Return a flat record for ``raw`` with its actor decoded.

    ``details`` keys are merged over ``id`` and ``timestamp``.
    """
    record: NormalizedEvent = {
        "id": raw.id,
        "timestamp": raw.timestamp.isoformat(),
    }
    for key, value in (raw.details or {}).items():
        if key == ACTOR_FIELD and isinstance(value, str):
            record[key] = decode_actor(value)
        else:
            record[key] = value
    return record
