"""Host-facing entry points for the audit polling input.

Hosts integrate through three calls: :func:`describe_configuration` to
advertise the parameters, :func:`validate_configuration` to vet a
configuration before it is saved, and :func:`run` to poll forever, writing
records to a host-supplied sink.
"""

from __future__ import annotations

import typing as typ

from .config import describe_configuration, validate_configuration
from .errors import AuditConfigError
from .poller import AuditPoller

if typ.TYPE_CHECKING:
    from .config import AuditInputConfig
    from .observability import PollEventLogger
    from .sink import EventSink


async def run(
    config: AuditInputConfig,
    sink: EventSink,
    *,
    event_logger: PollEventLogger | None = None,
) -> typ.NoReturn:
    """Validate ``config`` and poll the audit endpoint until cancelled.

    Raises
    ------
    AuditConfigError
        If ``config`` fails validation; polling never starts.

    """
    verdict = validate_configuration(config)
    if not verdict.ok:
        raise AuditConfigError(verdict.message or "invalid configuration")

    poller = AuditPoller.from_config(config, sink, event_logger=event_logger)
    try:
        await poller.run_forever()
    finally:
        await poller.aclose()


__all__ = ["describe_configuration", "run", "validate_configuration"]
