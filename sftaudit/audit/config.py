"""Configuration for the audit polling input.

This module provides the immutable ``AuditInputConfig`` consumed by the
poller, together with the host-facing scheme description and validation
rules for the input's parameters.

Usage
-----
Build a configuration from host parameters:

>>> config = AuditInputConfig.from_mapping(
...     {
...         "team_name": "acme",
...         "instance_address": "https://app.scaleft.com/",
...         "polling_interval": "60",
...         "client_key": "0" * 36,
...         "client_secret": "s3cret",
...         "checkpoint_dir": "/var/lib/sftaudit",
...     }
... )
>>> config.instance_address
'https://app.scaleft.com'

Or load from environment variables:

>>> config = AuditInputConfig.from_env()  # doctest: +SKIP

"""

from __future__ import annotations

import dataclasses
import os
import re
import typing as typ
import urllib.parse
from pathlib import Path

from .errors import AuditConfigError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

INPUT_NAME = "sft-audit-events"

_DEFAULT_POLLING_INTERVAL_S = 60
_DEFAULT_TIMEOUT_S = 20.0
MIN_POLLING_INTERVAL_S = 30
CLIENT_KEY_LENGTH = 36
_TEAM_NAME_PATTERN = re.compile(r"^[\w\-_.]+$")


def strip_trailing_slash(address: str) -> str:
    """Return ``address`` without a single trailing slash."""
    if address.endswith("/"):
        return address[:-1]
    return address


@dataclasses.dataclass(frozen=True, slots=True)
class AuditInputConfig:
    """Immutable settings for one configured audit input instance.

    Attributes
    ----------
    team_name
        ScaleFT team (tenant) whose audit events are collected.
    instance_address
        Base URL of the ScaleFT instance, without a trailing slash.
    client_key
        Service user key identifier.
    client_secret
        Service user key secret.
    checkpoint_dir
        Directory holding per-input checkpoint state.
    polling_interval_s
        Seconds to sleep between poll cycles.
    input_name
        Logical name of the input; namespaces checkpoints and tags records.
    timeout_s
        HTTP timeout applied to token and audit requests.

    """

    team_name: str
    instance_address: str
    client_key: str
    client_secret: str
    checkpoint_dir: Path
    polling_interval_s: int = _DEFAULT_POLLING_INTERVAL_S
    input_name: str = INPUT_NAME
    timeout_s: float = _DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        """Normalise the instance address by dropping a trailing slash."""
        object.__setattr__(
            self, "instance_address", strip_trailing_slash(self.instance_address)
        )

    def team_url(self, path: str) -> str:
        """Return the team-scoped API URL for ``path``."""
        return f"{self.instance_address}/v1/teams/{self.team_name}{path}"

    @classmethod
    def from_mapping(
        cls,
        params: cabc.Mapping[str, object],
        *,
        input_name: str = INPUT_NAME,
    ) -> AuditInputConfig:
        """Build configuration from host parameter names.

        Raises
        ------
        AuditConfigError
            If a required parameter is missing or the interval is not numeric.

        """

        def _required(name: str) -> str:
            raw = params.get(name)
            value = "" if raw is None else str(raw).strip()
            if not value:
                raise AuditConfigError.missing(name)
            return value

        raw_interval = params.get("polling_interval")
        interval = (
            _DEFAULT_POLLING_INTERVAL_S
            if raw_interval is None or not str(raw_interval).strip()
            else _parse_int("polling_interval", str(raw_interval))
        )
        return cls(
            team_name=_required("team_name"),
            instance_address=_required("instance_address"),
            client_key=_required("client_key"),
            client_secret=_required("client_secret"),
            checkpoint_dir=Path(_required("checkpoint_dir")),
            polling_interval_s=interval,
            input_name=input_name,
        )

    @classmethod
    def from_env(cls) -> AuditInputConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``SFTAUDIT_TEAM_NAME``: Required team name.
        - ``SFTAUDIT_INSTANCE_ADDRESS``: Required instance base URL.
        - ``SFTAUDIT_CLIENT_KEY``: Required service user key id.
        - ``SFTAUDIT_CLIENT_SECRET``: Required service user key secret.
        - ``SFTAUDIT_CHECKPOINT_DIR``: Required checkpoint directory.
        - ``SFTAUDIT_POLLING_INTERVAL``: Optional seconds between polls.
        - ``SFTAUDIT_INPUT_NAME``: Optional logical input name.
        - ``SFTAUDIT_TIMEOUT_S``: Optional HTTP timeout in seconds.

        Raises
        ------
        AuditConfigError
            If a required variable is missing or a numeric one is malformed.

        """
        params = {
            "team_name": os.environ.get("SFTAUDIT_TEAM_NAME"),
            "instance_address": os.environ.get("SFTAUDIT_INSTANCE_ADDRESS"),
            "client_key": os.environ.get("SFTAUDIT_CLIENT_KEY"),
            "client_secret": os.environ.get("SFTAUDIT_CLIENT_SECRET"),
            "checkpoint_dir": os.environ.get("SFTAUDIT_CHECKPOINT_DIR"),
            "polling_interval": os.environ.get("SFTAUDIT_POLLING_INTERVAL"),
        }
        input_name = os.environ.get("SFTAUDIT_INPUT_NAME", "").strip() or INPUT_NAME
        config = cls.from_mapping(params, input_name=input_name)

        raw_timeout = os.environ.get("SFTAUDIT_TIMEOUT_S", "").strip()
        if not raw_timeout:
            return config
        try:
            timeout_s = float(raw_timeout)
        except ValueError as exc:
            raise AuditConfigError.not_a_number(
                "SFTAUDIT_TIMEOUT_S", raw_timeout
            ) from exc
        return dataclasses.replace(config, timeout_s=timeout_s)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise AuditConfigError.not_a_number(name, raw) from exc


@dataclasses.dataclass(frozen=True, slots=True)
class InputArgument:
    """One argument in the host-facing configuration scheme."""

    name: str
    data_type: typ.Literal["string", "number"]
    description: str
    required_on_create: bool = True
    required_on_edit: bool = True


@dataclasses.dataclass(frozen=True, slots=True)
class InputScheme:
    """Host-facing description of the input's configuration."""

    title: str
    description: str
    use_external_validation: bool
    use_single_instance: bool
    arguments: tuple[InputArgument, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating a configuration; ``message`` explains failures."""

    ok: bool
    message: str | None = None

    @classmethod
    def success(cls) -> ValidationResult:
        """Return a passing result."""
        return cls(ok=True)

    @classmethod
    def failure(cls, message: str) -> ValidationResult:
        """Return a failing result carrying ``message``."""
        return cls(ok=False, message=message)


def describe_configuration() -> InputScheme:
    """Return the configuration scheme the host presents for this input."""
    return InputScheme(
        title="ScaleFT Audit Event Input",
        description="A modular input that retrieves audit events from ScaleFT's API.",
        use_external_validation=True,
        use_single_instance=False,
        arguments=(
            InputArgument(
                name="team_name",
                data_type="string",
                description="The ScaleFT team name to receive audit logs from.",
            ),
            InputArgument(
                name="instance_address",
                data_type="string",
                description="The address to the instance of ScaleFT to use.",
            ),
            InputArgument(
                name="polling_interval",
                data_type="number",
                description=(
                    "The number of seconds to wait before polling for new audit "
                    "events. Defaults to 60."
                ),
            ),
            InputArgument(
                name="client_key",
                data_type="string",
                description="The client key for your ScaleFT service user.",
            ),
            InputArgument(
                name="client_secret",
                data_type="string",
                description="The client secret for your ScaleFT service user.",
            ),
            InputArgument(
                name="checkpoint_dir",
                data_type="string",
                description=(
                    "The path to a directory to hold modular input state. "
                    "Typically $SPLUNK_DB/modinputs/"
                ),
            ),
        ),
    )


def validate_configuration(config: AuditInputConfig) -> ValidationResult:
    """Check ``config`` against the input's parameter rules.

    Rules are applied in order and the first failure is reported: the team
    name must match ``^[\\w\\-_.]+$``, the client key must be 36 characters,
    the polling interval must be at least 30 seconds, and the instance address
    must be an ``https`` URL with a hostname.
    """
    if not _TEAM_NAME_PATTERN.match(config.team_name.lower()):
        return ValidationResult.failure(
            r"Team names must match regular expression ^[\w\-_.]+$"
        )

    if len(config.client_key) != CLIENT_KEY_LENGTH:
        return ValidationResult.failure("The client key does not appear to be valid.")

    if config.polling_interval_s < MIN_POLLING_INTERVAL_S:
        return ValidationResult.failure(
            f"The minimum polling interval is {MIN_POLLING_INTERVAL_S} seconds."
        )

    invalid_url = ValidationResult.failure(
        "Instance address does not appear to be a valid URL."
    )
    try:
        parsed = urllib.parse.urlparse(config.instance_address)
    except ValueError:
        return invalid_url
    if not parsed.hostname:
        return invalid_url

    if parsed.scheme != "https":
        return ValidationResult.failure("Instance address is not an https url.")

    return ValidationResult.success()
