"""sftaudit runtime entrypoint.

Provides the command-line host for the audit polling input. Configuration is
read from ``SFTAUDIT_*`` environment variables (see
:meth:`sftaudit.audit.config.AuditInputConfig.from_env`), plus:

- ``SFTAUDIT_LOG_LEVEL``: Log level (default ``INFO``)

Subcommands:

- ``scheme``: print the configuration scheme as JSON.
- ``validate``: validate the environment configuration.
- ``run``: poll forever, writing JSON lines to stdout or ``--output``.

Run the input directly with ``python -m sftaudit.runtime run``.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

import msgspec

from sftaudit.audit import (
    AuditConfigError,
    AuditInputConfig,
    FilesystemEventSink,
    JsonLinesEventSink,
    describe_configuration,
    run,
    validate_configuration,
)
from sftaudit.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

__all__ = ["build_parser", "main"]

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``sftaudit`` command."""
    parser = argparse.ArgumentParser(
        prog="sftaudit",
        description="Poll ScaleFT audit events and emit each new event once.",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("scheme", help="Print the configuration scheme as JSON")
    commands.add_parser("validate", help="Validate configuration from the environment")
    run_parser = commands.add_parser("run", help="Poll for audit events forever")
    run_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory for JSON lines output; defaults to standard output",
    )
    return parser


def _load_config() -> AuditInputConfig | None:
    try:
        return AuditInputConfig.from_env()
    except AuditConfigError as exc:
        log_error(logger, "Invalid sftaudit configuration: %s", exc)
        print(f"configuration error: {exc}", file=sys.stderr)
        return None


def _print_scheme() -> int:
    encoded = msgspec.json.encode(describe_configuration())
    sys.stdout.write(msgspec.json.format(encoded, indent=2).decode("utf-8") + "\n")
    return 0


def _validate() -> int:
    config = _load_config()
    if config is None:
        return 1
    verdict = validate_configuration(config)
    if not verdict.ok:
        print(f"configuration invalid: {verdict.message}", file=sys.stderr)
        return 1
    print(f"configuration for {config.input_name} is valid")
    return 0


def _run(output: Path | None) -> int:
    config = _load_config()
    if config is None:
        return 1

    sink = FilesystemEventSink(output) if output is not None else JsonLinesEventSink()
    log_info(
        logger,
        "Starting %s for team %s on %s (interval=%ds)",
        config.input_name,
        config.team_name,
        config.instance_address,
        config.polling_interval_s,
    )
    try:
        asyncio.run(run(config, sink))
    except AuditConfigError as exc:
        print(f"configuration invalid: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        log_info(logger, "Stopping %s", config.input_name)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the ``sftaudit`` command and return its exit code."""
    args = build_parser().parse_args(argv)

    log_level_str = os.environ.get("SFTAUDIT_LOG_LEVEL", "INFO")
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid SFTAUDIT_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    if args.command == "scheme":
        return _print_scheme()
    if args.command == "validate":
        return _validate()
    return _run(args.output)


if __name__ == "__main__":
    raise SystemExit(main())
