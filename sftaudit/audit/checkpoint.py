r"""Durable watermark storage for the audit polling input.

One file per (team, instance) pair holds the timestamp of the newest event
already delivered::

    {checkpoint_dir}/{input_name}/{sha1(team + "-" + instance)}

The file contains either an ISO-8601 instant or, when written by earlier
versions of the input, integer milliseconds since the Unix epoch. Both are
accepted on load.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import enum
import hashlib
import os
import re
import tempfile
import typing as typ

from sftaudit.common.time import ensure_utc, from_epoch_millis, to_epoch_millis

from .errors import PersistFailure

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .config import AuditInputConfig
    from .models import Watermark

_EPOCH_MILLIS_PATTERN = re.compile(r"-?[0-9]+")


class CheckpointEncoding(enum.StrEnum):
    """Text encodings understood by :class:`CheckpointStore`."""

    ISO8601 = "iso8601"
    EPOCH_MILLIS = "epoch_millis"


def checkpoint_key(team_name: str, instance_address: str) -> str:
    """Return the stable file name for a (team, instance) pair."""
    digest = hashlib.sha1(  # noqa: S324
        f"{team_name}-{instance_address}".encode()
    )
    return digest.hexdigest()


def encode_watermark(
    watermark: dt.datetime, encoding: CheckpointEncoding = CheckpointEncoding.ISO8601
) -> str:
    """Return the checkpoint text for ``watermark``."""
    if encoding is CheckpointEncoding.EPOCH_MILLIS:
        return str(to_epoch_millis(watermark))
    return ensure_utc(watermark).isoformat()


def decode_watermark(text: str) -> Watermark:
    """Parse checkpoint text, returning None when it is not a recognised instant."""
    stripped = text.strip()
    if not stripped:
        return None
    if _EPOCH_MILLIS_PATTERN.fullmatch(stripped):
        try:
            return from_epoch_millis(int(stripped, 10))
        except OverflowError:
            return None
    try:
        parsed = dt.datetime.fromisoformat(stripped.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


class CheckpointStore:
    """Load and save the watermark for one configured input.

    Parameters
    ----------
    checkpoint_dir
        Root checkpoint directory supplied by the host.
    input_name
        Logical input name; checkpoints live in a subdirectory of this name.
    team_name, instance_address
        Pair hashed into the checkpoint file name so inputs for different
        teams or instances never share a file.

    """

    def __init__(
        self,
        checkpoint_dir: Path,
        *,
        input_name: str,
        team_name: str,
        instance_address: str,
    ) -> None:
        """Bind the store to a checkpoint file location."""
        self._directory = checkpoint_dir / input_name
        self._path = self._directory / checkpoint_key(team_name, instance_address)

    @classmethod
    def for_config(cls, config: AuditInputConfig) -> CheckpointStore:
        """Return the store for an input configuration."""
        return cls(
            config.checkpoint_dir,
            input_name=config.input_name,
            team_name=config.team_name,
            instance_address=config.instance_address,
        )

    @property
    def path(self) -> Path:
        """Return the checkpoint file path."""
        return self._path

    async def load(self) -> Watermark:
        """Return the stored watermark, or None when absent or unreadable."""
        return await asyncio.to_thread(self._load_sync)

    async def save(
        self,
        watermark: dt.datetime,
        *,
        encoding: CheckpointEncoding = CheckpointEncoding.ISO8601,
    ) -> None:
        """Durably replace the stored watermark.

        Raises
        ------
        PersistFailure
            If the checkpoint cannot be written.

        """
        text = encode_watermark(watermark, encoding)
        try:
            await asyncio.to_thread(self._write_sync, text)
        except OSError as exc:
            raise PersistFailure.write_failed(str(self._path), str(exc)) from exc

    def _load_sync(self) -> Watermark:
        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return decode_watermark(text)

    def _write_sync(self, text: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
