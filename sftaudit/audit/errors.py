"""Audit input errors."""

from __future__ import annotations


class AuditInputError(RuntimeError):
    """Base class for failures raised by the audit polling input."""


class AuthFailure(AuditInputError):
    """Raised when a bearer credential cannot be obtained or is unusable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> AuthFailure:
        """Return an error for non-2xx token endpoint responses."""
        return cls(f"service token HTTP {status_code}", status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> AuthFailure:
        """Return an error for transport failures talking to the token endpoint."""
        return cls(f"service token request failed: {detail}")

    @classmethod
    def malformed(cls, detail: str) -> AuthFailure:
        """Return an error for token responses without a usable bearer token."""
        return cls(f"service token response malformed: {detail}")

    @classmethod
    def expired(cls) -> AuthFailure:
        """Return an error when an expired credential is presented."""
        return cls("bearer credential is expired")


class FetchFailure(AuditInputError):
    """Raised when the audit endpoint is unreachable or returns a bad page."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> FetchFailure:
        """Return an error for non-2xx audit endpoint responses."""
        return cls(f"audit events HTTP {status_code}", status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> FetchFailure:
        """Return an error for transport failures talking to the audit endpoint."""
        return cls(f"audit events request failed: {detail}")

    @classmethod
    def malformed(cls, detail: str) -> FetchFailure:
        """Return an error for audit responses that do not decode."""
        return AuditResponseShapeError(f"audit events response malformed: {detail}")


class AuditResponseShapeError(FetchFailure):
    """Raised when an audit events body is missing expected fields."""


class PersistFailure(AuditInputError):
    """Raised when a checkpoint cannot be written durably."""

    @classmethod
    def write_failed(cls, path: str, detail: str) -> PersistFailure:
        """Return an error for a failed checkpoint write."""
        return cls(f"failed to write checkpoint {path}: {detail}")


class SinkFailure(AuditInputError):
    """Raised when a single normalized event cannot be emitted."""

    def __init__(self, message: str, *, event_id: str | None = None) -> None:
        """Initialise with a message and the identifier of the failed event."""
        self.event_id = event_id
        super().__init__(message)

    @classmethod
    def emit_failed(cls, event_id: str, detail: str) -> SinkFailure:
        """Return an error wrapping a sink exception for one event."""
        return cls(f"failed to emit event {event_id}: {detail}", event_id=event_id)


class AuditConfigError(AuditInputError):
    """Raised when audit input configuration is missing or invalid."""

    @classmethod
    def missing(cls, name: str) -> AuditConfigError:
        """Return an error for a required setting that is absent or blank."""
        return cls(f"{name} is required")

    @classmethod
    def not_a_number(cls, name: str, raw: str) -> AuditConfigError:
        """Return an error for a numeric setting that does not parse."""
        return cls(f"{name} must be a number, got: {raw!r}")
