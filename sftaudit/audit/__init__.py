"""ScaleFT audit event polling primitives."""

from __future__ import annotations

from .checkpoint import CheckpointEncoding, CheckpointStore
from .client import AuditEventSource, ScaleFTAuditClient
from .config import (
    INPUT_NAME,
    AuditInputConfig,
    InputArgument,
    InputScheme,
    ValidationResult,
)
from .errors import (
    AuditConfigError,
    AuditInputError,
    AuditResponseShapeError,
    AuthFailure,
    FetchFailure,
    PersistFailure,
    SinkFailure,
)
from .input import describe_configuration, run, validate_configuration
from .models import Credential, RawAuditEvent
from .normalizer import decode_actor, normalize_event
from .observability import (
    ErrorCategory,
    PollEventLogger,
    PollEventType,
    categorize_error,
)
from .poller import AuditPoller, PollCycleResult, PollSession
from .sink import (
    AuditRecord,
    EventSink,
    FilesystemEventSink,
    JsonLinesEventSink,
)
from .tokens import CredentialProvider, TokenManager

__all__ = [
    "INPUT_NAME",
    "AuditConfigError",
    "AuditEventSource",
    "AuditInputConfig",
    "AuditInputError",
    "AuditPoller",
    "AuditRecord",
    "AuditResponseShapeError",
    "AuthFailure",
    "CheckpointEncoding",
    "CheckpointStore",
    "Credential",
    "CredentialProvider",
    "ErrorCategory",
    "EventSink",
    "FetchFailure",
    "FilesystemEventSink",
    "InputArgument",
    "InputScheme",
    "JsonLinesEventSink",
    "PersistFailure",
    "PollCycleResult",
    "PollEventLogger",
    "PollEventType",
    "PollSession",
    "RawAuditEvent",
    "ScaleFTAuditClient",
    "SinkFailure",
    "TokenManager",
    "ValidationResult",
    "categorize_error",
    "decode_actor",
    "describe_configuration",
    "normalize_event",
    "run",
    "validate_configuration",
]
