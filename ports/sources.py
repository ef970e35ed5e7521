"""
Signal source ports and error types.

This module defines the protocol analysis collaborators implement, the
cache they may be given, and the errors they raise. Any SourceError
excludes the source from the run; none of them is fatal.
"""

from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from domain import SourceKind, SourceOutput
from domain.errors import ErrorCode, SynthesisError


# ============================================================================
# Error Classes
# ============================================================================

class SourceError(SynthesisError):
    """
    Base exception for collaborator failures.

    Carries the failing source id so the pipeline can record why the
    source is missing from the decision.
    """

    def __init__(
        self,
        source_id: str,
        message: str,
        code: ErrorCode = ErrorCode.SOURCE_UNAVAILABLE,
        subject: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.source_id = source_id
        context = {"source_id": source_id, **(context or {})}
        super().__init__(
            message=f"[{source_id}] {message}",
            code=code,
            subject=subject,
            context=context,
            cause=cause,
        )


class SourceTimeoutError(SourceError):
    """Raised when a source does not answer within its timeout."""

    def __init__(self, source_id: str, timeout: float, subject: str | None = None):
        self.timeout = timeout
        super().__init__(
            source_id=source_id,
            message=f"Timed out after {timeout:.1f}s",
            code=ErrorCode.SOURCE_TIMEOUT,
            subject=subject,
            context={"timeout_seconds": timeout},
        )


class SourceUnavailableError(SourceError):
    """Raised when a source fails for any reason other than bad output."""

    def __init__(
        self,
        source_id: str,
        reason: str,
        subject: str | None = None,
        cause: Exception | None = None,
    ):
        self.reason = reason
        super().__init__(
            source_id=source_id,
            message=reason,
            code=ErrorCode.SOURCE_UNAVAILABLE,
            subject=subject,
            context={"reason": reason},
            cause=cause,
        )


class MalformedSourceError(SourceError):
    """Raised when a source returns unparseable or invalid output."""

    def __init__(
        self,
        source_id: str,
        reason: str,
        subject: str | None = None,
        field: str | None = None,
        cause: Exception | None = None,
    ):
        self.reason = reason
        context = {"reason": reason}
        if field:
            context["field"] = field

        super().__init__(
            source_id=source_id,
            message=f"Malformed output: {reason}",
            code=ErrorCode.SOURCE_MALFORMED,
            subject=subject,
            context=context,
            cause=cause,
        )

    @classmethod
    def subject_mismatch(cls, source_id: str, expected: str, actual: str) -> "MalformedSourceError":
        """Create error for output about a different subject."""
        return cls(
            source_id=source_id,
            reason=f"Output is for {actual}, expected {expected}",
            subject=expected,
            field="subject",
        )

    @classmethod
    def wrong_type(cls, source_id: str, value: Any, subject: str | None = None) -> "MalformedSourceError":
        """Create error for a result that is not a source output at all."""
        return cls(
            source_id=source_id,
            reason=f"Expected a source output, got {type(value).__name__}",
            subject=subject,
        )


# ============================================================================
# Protocols
# ============================================================================

@runtime_checkable
class SourceCache(Protocol):
    """
    Cache of transient source output.

    Keyed by subject + source kind; values are the output dict plus an
    expiry. The synthesis core never touches it.
    """

    def get(self, subject: str, kind: SourceKind) -> dict[str, Any] | None:
        """Cached output dict, or None if missing or expired."""
        ...

    def set(self, subject: str, kind: SourceKind, data: dict[str, Any], ttl: timedelta) -> None:
        """Store an output dict for ttl."""
        ...

    def invalidate(self, subject: str | None = None) -> int:
        """Drop entries, all or one subject's. Returns count removed."""
        ...


@runtime_checkable
class SignalSource(Protocol):
    """
    Protocol for all analysis collaborators.

    Implementations must:
    - Return a SourceOutput for the requested subject
    - Fail explicitly with a SourceError, no fabricated output
    - Be safe to call concurrently with other sources
    """

    @property
    def source_id(self) -> str:
        """Stable identifier, unique within one run."""
        ...

    @property
    def kind(self) -> SourceKind:
        """Kind of analysis this source produces."""
        ...

    async def process(self, subject: str, cache_ttl: timedelta | None = None) -> SourceOutput:
        """
        Produce one report for subject.

        Raises:
            SourceTimeoutError: If the source gives up waiting on its own inputs
            SourceUnavailableError: If the source cannot produce a report
            MalformedSourceError: If the produced report is invalid
        """
        ...
