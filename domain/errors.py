"""
Synthesis error types.

Only InsufficientEvidenceError and MissingMarketDataError abort a run.
Everything else degrades by excluding the offending source or check.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # Source acquisition errors (1xx)
    SOURCE_TIMEOUT = "E101"
    SOURCE_UNAVAILABLE = "E102"
    SOURCE_MALFORMED = "E103"

    # Validation errors (2xx)
    VALIDATION_RULE = "E201"

    # Evidence errors (3xx)
    INSUFFICIENT_EVIDENCE = "E301"
    NO_SOURCES_FOR_SUBJECT = "E302"

    # Market data errors (4xx)
    MISSING_MARKET_DATA = "E401"

    # Internal errors (9xx)
    INTERNAL = "E901"
    UNKNOWN = "E999"


class SynthesisError(Exception):
    """
    Base exception for synthesis failures.

    Carries a code, the subject being analyzed and free-form context
    so callers can explain why no decision was produced.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        subject: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.subject = subject
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        parts = [f"[{code.value}]"]
        if subject:
            parts.append(f"[{subject}]")
        parts.append(message)

        self.message = message
        super().__init__(" ".join(parts))

    @property
    def is_fatal(self) -> bool:
        """True if this error aborts the run."""
        return False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "subject": self.subject,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def with_context(self, **kwargs: Any) -> "SynthesisError":
        """Add additional context and return self for chaining."""
        self.context.update(kwargs)
        return self


class InsufficientEvidenceError(SynthesisError):
    """Raised when too few quality-qualifying sources remain."""

    def __init__(
        self,
        subject: str | None,
        qualifying: int,
        required: int,
        reason: str | None = None,
        code: ErrorCode = ErrorCode.INSUFFICIENT_EVIDENCE,
    ):
        self.qualifying = qualifying
        self.required = required

        msg = reason or (
            f"Insufficient evidence: {qualifying} qualifying source(s), "
            f"{required} required"
        )
        super().__init__(
            message=msg,
            code=code,
            subject=subject,
            context={"qualifying": qualifying, "required": required},
        )

    @property
    def is_fatal(self) -> bool:
        return True

    @classmethod
    def no_sources(cls, subject: str) -> "InsufficientEvidenceError":
        """Create error for a subject that no source reported on."""
        return cls(
            subject=subject,
            qualifying=0,
            required=1,
            reason=f"No sources reported on {subject}",
            code=ErrorCode.NO_SOURCES_FOR_SUBJECT,
        )


class MissingMarketDataError(SynthesisError):
    """Raised when no source supplies a usable reference price."""

    def __init__(self, subject: str | None, checked: list[str] | None = None):
        self.checked = checked or []
        super().__init__(
            message="No source supplied a usable reference price",
            code=ErrorCode.MISSING_MARKET_DATA,
            subject=subject,
            context={"checked": self.checked},
        )

    @property
    def is_fatal(self) -> bool:
        return True


class ValidationRuleError(SynthesisError):
    """
    A validation rule implementation failed.

    Never propagated out of the validation engine: it is turned into a
    failed, non-critical check instead.
    """

    def __init__(self, rule: str, source_id: str, cause: Exception):
        self.rule = rule
        super().__init__(
            message=f"Rule '{rule}' failed on {source_id}: {cause}",
            code=ErrorCode.VALIDATION_RULE,
            context={"rule": rule, "source_id": source_id},
            cause=cause,
        )
