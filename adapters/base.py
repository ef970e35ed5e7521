"""
Base source with caching, error normalization, and structured logging.

All collaborators should inherit from BaseSource to get:
- Output caching through an injected SourceCache
- Conversion of raw results into validated SourceOutputs
- Uniform SourceError failures
- Structured logging at boundaries
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from domain import SourceKind, SourceOutput
from ports import MalformedSourceError, SourceCache, SourceError, SourceUnavailableError

logger = logging.getLogger(__name__)


class BaseSource(ABC):
    """
    Base class for analysis collaborators.

    Provides:
    - Cache lookup/store keyed by subject + kind
    - Validation of whatever _process_impl returns
    - Error handling boilerplate
    """

    def __init__(self, cache: SourceCache | None = None, cache_ttl: timedelta | None = None):
        self._cache = cache
        self._cache_ttl = cache_ttl

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Stable identifier, unique within one run."""
        ...

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """Kind of analysis this source produces."""
        ...

    def _get_cached(self, subject: str) -> SourceOutput | None:
        if self._cache is None:
            return None

        data = self._cache.get(subject, self.kind)
        if data is None:
            return None

        try:
            output = SourceOutput.model_validate(data)
        except ValidationError as e:
            logger.warning(
                f"Discarding unreadable cache entry for {self.source_id}: {e.error_count()} error(s)",
                extra={"source_id": self.source_id, "subject": subject},
            )
            return None

        if output.source_id != self.source_id:
            return None

        logger.debug(f"Cache hit: {self.source_id} {subject}")
        return output

    def _set_cached(self, output: SourceOutput, ttl: timedelta) -> None:
        if self._cache is None:
            return
        self._cache.set(output.subject, self.kind, output.model_dump(mode="json"), ttl)

    def _coerce(self, result: Any, subject: str) -> SourceOutput:
        """Turn a raw result into a SourceOutput or raise MalformedSourceError."""
        if isinstance(result, SourceOutput):
            output = result
        elif isinstance(result, dict):
            data = {
                "source_id": self.source_id,
                "kind": self.kind.value,
                "subject": subject,
                **result,
            }
            try:
                output = SourceOutput.model_validate(data)
            except ValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(p) for p in first.get("loc", ()))
                raise MalformedSourceError(
                    self.source_id,
                    reason=f"{field}: {first.get('msg')}",
                    subject=subject,
                    field=field or None,
                    cause=e,
                ) from e
        else:
            raise MalformedSourceError.wrong_type(self.source_id, result, subject)

        if output.subject != subject:
            raise MalformedSourceError.subject_mismatch(self.source_id, subject, output.subject)
        return output

    async def process(self, subject: str, cache_ttl: timedelta | None = None) -> SourceOutput:
        """
        Produce one validated report, using the cache when allowed.

        Raises:
            SourceTimeoutError: If the implementation raises it
            SourceUnavailableError: If the implementation fails
            MalformedSourceError: If the result is not a valid report
        """
        subject = subject.strip().upper()
        ttl = cache_ttl or self._cache_ttl

        if ttl:
            cached = self._get_cached(subject)
            if cached is not None:
                return cached

        start = time.monotonic()
        try:
            result = await self._process_impl(subject)
        except SourceError:
            raise
        except ValidationError as e:
            raise MalformedSourceError(
                self.source_id, reason=str(e), subject=subject, cause=e
            ) from e
        except Exception as e:
            raise SourceUnavailableError(
                self.source_id, reason=str(e) or type(e).__name__, subject=subject, cause=e
            ) from e

        output = self._coerce(result, subject)
        elapsed = time.monotonic() - start
        logger.debug(
            f"{self.source_id} produced {subject} report ({elapsed:.2f}s)",
            extra={
                "source_id": self.source_id,
                "subject": subject,
                "elapsed_ms": int(elapsed * 1000),
            },
        )

        if ttl:
            self._set_cached(output, ttl)
        return output

    @abstractmethod
    async def _process_impl(self, subject: str) -> SourceOutput | dict[str, Any]:
        """
        Implementation-specific analysis.

        Subclasses implement this instead of process() to get caching,
        validation and error normalization. May return a SourceOutput or
        a dict of its fields (source_id, kind and subject are filled in).
        """
        ...
