"""Generic collaborators: wrap a function, or replay a recorded report."""

import asyncio
import inspect
from datetime import timedelta
from typing import Any, Awaitable, Callable

from domain import SourceKind, SourceOutput
from ports import SourceCache

from .base import BaseSource

Producer = Callable[[str], SourceOutput | dict[str, Any] | Awaitable[SourceOutput | dict[str, Any]]]


class CallableSource(BaseSource):
    """
    Source backed by a plain function of the subject.

    Async functions are awaited; sync ones run in a worker thread so a
    slow producer cannot block the other acquisitions.
    """

    def __init__(
        self,
        source_id: str,
        kind: SourceKind | str,
        func: Producer,
        cache: SourceCache | None = None,
        cache_ttl: timedelta | None = None,
    ):
        super().__init__(cache=cache, cache_ttl=cache_ttl)
        self._source_id = source_id
        self._kind = SourceKind(kind)
        self._func = func

    @property
    def source_id(self) -> str:
        return self._source_id

    @property
    def kind(self) -> SourceKind:
        return self._kind

    async def _process_impl(self, subject: str) -> SourceOutput | dict[str, Any]:
        if inspect.iscoroutinefunction(self._func):
            return await self._func(subject)
        result = await asyncio.to_thread(self._func, subject)
        if inspect.isawaitable(result):
            return await result
        return result


class StaticSource(BaseSource):
    """Replays one recorded report."""

    def __init__(self, output: SourceOutput):
        super().__init__()
        self._output = output

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "StaticSource":
        """Build from a JSON record (raises pydantic ValidationError if invalid)."""
        return cls(SourceOutput.model_validate(record))

    @property
    def source_id(self) -> str:
        return self._output.source_id

    @property
    def kind(self) -> SourceKind:
        return self._output.kind

    async def _process_impl(self, subject: str) -> SourceOutput:
        return self._output
