"""
Main orchestration pipeline.

Coordinates all components for one subject:
1. Acquisition (collaborators, concurrently, per-source timeout)
2. Assessment (validation, quality, confidence, one task per source)
3. Strategy relevance and decay (optional)
4. Conflict detection and synthesis
5. Decision generation

Handles partial failures gracefully - a failing source is excluded, never
fatal. Only InsufficientEvidenceError and MissingMarketDataError abort.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import ValidationError

from config import SynthConfig, get_config
from domain import (
    AdjustedSource,
    SourceKind,
    SourceOutput,
    SynthesisError,
    SynthesizedDecision,
    apply_strategy,
    assess_source,
    detect_conflicts,
    generate_decision,
    get_strategy_profile,
    synthesize,
)
from domain.primitives import ensure_utc
from domain.strategy import StrategyType
from ports import (
    MalformedSourceError,
    SignalSource,
    SourceError,
    SourceTimeoutError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Pipeline Status Tracking
# ============================================================================

class SourceStatus(str, Enum):
    """Status of a collaborator within one run."""
    OK = "ok"
    CACHED = "cached"
    TIMEOUT = "timeout"
    FAILED = "failed"
    MALFORMED = "malformed"
    SKIPPED = "skipped"


_ERROR_STATUS = {
    SourceTimeoutError: SourceStatus.TIMEOUT,
    MalformedSourceError: SourceStatus.MALFORMED,
}


@dataclass
class SourceResult:
    """Result from acquiring a single source."""
    source_id: str
    kind: SourceKind
    status: SourceStatus
    output: SourceOutput | None = None
    error: SourceError | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.output is not None


@dataclass
class PipelineStatus:
    """Overall run status."""
    subject: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    sources: dict[str, SourceResult] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    min_sources: int = 3

    @property
    def is_healthy(self) -> bool:
        """Check if enough sources answered to attempt synthesis."""
        ok_count = sum(1 for r in self.sources.values() if r.ok)
        return ok_count >= self.min_sources

    @property
    def duration(self) -> timedelta | None:
        """Run duration."""
        if self.completed_at:
            return self.completed_at - self.started_at
        return None

    @property
    def failed_sources(self) -> dict[str, str]:
        """source_id -> reason for every source that produced no output."""
        return {
            sid: (r.error.message if r.error else r.status.value)
            for sid, r in self.sources.items()
            if not r.ok
        }

    def add_warning(self, msg: str) -> None:
        logger.warning(msg)
        self.warnings.append(msg)

    def add_error(self, msg: str) -> None:
        logger.error(msg)
        self.errors.append(msg)


@dataclass
class PipelineResult:
    """Decision plus the status of the run that produced it."""
    decision: SynthesizedDecision
    status: PipelineStatus


# ============================================================================
# Shared core
# ============================================================================

def _resolve_strategy(strategy: StrategyType | str | None, config: SynthConfig) -> StrategyType | None:
    chosen = strategy or config.pipeline.default_strategy
    return StrategyType(chosen) if chosen else None


def decide(
    adjusted: list[AdjustedSource],
    subject: str,
    now: datetime,
    config: SynthConfig,
    status: PipelineStatus,
    strategy: StrategyType | None = None,
) -> SynthesizedDecision:
    """
    Strategy, conflicts, synthesis and decision over assessed sources.

    Raises:
        InsufficientEvidenceError: Too few quality-qualifying sources
        MissingMarketDataError: No usable reference price
    """
    if strategy is not None:
        adjusted = apply_strategy(adjusted, get_strategy_profile(strategy), now)

    for source in adjusted:
        if source.excluded:
            status.add_warning(f"{source.source_id}: excluded (adjusted confidence 0)")

    conflicts = detect_conflicts(adjusted, config.to_conflict_rules())

    try:
        synthesis = synthesize(
            adjusted,
            subject=subject,
            rules=config.to_synthesis_rules(),
        )
        decision = generate_decision(
            synthesis,
            adjusted,
            conflicts,
            now,
            subject=subject,
            strategy=strategy,
            failed_sources=status.failed_sources,
            degradations=status.warnings,
            rules=config.to_decision_rules(),
        )
    except SynthesisError as e:
        status.add_error(str(e))
        raise
    finally:
        status.completed_at = datetime.now(timezone.utc)

    return decision


# ============================================================================
# Async pipeline
# ============================================================================

class SynthesisPipeline:
    """
    Runs every collaborator for one subject and synthesizes a decision.

    Holds no state across runs; each run gets its own PipelineStatus.
    """

    def __init__(
        self,
        sources: Iterable[SignalSource],
        config: SynthConfig | None = None,
    ):
        self.sources = list(sources)
        self.config = config or get_config()

    async def _acquire(self, source: SignalSource, subject: str, cache_ttl: timedelta | None) -> SourceResult:
        """Fetch one source. Never raises except on cancellation."""
        timeout = self.config.pipeline.source_timeout_seconds
        start = time.monotonic()
        error: SourceError | None = None
        output = None

        try:
            output = await asyncio.wait_for(source.process(subject, cache_ttl), timeout=timeout)
        except TimeoutError:
            error = SourceTimeoutError(source.source_id, timeout, subject=subject)
        except SourceError as e:
            error = e
        except ValidationError as e:
            error = MalformedSourceError(source.source_id, reason=str(e), subject=subject, cause=e)
        except Exception as e:
            error = SourceUnavailableError(
                source.source_id, reason=str(e) or type(e).__name__, subject=subject, cause=e
            )

        if error is None:
            if not isinstance(output, SourceOutput):
                error = MalformedSourceError.wrong_type(source.source_id, output, subject)
            elif output.subject != subject:
                error = MalformedSourceError.subject_mismatch(source.source_id, subject, output.subject)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if error is not None:
            return SourceResult(
                source_id=source.source_id,
                kind=source.kind,
                status=_ERROR_STATUS.get(type(error), SourceStatus.FAILED),
                error=error,
                elapsed_ms=elapsed_ms,
            )

        return SourceResult(
            source_id=source.source_id,
            kind=source.kind,
            status=SourceStatus.OK,
            output=output,
            elapsed_ms=elapsed_ms,
        )

    async def acquire(self, subject: str, status: PipelineStatus, cache_ttl: timedelta | None = None) -> list[SourceOutput]:
        """
        Acquire every source concurrently.

        Cancelling the caller cancels every in-flight acquisition.
        """
        unique: list[SignalSource] = []
        seen: set[str] = set()
        for source in self.sources:
            if source.source_id in seen:
                status.add_warning(f"{source.source_id}: duplicate source id, skipped")
                continue
            seen.add(source.source_id)
            unique.append(source)

        results = await asyncio.gather(*(self._acquire(s, subject, cache_ttl) for s in unique))

        outputs = []
        for result in results:
            status.sources[result.source_id] = result
            if result.ok:
                logger.debug(
                    f"{result.source_id}: ok ({result.elapsed_ms}ms)",
                    extra={"source_id": result.source_id, "elapsed_ms": result.elapsed_ms},
                )
                outputs.append(result.output)
            else:
                status.add_warning(f"{result.source_id}: {result.status.value} - {result.error}")

        return outputs

    async def assess(self, outputs: list[SourceOutput], now: datetime) -> list[AdjustedSource]:
        """Validate and score every output concurrently, then gather."""
        penalties = self.config.to_confidence_penalties()
        return list(await asyncio.gather(
            *(asyncio.to_thread(assess_source, output, now, penalties) for output in outputs)
        ))

    async def execute(
        self,
        subject: str,
        strategy: StrategyType | str | None = None,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Run the full pipeline and return the decision with its status.

        Raises:
            InsufficientEvidenceError: Too few quality-qualifying sources
            MissingMarketDataError: No usable reference price
        """
        subject = subject.strip().upper()
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        chosen = _resolve_strategy(strategy, self.config)
        status = PipelineStatus(subject=subject, min_sources=self.config.synthesis.min_qualifying_sources)

        cache_ttl = None
        if chosen is not None:
            cache_ttl = get_strategy_profile(chosen).cache_timeout
        elif self.config.cache.enabled:
            cache_ttl = self.config.cache.default_ttl

        logger.info(
            f"Synthesizing {subject} from {len(self.sources)} source(s)"
            + (f" with {chosen.value} strategy" if chosen else ""),
            extra={"subject": subject},
        )

        outputs = await self.acquire(subject, status, cache_ttl)
        if not status.is_healthy:
            status.add_warning(f"Only {len(outputs)} source(s) answered for {subject}")

        adjusted = await self.assess(outputs, now)
        decision = decide(adjusted, subject, now, self.config, status, chosen)

        logger.info(f"Pipeline complete. Duration: {status.duration}")
        return PipelineResult(decision=decision, status=status)

    async def run(
        self,
        subject: str,
        strategy: StrategyType | str | None = None,
        now: datetime | None = None,
    ) -> SynthesizedDecision:
        """Run the pipeline and return only the decision."""
        result = await self.execute(subject, strategy=strategy, now=now)
        return result.decision

    def run_sync(
        self,
        subject: str,
        strategy: StrategyType | str | None = None,
        now: datetime | None = None,
    ) -> SynthesizedDecision:
        """Blocking wrapper around run() for callers without an event loop."""
        return asyncio.run(self.run(subject, strategy=strategy, now=now))


# ============================================================================
# Batch entry point
# ============================================================================

def _parse_records(
    records: Iterable[SourceOutput | dict[str, Any]],
    status: PipelineStatus,
) -> list[SourceOutput]:
    outputs = []
    for i, record in enumerate(records):
        if isinstance(record, SourceOutput):
            outputs.append(record)
            continue

        source_id = str(record.get("source_id") or f"record-{i}") if isinstance(record, dict) else f"record-{i}"
        try:
            outputs.append(SourceOutput.model_validate(record))
        except ValidationError as e:
            error = MalformedSourceError(source_id, reason=f"{e.error_count()} validation error(s)", cause=e)
            status.sources[source_id] = SourceResult(
                source_id=source_id,
                kind=SourceKind.UNKNOWN,
                status=SourceStatus.MALFORMED,
                error=error,
            )
            status.add_warning(f"{source_id}: malformed - {error}")
    return outputs


def synthesize_batch(
    records: Iterable[SourceOutput | dict[str, Any]],
    subject: str | None = None,
    strategy: StrategyType | str | None = None,
    now: datetime | None = None,
    config: SynthConfig | None = None,
) -> PipelineResult:
    """
    Synthesize a decision from an already-collected batch.

    Args:
        records: SourceOutputs or their JSON dicts; invalid records are
            excluded as malformed
        subject: Subject to decide on (defaults to the first record's)
        strategy: Strategy profile name or type
        now: Reference time (defaults to the current UTC time)
        config: Configuration (defaults to get_config())

    Returns:
        PipelineResult

    Raises:
        InsufficientEvidenceError: Too few quality-qualifying sources
        MissingMarketDataError: No usable reference price
    """
    config = config or get_config()
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    status = PipelineStatus(min_sources=config.synthesis.min_qualifying_sources)

    outputs = _parse_records(records, status)
    if subject is None:
        subject = outputs[0].subject if outputs else ""
    subject = subject.strip().upper()
    status.subject = subject

    seen: set[str] = set()
    accepted = []
    for output in outputs:
        if output.subject != subject:
            status.add_warning(f"{output.source_id}: report is for {output.subject}, ignored")
            continue
        if output.source_id in seen:
            status.add_warning(f"{output.source_id}: duplicate source id, skipped")
            continue
        seen.add(output.source_id)
        status.sources[output.source_id] = SourceResult(
            source_id=output.source_id,
            kind=output.kind,
            status=SourceStatus.OK,
            output=output,
        )
        accepted.append(output)

    penalties = config.to_confidence_penalties()
    adjusted = [assess_source(output, now, penalties) for output in accepted]
    decision = decide(adjusted, subject or "UNKNOWN", now, config, status, _resolve_strategy(strategy, config))
    return PipelineResult(decision=decision, status=status)
