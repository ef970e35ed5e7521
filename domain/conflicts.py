"""
Cross-source conflict and consensus detection.

Works only on sources with adjusted confidence above zero. Steps run in
order: directional tally, confidence outliers, opposing-domain pairs,
then the aggregate conflict score.
"""

import logging
import statistics
from dataclasses import dataclass, field

from .enums import ConflictType, Direction, Severity, SourceKind
from .models import AdjustedSource, ConflictRecord, ConflictReport, ConsensusMetrics
from .signals import DEFAULT_STANCE_PRECEDENCE, extract_stance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictRules:
    """Thresholds and weights for conflict detection."""

    # Outliers are measured against the mean/sigma of the other sources
    outlier_sigma: float = 2.0
    outlier_min_others: int = 3
    sigma_floor: float = 5.0
    outlier_impact: float = 0.1

    opposing_pairs: tuple[tuple[SourceKind, SourceKind], ...] = (
        (SourceKind.FLOW, SourceKind.TECHNICAL),
        (SourceKind.MICROSTRUCTURE, SourceKind.TECHNICAL),
    )
    pair_impact: float = 0.2

    severity_weights: dict[Severity, float] = field(default_factory=lambda: {
        Severity.HIGH: 1.0,
        Severity.MEDIUM: 0.6,
        Severity.LOW: 0.3,
    })

    stance_precedence: tuple[str, ...] = DEFAULT_STANCE_PRECEDENCE


DEFAULT_CONFLICT_RULES = ConflictRules()


def _directional_conflict(
    stances: dict[str, Direction],
    valid_count: int,
) -> ConflictRecord | None:
    bullish = [sid for sid, d in stances.items() if d == Direction.BULLISH]
    bearish = [sid for sid, d in stances.items() if d == Direction.BEARISH]
    if not bullish or not bearish:
        return None

    severity = Severity.HIGH if abs(len(bullish) - len(bearish)) <= 1 else Severity.MEDIUM
    return ConflictRecord(
        type=ConflictType.DIRECTIONAL,
        involved_sources=bullish + bearish,
        description=f"{len(bullish)} bullish vs {len(bearish)} bearish sources",
        severity=severity,
        impact=min(len(bullish), len(bearish)) / valid_count,
    )


def _confidence_outliers(
    sources: list[AdjustedSource],
    rules: ConflictRules,
) -> list[ConflictRecord]:
    records = []
    if len(sources) - 1 < rules.outlier_min_others:
        return records

    for i, source in enumerate(sources):
        others = [s.adjusted_confidence for j, s in enumerate(sources) if j != i]
        mean = statistics.fmean(others)
        sigma = max(statistics.pstdev(others), rules.sigma_floor)
        distance = abs(source.adjusted_confidence - mean) / sigma
        if distance > rules.outlier_sigma:
            records.append(ConflictRecord(
                type=ConflictType.CONFIDENCE_OUTLIER,
                involved_sources=[source.source_id],
                description=(
                    f"{source.source_id} confidence {source.adjusted_confidence} is "
                    f"{distance:.1f} sigma from the others (mean {mean:.1f})"
                ),
                severity=Severity.LOW,
                impact=rules.outlier_impact,
            ))
    return records


def _opposite(a: Direction, b: Direction) -> bool:
    return {a, b} == {Direction.BULLISH, Direction.BEARISH}


def _pair_conflicts(
    sources: list[AdjustedSource],
    stances: dict[str, Direction],
    rules: ConflictRules,
) -> list[ConflictRecord]:
    records = []
    for kind_a, kind_b in rules.opposing_pairs:
        side_a = [s for s in sources if s.kind == kind_a]
        side_b = [s for s in sources if s.kind == kind_b]
        for a in side_a:
            for b in side_b:
                if _opposite(stances[a.source_id], stances[b.source_id]):
                    records.append(ConflictRecord(
                        type=ConflictType.FLOW_TECHNICAL,
                        involved_sources=[a.source_id, b.source_id],
                        description=(
                            f"{kind_a.value} source {a.source_id} is "
                            f"{stances[a.source_id].value.lower()} while {kind_b.value} "
                            f"source {b.source_id} is {stances[b.source_id].value.lower()}"
                        ),
                        severity=Severity.HIGH,
                        impact=rules.pair_impact,
                    ))
    return records


def detect_conflicts(
    sources: list[AdjustedSource],
    rules: ConflictRules = DEFAULT_CONFLICT_RULES,
) -> ConflictReport:
    """
    Find disagreements between the valid sources.

    Args:
        sources: Assessed sources; zero-confidence ones are ignored
        rules: Detection thresholds

    Returns:
        ConflictReport with records and consensus metrics. Fewer than two
        valid sources yields no records and insufficient_data=True.
    """
    valid = [s for s in sources if s.adjusted_confidence > 0]
    if len(valid) < 2:
        return ConflictReport(
            consensus=ConsensusMetrics(insufficient_data=True, valid_sources=len(valid)),
        )

    stances = {
        s.source_id: extract_stance(s.output.payload, s.kind, rules.stance_precedence)
        for s in valid
    }

    records: list[ConflictRecord] = []
    directional = _directional_conflict(stances, len(valid))
    if directional:
        records.append(directional)
    records.extend(_confidence_outliers(valid, rules))
    records.extend(_pair_conflicts(valid, stances, rules))

    conflict_score = sum(r.impact * rules.severity_weights[r.severity] for r in records)
    consensus = ConsensusMetrics(
        insufficient_data=False,
        valid_sources=len(valid),
        bullish_count=sum(1 for d in stances.values() if d == Direction.BULLISH),
        bearish_count=sum(1 for d in stances.values() if d == Direction.BEARISH),
        neutral_count=sum(1 for d in stances.values() if d == Direction.NEUTRAL),
        conflict_score=round(conflict_score, 4),
        consensus_strength=round(1 - min(1.0, conflict_score), 4),
        stances=stances,
    )

    if records:
        logger.info(
            f"Detected {len(records)} conflict(s) across {len(valid)} sources",
            extra={"conflict_score": consensus.conflict_score},
        )

    return ConflictReport(conflicts=records, consensus=consensus)
