"""
Validation rule engine.

Six rules are applied to every source output. Required fields, maximum
data age and trusted provenance domains come from one static table keyed
by source kind. Rules never raise: an internal failure becomes a failed,
non-critical check.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from .enums import SourceKind
from .errors import ValidationRuleError
from .models import SourceOutput, ValidationCheck
from .primitives import clamp, ensure_utc, round_half_up

logger = logging.getLogger(__name__)


# ============================================================================
# Per-kind rule table
# ============================================================================

@dataclass(frozen=True)
class KindRules:
    """Validation parameters for one source kind."""
    required_fields: tuple[str, ...]
    max_age: timedelta
    trusted_domains: tuple[str, ...]


DEFAULT_KIND_RULES = KindRules(
    required_fields=("confidence", "sources"),
    max_age=timedelta(minutes=5),
    trusted_domains=("yahoo.com", "coingecko.com", "rapidapi_yahoo", "alpha_vantage"),
)

KIND_RULES: dict[SourceKind, KindRules] = {
    SourceKind.TECHNICAL: KindRules(
        required_fields=("indicators", "trend"),
        max_age=timedelta(minutes=5),
        trusted_domains=("tradingview.com", "barchart.com", "yahoo.com", "rapidapi_yahoo", "alpha_vantage"),
    ),
    SourceKind.FUNDAMENTAL: KindRules(
        required_fields=("valuation", "financials"),
        max_age=timedelta(hours=24),
        trusted_domains=("sec.gov", "yahoo.com", "rapidapi_yahoo", "alpha_vantage", "finnhub"),
    ),
    SourceKind.SENTIMENT: KindRules(
        required_fields=("background", "news", "sentiment"),
        max_age=timedelta(hours=1),
        trusted_domains=("reuters.com", "bloomberg.com", "cnbc.com", "rapidapi_yahoo", "yahoo_finance_rss"),
    ),
    SourceKind.MACRO: KindRules(
        required_fields=("macro_factors", "sentiment_analysis"),
        max_age=timedelta(hours=2),
        trusted_domains=("worldbank.org", "imf.org", "ecb.europa.eu", "rapidapi_yahoo"),
    ),
    SourceKind.FLOW: KindRules(
        required_fields=("institutional_flows",),
        max_age=timedelta(minutes=5),
        trusted_domains=("coingecko.com", "yahoo.com", "etfdb.com", "rapidapi_yahoo", "alpha_vantage"),
    ),
    SourceKind.ONCHAIN: KindRules(
        required_fields=("whale_activity", "network_metrics"),
        max_age=timedelta(minutes=10),
        trusted_domains=("blockchain.info", "etherscan.io", "coingecko.com", "blockchain_info"),
    ),
    SourceKind.MICROSTRUCTURE: KindRules(
        required_fields=("order_book",),
        max_age=timedelta(minutes=1),
        trusted_domains=("binance.com", "coinbase.com", "orderbook.com", "Coinbase"),
    ),
    SourceKind.ML: KindRules(
        required_fields=("predictive_signals",),
        max_age=timedelta(minutes=30),
        trusted_domains=("yahoo.com", "alpha-vantage.co", "rapidapi.com", "rapidapi_yahoo", "alpha_vantage", "coingecko"),
    ),
    SourceKind.SYNTHESIS: KindRules(
        required_fields=("prediction",),
        max_age=timedelta(minutes=30),
        trusted_domains=("yahoo.com", "coingecko.com", "rapidapi_yahoo", "alpha_vantage"),
    ),
}


def rules_for(kind: SourceKind) -> KindRules:
    """Rule row for a kind, the default row for unknown kinds."""
    return KIND_RULES.get(kind, DEFAULT_KIND_RULES)


# ============================================================================
# Check names
# ============================================================================

DATA_COMPLETENESS = "data_completeness"
CONFIDENCE_INTEGRITY = "confidence_integrity"
DATA_FRESHNESS = "data_freshness"
SOURCE_RELIABILITY = "source_reliability"
DATA_CONSISTENCY = "data_consistency"
ANOMALY_DETECTION = "anomaly_detection"

CHECK_NAMES = (
    DATA_COMPLETENESS,
    CONFIDENCE_INTEGRITY,
    DATA_FRESHNESS,
    SOURCE_RELIABILITY,
    DATA_CONSISTENCY,
    ANOMALY_DETECTION,
)

CONSISTENCY_PENALTY = 20
ANOMALY_PENALTY = 15


# ============================================================================
# Payload helpers
# ============================================================================

def get_path(payload: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None on any missing level."""
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _field_present(output: SourceOutput, name: str) -> bool:
    # Top-level record fields satisfy the generic requirements
    if output.payload.get(name) is not None:
        return True
    if name == "confidence":
        return True
    if name == "sources":
        return bool(output.provenance)
    return False


def _trend_direction(payload: dict) -> str | None:
    value = get_path(payload, "trend", "direction")
    return value.upper() if isinstance(value, str) else None


def _sentiment_overall(payload: dict) -> str | None:
    value = get_path(payload, "sentiment", "overall")
    return value.lower() if isinstance(value, str) else None


# ============================================================================
# Rules
# ============================================================================

def check_completeness(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Required payload fields for the kind are present."""
    required = rules_for(output.kind).required_fields
    missing = [f for f in required if not _field_present(output, f)]
    score = round_half_up((len(required) - len(missing)) / len(required) * 100) if required else 100
    return ValidationCheck(
        name=DATA_COMPLETENESS,
        passed=not missing,
        score=score,
        details=f"Missing fields: {', '.join(missing)}" if missing else "All required fields present",
        critical=True,
    )


def check_confidence_integrity(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Confidence must be backed by evidence."""
    n_sources = len(output.provenance)

    if output.confidence > 80 and n_sources == 0:
        return ValidationCheck(
            name=CONFIDENCE_INTEGRITY,
            passed=False,
            score=0,
            details="High confidence without supporting data sources",
            critical=True,
        )

    if output.confidence < 30 and n_sources > 3:
        return ValidationCheck(
            name=CONFIDENCE_INTEGRITY,
            passed=True,
            score=70,
            details="Low confidence despite multiple data sources",
            critical=False,
        )

    return ValidationCheck(
        name=CONFIDENCE_INTEGRITY,
        passed=True,
        score=100,
        details="Confidence aligned with data quality",
        critical=True,
    )


def check_freshness(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Report age against the kind's ceiling. Future timestamps count as fresh."""
    max_age = rules_for(output.kind).max_age
    age = max(timedelta(0), ensure_utc(now) - output.timestamp)
    score = round_half_up(clamp(100 - age / max_age * 100))
    passed = age <= max_age
    age_min = age.total_seconds() / 60
    return ValidationCheck(
        name=DATA_FRESHNESS,
        passed=passed,
        score=score,
        details=(
            f"Data is {age_min:.1f} minutes old"
            if passed
            else f"Data is stale ({age_min:.1f} minutes old, max {max_age.total_seconds() / 60:.0f})"
        ),
        critical=False,
    )


def check_reliability(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Share of provenance entries citing a trusted domain."""
    provenance = output.provenance
    if not provenance:
        return ValidationCheck(
            name=SOURCE_RELIABILITY,
            passed=False,
            score=0,
            details="No provenance cited",
            critical=False,
        )

    trusted = rules_for(output.kind).trusted_domains
    hits = [p for p in provenance if any(domain in p for domain in trusted)]
    score = round_half_up(len(hits) / len(provenance) * 100)
    return ValidationCheck(
        name=SOURCE_RELIABILITY,
        passed=score >= 50,
        score=score,
        details=f"{len(hits)}/{len(provenance)} sources are trusted",
        critical=False,
    )


def find_inconsistencies(output: SourceOutput) -> list[str]:
    payload = output.payload
    found: list[str] = []

    if output.confidence > 90 and not output.provenance:
        found.append("Very high confidence without provenance")

    trend = _trend_direction(payload)
    sentiment = _sentiment_overall(payload)
    if trend in ("UP", "BULLISH") and sentiment == "bearish":
        found.append("Bullish trend with bearish sentiment")
    if trend in ("DOWN", "BEARISH") and sentiment == "bullish":
        found.append("Bearish trend with bullish sentiment")

    net_flow = _as_number(get_path(payload, "institutional_flows", "etf_flows", "net_flow"))
    if net_flow == 0 and output.confidence > 70:
        found.append("Zero ETF flow with high confidence")

    return found


def check_consistency(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Internal contradictions, 20 points each."""
    found = find_inconsistencies(output)
    return ValidationCheck(
        name=DATA_CONSISTENCY,
        passed=not found,
        score=max(0, 100 - len(found) * CONSISTENCY_PENALTY),
        details=f"Inconsistencies: {', '.join(found)}" if found else "Data is internally consistent",
        critical=False,
    )


def find_anomalies(output: SourceOutput) -> list[str]:
    payload = output.payload
    found: list[str] = []

    if output.confidence > 95:
        found.append("Extremely high confidence (95%+)")

    strength = _as_number(get_path(payload, "trend", "strength"))
    if strength is not None and strength > 90:
        found.append("Extremely strong trend signal")

    news = _as_number(get_path(payload, "sentiment", "news_sentiment"))
    if news is not None and abs(news) > 0.9:
        found.append("Extreme sentiment reading")

    return found


def check_anomalies(output: SourceOutput, now: datetime) -> ValidationCheck:
    """Statistical outliers, 15 points each."""
    found = find_anomalies(output)
    return ValidationCheck(
        name=ANOMALY_DETECTION,
        passed=not found,
        score=max(0, 100 - len(found) * ANOMALY_PENALTY),
        details=f"Anomalies detected: {', '.join(found)}" if found else "No statistical anomalies detected",
        critical=False,
    )


Rule = Callable[[SourceOutput, datetime], ValidationCheck]

RULES: tuple[tuple[str, Rule], ...] = (
    (DATA_COMPLETENESS, check_completeness),
    (CONFIDENCE_INTEGRITY, check_confidence_integrity),
    (DATA_FRESHNESS, check_freshness),
    (SOURCE_RELIABILITY, check_reliability),
    (DATA_CONSISTENCY, check_consistency),
    (ANOMALY_DETECTION, check_anomalies),
)


# ============================================================================
# Engine
# ============================================================================

def validate(
    output: SourceOutput,
    now: datetime,
    rules: tuple[tuple[str, Rule], ...] = RULES,
) -> list[ValidationCheck]:
    """
    Apply every rule to one source output.

    Args:
        output: The source report
        now: Reference time for freshness
        rules: (name, rule) pairs, defaults to the six standard rules

    Returns:
        One check per rule, in rule order
    """
    checks: list[ValidationCheck] = []
    for name, rule in rules:
        try:
            checks.append(rule(output, now))
        except Exception as e:
            error = ValidationRuleError(name, output.source_id, e)
            logger.warning(
                str(error),
                extra={"rule": name, "source_id": output.source_id, "error_code": error.code.value},
            )
            checks.append(ValidationCheck(
                name=name,
                passed=False,
                score=0,
                details=f"Rule error: {e}",
                critical=False,
            ))
    return checks


def validation_score(checks: list[ValidationCheck]) -> int:
    """Percentage of checks that passed."""
    if not checks:
        return 0
    return round_half_up(sum(1 for c in checks if c.passed) / len(checks) * 100)


def is_validation_passed(checks: list[ValidationCheck]) -> bool:
    """True iff every critical check passed."""
    return all(c.passed for c in checks if c.critical)
