"""Admission gate for analyzer output, tier confidence, and record validation."""

from typing import Any, Mapping

from models import (
    ExtractionRecord,
    ProcessingSource,
    Tier,
    ValidationResult,
    ValidationStatus,
    primary_diagnosis,
)
from normalizer import clean
from patterns import is_trivial

# Filler an analyzer produces when it does not know the answer
PLACEHOLDER_SENTINELS = frozenset({
    "",
    "not specified",
    "not found",
    "not available",
    "unknown",
    "n/a",
    "na",
    "none",
    "null",
    "patient name not found",
    "patient full name",
    "ai extraction failed",
})

TIER_CONFIDENCE: dict[ProcessingSource, float] = {
    ProcessingSource.AI: 0.85,
    ProcessingSource.PATTERN: 0.8,
    ProcessingSource.MINIMAL: 0.6,
}

LOW_CONFIDENCE_THRESHOLD = 0.7

STANDING_RECOMMENDATIONS = (
    "Document was processed with AI-assisted extraction; confirm critical fields before submission",
    "Verify extracted values against the source document for accuracy",
)


def is_placeholder(value: Any) -> bool:
    if not isinstance(value, str):
        return True
    return value.strip().casefold() in PLACEHOLDER_SENTINELS


def is_filler(value: Any) -> bool:
    """Placeholder or punctuation, judged on the value as it will be stored."""
    if is_placeholder(value):
        return True
    cleaned = clean(value)
    return is_placeholder(cleaned) or is_trivial(cleaned)


def is_meaningful(parsed: Mapping[str, Any]) -> bool:
    """True iff the analyzer produced a real patient name, not filler."""
    return not is_filler(parsed.get("patientName"))


def assign_confidence(source: ProcessingSource) -> float:
    return TIER_CONFIDENCE[source]


def validate_document(
    record: ExtractionRecord,
    field_sources: Mapping[str, Tier] | None = None,
) -> ValidationResult:
    """Evaluate every rule independently and derive the verdict.

    The record is only read; a new ValidationResult is returned.
    """
    issues: list[str] = []

    if is_placeholder(record.identifier):
        issues.append("Missing Medicaid ID")
    elif field_sources and field_sources.get("identifier") == Tier.SYNTHETIC:
        issues.append("Medicaid ID not found in document; a placeholder identifier was generated")

    primary = primary_diagnosis(record.diagnosis) or ""
    lowered = primary.casefold()
    if "unknown" in lowered or "pending" in lowered:
        issues.append("Diagnosis is unknown or pending review")

    if record.confidence < LOW_CONFIDENCE_THRESHOLD:
        issues.append(
            f"Low extraction confidence ({record.confidence:.2f}); manual review recommended"
        )

    return ValidationResult(
        status=ValidationStatus.VALID if not issues else ValidationStatus.REQUIRES_REVIEW,
        issues=issues,
        recommendations=list(STANDING_RECOMMENDATIONS),
        confidence=record.confidence,
    )
