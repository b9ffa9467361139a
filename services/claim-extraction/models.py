"""Pydantic models for extraction requests, records and results.

Field names are snake_case in Python and camelCase on the wire
(``patientName``, ``extractedData``, ...).
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NOT_FOUND = "Not found"

RECORD_FIELDS = (
    "patient_name",
    "date_of_birth",
    "identifier",
    "diagnosis",
    "procedures",
    "claim_amount",
    "provider",
)


class Tier(str, Enum):
    """Where an extracted value came from."""

    AI = "ai"
    PATTERN = "pattern"
    ENTITY = "entity"
    SYNTHETIC = "synthetic"


class ProcessingSource(str, Enum):
    AI = "ai_extraction"
    PATTERN = "pattern_extraction"
    MINIMAL = "minimal_fallback"


class ValidationStatus(str, Enum):
    VALID = "VALID"
    REQUIRES_REVIEW = "REQUIRES_REVIEW"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractionRequest(CamelModel):
    text: str | None = None
    file_path: str | None = None
    document_name: str | None = None
    document_type: str = "healthcare_claim"


class FieldCandidate(BaseModel):
    field: str
    value: str | list[str]
    source: Tier
    pattern: str | None = None


class DiagnosisDetail(CamelModel):
    primary: str
    secondary: list[str] = []
    codes: list[str] = []


def primary_diagnosis(value: Any) -> str | None:
    """Return the primary diagnosis from either diagnosis shape.

    Analyzer replies and older call sites use a plain string or a
    ``{primary, secondary[], codes[]}`` object; both are accepted here.
    """
    if isinstance(value, DiagnosisDetail):
        return value.primary
    if isinstance(value, dict):
        primary = value.get("primary")
        return primary if isinstance(primary, str) else None
    if isinstance(value, str):
        return value
    return None


class ExtractionRecord(CamelModel):
    """The seven extracted fields. Immutable once built."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    patient_name: str = Field(min_length=1)
    date_of_birth: str = Field(min_length=1)
    identifier: str = Field(min_length=1)
    diagnosis: str = Field(min_length=1)
    procedures: list[str] = Field(min_length=1)
    claim_amount: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    processing_source: ProcessingSource


class ValidationResult(CamelModel):
    status: ValidationStatus
    issues: list[str] = []
    recommendations: list[str] = []
    confidence: float = Field(ge=0.0, le=1.0)


class ProgressEvent(BaseModel):
    step: str
    progress: int = Field(ge=0, le=100)


class ProcessingResult(CamelModel):
    document_type: str
    extracted_data: ExtractionRecord
    validation: ValidationResult
    processing_time_ms: int
    confidence: float
    processing_method: str
    fallback_reason: str | None = None
    field_sources: dict[str, Tier] = {}
    diagnosis_detail: DiagnosisDetail


# Analyzer outcomes. The orchestrator handles each kind explicitly.


class Accepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    fields: dict[str, Any]


class MalformedReply(BaseModel):
    kind: Literal["malformed"] = "malformed"
    raw: str


class Unreachable(BaseModel):
    kind: Literal["unreachable"] = "unreachable"
    reason: str


AnalyzerOutcome = Accepted | MalformedReply | Unreachable


class CompletionRequest(BaseModel):
    prompt: str = Field(min_length=1)
    temperature: float | None = None
    max_tokens: int | None = None


class CompletionResponse(BaseModel):
    text: str
    model: str
