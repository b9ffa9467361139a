"""Extraction orchestrator: analyzer first, pattern engine as the fallback.

Per request: resolve text -> probe analyzer -> race one analyzer call
against a timeout -> plausibility gate -> (fallback) pattern extraction
-> normalize -> validate. Every non-empty input reaches a result; the only
caller-visible failure is InputError, raised before any extraction starts.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic.alias_generators import to_camel

from analyzer_client import AnalyzerClient
from config import settings
from document_reader import DocumentReader, DocumentReadError, FileDocumentReader
from entities import EntityRecognizer
from models import (
    NOT_FOUND,
    RECORD_FIELDS,
    Accepted,
    DiagnosisDetail,
    ExtractionRecord,
    ExtractionRequest,
    FieldCandidate,
    MalformedReply,
    ProcessingResult,
    ProcessingSource,
    ProgressEvent,
    Tier,
    Unreachable,
    primary_diagnosis,
)
from normalizer import clean, clean_list
from patterns import IdentifierGenerator, PatternEngine
from validation import assign_confidence, is_filler, is_meaningful, validate_document

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], None]

# Record field -> key in the analyzer's JSON reply
ANALYZER_KEYS = {
    "patient_name": "patientName",
    "date_of_birth": "dateOfBirth",
    "identifier": "medicaidId",
    "diagnosis": "diagnosis",
    "procedures": "procedures",
    "claim_amount": "claimAmount",
    "provider": "provider",
}


class InputError(Exception):
    """Neither usable text nor a readable document was supplied."""


class _ProgressReporter:
    """Best-effort, non-decreasing progress events."""

    def __init__(self, sink: ProgressSink | None):
        self._sink = sink
        self._last = 0

    def emit(self, step: str, progress: int):
        self._last = max(self._last, progress)
        if self._sink is None:
            return
        try:
            self._sink(ProgressEvent(step=step, progress=self._last))
        except Exception:
            logger.exception("Progress sink failed on step %s; continuing", step)


class DocumentProcessor:
    """Runs the extraction pipeline for one request at a time per call.

    Holds only injected collaborators, so one instance can serve
    concurrent requests. ``analyzer=None`` skips the AI attempt.
    """

    def __init__(
        self,
        analyzer: AnalyzerClient | None = None,
        recognizer: EntityRecognizer | None = None,
        reader: DocumentReader | None = None,
        identifier_generator: IdentifierGenerator | None = None,
        probe_timeout: float | None = None,
        analyzer_timeout: float | None = None,
    ):
        self._analyzer = analyzer
        self._engine = PatternEngine(recognizer, identifier_generator)
        self._reader = reader or FileDocumentReader()
        self._probe_timeout = probe_timeout if probe_timeout is not None else settings.ANALYZER_PROBE_TIMEOUT
        self._analyzer_timeout = (
            analyzer_timeout if analyzer_timeout is not None else settings.ANALYZER_TIMEOUT_SECONDS
        )

    async def process_document(
        self,
        request: ExtractionRequest,
        progress_sink: ProgressSink | None = None,
    ) -> ProcessingResult:
        start = time.monotonic()
        progress = _ProgressReporter(progress_sink)
        progress.emit("initializing", 5)

        text = await self._resolve_text(request, progress)
        logger.info(
            "Processing document: type=%s name=%s chars=%d",
            request.document_type, request.document_name or "-", len(text),
        )

        ai_fields, fallback_reason = await self._attempt_ai(text, progress)

        pattern_candidates, diagnosis_detail = self._engine.extract(text)

        if ai_fields is not None:
            candidates, diagnosis_detail = _merge_ai_fields(ai_fields, pattern_candidates, diagnosis_detail)
            source = ProcessingSource.AI
        else:
            progress.emit("pattern_extraction", 65)
            candidates = pattern_candidates
            if candidates["patient_name"].source == Tier.SYNTHETIC:
                source = ProcessingSource.MINIMAL
            else:
                source = ProcessingSource.PATTERN
            logger.info("Falling back to pattern extraction (%s), source=%s", fallback_reason, source.value)

        progress.emit("normalizing", 75)
        record, field_sources = _assemble_record(candidates, source)
        diagnosis_detail = DiagnosisDetail(
            primary=record.diagnosis,
            secondary=[s for s in clean_list(diagnosis_detail.secondary) if s != NOT_FOUND],
            codes=[c for c in clean_list(diagnosis_detail.codes) if c != NOT_FOUND],
        )

        progress.emit("validating", 90)
        validation = validate_document(record, field_sources)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        progress.emit("complete", 100)
        logger.info(
            "Extraction complete: source=%s status=%s issues=%d in %dms",
            source.value, validation.status.value, len(validation.issues), elapsed_ms,
        )

        return ProcessingResult(
            document_type=request.document_type,
            extracted_data=record,
            validation=validation,
            processing_time_ms=elapsed_ms,
            confidence=record.confidence,
            processing_method=source.value,
            fallback_reason=fallback_reason,
            field_sources={to_camel(f): t for f, t in field_sources.items()},
            diagnosis_detail=diagnosis_detail,
        )

    async def _resolve_text(self, request: ExtractionRequest, progress: _ProgressReporter) -> str:
        if request.text and request.text.strip():
            return request.text

        if request.file_path:
            try:
                text = await asyncio.to_thread(self._reader.read, request.file_path)
            except DocumentReadError as e:
                raise InputError(f"Cannot read document: {e}") from e
            if not text or not text.strip():
                raise InputError("Document contains no extractable text")
            progress.emit("reading_file", 15)
            return text

        raise InputError("Either non-empty text or a readable file_path is required")

    async def _attempt_ai(
        self, text: str, progress: _ProgressReporter
    ) -> tuple[dict[str, Any] | None, str | None]:
        """Return (accepted analyzer fields, None) or (None, reason for fallback)."""
        if self._analyzer is None:
            return None, "analyzer not configured"

        progress.emit("probing_analyzer", 25)
        try:
            reachable = await asyncio.wait_for(self._analyzer.probe(), self._probe_timeout)
        except asyncio.TimeoutError:
            reachable = False
        except Exception:
            logger.exception("Analyzer probe raised")
            reachable = False
        if not reachable:
            return None, "analyzer unreachable"

        progress.emit("ai_extraction", 45)
        try:
            # wait_for cancels the analyzer call if the timeout wins
            outcome = await asyncio.wait_for(self._analyzer.extract(text), self._analyzer_timeout)
        except asyncio.TimeoutError:
            outcome = Unreachable(reason=f"timed out after {self._analyzer_timeout:g}s")
        except Exception as e:
            logger.exception("Analyzer extraction raised")
            outcome = Unreachable(reason=f"analyzer call failed: {type(e).__name__}")

        if isinstance(outcome, Accepted):
            if is_meaningful(outcome.fields):
                return outcome.fields, None
            logger.warning("Analyzer reply failed the plausibility gate")
            return None, "analyzer reply implausible"
        if isinstance(outcome, MalformedReply):
            return None, "analyzer reply malformed"
        if isinstance(outcome, Unreachable):
            logger.warning("Analyzer unavailable: %s", outcome.reason)
            return None, f"analyzer unreachable: {outcome.reason}"

        logger.error("Unexpected analyzer outcome type %s", type(outcome).__name__)
        return None, "analyzer reply malformed"


def _merge_ai_fields(
    ai_fields: dict[str, Any],
    pattern_candidates: dict[str, FieldCandidate],
    pattern_diagnosis: DiagnosisDetail,
) -> tuple[dict[str, FieldCandidate], DiagnosisDetail]:
    """Take each field from the analyzer, back-filling blanks from the pattern engine."""
    merged: dict[str, FieldCandidate] = {}
    for field in RECORD_FIELDS:
        value = _coerce_ai_value(field, ai_fields.get(ANALYZER_KEYS[field]))
        if value is None:
            merged[field] = pattern_candidates[field]
        else:
            merged[field] = FieldCandidate(field=field, value=value, source=Tier.AI)

    diagnosis = pattern_diagnosis
    raw_diagnosis = ai_fields.get("diagnosis")
    if merged["diagnosis"].source == Tier.AI:
        secondary: list[str] = []
        codes = pattern_diagnosis.codes
        if isinstance(raw_diagnosis, dict):
            secondary = _string_list(raw_diagnosis.get("secondary"))
            codes = _string_list(raw_diagnosis.get("codes")) or codes
        diagnosis = DiagnosisDetail(primary=merged["diagnosis"].value, secondary=secondary, codes=codes)

    return merged, diagnosis


def _coerce_ai_value(field: str, value: Any) -> str | list[str] | None:
    """Loosely-typed analyzer value -> str (or list for procedures), None if unusable."""
    if field == "procedures":
        items = [i for i in _string_list(value) if not is_filler(i)]
        return items or None

    if field == "diagnosis":
        value = primary_diagnosis(value)
    elif isinstance(value, dict):
        value = value.get("name") or value.get("description") or value.get("text")
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)

    # "--" or "..." would clean to NOT_FOUND; treat it as blank so patterns back-fill
    if not isinstance(value, str) or is_filler(value):
        return None
    return value


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    out = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name") or item.get("description")
        if isinstance(item, str) and item.strip():
            out.append(item)
    return out


def _assemble_record(
    candidates: dict[str, FieldCandidate], source: ProcessingSource
) -> tuple[ExtractionRecord, dict[str, Tier]]:
    values: dict[str, Any] = {}
    field_sources: dict[str, Tier] = {}

    for field in RECORD_FIELDS:
        candidate = candidates[field]
        if field == "procedures":
            cleaned = clean_list(candidate.value)
            lost = cleaned == [NOT_FOUND]
        else:
            cleaned = clean(candidate.value)
            lost = cleaned == NOT_FOUND
        values[field] = cleaned
        field_sources[field] = Tier.SYNTHETIC if lost else candidate.source

    record = ExtractionRecord(
        **values,
        confidence=assign_confidence(source),
        processing_source=source,
    )
    return record, field_sources
