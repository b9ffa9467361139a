"""Deterministic, ordered pattern extraction for the seven claim fields.

Every field has a list of ``PatternSpec`` entries in precedence order: the
label-qualified patterns ("DOB: <date>") come before the bare shape
patterns (any date-shaped token). ``extract_first`` stops at the first
non-trivial hit; ``extract_all`` collects every hit for multi-valued fields.
Precedence lives in the ``PATTERNS`` table, not in branching code.
"""

import logging
import re
import time
from collections.abc import Callable, Iterable
from typing import NamedTuple

from entities import EntityRecognizer, HeuristicEntityRecognizer
from models import NOT_FOUND, DiagnosisDetail, FieldCandidate, Tier

logger = logging.getLogger(__name__)

DIAGNOSIS_PENDING = "Diagnosis pending review"
IDENTIFIER_PREFIX = "MD"

IdentifierGenerator = Callable[[], str]


class PatternSpec(NamedTuple):
    label: str
    regex: re.Pattern
    extract: Callable[[re.Match], str]


def _group(n: int = 1) -> Callable[[re.Match], str]:
    return lambda m: m.group(n)


def _spec(label: str, pattern: str, extract: Callable[[re.Match], str] | None = None) -> PatternSpec:
    return PatternSpec(label, re.compile(pattern), extract or _group(1))


_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
_DATE = (
    r"(?:\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}[-/]\d{1,2}[-/]\d{2,4}"
    r"|" + _MONTH + r"\s+\d{1,2},?\s+\d{4})"
)

# A capitalized word that is not the next field's label.
_NAME_WORD = (
    r"(?!(?:Date|DOB|Medicaid|Member|Diagnosis|Provider|Claim|Sex|Gender|Age"
    r"|Address|Phone|ID|Policy|Procedure|Procedures)\b)"
    r"(?:[A-Z][a-z'\-]+|[A-Z]\.)"
)
_NAME = r"([A-Z][a-z'\-]+(?:[ \t]+" + _NAME_WORD + r"){1,3})"

_MONEY = r"(\$\s?\d[\d,]*(?:\.\d{2})?)"

_CONDITIONS = (
    r"essential\s+hypertension|hypertension|type\s+[12]\s+diabetes(?:\s+mellitus)?"
    r"|diabetes(?:\s+mellitus)?|hyperlipidemia|chronic\s+kidney\s+disease"
    r"|heart\s+failure|pneumonia|copd|asthma|bronchitis|depression|anxiety|obesity"
)

_PROCEDURES = (
    r"office\s+visit|consultation|physical\s+examination|examination|x-ray"
    r"|lab(?:oratory)?\s+work|blood\s+test|surgery|mri|ct\s+scan|ultrasound"
    r"|vaccination|physical\s+therapy"
)


def _money(m: re.Match) -> str:
    return m.group(1).replace(" ", "")


def _described_cpt(m: re.Match) -> str:
    return f"{m.group(1).strip()} (CPT: {m.group(2)})"


def _bare_cpt(m: re.Match) -> str:
    return f"CPT: {m.group(1)}"


PATTERNS: dict[str, list[PatternSpec]] = {
    "patient_name": [
        _spec(
            "labeled_patient_name",
            r"\b(?i:patient\s+name|name\s+of\s+patient|member\s+name|recipient\s+name"
            r"|beneficiary|patient)\s*[:\-]\s*" + _NAME,
        ),
        _spec("labeled_name", r"(?:^|[\n,;])[ \t]*(?i:name)\s*:\s*" + _NAME),
    ],
    "date_of_birth": [
        _spec(
            "labeled_dob",
            r"\b(?i:date\s+of\s+birth|birth\s*date|d\.o\.b\.?|dob|born)\s*[:\-]?\s*(" + _DATE + r")",
        ),
        _spec("date_shape", r"\b(" + _DATE + r")\b"),
    ],
    "identifier": [
        _spec(
            "labeled_medicaid_id",
            r"\b(?i:medicaid\s*(?:id|no\.?|number|#)|recipient\s*id|member\s*id"
            r"|subscriber\s*id|ma\s*id)\s*[:#\-]?\s*"
            r"((?=[A-Za-z\-]*\d)[A-Za-z0-9][A-Za-z0-9\-]{5,19})\b",
        ),
        _spec("medicaid_id_shape", r"\b([A-Z]{2}\d{8,12})\b"),
    ],
    "diagnosis": [
        _spec(
            "labeled_diagnosis",
            r"\b(?i:primary\s+diagnosis|diagnosis|dx|assessment)\s*[:\-]\s*([^\n,;]{3,120})",
        ),
        _spec("condition_keyword", r"\b((?i:" + _CONDITIONS + r"))\b"),
    ],
    "diagnosis_code": [
        _spec(
            "labeled_icd10",
            r"\b(?i:icd[-\s]?10(?:-cm)?)(?:\s*(?i:code))?\s*[:\-]?\s*([A-TV-Z]\d{2}(?:\.\d{1,4}[A-Z]?)?)\b",
        ),
        _spec("icd10_shape", r"\b([A-TV-Z]\d{2}\.\d{1,4})\b"),
    ],
    "procedures": [
        _spec(
            "described_cpt",
            r"([A-Z][A-Za-z/\-]*(?:[ \t]+[A-Z][A-Za-z/\-]*){0,5})\s*\(\s*(?i:cpt)\s*[:#]?\s*(\d{5})\s*\)",
            _described_cpt,
        ),
        _spec(
            "labeled_procedure",
            r"\b(?i:procedures?|services?\s+rendered|treatment)[ \t]*[:\-][ \t]*([^\n,;]{3,120})",
        ),
        _spec("bare_cpt", r"\b(?i:cpt)(?:\s*(?i:code))?\s*[:#]?\s*(\d{5})\b", _bare_cpt),
        _spec("procedure_keyword", r"\b((?i:" + _PROCEDURES + r"))\b"),
    ],
    "claim_amount": [
        _spec(
            "labeled_amount",
            r"\b(?i:claim\s+amount|claim|total\s+(?:charges?|amount|billed|due)|total"
            r"|amount\s+(?:billed|due|claimed)|amount|balance\s+due|charges?)\s*[:\-]?\s*" + _MONEY,
            _money,
        ),
        _spec("money_shape", _MONEY, _money),
    ],
    "provider": [
        _spec(
            "labeled_provider",
            r"\b(?i:rendering\s+provider|billing\s+provider|provider\s+name|provider"
            r"|facility(?:\s+name)?|attending\s+physician|physician)\s*[:\-]\s*([A-Z][^\n,;]{2,80})",
        ),
        _spec("doctor_title", r"\b((?:Dr\.|Doctor)\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"),
    ],
}

_PUNCT_ONLY = re.compile(r"^[\W_]+$")


def is_trivial(value: str) -> bool:
    stripped = value.strip()
    return len(stripped) <= 1 or bool(_PUNCT_ONLY.match(stripped))


def _matches(field: str, text: str) -> Iterable[tuple[str, str]]:
    for spec in PATTERNS[field]:
        for match in spec.regex.finditer(text):
            value = spec.extract(match).strip()
            if not is_trivial(value):
                yield spec.label, value


def first_match(field: str, text: str) -> tuple[str, str] | None:
    """Return ``(label, value)`` of the first non-trivial hit, in precedence order."""
    return next(iter(_matches(field, text)), None)


def extract_first(field: str, text: str) -> str | None:
    hit = first_match(field, text)
    return hit[1] if hit else None


def extract_all(field: str, text: str) -> list[str]:
    """Every hit across all patterns for ``field``, first occurrence wins.

    Case-insensitive duplicates and values already contained in an earlier
    value ("Hypertension" after "Essential Hypertension") are dropped.
    """
    collected: list[str] = []
    for _, value in _matches(field, text):
        folded = value.casefold()
        if any(folded in seen.casefold() for seen in collected):
            continue
        collected.append(value)
    return collected


def time_based_identifier() -> str:
    """Placeholder Medicaid-style id: prefix plus the last 9 digits of epoch ms."""
    return IDENTIFIER_PREFIX + str(time.time_ns() // 1_000_000)[-9:]


class PatternEngine:
    """Builds a complete candidate set for the seven fields from raw text.

    Never raises for string input: fields with no match fall back to the
    entity recognizer (names, providers), the identifier generator
    (identifier) or a synthetic sentinel.
    """

    def __init__(
        self,
        recognizer: EntityRecognizer | None = None,
        identifier_generator: IdentifierGenerator | None = None,
    ):
        self._recognizer = recognizer or HeuristicEntityRecognizer()
        self._generate_identifier = identifier_generator or time_based_identifier

    def extract_record(self, text: str) -> dict[str, FieldCandidate]:
        return self.extract(text)[0]

    def extract(self, text: str) -> tuple[dict[str, FieldCandidate], DiagnosisDetail]:
        """Candidates for the seven fields plus the diagnosis detail they were built from."""
        entities = None

        def recognized():
            nonlocal entities
            if entities is None:
                entities = self._recognizer.recognize(text)
            return entities

        candidates: dict[str, FieldCandidate] = {}

        candidates["patient_name"] = self._single("patient_name", text) or self._from_entities(
            "patient_name", recognized().people
        )
        candidates["date_of_birth"] = self._single("date_of_birth", text)
        candidates["identifier"] = self._single("identifier", text) or FieldCandidate(
            field="identifier", value=self._generate_identifier(), source=Tier.SYNTHETIC
        )

        diagnosis = self.extract_diagnosis(text)
        candidates["diagnosis"] = FieldCandidate(
            field="diagnosis",
            value=diagnosis.primary,
            source=Tier.SYNTHETIC if diagnosis.primary == DIAGNOSIS_PENDING else Tier.PATTERN,
        )

        procedures = extract_all("procedures", text)
        if procedures:
            candidates["procedures"] = FieldCandidate(field="procedures", value=procedures, source=Tier.PATTERN)

        candidates["claim_amount"] = self._single("claim_amount", text)
        candidates["provider"] = self._single("provider", text) or self._from_entities(
            "provider", recognized().organizations
        )

        for field, candidate in list(candidates.items()):
            if candidate is None:
                candidates[field] = _synthetic(field)
        if "procedures" not in candidates:
            candidates["procedures"] = _synthetic("procedures")

        synthetic = [f for f, c in candidates.items() if c.source == Tier.SYNTHETIC]
        if synthetic:
            logger.info("Pattern extraction left %d field(s) synthetic: %s", len(synthetic), ", ".join(synthetic))

        return candidates, diagnosis

    def extract_diagnosis(self, text: str) -> DiagnosisDetail:
        found = extract_all("diagnosis", text)
        codes = extract_all("diagnosis_code", text)

        if found:
            primary = found[0]
        elif codes:
            primary = f"ICD-10: {codes[0]}"
        else:
            primary = DIAGNOSIS_PENDING

        return DiagnosisDetail(primary=primary, secondary=found[1:], codes=codes)

    @staticmethod
    def _single(field: str, text: str) -> FieldCandidate | None:
        hit = first_match(field, text)
        if hit is None:
            return None
        label, value = hit
        return FieldCandidate(field=field, value=value, source=Tier.PATTERN, pattern=label)

    @staticmethod
    def _from_entities(field: str, names: list[str]) -> FieldCandidate | None:
        for name in names:
            if not is_trivial(name):
                return FieldCandidate(field=field, value=name, source=Tier.ENTITY)
        return None


def _synthetic(field: str) -> FieldCandidate:
    value: str | list[str] = [NOT_FOUND] if field == "procedures" else NOT_FOUND
    return FieldCandidate(field=field, value=value, source=Tier.SYNTHETIC)
