"""Generic person/organization name recognition.

The pattern engine only consults this when none of its own name or
provider patterns matched. Any recognizer that satisfies
``EntityRecognizer`` can be injected; the default is a capitalization
heuristic that needs no model download.
"""

import re
from typing import Protocol

from pydantic import BaseModel


class RecognizedEntities(BaseModel):
    people: list[str] = []
    organizations: list[str] = []


class EntityRecognizer(Protocol):
    def recognize(self, text: str) -> RecognizedEntities: ...


_ORG_SUFFIXES = (
    "Hospital", "Clinic", "Medical Center", "Health Center", "Health System",
    "Healthcare", "Health", "Associates", "Medical Group", "Group",
    "Pharmacy", "Laboratory", "Labs", "Institute",
)

# Capitalized words that start a "First Last" pair but are not names.
_NON_NAME_WORDS = {
    "patient", "provider", "diagnosis", "procedure", "procedures", "claim",
    "medicaid", "medicare", "insurance", "date", "birth", "total", "amount",
    "essential", "type", "office", "visit", "hospital", "clinic", "general",
    "medical", "center", "health", "primary", "secondary", "member", "policy",
    "service", "services", "billing", "physician", "doctor", "dr", "maryland",
    "department", "state", "county", "address", "phone", "account", "chronic",
    "acute", "routine", "preventive", "care", "lab", "laboratory", "work",
}

_NAME_PAIR = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z]\.)?\s+[A-Z][a-z]+)\b")
_ORG = re.compile(
    r"\b((?:[A-Z][A-Za-z'&.]+\s+){0,4}(?:" + "|".join(re.escape(s) for s in _ORG_SUFFIXES) + r"))\b"
)


class HeuristicEntityRecognizer:
    """Recognizes capitalized "First Last" pairs and suffix-marked organizations."""

    def recognize(self, text: str) -> RecognizedEntities:
        organizations = _unique(m.group(1).strip() for m in _ORG.finditer(text))

        people = []
        for match in _NAME_PAIR.finditer(text):
            candidate = match.group(1)
            words = [w.rstrip(".").lower() for w in candidate.split()]
            if any(w in _NON_NAME_WORDS for w in words):
                continue
            if any(candidate in org for org in organizations):
                continue
            people.append(candidate)

        return RecognizedEntities(people=_unique(people), organizations=organizations)


def _unique(values) -> list[str]:
    seen: set[str] = set()
    out = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out
