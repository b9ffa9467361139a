"""Shared test fixtures for claim extraction tests."""

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))


CLAIM_TEXT = (
    "Patient: John Smith, DOB: 1985-03-15, Medicaid ID: MD123456789, "
    "Diagnosis: Essential Hypertension, Provider: Maryland General Hospital, "
    "Claim: $1,500.00"
)


@pytest.fixture
def claim_text() -> str:
    return CLAIM_TEXT


@pytest.fixture
def detailed_claim_text() -> str:
    """Multi-line claim form with codes and a second, unlabeled date."""
    return (
        "MARYLAND MEDICAID CLAIM FORM\n"
        "Date of Service: 03/02/2024\n"
        "Patient Name: Maria Lopez\n"
        "Date of Birth: 07/21/1979\n"
        "Medicaid ID: MA004512378\n"
        "Primary Diagnosis: Type 2 Diabetes Mellitus (ICD-10: E11.9)\n"
        "Secondary: hypertension noted, ICD-10: I10\n"
        "Procedures:\n"
        "  1. Office Visit (CPT: 99213)\n"
        "  2. Laboratory Work (CPT: 80053)\n"
        "Rendering Provider: Dr. Alan Reyes\n"
        "Total Charges: $ 2,847.50\n"
    )


@pytest.fixture
def fixed_identifier():
    return lambda: "MD000000042"


@pytest.fixture
def analyzer_fields() -> dict:
    """Well-formed analyzer reply, already parsed."""
    return {
        "patientName": "Jane Doe",
        "dateOfBirth": "1970-05-01",
        "medicaidId": "MA987654321",
        "diagnosis": {"primary": "Type 2 Diabetes", "secondary": ["Obesity"], "codes": ["E11.9"]},
        "procedures": [{"name": "Office Visit", "cpt": "99213"}],
        "claimAmount": 250.0,
        "provider": {"name": "Bay Clinic", "specialty": "Family Medicine"},
    }


@pytest.fixture
def mock_json_reply() -> str:
    return json.dumps({
        "patientName": "John Smith",
        "dateOfBirth": "1985-03-15",
        "medicaidId": "MD123456789",
        "diagnosis": "Essential Hypertension (ICD-10: I10)",
        "procedures": ["Office Visit (CPT: 99213)"],
        "claimAmount": "$1,500.00",
        "provider": "Maryland General Hospital",
    })


@pytest.fixture
def mock_prose_reply(mock_json_reply: str) -> str:
    """Analyzer reply with prose around the JSON object."""
    return f"Sure! Here is the extracted data:\n\n{mock_json_reply}\n\nLet me know if you need anything else."


@pytest.fixture
def mock_markdown_reply(mock_json_reply: str) -> str:
    return f"```json\n{mock_json_reply}\n```"


@pytest.fixture
def fake_analyzer():
    """Analyzer double: reachable, returns nothing until configured."""
    analyzer = MagicMock()
    analyzer.probe = AsyncMock(return_value=True)
    analyzer.extract = AsyncMock()
    return analyzer
