"""Prompts sent to the remote analyzer.

The extraction prompt names the exact 7-key JSON object the analyzer must
return; ``analyzer_client.find_json_object`` tolerates prose around it.
"""

EXTRACTION_KEYS = (
    "patientName",
    "dateOfBirth",
    "medicaidId",
    "diagnosis",
    "procedures",
    "claimAmount",
    "provider",
)

_JSON_SUFFIX = """

CRITICAL OUTPUT RULES:
- Return ONLY a single valid JSON object. No other text before or after.
- Do NOT wrap in code fences. Just raw JSON.
- If a value is not present in the document, use "Not specified"."""

EXTRACTION_PROMPT = """Extract medical claim information from the following healthcare document text.
Return a JSON object with EXACTLY these keys:

{
  "patientName": "patient full name",
  "dateOfBirth": "YYYY-MM-DD format",
  "medicaidId": "Medicaid ID if found",
  "diagnosis": "primary diagnosis, with ICD-10 code if present",
  "procedures": ["list of procedures, with CPT codes if present"],
  "claimAmount": "dollar amount, e.g. $1,250.00",
  "provider": "healthcare provider or facility name"
}""" + _JSON_SUFFIX + """

Text:
{text}

JSON Response:"""

RESPONSE_PROMPT = """You are a healthcare AI assistant for Medicaid claims operations.
Answer accurately and concisely. Include specific next steps where useful.

Query:
{prompt}

Response:"""


def build_extraction_prompt(text: str) -> str:
    # str.replace, not str.format: the template contains literal JSON braces
    return EXTRACTION_PROMPT.replace("{text}", text)


def build_response_prompt(prompt: str) -> str:
    return RESPONSE_PROMPT.replace("{prompt}", prompt)
