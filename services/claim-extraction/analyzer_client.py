"""Async HTTP client for the remote analyzer (Ollama-compatible API).

Uses httpx with explicit timeouts. Extraction is a single attempt whose
outcome is returned as ``Accepted``, ``MalformedReply`` or ``Unreachable``;
free-text completions retry with tenacity exponential backoff on
connection errors, timeouts and 503.
"""

import json
import logging
import re
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from models import Accepted, AnalyzerOutcome, MalformedReply, Unreachable
from prompts import build_extraction_prompt, build_response_prompt

logger = logging.getLogger(__name__)


class AnalyzerUnavailable(Exception):
    """Analyzer could not be reached (connection error, timeout, 503)."""


class AnalyzerError(Exception):
    """Analyzer returned a non-retryable error (400, 404, 500)."""


class ParseError(Exception):
    """Analyzer reply does not contain a JSON object."""


class AnalyzerClient:
    """Client for the remote text analyzer with a reachability probe."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        probe_timeout: float | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
    ):
        self._base_url = (base_url or settings.ANALYZER_URL).rstrip("/")
        self.model = model or settings.ANALYZER_MODEL
        self._probe_timeout = probe_timeout if probe_timeout is not None else settings.ANALYZER_PROBE_TIMEOUT
        self._temperature = temperature if temperature is not None else settings.ANALYZER_TEMPERATURE
        self._max_tokens = max_tokens if max_tokens is not None else settings.ANALYZER_MAX_TOKENS
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.ANALYZER_RETRY_ATTEMPTS
        self._retry_delay = retry_delay if retry_delay is not None else settings.ANALYZER_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.ANALYZER_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.ANALYZER_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.ANALYZER_CONNECT_TIMEOUT

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
        )

    async def close(self):
        await self._client.aclose()

    async def probe(self) -> bool:
        """Bounded reachability check. Returns False instead of raising."""
        try:
            resp = await self._client.get("/api/tags", timeout=self._probe_timeout)
        except Exception as e:
            logger.warning("Analyzer probe failed: %s", e)
            return False

        if resp.status_code != 200:
            logger.warning("Analyzer probe returned HTTP %d", resp.status_code)
            return False
        return True

    async def extract(self, text: str) -> AnalyzerOutcome:
        """Send one extraction request and parse the reply. Never retries."""
        options = {"temperature": self._temperature, "num_predict": self._max_tokens}
        try:
            raw = await self._generate(build_extraction_prompt(text), options)
        except (AnalyzerUnavailable, AnalyzerError) as e:
            return Unreachable(reason=str(e))

        try:
            fields = find_json_object(raw)
        except ParseError as e:
            logger.warning("Analyzer reply rejected: %s", e)
            return MalformedReply(raw=raw)

        logger.info("Analyzer returned %d key(s)", len(fields))
        return Accepted(fields=fields)

    async def complete(
        self,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Free-text completion with retry and exponential backoff.

        Raises AnalyzerUnavailable once retries are exhausted, or
        AnalyzerError immediately.
        """
        options = {
            "temperature": temperature if temperature is not None else 0.6,
            "num_predict": max_tokens or 800,
        }
        payload_prompt = build_response_prompt(prompt)

        @retry(
            retry=retry_if_exception_type(AnalyzerUnavailable),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=30,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Analyzer unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        async def _do_complete() -> str:
            return await self._generate(payload_prompt, options)

        return await _do_complete()

    async def _generate(self, prompt: str, options: dict[str, Any]) -> str:
        """Send a single generate request to the analyzer."""
        payload = {"model": self.model, "prompt": prompt, "stream": False, "options": options}

        try:
            resp = await self._client.post("/api/generate", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Analyzer connection failed: %s", e)
            raise AnalyzerUnavailable(f"Cannot connect to analyzer: {e}") from e
        except httpx.ReadTimeout as e:
            logger.warning("Analyzer read timeout: %s", e)
            raise AnalyzerUnavailable(f"Analyzer read timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Analyzer HTTP error: %s", e)
            raise AnalyzerError(f"Analyzer HTTP error: {e}") from e

        if resp.status_code == 503:
            detail = _error_detail(resp, "Service unavailable")
            logger.warning("Analyzer returned 503: %s", detail)
            raise AnalyzerUnavailable(detail)

        if resp.status_code != 200:
            detail = _error_detail(resp, f"HTTP {resp.status_code}")
            logger.error("Analyzer error %d: %s", resp.status_code, detail)
            raise AnalyzerError(detail)

        try:
            data = resp.json()
        except ValueError as e:
            raise AnalyzerError(f"Analyzer returned a non-JSON body: {e}") from e

        reply = data.get("response") if isinstance(data, dict) else None
        if not isinstance(reply, str):
            raise AnalyzerError("Analyzer response has no 'response' text")
        return reply


def _error_detail(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or default)
    return default


def find_json_object(raw: str) -> dict:
    """Extract a JSON object from free-form analyzer output.

    Handles: direct JSON, markdown fences, prose around the object, and
    ``<think>...</think>`` blocks. Raises ParseError if nothing parses.
    """
    if not raw or not raw.strip():
        raise ParseError("Empty analyzer reply")

    cleaned = re.sub(r"<think>.*?</think>", "", raw, flags=re.DOTALL).strip()

    # Try direct parse first
    try:
        result = json.loads(cleaned)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    # Try to find JSON block in markdown code fences
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", cleaned, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group(1).strip())
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    # First balanced { ... } block that parses
    for candidate in _balanced_objects(cleaned):
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result

    raise ParseError(f"No JSON object in analyzer reply ({len(cleaned)} chars)")


def _balanced_objects(text: str):
    """Yield each brace-balanced substring starting at a ``{``, left to right.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)
