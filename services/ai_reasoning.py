"""Adapter for the AI reasoning service used by weekly reviews.

The service is a black box: a prompt goes in, free text comes out. Talking
to it (`ReviewAdvisor.complete`) and making sense of its answer
(`extract_review_payload`) are separate steps. The parser never raises; it
returns a tagged `ReviewParseResult` and the review generator decides what
to do with a failure.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI

from core import config
from core.exceptions import UpstreamFormatError, UpstreamTimeoutError, UpstreamUnavailableError
from core.logger import get_logger

logger = get_logger("services.ai_reasoning")

SYSTEM_PROMPT = (
    "You are a certified nutrition coach. Answer with a single JSON object "
    "and nothing else."
)
EXCERPT_LENGTH = 200


@dataclass
class ReviewParseResult:
    """Outcome of parsing an AI response: exactly one of `value` / `error` is set."""

    value: Optional[Dict[str, Any]] = None
    error: Optional[UpstreamFormatError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_review_payload(text: Optional[str]) -> ReviewParseResult:
    """Decode the first JSON object embedded in `text`.

    Models often wrap JSON in prose or markdown fences, so decoding starts at
    each '{' in turn until one yields an object.
    """
    if not text:
        return ReviewParseResult(error=UpstreamFormatError("AI service returned an empty response"))

    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except ValueError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return ReviewParseResult(value=value)
        start = text.find("{", start + 1)

    logger.warning("No JSON object found in AI response: %.200s", text)
    return ReviewParseResult(error=UpstreamFormatError(excerpt=text[:EXCERPT_LENGTH]))


class ReviewAdvisor:
    """Thin client around an OpenAI-compatible chat completions endpoint.

    Built without a client (no API key configured) the advisor reports
    itself unavailable and every call raises `UpstreamUnavailableError`.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: str = config.AI_MODEL,
                 timeout: float = config.AI_TIMEOUT_SECONDS, temperature: float = 0.3):
        self.client = client
        self.model = model
        self.timeout = timeout
        self.temperature = temperature

    @property
    def available(self) -> bool:
        return self.client is not None

    def complete(self, prompt: str) -> str:
        """Send `prompt` and return the raw response text.

        Raises:
            UpstreamUnavailableError: If unconfigured or the endpoint cannot be reached.
            UpstreamTimeoutError: If no answer arrives within `timeout` seconds.
        """
        if self.client is None:
            raise UpstreamUnavailableError("AI service is not configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except APITimeoutError:
            logger.warning("AI request timed out after %ss", self.timeout)
            raise UpstreamTimeoutError(self.timeout)
        except (APIConnectionError, APIError) as exc:
            logger.warning("AI request failed: %s", exc)
            raise UpstreamUnavailableError(f"AI service request failed: {exc.__class__.__name__}")

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def build_review_advisor() -> ReviewAdvisor:
    """Create an advisor from configuration; unconfigured yields an unavailable advisor."""
    if not config.AI_API_KEY:
        logger.info("AI_API_KEY not set; reviews run in manual-only mode")
        return ReviewAdvisor(client=None)
    # Single attempt: a call never outlasts AI_TIMEOUT_SECONDS.
    client = OpenAI(api_key=config.AI_API_KEY, base_url=config.AI_BASE_URL,
                    timeout=config.AI_TIMEOUT_SECONDS, max_retries=0)
    return ReviewAdvisor(client=client)
