"""LLM analysis of failed API tests.

Given the request that was sent and the result that came back, asks the
model what went wrong and how to fix it. Used for APIs that have
``ai_analysis_enabled`` set.
"""

import json
import re

from pydantic import ValidationError

from api_harness.errors import AnalysisError
from api_harness.llm import LlmClient
from api_harness.logging_setup import redact_headers
from api_harness.models import AiAnalysis, ResolvedRequest, TestResult

SYSTEM_PROMPT = """You are an HTTP API troubleshooting assistant. You receive one HTTP request and the result of sending it.

Explain the most likely cause of the failure and how to fix it.

Output a JSON object with these fields:
- analysis: short explanation of what went wrong
- suggestions: array of concrete fixes (strings)
- severity: "low", "medium" or "high"

Output ONLY the JSON object, no other text."""

MAX_BODY_CHARS = 4000


class FailureAnalyzer:
    """Explains failed or non-2xx test results using an LLM."""

    def __init__(self, model: str | None = None):
        self.client = LlmClient(model=model)

    def analyze(self, request: ResolvedRequest, result: TestResult) -> AiAnalysis:
        payload = {
            "request": {
                "method": request.method,
                "url": request.url,
                "headers": redact_headers(request.headers),
                "body": request.body,
            },
            "result": {
                "transport_ok": result.success,
                "status": result.status,
                "error": result.error,
                "response_time_ms": result.response_time_ms,
                "headers": result.headers,
                "body": result.body_text[:MAX_BODY_CHARS],
            },
        }
        try:
            response = self.client.call(
                system=SYSTEM_PROMPT,
                user=f"```json\n{json.dumps(payload, indent=2)}\n```",
            )
        except Exception as e:  # litellm raises provider specific exception types
            raise AnalysisError(f"LLM call failed: {e}") from e
        return parse_analysis(response)


def needs_analysis(result: TestResult) -> bool:
    return not result.success or result.status >= 400


def parse_analysis(text: str) -> AiAnalysis:
    """Parse the model output, which may be wrapped in a Markdown code block."""
    if not text:
        raise AnalysisError("empty response from model")
    json_str = _extract_json(text)
    try:
        data = json.loads(json_str)
        return AiAnalysis.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise AnalysisError(f"unusable analysis from model: {e}") from e


def _extract_json(text: str) -> str:
    """Extract JSON from a response that might contain Markdown code blocks."""
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text.strip()
