"""Thin litellm wrapper used for failure analysis.

Any model litellm knows about works; provider keys come from the usual
provider environment variables (ANTHROPIC_API_KEY, OPENAI_API_KEY, ...).
"""

import logging
import time

from litellm import completion

from api_harness.config import DEFAULT_MODEL, LLM_TIMEOUT_S

logger = logging.getLogger(__name__)


class LlmClient:
    def __init__(self, model: str | None = None, timeout_s: float = LLM_TIMEOUT_S):
        self.model = model or DEFAULT_MODEL
        self.timeout_s = timeout_s

    def call(self, system: str, user: str) -> str:
        """Send one system+user exchange and return the reply text ("" if the model sent none)."""
        start = time.perf_counter()
        response = completion(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0,
            timeout=self.timeout_s,
        )
        logger.debug("%s answered in %.1f s", self.model, time.perf_counter() - start)
        return response.choices[0].message.content or ""
