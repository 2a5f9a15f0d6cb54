import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .config import (
    OPENAI_API_KEY,
    OPENAI_BACKOFF_FACTOR,
    OPENAI_MAX_RETRIES,
    OPENAI_MAX_TOKENS,
    OPENAI_MODEL,
    OPENAI_RETRY_DELAY,
    OPENAI_TEMPERATURE,
    OPENAI_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

EVALUATION_FIELDS = ("score", "feedback", "strengths", "improvements")

EVALUATION_SYSTEM_PROMPT = (
    "You are an experienced management consulting interviewer. Evaluate the "
    "candidate's answer to a practice drill. Respond with a JSON object with the "
    "keys: score (0-100 integer), feedback (string), strengths (list of strings), "
    "improvements (list of strings), criteria_scores (object mapping each "
    "criterion to a 0-100 score)."
)


def is_transient_error(exc: Exception) -> bool:
    return isinstance(exc, TRANSIENT_ERRORS)


def parse_evaluation(content: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        logger.error("LLM evaluation was not valid JSON")
        return None
    if not isinstance(data, dict) or not all(field in data for field in EVALUATION_FIELDS):
        logger.error("LLM evaluation is missing required fields")
        return None
    try:
        data["score"] = max(0, min(100, int(round(float(data["score"])))))
    except (TypeError, ValueError):
        logger.error(f"LLM evaluation has a non-numeric score: {data['score']!r}")
        return None
    data["strengths"] = [str(s) for s in data.get("strengths") or []]
    data["improvements"] = [str(s) for s in data.get("improvements") or []]
    return data


class LLMClient:
    """OpenAI chat wrapper with timeout and exponential backoff. Returns None when unavailable."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = OPENAI_MODEL,
        max_retries: int = OPENAI_MAX_RETRIES,
        retry_delay: float = OPENAI_RETRY_DELAY,
        backoff_factor: float = OPENAI_BACKOFF_FACTOR,
        timeout: float = OPENAI_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff_factor = backoff_factor
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def _chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = OPENAI_TEMPERATURE,
        max_tokens: int = OPENAI_MAX_TOKENS,
        json_mode: bool = False,
    ) -> Optional[str]:
        if self.client is None:
            return None

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        delay = self.retry_delay
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                        temperature=temperature,
                        max_tokens=max_tokens,
                        **kwargs,
                    ),
                    timeout=self.timeout,
                )
                content = response.choices[0].message.content if response.choices else ""
                if content:
                    return content.strip()
                logger.error(f"OpenAI returned empty content for model '{self.model}'")
                return None
            except Exception as exc:
                logger.warning(
                    f"OpenAI request failed for model '{self.model}' "
                    f"(attempt {attempt}/{self.max_retries}): {type(exc).__name__}"
                )
                if attempt < self.max_retries and is_transient_error(exc):
                    await asyncio.sleep(delay)
                    delay *= self.backoff_factor
                    continue
                logger.error(f"OpenAI request gave up after {attempt} attempt(s)")
                return None
        return None

    async def complete_text(self, prompt: str, temperature: float = OPENAI_TEMPERATURE) -> Optional[str]:
        return await self._chat([{"role": "user", "content": prompt}], temperature=temperature)

    async def evaluate_response(
        self,
        drill_type: str,
        prompt: str,
        response: str,
        criteria: List[str],
    ) -> Optional[Dict[str, Any]]:
        user_prompt = (
            f"Drill type: {drill_type}\n"
            f"Drill prompt:\n{prompt}\n\n"
            f"Evaluation criteria: {', '.join(criteria) or 'structure, clarity, insight'}\n\n"
            f"Candidate response:\n{response}"
        )
        content = await self._chat(
            [
                {"role": "system", "content": EVALUATION_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.3,
            max_tokens=1000,
            json_mode=True,
        )
        if content is None:
            return None
        return parse_evaluation(content)


llm = LLMClient(AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None)

if not llm.enabled:
    logger.warning("OPENAI_API_KEY is missing. Feedback will use the local rule-based evaluator.")


def get_llm() -> LLMClient:
    return llm
