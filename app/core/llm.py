"""Text generation client and LLM output parsing helpers."""

import asyncio
import json
import re
from typing import Any, TypeVar

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from app.core.config import Settings, get_settings
from app.core.errors import MalformedProviderResponse, ProviderError
from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class GenerationClient:
    """Chat-completion wrapper: system prompt + ordered messages in, text out."""

    def __init__(self, client: OpenAI | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.client = client or OpenAI(api_key=self.settings.OPENAI_API_KEY)

    def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_output_tokens: int,
        temperature: float = 0.7,
        model: str | None = None,
    ) -> str:
        """
        Run one chat completion.

        Args:
            system_prompt: System instruction
            messages: Prior turns and the new message as {role, content} dicts
            max_output_tokens: Output token budget
            temperature: Sampling temperature
            model: Model override (defaults to CHAT_MODEL)

        Returns:
            Generated text, stripped ("" when the model returned nothing)

        Raises:
            ProviderError: If the API call fails
        """
        model_name = model or self.settings.CHAT_MODEL

        try:
            response = self.client.chat.completions.create(
                model=model_name,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                max_tokens=max_output_tokens,
                temperature=temperature,
            )
        except Exception as e:
            logger.error(f"Chat completion failed: {e}")
            raise ProviderError(f"Generation request failed: {e}", cause=e) from e

        if not response.choices:
            raise ProviderError("Generation returned no choices")

        return (response.choices[0].message.content or "").strip()

    async def complete_async(self, *args: Any, **kwargs: Any) -> str:
        """Async wrapper around complete using thread pool."""
        return await asyncio.to_thread(self.complete, *args, **kwargs)


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Args:
        raw_output: Raw string from LLM response
        model: Pydantic model class to validate against

    Returns:
        Validated Pydantic model instance

    Raises:
        MalformedProviderResponse: If the output is not valid JSON for the model
    """
    cleaned = _strip_llm_fences(raw_output)
    try:
        parsed = json.loads(cleaned)
        return model.model_validate(parsed)
    except (json.JSONDecodeError, ValidationError) as e:
        raise MalformedProviderResponse(f"Unparseable model output: {e}", raw_output) from e
