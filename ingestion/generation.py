"""
LLM generation provider backed by OpenAI chat completions.

Implements the ``GenerationProvider`` protocol from core.  Lives in
ingestion/ because it performs network I/O (core/ must remain pure).

Usage::

    provider = create_generation_provider()  # reads REPOQA_GENERATION_MODEL
    response = provider.generate(GenerationRequest(messages=build_prompt(q, matches)))
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

import openai
from dotenv import load_dotenv

from core.config import DEFAULT_GENERATION_MODEL
from core.errors import MissingCredentialError
from core.generation.base import GenerationRequest, GenerationResponse

logger = logging.getLogger(__name__)


class OpenAIGenerationProvider:
    """
    Generation provider backed by OpenAI's chat completion API.

    Reads ``OPENAI_API_KEY`` from the environment unless a key is passed.
    Model name is configurable (default: ``gpt-4``).

    Satisfies the ``GenerationProvider`` protocol.
    """

    def __init__(
        self,
        model: str = DEFAULT_GENERATION_MODEL,
        *,
        api_key: str | None = None,
    ) -> None:
        load_dotenv()
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if not resolved_key:
            raise MissingCredentialError("OPENAI_API_KEY environment variable not set")
        self._client = openai.OpenAI(api_key=resolved_key)
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Generate a completion via the OpenAI chat API.

        Args:
            request: Generation request with messages and optional
                temperature / max_tokens.

        Returns:
            GenerationResponse with content and usage metadata.

        Raises:
            RuntimeError: If the API call fails or returns no choices.
        """
        messages = [{"role": m.role, "content": m.content} for m in request.messages]
        params: dict[str, Any] = {"model": self._model, "messages": messages}
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens

        try:
            response = self._client.chat.completions.create(**params)
        except Exception as exc:
            raise RuntimeError(f"OpenAI generation failed: {exc}") from exc

        if not response.choices:
            raise RuntimeError("OpenAI generation failed: response contained no choices")

        choice = response.choices[0]
        usage = response.usage
        logger.info(
            "Generated answer with %s (%s input / %s output tokens)",
            response.model,
            usage.prompt_tokens if usage else "?",
            usage.completion_tokens if usage else "?",
        )

        return GenerationResponse(
            content=choice.message.content or "",
            model=response.model,
            usage_input_tokens=usage.prompt_tokens if usage else 0,
            usage_output_tokens=usage.completion_tokens if usage else 0,
        )


def create_generation_provider(env: Mapping[str, str] | None = None) -> OpenAIGenerationProvider:
    """
    Build the generation provider from the environment.

    Environment variables:
        OPENAI_API_KEY             Required.
        REPOQA_GENERATION_MODEL    Optional chat model override.

    Raises:
        MissingCredentialError: If ``OPENAI_API_KEY`` is unset or empty.
    """
    if env is None:
        load_dotenv()
        env = os.environ
    api_key = env.get("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise MissingCredentialError("OPENAI_API_KEY environment variable not set")
    model = env.get("REPOQA_GENERATION_MODEL") or DEFAULT_GENERATION_MODEL
    return OpenAIGenerationProvider(model=model, api_key=api_key)
