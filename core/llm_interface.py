# core/llm_interface.py
"""
Handles all direct interactions with the generative text service.
Includes the async chat-completion client, response cleaning and
token counting helpers used to keep prompts within budget.
"""

# Standard library imports
import asyncio
import functools
import random
import re

# Type hints
from typing import Any, Protocol

import httpx

# Third-party imports
import structlog
import tiktoken
from async_lru import alru_cache

# Local imports
from config import settings

logger = structlog.get_logger(__name__)


class TextGenerator(Protocol):
    """Anything that can turn a prompt into text."""

    async def generate(self, prompt: str, temperature: float | None = None) -> str: ...


async def call_generator(
    generator: TextGenerator,
    prompt: str,
    temperature: float | None = None,
    cached: bool = False,
) -> tuple[str, dict[str, int] | None]:
    """Call ``generator`` and return its text with usage when it reports any.

    ``cached`` lets a usage-reporting generator answer repeated prompts from
    its cache; plain generators ignore it.
    """
    with_usage = getattr(generator, "generate_with_usage", None)
    if with_usage is not None:
        return await with_usage(prompt, temperature=temperature, cached=cached)
    return await generator.generate(prompt, temperature=temperature), None


# Token parameter handling
def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the provider."""
    if "api.openai.com" in api_base or "api.anthropic.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


@functools.lru_cache(maxsize=settings.TOKENIZER_CACHE_SIZE)
def _get_tokenizer(model_name: str) -> tiktoken.Encoding | None:
    """
    Gets a tiktoken encoder for the given model name, with caching.
    Tries model-specific encoding, then a default, then returns None.
    """
    try:
        try:
            encoder = tiktoken.encoding_for_model(model_name)
        except KeyError:
            logger.debug(
                f"No direct tiktoken encoding for '{model_name}'. Using default '{settings.TIKTOKEN_DEFAULT_ENCODING}'."
            )
            encoder = tiktoken.get_encoding(settings.TIKTOKEN_DEFAULT_ENCODING)
        return encoder
    except (KeyError, ValueError):
        logger.error(
            f"Default tiktoken encoding '{settings.TIKTOKEN_DEFAULT_ENCODING}' also not found. "
            f"Token counting will fall back to character-based heuristic for '{model_name}'."
        )
        return None
    except Exception as e:
        logger.error(
            f"Unexpected error getting tokenizer for '{model_name}': {e}",
            exc_info=True,
        )
        return None


def count_tokens(text: str, model_name: str) -> int:
    """
    Counts the number of tokens in a string for a given model.
    Uses tiktoken with caching and a character-based fallback.
    """
    if not text:
        return 0

    encoder = _get_tokenizer(model_name)
    if encoder:
        return len(encoder.encode(text, allowed_special="all"))

    token_estimate = int(len(text) / settings.FALLBACK_CHARS_PER_TOKEN)
    logger.warning(
        f"count_tokens: Failed to get tokenizer for '{model_name}'. "
        f"Falling back to character-based estimate: {len(text)} chars -> ~{token_estimate} tokens."
    )
    return token_estimate


def truncate_text_by_tokens(
    text: str,
    model_name: str,
    max_tokens: int,
    truncation_marker: str = "\n... (truncated)",
) -> str:
    """
    Truncates text to a maximum number of tokens for a given model.
    Adds a truncation marker if truncation occurs.
    """
    if not text:
        return ""

    encoder = _get_tokenizer(model_name)

    if not encoder:
        max_chars = int(max_tokens * settings.FALLBACK_CHARS_PER_TOKEN)
        if len(text) > max_chars:
            effective_max_chars = max(0, max_chars - len(truncation_marker))
            return text[:effective_max_chars] + truncation_marker
        return text

    tokens = encoder.encode(text, allowed_special="all")
    if len(tokens) <= max_tokens:
        return text

    marker_tokens_len = (
        len(encoder.encode(truncation_marker, allowed_special="all"))
        if truncation_marker
        else 0
    )
    content_tokens_to_keep = max_tokens - marker_tokens_len
    effective_truncation_marker = truncation_marker
    if content_tokens_to_keep <= 0:
        content_tokens_to_keep = max_tokens
        effective_truncation_marker = ""

    return encoder.decode(tokens[:content_tokens_to_keep]) + effective_truncation_marker


class LLMService:
    """Async client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        model_name: str | None = None,
        temperature: float | None = None,
    ):
        # Use a single async client for all requests to reuse connections
        self._client = httpx.AsyncClient(timeout=timeout)
        # Add a semaphore to limit concurrent requests
        self._semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_LLM_CALLS)
        self.model_name = model_name or settings.GENERATION_MODEL
        self.temperature = temperature
        logger.info(
            f"LLMService initialized with a concurrency limit of {settings.MAX_CONCURRENT_LLM_CALLS}."
        )

    async def _backoff_delay(self, attempt: int) -> None:
        """Sleep for an exponentially increasing delay with jitter."""
        delay = settings.LLM_RETRY_DELAY_SECONDS * (2**attempt)
        jitter = random.uniform(0, delay / 2)
        await asyncio.sleep(delay + jitter)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _log_llm_usage(self, model_name: str, usage_data: dict[str, int] | None) -> None:
        """Helper to log LLM token usage if available in the response."""
        if usage_data and isinstance(usage_data, dict):
            logger.info(
                f"LLM ('{model_name}') Usage - Prompt: {usage_data.get('prompt_tokens', 'N/A')} tk, "
                f"Comp: {usage_data.get('completion_tokens', 'N/A')} tk, Total: {usage_data.get('total_tokens', 'N/A')} tk"
            )
        else:
            logger.debug(
                f"LLM ('{model_name}') response missing 'usage' information or 'usage' was not a dictionary."
            )

    async def _post_non_streaming(
        self, payload: dict[str, Any], headers: dict[str, str]
    ) -> tuple[str, dict[str, int] | None]:
        """Send a regular chat completion request."""
        payload["stream"] = False
        response = await self._client.post(
            f"{settings.OPENAI_API_BASE}/chat/completions",
            json=payload,
            headers=headers,
        )
        response.raise_for_status()
        data = response.json()
        raw_text = ""
        if data.get("choices") and len(data["choices"]) > 0:
            message = data["choices"][0].get("message")
            if message and message.get("content"):
                raw_text = message["content"]
            finish_reason = data["choices"][0].get("finish_reason")
            if finish_reason == "content_filter":
                raise ValueError(
                    f"Response from '{payload['model']}' was blocked by the safety content filter."
                )
        else:
            logger.error(
                f"LLM ('{payload['model']}') Invalid response structure - missing choices/content despite 200 OK: {data}"
            )
        return raw_text, data.get("usage")

    async def _call_model_with_retries(
        self,
        model_name: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        auto_clean_response: bool,
    ) -> tuple[str, dict[str, int] | None, Exception | None]:
        """Try calling the model with retry logic."""
        last_exc: Exception | None = None
        for retry_attempt in range(settings.LLM_RETRY_ATTEMPTS):
            try:
                final_text, usage = await self._post_non_streaming(payload, headers)
                self._log_llm_usage(model_name, usage)
                if auto_clean_response:
                    final_text = self.clean_model_response(final_text)
                return final_text, usage, None
            except Exception as exc:  # Consolidated error handling
                last_exc = exc
                logger.warning(
                    f"LLM ('{model_name}' Attempt {retry_attempt + 1}): {exc}",
                )
            if retry_attempt < settings.LLM_RETRY_ATTEMPTS - 1:
                await self._backoff_delay(retry_attempt)
        return "", None, last_exc

    async def _async_call_llm(
        self,
        model_name: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        allow_fallback: bool = False,
        auto_clean_response: bool = True,
    ) -> tuple[str, dict[str, int] | None]:
        """Call the LLM with optional fallback. Raises the last error on failure."""
        async with self._semaphore:
            if not model_name:
                raise ValueError("async_call_llm: model_name is required.")
            if not prompt or not isinstance(prompt, str) or not prompt.strip():
                raise ValueError("async_call_llm: empty or invalid prompt.")

            effective_max_output_tokens = (
                max_tokens if max_tokens is not None else settings.MAX_GENERATION_TOKENS
            )
            effective_temperature = (
                temperature if temperature is not None else settings.TEMPERATURE_DEFAULT
            )
            headers = {
                "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
                "Content-Type": "application/json",
            }
            token_param_name = _completion_token_param(settings.OPENAI_API_BASE)

            models_to_try = [model_name]
            if (
                allow_fallback
                and settings.FALLBACK_GENERATION_MODEL
                and settings.FALLBACK_GENERATION_MODEL != model_name
            ):
                models_to_try.append(settings.FALLBACK_GENERATION_MODEL)

            last_exc: Exception | None = None
            for current_model in models_to_try:
                payload: dict[str, Any] = {
                    "model": current_model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": effective_temperature,
                    "top_p": settings.LLM_TOP_P,
                    token_param_name: effective_max_output_tokens,
                }
                logger.debug(
                    f"Calling LLM '{current_model}'. Prompt tokens (est.): {count_tokens(prompt, current_model)}. "
                    f"Max output tokens: {effective_max_output_tokens}. Temp: {effective_temperature}"
                )
                text, usage, last_exc = await self._call_model_with_retries(
                    current_model, payload, headers, auto_clean_response
                )
                if last_exc is None:
                    return text, usage
                if current_model != models_to_try[-1]:
                    logger.info(
                        f"Primary model '{current_model}' failed. Attempting fallback with '{models_to_try[-1]}'."
                    )

            logger.error(
                f"LLM call failed for '{model_name}' after all primary and fallback attempts."
            )
            raise last_exc or RuntimeError(f"LLM call failed for '{model_name}'")

    @alru_cache(maxsize=settings.LLM_CALL_CACHE_SIZE)
    async def async_call_llm(
        self,
        model_name: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        allow_fallback: bool = False,
        auto_clean_response: bool = True,
    ) -> tuple[str, dict[str, int] | None]:
        return await self._async_call_llm(
            model_name=model_name,
            prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            allow_fallback=allow_fallback,
            auto_clean_response=auto_clean_response,
        )

    async def generate_with_usage(
        self, prompt: str, temperature: float | None = None, cached: bool = False
    ) -> tuple[str, dict[str, int] | None]:
        """Generate with the configured model and return the reported usage.

        Only ``cached`` calls go through the LRU cache, so repeated section
        prompts still produce fresh output.
        """
        call = self.async_call_llm if cached else self._async_call_llm
        return await call(
            model_name=self.model_name,
            prompt=prompt,
            temperature=temperature if temperature is not None else self.temperature,
            allow_fallback=True,
        )

    async def generate(self, prompt: str, temperature: float | None = None) -> str:
        """:class:`TextGenerator` entry point using the configured model."""
        text, _usage = await self.generate_with_usage(prompt, temperature=temperature)
        return text

    def clean_model_response(self, text: str) -> str:
        """Strips reasoning tags, chatty preambles and sign-offs; normalizes newlines.

        Code fences are kept so structured output can still be located.
        """
        if not isinstance(text, str):
            logger.warning(
                f"clean_model_response received non-string input: {type(text)}. Returning empty string."
            )
            return ""

        cleaned_text = text
        for tag_name in ("think", "thought", "thinking", "reasoning", "analysis"):
            cleaned_text = re.sub(
                rf"<\s*{tag_name}\s*>.*?<\s*/\s*{tag_name}\s*>",
                "",
                cleaned_text,
                flags=re.DOTALL | re.IGNORECASE,
            )
            cleaned_text = re.sub(
                rf"<\s*/?\s*{tag_name}\s*/?\s*>", "", cleaned_text, flags=re.IGNORECASE
            )

        common_phrases_patterns = [
            r"^\s*(Okay,\s*)?(Sure,\s*)?(Here's|Here is|Here are)\s+(the|your|some)\s+[\w\s-]+?:\s*",
            r"^\s*Certainly!\s*",
            r"^\s*(?:Output|Result|Response)\s*:\s*",
            r"\s*Let me know if you (need|have) any(thing else| other questions| further revisions| adjustments)\b.*?\.?[^\w\n]*$",
            r"\s*I hope this (meets your expectations|helps|is what you were looking for)\b.*?\.?[^\w\n]*$",
        ]
        for pattern_str in common_phrases_patterns:
            cleaned_text = re.sub(
                pattern_str,
                "",
                cleaned_text.strip(),
                count=1,
                flags=re.IGNORECASE,
            )

        final_text = cleaned_text.strip()
        final_text = re.sub(r"\n\s*\n(\s*\n)+", "\n\n", final_text)
        return final_text


# Instantiate the service for other modules to import and use
llm_service = LLMService()
