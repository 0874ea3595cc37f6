"""LLM client providing the text-completion capability used by the generators.

This module wraps OpenAI's chat completions API behind a single
``prompt(text) -> str`` operation, adding retry logic with exponential backoff,
token usage tracking and request/response logging. When enabled, requests are
traced with Langfuse.
"""

import hashlib
import logging
import os
import time
from typing import Optional, Protocol, runtime_checkable

from langfuse import observe
from langfuse.openai import OpenAI as LangfuseOpenAI
from openai import OpenAI
from pydantic import BaseModel

from lessonforge import config
from lessonforge.exceptions import CompletionError

logger = logging.getLogger(__name__)


@runtime_checkable
class CompletionService(Protocol):
    """Anything that can turn a prompt into a completion string.

    Implementations may raise on any failure (network, quota, timeout);
    callers treat every exception the same way.
    """

    def prompt(self, prompt_text: str) -> str:
        ...


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0  # Prompt cache hits
    requests: int = 0


# Cost estimates (USD per 1M tokens)
MODEL_COSTS = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60, "cached": 0.075},
    "gpt-4o": {"input": 2.5, "output": 10.0, "cached": 1.25},
    "gpt-4.1-nano": {"input": 0.1, "output": 0.4, "cached": 0.025},
    "gpt-4.1-mini": {"input": 0.4, "output": 1.6, "cached": 0.1},
    "gpt-4.1": {"input": 2, "output": 8, "cached": 0.5},
}


class LLMClient:
    """OpenAI-backed completion client.

    Features:
    - Plain text completions through ``prompt``/``complete``
    - Automatic retry logic (exponential backoff, capped delay)
    - Token usage tracking and cost estimation
    - Request/response logging (prompt hash, tokens, latency)
    - Optional Langfuse tracing
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = config.LLM_MAX_RETRIES,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        temperature: float = config.LLM_TEMPERATURE,
        max_tokens: int = config.LLM_MAX_TOKENS,
        base_url: Optional[str] = None,
        enable_langfuse: bool = config.ENABLE_LANGFUSE,
    ):
        """Initialize the completion client.

        Args:
            api_key: OpenAI API key (if None, uses OPENAI_API_KEY)
            model: Model to use (if None, uses LLM_MODEL or gpt-4o-mini)
            max_retries: Maximum number of attempts per prompt (default: 3)
            base_delay: Base delay for exponential backoff in seconds (default: 1.0)
            max_delay: Maximum delay between retries in seconds (default: 60.0)
            temperature: Sampling temperature for every request
            max_tokens: Completion token limit for every request
            base_url: Optional OpenAI-compatible endpoint
            enable_langfuse: Trace requests with Langfuse (requires LANGFUSE_* env vars)
        """
        self.model = model or os.getenv("LLM_MODEL", config.LLM_MODEL)
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.enable_langfuse = enable_langfuse

        self.total_usage = TokenUsage()

        client_kwargs = {"api_key": api_key or os.getenv("OPENAI_API_KEY")}
        if base_url:
            client_kwargs["base_url"] = base_url

        if enable_langfuse:
            # Langfuse-wrapped client traces every completion automatically
            self.client = LangfuseOpenAI(**client_kwargs)
            logger.info("Langfuse tracing enabled for OpenAI")
        else:
            self.client = OpenAI(**client_kwargs)

        logger.info(f"LLMClient initialized with model={self.model}, max_retries={self.max_retries}")

    def prompt(self, prompt_text: str) -> str:
        """Return the completion for a single user prompt.

        Args:
            prompt_text: Prompt to send

        Returns:
            Completion text

        Raises:
            CompletionError: If all retry attempts fail
        """
        return self.complete(prompt_text)

    @observe(as_type="generation")
    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate a plain text completion.

        This method automatically retries on failures with exponential backoff.
        An empty completion counts as a failed attempt.

        Args:
            prompt: User prompt/instruction
            system_prompt: Optional system prompt
            temperature: Override of the client's sampling temperature
            max_tokens: Override of the client's completion token limit

        Returns:
            Completion text

        Raises:
            CompletionError: If all retry attempts fail
        """
        prompt_hash = self._hash_prompt(prompt)
        logger.info(f"Requesting completion: model={self.model}, prompt_hash={prompt_hash}")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        api_params = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }

        last_exception = None
        for attempt in range(1, self.max_retries + 1):
            start_time = time.time()
            try:
                response = self.client.chat.completions.create(**api_params)
                text = self._extract_text(response)
                if not text:
                    raise ValueError("Empty completion")

                latency_ms = (time.time() - start_time) * 1000
                usage = self._extract_usage(response)
                self._update_total_usage(usage)

                self._log_response(
                    prompt_hash=prompt_hash,
                    latency_ms=latency_ms,
                    attempt=attempt,
                    success=True,
                    usage=usage,
                )
                return text

            except Exception as e:
                last_exception = e
                latency_ms = (time.time() - start_time) * 1000

                logger.warning(f"Attempt {attempt}/{self.max_retries} failed: {str(e)[:200]}")
                self._log_response(
                    prompt_hash=prompt_hash,
                    latency_ms=latency_ms,
                    attempt=attempt,
                    success=False,
                    error=str(e)[:200],
                )

                if attempt < self.max_retries:
                    delay = self._calculate_backoff_delay(attempt)
                    logger.info(f"Retrying in {delay:.2f} seconds...")
                    time.sleep(delay)
                else:
                    logger.error(f"All {self.max_retries} attempts failed for prompt_hash={prompt_hash}")

        raise CompletionError(
            f"Failed to generate completion after {self.max_retries} attempts. "
            f"Last error: {last_exception}"
        )

    def _extract_text(self, response) -> str:
        """Pull the message text out of a chat completion response."""
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        content = getattr(choices[0].message, "content", None)
        return (content or "").strip()

    def _extract_usage(self, response) -> TokenUsage:
        """Extract token usage from a chat completion response.

        Args:
            response: Raw chat completion response

        Returns:
            TokenUsage for this request
        """
        usage = TokenUsage(requests=1)
        raw_usage = getattr(response, "usage", None)
        if raw_usage is None:
            return usage

        usage.prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
        usage.completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
        usage.total_tokens = getattr(raw_usage, "total_tokens", 0) or 0

        details = getattr(raw_usage, "prompt_tokens_details", None)
        if details is not None:
            usage.cached_tokens = getattr(details, "cached_tokens", 0) or 0

        return usage

    def _update_total_usage(self, usage: TokenUsage) -> None:
        """Add one request's usage to the running totals."""
        self.total_usage.prompt_tokens += usage.prompt_tokens
        self.total_usage.completion_tokens += usage.completion_tokens
        self.total_usage.total_tokens += usage.total_tokens
        self.total_usage.cached_tokens += usage.cached_tokens
        self.total_usage.requests += usage.requests

    def get_usage_summary(self) -> dict:
        """Get summary of total token usage.

        Returns:
            Dictionary with usage stats and cost estimates
        """
        costs = {**MODEL_COSTS, **config.LLM_COST_OVERRIDES}
        model_cost = costs.get(self.model, costs["gpt-4o-mini"])

        uncached_prompt = self.total_usage.prompt_tokens - self.total_usage.cached_tokens
        input_cost = (
            uncached_prompt * model_cost["input"]
            + self.total_usage.cached_tokens * model_cost["cached"]
        ) / 1_000_000
        output_cost = self.total_usage.completion_tokens * model_cost["output"] / 1_000_000

        return {
            "model": self.model,
            "requests": self.total_usage.requests,
            "prompt_tokens": self.total_usage.prompt_tokens,
            "completion_tokens": self.total_usage.completion_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "cached_tokens": self.total_usage.cached_tokens,
            "cache_hit_rate": (
                f"{self.total_usage.cached_tokens / self.total_usage.prompt_tokens * 100:.1f}%"
                if self.total_usage.prompt_tokens > 0 else "0.0%"
            ),
            "estimated_cost_usd": round(input_cost + output_cost, 4),
            "input_cost_usd": round(input_cost, 4),
            "output_cost_usd": round(output_cost, 4),
        }

    def reset_usage(self) -> None:
        """Reset token usage counters."""
        self.total_usage = TokenUsage()

    def _hash_prompt(self, prompt: str) -> str:
        """Generate SHA256 hash of prompt for logging.

        Args:
            prompt: Text prompt to hash

        Returns:
            First 16 characters of SHA256 hash
        """
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            Delay in seconds (capped at max_delay)
        """
        delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)

    def _log_response(
        self,
        prompt_hash: str,
        latency_ms: float,
        attempt: int,
        success: bool,
        usage: Optional[TokenUsage] = None,
        error: Optional[str] = None,
    ) -> None:
        """Log completion request metadata."""
        log_data = {
            "prompt_hash": prompt_hash,
            "model": self.model,
            "latency_ms": round(latency_ms, 2),
            "attempt": attempt,
            "success": success,
        }

        if usage:
            log_data["tokens"] = {
                "prompt": usage.prompt_tokens,
                "completion": usage.completion_tokens,
                "total": usage.total_tokens,
                "cached": usage.cached_tokens,
            }

        if error:
            log_data["error"] = error

        if success:
            logger.info(f"LLM response: {log_data}")
        else:
            logger.warning(f"LLM response failed: {log_data}")
