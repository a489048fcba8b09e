"""Async Gemini API client with exponential backoff and rate limiting."""

import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, Optional

import google.generativeai as genai
from google.generativeai.types.generation_types import BlockedPromptException
from loguru import logger

from truthcast.llm.rate_limiter import RateLimiter


def _exponential_backoff(max_retries: int = 3, base_delay: float = 1.0) -> Callable:
    """
    Decorator implementing exponential backoff with jitter for async API calls.

    Blocked prompts are not retried; they fail the same way every time.

    Args:
        max_retries: Attempts before the last error is re-raised
        base_delay: Delay before the first retry, doubled each time
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            for retry in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except BlockedPromptException:
                    raise
                except Exception as e:
                    if retry == max_retries - 1:
                        logger.error(f"Max retries exceeded for {func.__name__}: {e}")
                        raise

                    delay = base_delay * (2 ** retry)
                    total_delay = delay + random.uniform(0, delay * 0.1)
                    logger.warning(
                        f"Retry {retry + 1}/{max_retries} for {func.__name__} "
                        f"after {total_delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(total_delay)

            raise RuntimeError(f"Unexpected retry loop exit in {func.__name__}")

        return wrapper

    return decorator


class GeminiClient:
    """
    Google Gemini client used as the reasoning collaborator.

    Constructed explicitly (no module-level instance) so tests and offline
    runs never need an API key.

    Attributes:
        model: Configured Gemini generative model instance
        rate_limiter: Optional RPM/TPM limiter shared across calls
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        system_instruction: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        acquire_timeout: float = 5.0,
    ):
        """
        Initialize Gemini client.

        Raises:
            ValueError: If API key is empty
        """
        if not api_key:
            raise ValueError("GEMINI_API_KEY not configured in environment")

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        self.rate_limiter = rate_limiter
        self.acquire_timeout = acquire_timeout
        self.logger = logger.bind(component="GeminiClient")
        self.logger.info(f"Gemini client initialized with model {model_name}")

    async def generate_json(self, prompt: str, temperature: float = 0.0) -> str:
        """
        Generate a JSON response, waiting for rate-limit capacity first.

        Raises:
            RuntimeError: If rate-limit capacity did not free up in time
            BlockedPromptException: If prompt violates safety policies
            Exception: For other API errors after retries exhausted
        """
        if self.rate_limiter is not None:
            estimated_tokens = max(1, len(prompt) // 4)
            acquired = await self.rate_limiter.acquire(estimated_tokens, timeout=self.acquire_timeout)
            if not acquired:
                raise RuntimeError("Gemini rate limit capacity exhausted")
        return await self._generate(prompt, temperature)

    @_exponential_backoff()
    async def _generate(self, prompt: str, temperature: float) -> str:
        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    temperature=temperature,
                    response_mime_type="application/json",
                ),
            )
            return response.text
        except BlockedPromptException as e:
            self.logger.error(f"Prompt blocked by safety filters: {e}")
            raise
