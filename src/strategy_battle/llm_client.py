"""
Async client for OpenAI-compatible chat-completions endpoints.

Used for every agent and for the director. Includes rate limiting and
retries; the coordinator adds its own overall timeout around each call.
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional

import httpx

from .config import EndpointConfig
from .errors import LLMCallError

logger = logging.getLogger(__name__)


class LLMClient:
    """Async LLM client with rate limiting and retries."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        requests_per_minute: int = 25,
        timeout: float = 30.0,
        retries: int = 2,
        backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.requests_per_minute = requests_per_minute
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff

        # Rate limiting
        self._request_times: List[float] = []
        self._lock = asyncio.Lock()

        # HTTP client
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, cfg: EndpointConfig, timeout: float = 30.0) -> "LLMClient":
        return cls(
            endpoint=cfg.endpoint,
            api_key=cfg.credential,
            model=cfg.model,
            requests_per_minute=cfg.requests_per_minute,
            timeout=timeout,
        )

    @property
    def url(self) -> str:
        return f"{self.endpoint}/chat/completions"

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client exists."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def _wait_for_rate_limit(self):
        """Wait if we're at rate limit."""
        if self.requests_per_minute <= 0:
            return

        async with self._lock:
            now = time.monotonic()

            # Remove old requests (older than 60 seconds)
            self._request_times = [t for t in self._request_times if now - t < 60]

            # If at limit, wait
            if len(self._request_times) >= self.requests_per_minute:
                wait_time = 60 - (now - self._request_times[0]) + 0.5
                if wait_time > 0:
                    logger.debug(f"Rate limit: waiting {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.monotonic())

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        """
        Get a completion for a chat message list.

        Raises:
            LLMCallError: after the last failed attempt
        """
        last_error: Optional[LLMCallError] = None

        for attempt in range(self.retries):
            try:
                await self._wait_for_rate_limit()
                return await self._post(messages, max_tokens, temperature)
            except LLMCallError as e:
                last_error = e
                logger.warning(f"LLM request to {self.model} failed (attempt {attempt + 1}): {e}")

                # Client errors other than rate limiting will not improve on retry
                if e.status_code is not None and 400 <= e.status_code < 500 and e.status_code != 429:
                    break
                if attempt < self.retries - 1:
                    await asyncio.sleep(self.backoff * (2 ** attempt))

        raise last_error

    async def _post(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> str:
        client = self._ensure_client()

        try:
            response = await client.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": messages,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LLMCallError(
                f"API request failed: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise LLMCallError(f"API request failed: {e!r}") from e

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMCallError(f"Malformed completion payload: {e!r}") from e

        if not isinstance(content, str):
            raise LLMCallError("Completion content is not text")
        return content

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
