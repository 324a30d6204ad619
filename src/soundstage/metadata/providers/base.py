"""Base provider interface with security, rate limiting, and retry logic.

SECURITY REQUIREMENTS:
- API keys are injected by the caller (see soundstage.config.Settings)
- API keys MUST NEVER be hardcoded
- API keys MUST NEVER appear in logs or error messages
- Rate limits MUST be enforced to prevent API bans
- Retry logic with exponential backoff for resilience
"""

import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anyio
import httpx

from soundstage.core.errors import SoundstageError

T = TypeVar("T")

_RETRYABLE_STATUS: frozenset[int] = frozenset({429, 500, 502, 503, 504})


class ProviderError(SoundstageError):
    """Base error for provider-related failures."""

    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    pass


class ProviderUnavailableError(ProviderError):
    """Raised when provider API is unavailable."""

    pass


class BaseProvider(ABC):
    """Base class for metadata providers with security and resilience.

    Features:
    - Injected API key (never hardcoded, masked in str/repr)
    - Sliding-window rate limiting per provider
    - Exponential backoff retry logic
    - Secure error handling (keys never exposed)
    """

    def __init__(
        self,
        provider_name: str,
        api_key: str | None = None,
        requires_api_key: bool = True,
        rate_limit: int = 40,
        rate_window_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_base_delay: float = 1.0,
    ):
        """Initialize provider with secure configuration.

        Args:
            provider_name: Name of the provider (for logging)
            api_key: API key or bearer token
            requires_api_key: Whether construction without a key is an error
            rate_limit: Max requests per rate window (conservative)
            rate_window_seconds: Length of the sliding rate window
            max_retries: Maximum attempts for failed requests
            backoff_base_delay: First retry delay in seconds

        Raises:
            ValueError: If an API key is required but empty
        """
        self.provider_name = provider_name
        self.rate_limit = rate_limit
        self.rate_window_seconds = rate_window_seconds
        self.max_retries = max_retries
        self.backoff_base_delay = backoff_base_delay

        if requires_api_key and not api_key:
            raise ValueError(
                f"{provider_name} API key not configured. "
                "Pass one explicitly or set it in your environment."
            )
        self._api_key = api_key or None

        # Rate limiting: track request timestamps
        self._request_times: deque[float] = deque()

    def __str__(self) -> str:
        """String representation with API key MASKED for security."""
        if self._api_key:
            return f"{self.provider_name}Provider(api_key=***)"
        return f"{self.provider_name}Provider(no_auth_required)"

    def __repr__(self) -> str:
        """Repr with API key MASKED for security."""
        return self.__str__()

    def _prune_request_times(self, now: float) -> None:
        window_start = now - self.rate_window_seconds
        while self._request_times and self._request_times[0] < window_start:
            self._request_times.popleft()

    def check_rate_limit(self) -> bool:
        """Check if we're within rate limit, update tracking.

        Returns:
            True if request allowed (and recorded), False if rate limited
        """
        now = time.monotonic()
        self._prune_request_times(now)

        if len(self._request_times) >= self.rate_limit:
            return False

        self._request_times.append(now)
        return True

    async def wait_for_rate_slot(self) -> None:
        """Sleep until the sliding window has room, then record the request.

        Scans issue bursts of lookups; waiting keeps them inside the limit
        instead of degrading every request past it to "no metadata".
        """
        while not self.check_rate_limit():
            oldest = self._request_times[0]
            delay = max(oldest + self.rate_window_seconds - time.monotonic(), 0.01)
            await anyio.sleep(delay)

    def calculate_backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay for retry attempt.

        Args:
            attempt: Retry attempt number (1-indexed)

        Returns:
            Delay in seconds (exponential: 1s, 2s, 4s, 8s...), capped at 60s
        """
        delay: float = min(self.backoff_base_delay * (2 ** (attempt - 1)), 60.0)
        return delay

    async def _execute_with_retry(
        self, func: Callable[[], Awaitable[T]], operation_name: str = "request"
    ) -> T:
        """Execute an async function with automatic retry on transient errors.

        Retries on:
        - 429 Too Many Requests (rate limit)
        - 500, 502, 503, 504 (server errors)
        - Network timeouts and connection failures

        Does NOT retry on:
        - 4xx errors (except 429) - these are client errors

        Args:
            func: Async function to execute
            operation_name: Name of operation for error messages

        Returns:
            Result from func()

        Raises:
            ProviderError: After max retries exceeded or non-retriable error
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            await self.wait_for_rate_slot()
            try:
                return await func()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                last_error = e

                if status_code == 429 and attempt >= self.max_retries:
                    raise RateLimitError(
                        f"{self.provider_name} {operation_name} still rate limited "
                        f"after {self.max_retries} attempts"
                    ) from e
                if status_code not in _RETRYABLE_STATUS or attempt >= self.max_retries:
                    raise ProviderError(
                        f"{self.provider_name} {operation_name} failed "
                        f"with HTTP {status_code}"
                    ) from e

            except httpx.TransportError as e:
                last_error = e

                if attempt >= self.max_retries:
                    raise ProviderUnavailableError(
                        f"{self.provider_name} {operation_name} unreachable after "
                        f"{self.max_retries} attempts: {type(e).__name__}"
                    ) from e

            await anyio.sleep(self.calculate_backoff_delay(attempt))

        # Only reachable when max_retries < 1
        raise ProviderError(
            f"{self.provider_name} {operation_name} failed after "
            f"{self.max_retries} retries"
        ) from last_error

    @property
    def api_key(self) -> str | None:
        """Get API key (for internal use only - never log this!)."""
        return self._api_key

    @abstractmethod
    async def search(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:
        """Search for entities by name.

        Args:
            query: Search query string
            **kwargs: Provider-specific search parameters

        Returns:
            List of search result dictionaries, provider-ranked

        Raises:
            ProviderError: On search failure
        """
        pass

    @abstractmethod
    async def get_details(self, entity_id: str, **kwargs: Any) -> dict[str, Any] | None:
        """Get detailed information for an entity.

        Args:
            entity_id: Unique entity identifier
            **kwargs: Provider-specific parameters

        Returns:
            Entity details dictionary, or None if not found

        Raises:
            ProviderError: On fetch failure
        """
        pass
