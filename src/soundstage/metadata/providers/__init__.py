"""Metadata providers.

Security: API keys are injected by the caller and never logged.
Rate limiting: Each provider enforces conservative limits to prevent bans.
"""

from soundstage.metadata.providers.base import (
    BaseProvider,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
)
from soundstage.metadata.providers.tmdb import TMDBProvider

__all__ = [
    "BaseProvider",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "TMDBProvider",
]
