"""Configuration for feed requests and cache freshness."""

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import ConfigError

# The feed asks clients not to hammer it; shorter retry delays are refused.
MIN_RETRY_DELAY_MS = 50

DEFAULT_TIMEOUT = 30
DEFAULT_RETRY_LIMIT = 0
DEFAULT_RETRY_DELAY_MS = 100
DEFAULT_CACHE_MAX_AGE = 60


@dataclass
class TransportConfig:
    """
    Per-handler request settings.

    Attributes:
        timeout: Per-attempt deadline in seconds, covering connect, each
            read, and the total time spent reading the body. 0 disables it.
        retry_limit: Attempts made after the first one fails.
        retry_delay: Wait between attempts, in milliseconds (minimum 50).
        headers: Extra headers sent with every request.
        cancel_event: When set, no further attempt is started and any
            retry wait ends immediately.
    """

    timeout: float = DEFAULT_TIMEOUT
    retry_limit: int = DEFAULT_RETRY_LIMIT
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    headers: Dict[str, str] = field(default_factory=dict)
    cancel_event: Optional[threading.Event] = None

    def validate(self) -> None:
        """Raise ConfigError if these settings cannot be used."""
        if self.retry_delay < MIN_RETRY_DELAY_MS:
            raise ConfigError(
                f"Unable to use retry delay lower than {MIN_RETRY_DELAY_MS}ms (got {self.retry_delay}ms)"
            )
        if self.retry_limit < 0:
            raise ConfigError(f"Retry limit must not be negative (got {self.retry_limit})")
        if self.timeout < 0:
            raise ConfigError(f"Timeout must not be negative (got {self.timeout})")

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


@dataclass(frozen=True)
class CacheOptions:
    """
    Cache behaviour for a single lookup.

    A cached collection is reused only if it has been fetched before,
    use_cache is true, and it is no older than max_age seconds. A max_age
    of 0 never reuses anything.
    """

    use_cache: bool = True
    max_age: float = DEFAULT_CACHE_MAX_AGE

    @classmethod
    def no_cache(cls) -> "CacheOptions":
        """Options that force a refresh."""
        return cls(use_cache=False)

    @classmethod
    def max_age_of(cls, seconds: float) -> "CacheOptions":
        return cls(use_cache=True, max_age=seconds)
