"""
Prompt Cache Module.

Caches raw LLM responses keyed by the prompt and the extracted document
text, so that re-uploading the same document does not pay for a second
model call.

Key derivation:
    sha256(prompt + context) as a hex digest. Concatenation order matters:
    swapping prompt and context gives a different key.

Expiry:
    Entries older than the TTL (24 hours by default) are treated as
    missing. Age is checked on every read and stale entries are dropped
    at that point; nothing sweeps the cache in the background.

Author: ML Engineering Team
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from config import get_config
from invoice_intake.utils.logger import get_logger
from .backend import InMemoryBackend

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60

ENTRY_PREFIX = "cache:entry:"
HITS_KEY = "cache:hits"
MISSES_KEY = "cache:misses"


@dataclass(frozen=True)
class CacheEntry:
    """A cached model response and the time it was stored (epoch seconds)."""
    response: str
    timestamp: float


def cache_key(prompt: str, context: str) -> str:
    """
    Derive the cache key for a prompt/context pair.

    Example:
        >>> len(cache_key("system prompt", "invoice text"))
        64
    """
    return hashlib.sha256((prompt + context).encode("utf-8")).hexdigest()


class PromptCache:
    """
    TTL cache for LLM responses.

    Attributes:
        backend: Shared key-value backend holding entries and counters
        ttl_seconds: Maximum entry age before it counts as a miss
        enabled: When False, every lookup misses and stores are ignored

    Example:
        >>> cache = PromptCache()
        >>> cache.store(SYSTEM_PROMPT, text, response)
        >>> cache.lookup(SYSTEM_PROMPT, text) == response
        True
    """

    def __init__(
        self,
        backend: Optional[InMemoryBackend] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        enabled: Optional[bool] = None
    ) -> None:
        """
        Initialize the prompt cache.

        Args:
            backend: Key-value backend. A private InMemoryBackend if None.
            ttl_seconds: Entry lifetime. Uses ``cache.ttl_seconds`` if None.
            clock: Returns the current time in epoch seconds.
            enabled: Uses ``cache.enabled`` if None.
        """
        self.backend = backend if backend is not None else InMemoryBackend()
        self.ttl_seconds = float(
            ttl_seconds if ttl_seconds is not None
            else get_config("cache.ttl_seconds", DEFAULT_TTL_SECONDS)
        )
        self.enabled = enabled if enabled is not None else get_config("cache.enabled", True)
        self._clock = clock

        logger.debug(
            f"PromptCache initialized (ttl={self.ttl_seconds:.0f}s, enabled={self.enabled})"
        )

    def lookup(self, prompt: str, context: str) -> Optional[str]:
        """
        Return the cached response for a prompt/context pair.

        Args:
            prompt: The system prompt.
            context: The document text.

        Returns:
            The cached response, or None on a miss or an expired entry.
        """
        if not self.enabled:
            return None

        key = ENTRY_PREFIX + cache_key(prompt, context)
        entry: Optional[CacheEntry] = self.backend.get(key)

        if entry is None:
            self.backend.increment(MISSES_KEY)
            logger.debug("Cache miss")
            return None

        age = self._clock() - entry.timestamp
        if age >= self.ttl_seconds:
            self.backend.delete(key)
            self.backend.increment(MISSES_KEY)
            logger.debug(f"Cache entry expired ({age:.0f}s old)")
            return None

        self.backend.increment(HITS_KEY)
        logger.debug(f"Cache hit ({age:.0f}s old)")
        return entry.response

    def store(self, prompt: str, context: str, response: str) -> None:
        """Store a response, replacing any previous entry for the key."""
        if not self.enabled:
            return

        key = ENTRY_PREFIX + cache_key(prompt, context)
        self.backend.put(key, CacheEntry(response=response, timestamp=self._clock()))
        logger.debug(f"Cached response ({len(response)} characters)")

    def stats(self) -> Dict[str, int]:
        """Hit and miss counters plus the number of stored entries."""
        return {
            "hits": self.backend.get(HITS_KEY, 0),
            "misses": self.backend.get(MISSES_KEY, 0),
            "entries": len(self.backend.keys(ENTRY_PREFIX)),
        }
