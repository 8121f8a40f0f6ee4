"""
Key-Value Backend Module.

Shared state for the prompt cache and the usage accountant lives in a
small key-value backend. Every operation takes the backend lock, so a
read-modify-write on a single key (``increment``) is atomic even when
requests run concurrently in worker threads.

Author: ML Engineering Team
"""

import threading
from typing import Any, Dict, List, Optional

from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class InMemoryBackend:
    """
    Thread-safe in-memory key-value store.

    Values are kept for the lifetime of the process. There is no size
    based eviction; callers expire their own entries.

    Example:
        >>> backend = InMemoryBackend()
        >>> backend.put("a", 1)
        >>> backend.increment("hits")
        1
        >>> backend.get("a")
        1
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if the key existed."""
        with self._lock:
            return self._data.pop(key, None) is not None

    def increment(self, key: str, amount: int = 1) -> int:
        """
        Atomically add ``amount`` to a numeric counter.

        Missing counters start at zero.

        Returns:
            The counter value after the increment.
        """
        with self._lock:
            value = self._data.get(key, 0) + amount
            self._data[key] = value
            return value

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        """List keys, optionally only those starting with ``prefix``."""
        with self._lock:
            if prefix is None:
                return list(self._data)
            return [key for key in self._data if key.startswith(prefix)]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
        logger.debug("Backend cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
