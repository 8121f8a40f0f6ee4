"""
Caching Module for the Invoice Intake System.

This module provides:
    - A thread-safe key-value backend shared by cache and accounting
    - A TTL prompt cache for raw LLM responses
"""

from .backend import InMemoryBackend
from .prompt_cache import PromptCache, CacheEntry, cache_key

__all__ = ['InMemoryBackend', 'PromptCache', 'CacheEntry', 'cache_key']
