"""
Usage Accountant Module.

Records what each processed invoice cost in tokens and money, keeps
running totals in the shared backend, and summarizes usage over a set of
records for reporting.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from invoice_intake.caching.backend import InMemoryBackend
from invoice_intake.utils.logger import get_logger
from .pricing import ModelPricing, THOUSAND
from .token_counter import TokenUsage

# Initialize module logger
logger = get_logger(__name__)

RECORD_PREFIX = "usage:record:"
COUNTER_KEYS = (
    "usage:invoices",
    "usage:input_tokens",
    "usage:output_tokens",
    "usage:tokens_saved",
    "usage:cache_hits",
    "usage:cost",
)


@dataclass(frozen=True)
class UsageRecord:
    """
    Token and cost figures of one processed invoice.

    Attributes:
        invoice_id: Invoice the usage belongs to
        usage: Token usage of the model call (0/0 on a cache hit)
        cost: Exact cost of the model call
        tokens_saved: Estimated tokens a cache hit avoided
        used_cache: Whether the response came from the cache
    """
    invoice_id: str
    usage: TokenUsage
    cost: Decimal
    tokens_saved: int = 0
    used_cache: bool = False


@dataclass(frozen=True)
class UsageStatistics:
    """Aggregate usage over a set of invoices."""
    invoice_count: int
    average_input_tokens: float
    average_output_tokens: float
    average_total_tokens: float
    average_cost: Decimal
    total_tokens_saved: int
    cost_savings: Decimal

    def to_dict(self) -> dict:
        return {
            "invoice_count": self.invoice_count,
            "average_input_tokens": self.average_input_tokens,
            "average_output_tokens": self.average_output_tokens,
            "average_total_tokens": self.average_total_tokens,
            "average_cost": str(self.average_cost),
            "total_tokens_saved": self.total_tokens_saved,
            "cost_savings": str(self.cost_savings),
        }


def summarize_usage(records: Iterable[UsageRecord], pricing: ModelPricing) -> UsageStatistics:
    """
    Compute usage statistics over a set of records.

    Averages are taken over every record, cache hits included. Savings
    price each saved token at the mean of the input and output price:
    ``saved / 1000 * (input_per_1k + output_per_1k) / 2``.

    Args:
        records: Usage records, e.g. from the store or the accountant.
        pricing: Prices used for the savings estimate.

    Returns:
        UsageStatistics; all zeros for an empty input.
    """
    records = list(records)
    count = len(records)
    total_saved = sum(record.tokens_saved for record in records)
    savings = Decimal(total_saved) / THOUSAND * pricing.blended_per_1k

    if count == 0:
        return UsageStatistics(0, 0.0, 0.0, 0.0, Decimal("0"), 0, savings)

    total_input = sum(record.usage.input_tokens for record in records)
    total_output = sum(record.usage.output_tokens for record in records)
    total_cost = sum((record.cost for record in records), Decimal("0"))

    return UsageStatistics(
        invoice_count=count,
        average_input_tokens=total_input / count,
        average_output_tokens=total_output / count,
        average_total_tokens=(total_input + total_output) / count,
        average_cost=total_cost / count,
        total_tokens_saved=total_saved,
        cost_savings=savings,
    )


class UsageAccountant:
    """
    Keeps per-invoice usage records and running totals.

    Records and counters live in the shared backend, whose lock makes
    every counter update atomic.

    Example:
        >>> accountant = UsageAccountant()
        >>> accountant.record("inv-1", TokenUsage(1000, 500), Decimal("0.025"))
        >>> accountant.totals()["usage:input_tokens"]
        1000
    """

    def __init__(self, backend: Optional[InMemoryBackend] = None) -> None:
        self.backend = backend if backend is not None else InMemoryBackend()

    def record(
        self,
        invoice_id: str,
        usage: TokenUsage,
        cost: Decimal,
        tokens_saved: int = 0,
        used_cache: bool = False
    ) -> UsageRecord:
        """
        Store the usage of one invoice and update the running totals.

        Args:
            invoice_id: Invoice the usage belongs to.
            usage: Token usage of the model call.
            cost: Exact cost of the model call.
            tokens_saved: Tokens a cache hit avoided.
            used_cache: Whether the response came from the cache.

        Returns:
            The stored UsageRecord.
        """
        entry = UsageRecord(invoice_id, usage, cost, tokens_saved, used_cache)
        self.backend.put(RECORD_PREFIX + invoice_id, entry)

        self.backend.increment("usage:invoices")
        self.backend.increment("usage:input_tokens", usage.input_tokens)
        self.backend.increment("usage:output_tokens", usage.output_tokens)
        self.backend.increment("usage:tokens_saved", tokens_saved)
        self.backend.increment("usage:cache_hits", 1 if used_cache else 0)
        self.backend.increment("usage:cost", cost)

        logger.debug(
            f"Recorded usage for {invoice_id}: {usage.total_tokens} tokens, "
            f"cost ${cost}, saved {tokens_saved}"
        )
        return entry

    def get_record(self, invoice_id: str) -> Optional[UsageRecord]:
        return self.backend.get(RECORD_PREFIX + invoice_id)

    def records(self) -> List[UsageRecord]:
        """All stored usage records."""
        keys = self.backend.keys(RECORD_PREFIX)
        return [record for record in (self.backend.get(key) for key in keys) if record is not None]

    def totals(self) -> Dict[str, object]:
        """Current values of the running counters."""
        return {key: self.backend.get(key, 0) for key in COUNTER_KEYS}

    def summarize(self, pricing: ModelPricing) -> UsageStatistics:
        return summarize_usage(self.records(), pricing)
