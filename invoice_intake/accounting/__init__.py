"""
Accounting Module for the Invoice Intake System.

This module provides:
    - Token usage data and character-based token estimates
    - Per-model pricing and exact Decimal cost computation
    - Per-invoice usage records, running totals and usage statistics
"""

from .token_counter import TokenUsage, estimate_tokens
from .pricing import ModelPricing, PricingTable, calculate_cost
from .accountant import UsageAccountant, UsageRecord, UsageStatistics, summarize_usage

__all__ = [
    'TokenUsage',
    'estimate_tokens',
    'ModelPricing',
    'PricingTable',
    'calculate_cost',
    'UsageAccountant',
    'UsageRecord',
    'UsageStatistics',
    'summarize_usage',
]
