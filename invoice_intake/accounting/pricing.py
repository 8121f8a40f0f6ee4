"""
Pricing Module.

Per-model token prices and exact cost computation. All money values are
Decimal; nothing is rounded here so that per-invoice costs add up
exactly. Rounding is left to whoever displays the number.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from config import get_config
from invoice_intake.utils.exceptions import ConfigurationError

THOUSAND = Decimal("1000")

DEFAULT_PRICING = {
    "gpt-4-turbo-preview": {"input_per_1k": "0.01", "output_per_1k": "0.03"},
    "gpt-4": {"input_per_1k": "0.03", "output_per_1k": "0.06"},
}


@dataclass(frozen=True)
class ModelPricing:
    """USD price per 1K input and output tokens for one model."""
    input_per_1k: Decimal
    output_per_1k: Decimal

    @property
    def blended_per_1k(self) -> Decimal:
        """Mean of the input and output price, used for savings estimates."""
        return (self.input_per_1k + self.output_per_1k) / 2


@dataclass(frozen=True)
class PricingTable:
    """Pricing for every model the pipeline may call."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not in the table
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]

    @classmethod
    def from_dict(cls, table: Dict[str, Dict[str, object]]) -> "PricingTable":
        """Build a table from ``{model: {input_per_1k, output_per_1k}}``.

        Prices go through ``str`` before Decimal so that YAML floats such
        as 0.01 keep their written value.
        """
        prices = {}
        for model, entry in table.items():
            try:
                prices[model] = ModelPricing(
                    input_per_1k=Decimal(str(entry["input_per_1k"])),
                    output_per_1k=Decimal(str(entry["output_per_1k"]))
                )
            except (KeyError, TypeError, ArithmeticError) as e:
                raise ConfigurationError(f"llm.pricing.{model}", str(e)) from e
        return cls(prices)

    @classmethod
    def from_config(cls, table: Optional[Dict[str, Dict[str, object]]] = None) -> "PricingTable":
        """Load the table from ``llm.pricing``, falling back to built-in prices."""
        return cls.from_dict(table or get_config("llm.pricing", DEFAULT_PRICING))


def calculate_cost(input_tokens: int, output_tokens: int, pricing: ModelPricing) -> Decimal:
    """Exact cost of a model call.

    cost = input/1000 * input_per_1k + output/1000 * output_per_1k

    Args:
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        pricing: Prices of the model that was called

    Returns:
        Unrounded Decimal cost in USD

    Raises:
        ValueError: If a token count is negative

    Example:
        >>> calculate_cost(1000, 500, ModelPricing(Decimal("0.01"), Decimal("0.03")))
        Decimal('0.025')
    """
    if input_tokens < 0 or output_tokens < 0:
        raise ValueError(
            f"Token counts must be non-negative (input={input_tokens}, output={output_tokens})"
        )

    input_cost = Decimal(input_tokens) / THOUSAND * pricing.input_per_1k
    output_cost = Decimal(output_tokens) / THOUSAND * pricing.output_per_1k
    return input_cost + output_cost
