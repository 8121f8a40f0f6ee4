"""
Token Counting Module.

Token usage data and the character-based token estimate used when the
model provider does not report usage.
"""

import math
from dataclasses import dataclass


CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage of a single model call.

    Attributes:
        input_tokens: Tokens sent to the model (system + user prompt)
        output_tokens: Tokens produced by the model
    """
    input_tokens: int = 0
    output_tokens: int = 0

    def __post_init__(self):
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError(
                f"Token counts must be non-negative "
                f"(input={self.input_tokens}, output={self.output_tokens})"
            )

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


def estimate_tokens(text: str) -> int:
    """Approximate the token count of a text.

    Uses the rough rule of four characters per token. This is not a
    tokenizer and will be off for non-English text or dense numbers; it
    only feeds savings estimates and usage fallbacks.

    Args:
        text: Any text.

    Returns:
        ceil(len(text) / 4), 0 for empty text.

    Example:
        >>> estimate_tokens("abcde")
        2
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
