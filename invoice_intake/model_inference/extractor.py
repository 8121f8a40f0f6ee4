"""
Invoice Extractor Module.

This module provides the InvoiceExtractor class that asks an OpenAI chat
model to turn extracted document text into structured invoice fields.

Approach:
    A fixed system prompt describes the expected JSON object and tells
    the model to answer {"error": "This document is not an invoice"} for
    anything else. The document text is sent as a single user message at
    temperature 0.

Author: ML Engineering Team
"""

import os
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import (
    LLMCallError,
    UnauthorizedError,
    UnconfiguredError
)
from invoice_intake.accounting.token_counter import TokenUsage

# Initialize module logger
logger = get_logger(__name__)


SYSTEM_PROMPT = """You are an expert invoice processor. Your task is to extract key information from the provided invoice text.
Please analyze the document and extract the following information in a structured JSON format:
- customerName
- vendorName
- invoiceNumber
- invoiceDate (in ISO format)
- dueDate (in ISO format)
- amount (in cents)
- lineItems (array of objects with description and amount)

First, verify that this is actually an invoice document. If it's not an invoice (e.g. it's a receipt or statement), respond with: {"error": "This document is not an invoice"}
If it is an invoice, respond with the extracted information in JSON format, not markdown (no ```json or ```).

Important:
- Dates must be in ISO format (YYYY-MM-DD)
- Amount must be in cents (multiply dollar amount by 100)
- Line item amounts must be in cents
- All fields are required"""


def build_user_message(text: str) -> str:
    """Wrap extracted document text into the user message."""
    return f"Here's the text extracted from the invoice. Please process it:\n\n{text}"


@dataclass(frozen=True)
class LLMResponse:
    """
    Raw completion returned by the model.

    Attributes:
        content: Completion text
        usage: Provider-reported token usage, None if not reported
        model: Model that produced the completion
    """
    content: str
    usage: Optional[TokenUsage]
    model: str


class InvoiceExtractor:
    """
    OpenAI-backed invoice field extractor.

    The API client is created on first use so that commands which never
    call the model (listing, editing) work without credentials.

    Attributes:
        model_name: Chat model used for extraction
        temperature: Sampling temperature
        timeout: Request timeout in seconds

    Example:
        >>> extractor = InvoiceExtractor()
        >>> response = await extractor.complete(text)
        >>> response.usage.input_tokens
        812
    """

    DEFAULT_MODEL = "gpt-4-turbo-preview"

    def __init__(
        self,
        model_name: Optional[str] = None,
        client=None,
        system_prompt: str = SYSTEM_PROMPT
    ) -> None:
        """
        Initialize the invoice extractor.

        Args:
            model_name: Chat model name. If None, uses ``llm.model``.
            client: Preconfigured AsyncOpenAI-compatible client. If None,
                    one is built from configuration on first use.
            system_prompt: Instructions sent with every request.
        """
        self.model_name = model_name or get_config("llm.model", self.DEFAULT_MODEL)
        self.temperature = get_config("llm.temperature", 0)
        self.timeout = get_config("llm.timeout_seconds", 60)
        self.api_key_env = get_config("llm.api_key_env", "OPENAI_API_KEY")
        self.system_prompt = system_prompt
        self._client = client

        logger.info(f"InvoiceExtractor initialized with model: {self.model_name}")

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            api_key = os.environ.get(self.api_key_env)
            if not api_key:
                raise UnconfiguredError(self.api_key_env)

            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=api_key, timeout=self.timeout)
        return self._client

    def build_messages(self, text: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": build_user_message(text)}
        ]

    async def complete(self, text: str) -> LLMResponse:
        """
        Send document text to the model.

        Args:
            text: Extracted document text.

        Returns:
            LLMResponse with the raw completion and reported usage.

        Raises:
            UnconfiguredError: If no API key is configured.
            UnauthorizedError: If the provider rejects the API key.
            LLMCallError: On timeouts and other API failures.
        """
        import openai

        client = self.client
        start_time = time.time()

        try:
            response = await client.chat.completions.create(
                model=self.model_name,
                temperature=self.temperature,
                messages=self.build_messages(text)
            )
        except openai.AuthenticationError as e:
            logger.error(f"OpenAI rejected the API key: {e}")
            raise UnauthorizedError("openai", str(e)) from e
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI request timed out after {self.timeout}s")
            raise LLMCallError(self.model_name, f"timeout: {e}") from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API call failed: {e}")
            raise LLMCallError(self.model_name, str(e)) from e

        content = response.choices[0].message.content or ""
        usage = self._read_usage(response)

        logger.info(
            f"LLM call completed in {time.time() - start_time:.2f}s "
            f"({usage.total_tokens if usage else 'unknown'} tokens)"
        )
        return LLMResponse(content=content, usage=usage, model=self.model_name)

    @staticmethod
    def _read_usage(response: Any) -> Optional[TokenUsage]:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        prompt_tokens = getattr(usage, "prompt_tokens", None)
        completion_tokens = getattr(usage, "completion_tokens", None)
        if prompt_tokens is None or completion_tokens is None:
            return None
        return TokenUsage(input_tokens=prompt_tokens, output_tokens=completion_tokens)

    def get_model_info(self) -> Dict[str, Any]:
        """Describe the configured model, for logs and the CLI."""
        return {
            'model_name': self.model_name,
            'temperature': self.temperature,
            'timeout_seconds': self.timeout,
            'api_key_env': self.api_key_env,
        }
