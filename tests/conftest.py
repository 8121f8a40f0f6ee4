"""
Shared fixtures for the invoice intake test suite.

The LLM and the text extractor are replaced by in-process fakes that
count their calls; the store is a throwaway SQLite file per test.
"""

import json
import logging

import pytest

from config import ConfigurationManager, CONFIG_ENV_VAR
from invoice_intake.accounting import TokenUsage
from invoice_intake.caching import InMemoryBackend, PromptCache
from invoice_intake.input_handler import UploadedFile
from invoice_intake.model_inference import LLMResponse, SYSTEM_PROMPT
from invoice_intake.output_handler import DatabaseHandler
from invoice_intake.pipeline import InvoicePipeline


def invoice_payload(**overrides):
    """A complete model answer for an Acme invoice, in cents."""
    payload = {
        "customerName": "Globex LLC",
        "vendorName": "Acme",
        "invoiceNumber": "INV-100",
        "invoiceDate": "2024-03-01",
        "dueDate": "2024-03-31",
        "amount": 5000,
        "lineItems": [
            {"description": "Widgets", "amount": 3000},
            {"description": "Shipping", "amount": 2000},
        ],
    }
    payload.update(overrides)
    return payload


class FakeLLM:
    """Stands in for InvoiceExtractor; answers with ``content``."""

    def __init__(self, content="", usage=None, model_name="gpt-4-turbo-preview"):
        self.content = content
        self.usage = usage
        self.model_name = model_name
        self.system_prompt = SYSTEM_PROMPT
        self.calls = 0
        self.gate = None
        self.started = None

    def answer_with(self, payload, usage=None):
        self.content = payload if isinstance(payload, str) else json.dumps(payload)
        self.usage = usage

    async def complete(self, text):
        self.calls += 1
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        return LLMResponse(content=self.content, usage=self.usage, model=self.model_name)


class FakeTextExtractor:
    """Stands in for TextExtractor; returns ``text`` for any document."""

    def __init__(self, text="ACME INVOICE INV-100 total $50.00"):
        self.text = text
        self.calls = 0

    async def extract_text(self, data, mime_type):
        self.calls += 1
        return self.text


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Each test reads the bundled settings.yaml from scratch."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logger changes made by CLI tests."""
    yield
    app_logger = logging.getLogger("invoice_intake")
    app_logger.handlers.clear()
    app_logger.propagate = True
    app_logger.setLevel(logging.NOTSET)


@pytest.fixture
def store(tmp_path):
    return DatabaseHandler(tmp_path / "invoices.db")


@pytest.fixture
def llm():
    fake = FakeLLM()
    fake.answer_with(invoice_payload(), TokenUsage(1000, 500))
    return fake


@pytest.fixture
def text_extractor():
    return FakeTextExtractor()


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def pipeline(store, llm, text_extractor, backend):
    return InvoicePipeline(
        store=store,
        extractor=llm,
        text_extractor=text_extractor,
        cache=PromptCache(backend=backend, ttl_seconds=86400, enabled=True),
        backend=backend,
    )


@pytest.fixture
def pdf_upload():
    return UploadedFile("invoice.pdf", "application/pdf", b"%PDF-1.4 fake")


def make_invoice(**overrides):
    """A stored-invoice record with sensible defaults."""
    from datetime import date, datetime, timezone
    from decimal import Decimal

    from invoice_intake.output_handler import Invoice, fingerprint
    from invoice_intake.postprocessor import LineItem
    from invoice_intake.utils.helpers import generate_id

    values = {
        "id": generate_id(),
        "document_id": "doc-1",
        "customer_name": "Globex LLC",
        "vendor_name": "Acme",
        "invoice_number": "INV-100",
        "invoice_date": date(2024, 3, 1),
        "due_date": date(2024, 3, 31),
        "amount": 5000,
        "line_items": [LineItem("Widgets", 5000)],
        "token_usage": TokenUsage(1000, 500),
        "processing_cost": Decimal("0.025"),
        "created_at": datetime(2024, 3, 2, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    if "duplicate_checksum" not in overrides:
        values["duplicate_checksum"] = fingerprint(
            values["vendor_name"], values["invoice_number"], values["amount"]
        )
    return Invoice(**values)
