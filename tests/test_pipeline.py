"""
Tests for the end-to-end intake pipeline.

The LLM and text extraction are faked; the store is a real SQLite file.
"""

import asyncio
from decimal import Decimal

import pytest

from conftest import invoice_payload
from invoice_intake.accounting import TokenUsage, estimate_tokens
from invoice_intake.input_handler import UploadedFile
from invoice_intake.model_inference import SYSTEM_PROMPT, build_user_message
from invoice_intake.output_handler import InvoiceStatus, fingerprint
from invoice_intake.pipeline import PipelineStage, ProcessingResult
from invoice_intake.utils.exceptions import (
    DuplicateInvoiceError,
    InvalidAmountError,
    InvalidDateError,
    InvalidUploadError,
    InvoiceNotFoundError,
    MalformedModelOutputError,
    MissingFieldError,
    NotAnInvoiceError
)


class TestProcess:
    """Happy path and bookkeeping."""

    @pytest.mark.asyncio
    async def test_stores_processed_invoice(self, pipeline, store, pdf_upload):
        result = await pipeline.process(pdf_upload, document_id="doc-1")

        invoice = result.invoice
        assert invoice.status is InvoiceStatus.PROCESSED
        assert invoice.document_id == "doc-1"
        assert invoice.amount == 5000
        assert invoice.duplicate_checksum == fingerprint("Acme", "INV-100", 5000)
        assert [item.amount for item in invoice.line_items] == [3000, 2000]
        assert store.get(invoice.id).invoice_number == "INV-100"

    @pytest.mark.asyncio
    async def test_records_stages_in_order(self, pipeline, pdf_upload):
        result = await pipeline.process(pdf_upload)

        assert result.stages == [
            PipelineStage.RECEIVED,
            PipelineStage.TEXT_EXTRACTED,
            PipelineStage.LLM_INVOKED,
            PipelineStage.VALIDATED,
            PipelineStage.DUPLICATE_CHECKED,
            PipelineStage.COSTED,
            PipelineStage.PERSISTED,
        ]

    @pytest.mark.asyncio
    async def test_cost_uses_reported_usage(self, pipeline, pdf_upload):
        result = await pipeline.process(pdf_upload)

        assert result.invoice.token_usage == TokenUsage(1000, 500)
        assert result.invoice.processing_cost == Decimal("0.025")
        assert result.used_cache is False
        assert result.tokens_saved == 0

    @pytest.mark.asyncio
    async def test_usage_falls_back_to_estimates(self, pipeline, llm, text_extractor, pdf_upload):
        llm.answer_with(invoice_payload(), usage=None)

        result = await pipeline.process(pdf_upload)

        expected_input = estimate_tokens(SYSTEM_PROMPT + build_user_message(text_extractor.text))
        assert result.invoice.token_usage.input_tokens == expected_input
        assert result.invoice.token_usage.output_tokens == estimate_tokens(llm.content)

    @pytest.mark.asyncio
    async def test_accountant_records_usage(self, pipeline, pdf_upload):
        result = await pipeline.process(pdf_upload)

        record = pipeline.accountant.get_record(result.invoice.id)
        assert record.cost == Decimal("0.025")
        assert pipeline.accountant.totals()["usage:invoices"] == 1

    @pytest.mark.asyncio
    async def test_to_dict_is_json_ready(self, pipeline, pdf_upload):
        result = await pipeline.process(pdf_upload)

        payload = result.to_dict()
        assert payload["invoice"]["amount"] == 5000
        assert payload["invoice"]["processingCost"] == "0.025"
        assert payload["stages"][-1] == "persisted"


class TestPromptCache:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_llm(self, pipeline, llm, text_extractor, pdf_upload):
        cached = llm.content
        pipeline.cache.store(SYSTEM_PROMPT, text_extractor.text, cached)

        result = await pipeline.process(pdf_upload)

        assert llm.calls == 0
        assert result.used_cache is True
        assert result.tokens_saved == estimate_tokens(cached)
        assert result.invoice.token_usage == TokenUsage(0, 0)
        assert result.invoice.processing_cost == Decimal("0")
        assert PipelineStage.CACHE_HIT in result.stages

    @pytest.mark.asyncio
    async def test_second_upload_of_same_text_hits_cache(self, pipeline, llm, store, pdf_upload):
        await pipeline.process(pdf_upload)
        store.delete(store.get_all()[0].id)

        result = await pipeline.process(pdf_upload)

        assert llm.calls == 1
        assert result.used_cache is True

    @pytest.mark.asyncio
    async def test_malformed_output_is_not_cached(self, pipeline, llm, pdf_upload):
        llm.answer_with("Sorry, I cannot help with that.")

        with pytest.raises(MalformedModelOutputError) as first:
            await pipeline.process(pdf_upload)
        with pytest.raises(MalformedModelOutputError):
            await pipeline.process(pdf_upload)

        assert llm.calls == 2
        assert first.value.stage == PipelineStage.LLM_INVOKED.value

    @pytest.mark.asyncio
    async def test_not_an_invoice_is_cached(self, pipeline, llm, pdf_upload):
        llm.answer_with({"error": "This document is not an invoice"})

        with pytest.raises(NotAnInvoiceError) as first:
            await pipeline.process(pdf_upload)
        with pytest.raises(NotAnInvoiceError):
            await pipeline.process(pdf_upload)

        assert llm.calls == 1
        assert first.value.stage == PipelineStage.LLM_INVOKED.value

    @pytest.mark.asyncio
    async def test_llm_call_survives_caller_cancellation(self, pipeline, llm, text_extractor, pdf_upload):
        llm.started = asyncio.Event()
        llm.gate = asyncio.Event()

        task = asyncio.create_task(pipeline.process(pdf_upload))
        await llm.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        llm.gate.set()
        for _ in range(5):
            await asyncio.sleep(0)

        assert pipeline.cache.lookup(SYSTEM_PROMPT, text_extractor.text) == llm.content


class TestRejections:

    @pytest.mark.asyncio
    async def test_invalid_mime_type_rejected_before_extraction(self, pipeline, text_extractor):
        upload = UploadedFile("invoice.gif", "image/gif", b"GIF89a")

        with pytest.raises(InvalidUploadError) as excinfo:
            await pipeline.process(upload)

        assert text_extractor.calls == 0
        assert excinfo.value.stage == "received"

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected(self, pipeline, text_extractor):
        upload = UploadedFile("big.pdf", "application/pdf", b"x" * (10 * 1024 * 1024 + 1))

        with pytest.raises(InvalidUploadError):
            await pipeline.process(upload)
        assert text_extractor.calls == 0

    @pytest.mark.asyncio
    async def test_missing_due_date(self, pipeline, llm, store, pdf_upload):
        payload = invoice_payload()
        del payload["dueDate"]
        llm.answer_with(payload, TokenUsage(10, 10))

        with pytest.raises(MissingFieldError) as excinfo:
            await pipeline.process(pdf_upload)

        assert excinfo.value.field == "dueDate"
        assert store.get_count() == 0

    @pytest.mark.asyncio
    async def test_invalid_invoice_date(self, pipeline, llm, store, pdf_upload):
        llm.answer_with(invoice_payload(invoiceDate="not-a-date"), TokenUsage(10, 10))

        with pytest.raises(InvalidDateError):
            await pipeline.process(pdf_upload)
        assert store.get_count() == 0

    @pytest.mark.asyncio
    async def test_partial_dates_rejected(self, pipeline, llm, store, pdf_upload):
        llm.answer_with(invoice_payload(invoiceDate="5", dueDate="March"), TokenUsage(10, 10))

        with pytest.raises(InvalidDateError) as excinfo:
            await pipeline.process(pdf_upload)

        assert excinfo.value.field == "invoiceDate"
        assert excinfo.value.stage == PipelineStage.VALIDATED.value
        assert store.get_count() == 0

    @pytest.mark.asyncio
    async def test_negative_amount(self, pipeline, llm, pdf_upload):
        llm.answer_with(invoice_payload(amount=-100), TokenUsage(10, 10))

        with pytest.raises(InvalidAmountError):
            await pipeline.process(pdf_upload)


class TestDuplicates:

    @pytest.mark.asyncio
    async def test_exact_duplicate_rejected_and_conflict_flagged(
        self, pipeline, llm, text_extractor, store, pdf_upload
    ):
        first = await pipeline.process(pdf_upload)

        with pytest.raises(DuplicateInvoiceError) as excinfo:
            await pipeline.process(pdf_upload)
        assert excinfo.value.existing_id == first.invoice.id
        assert excinfo.value.stage == "duplicate_checked"
        assert "with amount 50.00 already exists" in excinfo.value.message

        text_extractor.text = "ACME INVOICE INV-100 total $75.00"
        llm.answer_with(invoice_payload(amount=7500, lineItems=[]), TokenUsage(10, 10))
        second = await pipeline.process(pdf_upload)

        assert second.invoice.conflict_with == first.invoice.id
        assert second.warnings
        assert store.get_count() == 2

    @pytest.mark.asyncio
    async def test_process_many_returns_results_and_errors(self, pipeline, pdf_upload):
        bad = UploadedFile("note.txt", "text/plain", b"hello")

        outcomes = await pipeline.process_many([pdf_upload, bad])

        assert isinstance(outcomes[0], ProcessingResult)
        assert isinstance(outcomes[1], InvalidUploadError)


class TestEdit:

    @pytest.mark.asyncio
    async def test_edit_with_display_amount(self, pipeline, store, pdf_upload):
        result = await pipeline.process(pdf_upload)
        data = invoice_payload(amount="$45.00", lineItems=[{"description": "Widgets", "amount": "$45.00"}])

        edited = await pipeline.edit(result.invoice.id, data)

        assert edited.amount == 4500
        assert edited.status is InvoiceStatus.EDITED
        stored = store.get(result.invoice.id)
        assert stored.amount == 4500
        assert stored.duplicate_checksum == fingerprint("Acme", "INV-100", 4500)

    @pytest.mark.asyncio
    async def test_edit_keeps_usage_and_cost(self, pipeline, store, pdf_upload):
        result = await pipeline.process(pdf_upload)

        await pipeline.edit(result.invoice.id, invoice_payload(amount=4200))

        stored = store.get(result.invoice.id)
        assert stored.processing_cost == Decimal("0.025")
        assert stored.token_usage == TokenUsage(1000, 500)

    @pytest.mark.asyncio
    async def test_edit_unknown_invoice(self, pipeline):
        with pytest.raises(InvoiceNotFoundError):
            await pipeline.edit("missing-id", invoice_payload())

    @pytest.mark.asyncio
    async def test_edit_validates_before_lookup(self, pipeline):
        with pytest.raises(MissingFieldError):
            await pipeline.edit("missing-id", invoice_payload(vendorName="  "))


class TestStatistics:

    @pytest.mark.asyncio
    async def test_usage_statistics_over_store(self, pipeline, store, pdf_upload):
        await pipeline.process(pdf_upload)
        store.delete(store.get_all()[0].id)
        await pipeline.process(pdf_upload)

        stats = await pipeline.usage_statistics()

        assert stats.invoice_count == 1
        assert stats.total_tokens_saved > 0

    @pytest.mark.asyncio
    async def test_session_totals_count_cache_hits(self, pipeline, llm, text_extractor, pdf_upload):
        cached = llm.content
        pipeline.cache.store(SYSTEM_PROMPT, text_extractor.text, cached)

        await pipeline.process(pdf_upload)
        totals = pipeline.session_totals()

        assert totals["invoices"] == 1
        assert totals["cache_hits"] == 1
        assert totals["tokens_saved"] == estimate_tokens(cached)
        assert Decimal(totals["cost"]) == 0
        assert totals["cache"]["hits"] == 1
        assert totals["cache"]["misses"] == 0
