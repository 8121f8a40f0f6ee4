"""
Invoice Pipeline Module.

This module wires the components together into the intake flow:

    upload -> validation -> text extraction -> prompt cache / LLM
           -> field validation -> duplicate check -> costing -> store

Every rejection is raised as an InvoiceExtractionError subclass whose
``stage`` attribute names the step that failed. Nothing is persisted
for a rejected upload.

Usage:
    from invoice_intake.pipeline import InvoicePipeline

    pipeline = InvoicePipeline()
    result = await pipeline.process(UploadedFile.from_path("invoice.pdf"))
    print(result.invoice.amount)

Author: ML Engineering Team
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from invoice_intake.accounting import (
    PricingTable,
    TokenUsage,
    UsageAccountant,
    UsageStatistics,
    calculate_cost,
    estimate_tokens,
    summarize_usage
)
from invoice_intake.caching import InMemoryBackend, PromptCache
from invoice_intake.input_handler import InputHandler, TextExtractor, UploadedFile
from invoice_intake.model_inference import (
    InvoiceExtractor,
    LLMResponse,
    MalformedOutput,
    ModelOutput,
    NotAnInvoiceSignal,
    ParsedInvoice,
    build_user_message,
    parse_model_output
)
from invoice_intake.output_handler import (
    DatabaseHandler,
    DuplicateDetector,
    DuplicateStatus,
    Invoice,
    InvoicePage,
    InvoiceStatus,
    fingerprint
)
from invoice_intake.postprocessor import PostProcessor
from invoice_intake.utils.exceptions import (
    ConfigurationError,
    DuplicateInvoiceError,
    InvoiceExtractionError,
    InvoiceNotFoundError,
    MalformedModelOutputError,
    NotAnInvoiceError
)
from invoice_intake.utils.helpers import generate_id, utc_now
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class PipelineStage(str, Enum):
    """Steps an upload goes through."""
    RECEIVED = "received"
    TEXT_EXTRACTED = "text_extracted"
    CACHE_HIT = "cache_hit"
    LLM_INVOKED = "llm_invoked"
    VALIDATED = "validated"
    DUPLICATE_CHECKED = "duplicate_checked"
    COSTED = "costed"
    PERSISTED = "persisted"
    REJECTED = "rejected"


@dataclass
class ProcessingResult:
    """
    Outcome of a successfully processed upload.

    Attributes:
        invoice: The stored invoice
        used_cache: Whether the model answer came from the cache
        tokens_saved: Estimated tokens the cache hit avoided
        warnings: Non-fatal findings (conflicts, inconsistent totals)
        stages: Stages passed, in order
    """
    invoice: Invoice
    used_cache: bool = False
    tokens_saved: int = 0
    warnings: List[str] = field(default_factory=list)
    stages: List[PipelineStage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice": self.invoice.to_dict(),
            "usedCache": self.used_cache,
            "tokensSaved": self.tokens_saved,
            "warnings": list(self.warnings),
            "stages": [stage.value for stage in self.stages],
        }


class InvoicePipeline:
    """
    End-to-end invoice intake.

    Components are injectable; anything not given is built from
    configuration. The prompt cache and the usage accountant share one
    backend.

    Attributes:
        store: Invoice store
        extractor: LLM client
        text_extractor: PDF/OCR text extraction
        cache: Prompt cache for model answers
        accountant: Usage records and running totals
        pricing: Prices of the configured model

    Example:
        >>> pipeline = InvoicePipeline(store=DatabaseHandler("test.db"))
        >>> result = await pipeline.process(upload)
        >>> result.invoice.status
        <InvoiceStatus.PROCESSED: 'processed'>
    """

    def __init__(
        self,
        store: Optional[DatabaseHandler] = None,
        extractor: Optional[InvoiceExtractor] = None,
        text_extractor: Optional[TextExtractor] = None,
        cache: Optional[PromptCache] = None,
        accountant: Optional[UsageAccountant] = None,
        pricing_table: Optional[PricingTable] = None,
        input_handler: Optional[InputHandler] = None,
        backend: Optional[InMemoryBackend] = None
    ) -> None:
        self.backend = backend if backend is not None else InMemoryBackend()
        self.store = store or DatabaseHandler()
        self.extractor = extractor or InvoiceExtractor()
        self.text_extractor = text_extractor or TextExtractor()
        self.cache = cache or PromptCache(backend=self.backend)
        self.accountant = accountant or UsageAccountant(backend=self.backend)
        self.input_handler = input_handler or InputHandler()
        self.post_processor = PostProcessor()
        self.detector = DuplicateDetector(self.store)

        pricing_table = pricing_table or PricingTable.from_config()
        try:
            self.pricing = pricing_table.get_pricing(self.extractor.model_name)
        except ValueError as e:
            raise ConfigurationError("llm.pricing", str(e)) from e

        logger.info(f"InvoicePipeline initialized (model: {self.extractor.model_name})")

    @property
    def system_prompt(self) -> str:
        return self.extractor.system_prompt

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def process(self, upload: UploadedFile, document_id: Optional[str] = None) -> ProcessingResult:
        """
        Run one upload through the pipeline.

        Args:
            upload: The uploaded document.
            document_id: Reference to the stored document. Generated
                         when not given.

        Returns:
            ProcessingResult with the stored invoice.

        Raises:
            InvoiceExtractionError: Subclass describing the rejection,
                with ``stage`` set.
        """
        stages = [PipelineStage.RECEIVED]
        stage = PipelineStage.RECEIVED
        logger.debug(f"Received {upload!r}")

        try:
            self.input_handler.validate(upload)

            stage = PipelineStage.TEXT_EXTRACTED
            text = await self.text_extractor.extract_text(upload.data, upload.content_type)
            stages.append(stage)
            logger.debug(f"{upload.filename}: extracted {len(text)} characters")

            stage = PipelineStage.LLM_INVOKED
            output, usage, tokens_saved, used_cache = await self._interpret(text)
            stages.append(PipelineStage.CACHE_HIT if used_cache else PipelineStage.LLM_INVOKED)

            data = self._unwrap(output)

            stage = PipelineStage.VALIDATED
            processed = self.post_processor.process(data)
            fields = processed.fields
            warnings = list(processed.warnings)
            stages.append(stage)

            stage = PipelineStage.DUPLICATE_CHECKED
            check = await asyncio.to_thread(
                self.detector.check, fields.vendor_name, fields.invoice_number, fields.amount
            )
            if check.status is DuplicateStatus.DUPLICATE:
                raise DuplicateInvoiceError(
                    fields.vendor_name, fields.invoice_number, fields.amount, check.existing_id
                )
            conflict_with = None
            if check.status is DuplicateStatus.CONFLICT:
                conflict_with = check.existing_id
                warnings.append(
                    f"Invoice number {fields.invoice_number} from vendor \"{fields.vendor_name}\" "
                    f"already exists with a different amount ({check.existing_amount / 100:.2f})"
                )
            stages.append(stage)

            stage = PipelineStage.COSTED
            cost = calculate_cost(usage.input_tokens, usage.output_tokens, self.pricing)
            stages.append(stage)

            stage = PipelineStage.PERSISTED
            now = utc_now()
            invoice = Invoice.from_fields(
                generate_id(),
                document_id or generate_id(),
                fields,
                status=InvoiceStatus.PROCESSED,
                duplicate_checksum=check.checksum,
                token_usage=usage,
                processing_cost=cost,
                used_cache=used_cache,
                tokens_saved=tokens_saved,
                conflict_with=conflict_with,
                created_at=now,
                updated_at=now,
            )
            await asyncio.to_thread(self.store.insert, invoice)
            self.accountant.record(invoice.id, usage, cost, tokens_saved, used_cache)
            stages.append(stage)

        except InvoiceExtractionError as e:
            if e.stage is None:
                e.stage = stage.value
            stages.append(PipelineStage.REJECTED)
            logger.info(f"Rejected {upload.filename} at {e.stage}: [{e.reason}] {e.message}")
            raise

        logger.info(
            f"Processed {upload.filename} -> invoice {invoice.id} "
            f"({invoice.invoice_number}, {invoice.amount} cents, "
            f"{'cache hit' if used_cache else f'${cost}'})"
        )
        return ProcessingResult(
            invoice=invoice,
            used_cache=used_cache,
            tokens_saved=tokens_saved,
            warnings=warnings,
            stages=stages,
        )

    async def process_many(
        self,
        uploads: Sequence[UploadedFile]
    ) -> List[Union[ProcessingResult, BaseException]]:
        """
        Process independent uploads concurrently.

        Returns:
            One entry per upload, in order: a ProcessingResult or the
            exception that rejected it.
        """
        return await asyncio.gather(
            *(self.process(upload) for upload in uploads),
            return_exceptions=True
        )

    async def _interpret(self, text: str) -> Tuple[ModelOutput, TokenUsage, int, bool]:
        """
        Get the model's answer for a text, from the cache if possible.

        Returns:
            (parsed output, token usage, tokens saved, used cache)
        """
        cached = self.cache.lookup(self.system_prompt, text)
        if cached is not None:
            logger.debug("Using cached model response")
            return parse_model_output(cached), TokenUsage(0, 0), estimate_tokens(cached), True

        # Shielded so the call and the cache write complete even if the
        # caller is cancelled.
        response, output = await asyncio.shield(self._call_model(text))

        usage = response.usage
        if usage is None:
            usage = TokenUsage(
                input_tokens=estimate_tokens(self.system_prompt + build_user_message(text)),
                output_tokens=estimate_tokens(response.content)
            )
            logger.debug("Provider reported no usage, using estimates")
        return output, usage, 0, False

    async def _call_model(self, text: str) -> Tuple[LLMResponse, ModelOutput]:
        response = await self.extractor.complete(text)
        output = parse_model_output(response.content)
        if not isinstance(output, MalformedOutput):
            self.cache.store(self.system_prompt, text, response.content)
        return response, output

    @staticmethod
    def _unwrap(output: ModelOutput) -> Dict[str, Any]:
        if isinstance(output, ParsedInvoice):
            return output.data
        if isinstance(output, NotAnInvoiceSignal):
            raise NotAnInvoiceError(output.message)
        if isinstance(output, MalformedOutput):
            raise MalformedModelOutputError(output.reason, output.raw_output)
        raise TypeError(f"Unexpected model output: {type(output).__name__}")

    # ------------------------------------------------------------------
    # Stored invoices
    # ------------------------------------------------------------------

    async def edit(self, invoice_id: str, data: Dict[str, Any]) -> Invoice:
        """
        Replace the fields of a stored invoice with corrected values.

        Amounts may be display strings ("$45.00") or integer cents.
        Token usage and cost stay as recorded at intake, and no duplicate
        check is run; the store still refuses a checksum that another
        invoice already has.

        Args:
            invoice_id: Invoice to edit.
            data: Complete invoice record (all required fields).

        Returns:
            The updated invoice, with status ``edited``.

        Raises:
            ValidationError: Subclass for invalid fields.
            InvoiceNotFoundError: If the id is unknown.
            DuplicateInvoiceError: If the edit collides with another invoice.
        """
        processed = self.post_processor.process(data, display_amounts=True)
        fields = processed.fields

        invoice = await asyncio.to_thread(self.store.get, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        invoice.apply_edit(
            fields,
            fingerprint(fields.vendor_name, fields.invoice_number, fields.amount),
            utc_now()
        )
        await asyncio.to_thread(self.store.update, invoice)

        logger.info(f"Edited invoice {invoice_id} ({fields.invoice_number}, {fields.amount} cents)")
        return invoice

    async def get_invoice(self, invoice_id: str) -> Invoice:
        """
        Raises:
            InvoiceNotFoundError: If the id is unknown.
        """
        invoice = await asyncio.to_thread(self.store.get, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    async def list_invoices(
        self,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> InvoicePage:
        return await asyncio.to_thread(self.store.list_invoices, page, page_size, sort_by, sort_order)

    async def usage_statistics(self) -> UsageStatistics:
        """Usage statistics over every stored invoice."""
        invoices = await asyncio.to_thread(self.store.get_all)
        return summarize_usage((invoice.usage_record() for invoice in invoices), self.pricing)

    def session_totals(self) -> Dict[str, Any]:
        """Running totals and cache counters of this process."""
        totals = {key.split(":", 1)[1]: value for key, value in self.accountant.totals().items()}
        totals["cost"] = str(totals.get("cost", Decimal("0")))
        totals["cache"] = self.cache.stats()
        return totals
