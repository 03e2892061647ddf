"""
Purchase Order Extraction Orchestrator

End-to-end extraction for one document:
normalize -> anchor -> segment -> plan -> extract (per chunk) -> merge -> score

Single-chunk documents are extracted with one request. Longer documents
use a full request for the first chunk (header, supplier, totals and its
line items) and line-item-only requests for the rest. A failed chunk is
recorded as an issue and skipped; only a failed whole-document request is
terminal.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from ...models import (
    ExtractionMetadata,
    ExtractionPayload,
    LineItem,
    MergedExtraction,
    NormalizationResult,
    RawText,
)
from ..chunking.base import ChunkConfig, ChunkSpec, DEFAULT_CHUNK_CONFIG
from ..chunking.planner import ChunkPlanner
from ..llm.errors import AuthError, ExtractionError, ExtractionFailedError
from ..llm.openai_service import ExtractionClient, OutputSchema
from ..preprocessing.anchor_extractor import AnchorExtractor, AnchorOptions, AnchorResult, RegexAnchorExtractor
from ..preprocessing.text_normalizer import NormalizationOptions, TextNormalizer
from .confidence import ConfidenceScorer
from .merger import LineItemMerger
from .prompt_builder import LINE_ITEMS_SCHEMA, PURCHASE_ORDER_SCHEMA, PromptBuilder
from .response_parser import ResponseParser
from .segmenter import DocumentSegmenter, Segments

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = '\n\n[Document truncated due to length]'
PREPROCESSING_FAILED = 'Text preprocessing failed - raw text used for AI parsing'
NOTHING_EXTRACTED = 'No purchase order number or line items were extracted'


class ExtractionStage(str, Enum):
    """Orchestrator stages"""
    NORMALIZE = "normalize"
    ANCHOR = "anchor"
    SEGMENT = "segment"
    PLAN = "plan"
    EXTRACT = "extract"
    MERGE = "merge"
    SCORE = "score"


class ExtractionOptions(BaseModel):
    """Per-request extraction options"""

    chunking: Dict[str, Any] = Field(default_factory=dict)
    disable_text_preprocessing: bool = False
    disable_anchor_extraction: bool = False
    vendor_key: Optional[str] = None
    anchor_pattern_set: Optional[str] = None
    # AnchorOptions fields for this request (context windows, match limits, thresholds)
    anchor_options: Dict[str, Any] = Field(default_factory=dict)
    max_concurrent_chunks: int = Field(1, ge=1, le=3)
    inter_chunk_delay: float = Field(0.5, ge=0)
    max_document_chars: int = Field(1_000_000, gt=0)
    fallback_truncation_chars: int = Field(8000, gt=0)

    @field_validator('anchor_options')
    @classmethod
    def known_anchor_options(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(v) - {f.name for f in fields(AnchorOptions)}
        if unknown:
            raise ValueError(f"Unknown anchor options: {', '.join(sorted(unknown))}")
        return v


@dataclass
class _RunContext:
    """State accumulated while processing one document"""
    issues: List[str] = field(default_factory=list)
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)
    stage_times: Dict[str, float] = field(default_factory=dict)

    def record(self, reply) -> None:
        self.metadata.token_usage = self.metadata.token_usage + reply.usage
        if reply.model:
            self.metadata.model = reply.model


class PurchaseOrderExtractor:
    """
    Orchestrates extraction of one purchase order document.

    Usage:
        service = OpenAIExtractionService(api_key=...)
        extractor = PurchaseOrderExtractor(service)
        result = await extractor.extract(text)
        print(result.to_dict())
    """

    def __init__(
        self,
        client: ExtractionClient,
        normalizer: Optional[TextNormalizer] = None,
        anchor_extractor: Optional[AnchorExtractor] = None,
        segmenter: Optional[DocumentSegmenter] = None,
        planner: Optional[ChunkPlanner] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        parser: Optional[ResponseParser] = None,
        merger: Optional[LineItemMerger] = None,
        scorer: Optional[ConfidenceScorer] = None,
        chunk_config: Optional[ChunkConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.normalizer = normalizer or TextNormalizer()
        self.anchor_extractor = anchor_extractor or RegexAnchorExtractor()
        self.segmenter = segmenter or DocumentSegmenter()
        self.planner = planner or ChunkPlanner()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.parser = parser or ResponseParser()
        self.merger = merger or LineItemMerger()
        self.scorer = scorer or ConfidenceScorer()
        self.chunk_config = chunk_config or DEFAULT_CHUNK_CONFIG
        self._sleep = sleep

    async def extract(self, text: str, options: Optional[ExtractionOptions] = None) -> MergedExtraction:
        """
        Extract a purchase order from document text

        Args:
            text: Raw document text (PDF-extracted, OCR or CSV)
            options: Per-request options

        Returns:
            MergedExtraction, possibly partial with issues describing what was lost

        Raises:
            AuthError: credentials rejected by the model provider
            ExtractionFailedError: no usable extraction could be produced
        """
        options = options or ExtractionOptions()
        started = time.perf_counter()
        ctx = _RunContext()
        raw = RawText(text or '')

        source = raw.text
        if len(source) > options.max_document_chars:
            logger.warning(f"Document of {len(source)} chars truncated to {options.max_document_chars}")
            source = source[:options.max_document_chars]
            ctx.metadata.truncated_input = True
            ctx.issues.append(f"Document truncated to {options.max_document_chars} characters before extraction")
        if not source.strip():
            raise ExtractionFailedError("Document contains no text", retryable=False)

        logger.info(f"📄 Extracting purchase order ({raw.byte_length} bytes)")

        normalization = self._timed(ctx, ExtractionStage.NORMALIZE, self._normalize, source, options, ctx)
        normalized_text = normalization.text
        ctx.metadata.normalization = normalization

        anchors = self._timed(ctx, ExtractionStage.ANCHOR, self._anchors, normalized_text, options)
        if anchors is not None:
            ctx.metadata.anchor_stats = anchors.stats.to_dict()

        segments = self._timed(ctx, ExtractionStage.SEGMENT, self.segmenter.segment,
                               normalized_text, anchors, normalized_text)
        ctx.metadata.segment_source = segments.source

        config = self.chunk_config.with_overrides(options.chunking) if options.chunking else self.chunk_config
        chunks = self._timed(ctx, ExtractionStage.PLAN, self.planner.plan, normalized_text, config)
        ctx.metadata.chunk_count = len(chunks)

        if len(chunks) <= 1:
            header = await self._extract_whole(normalized_text, segments, ctx)
            line_items = _own_line_items(header)
        else:
            header, payloads = await self._extract_chunked(normalized_text, chunks, segments, options, ctx)
            line_items = self.merger.merge(payloads) if payloads else _own_line_items(header)

        if header.is_purchase_order and not header.po_number and not line_items:
            logger.warning("⚠️ Extraction returned neither a PO number nor line items")
            ctx.issues.append(NOTHING_EXTRACTED)

        issues = list(header.issues) + ctx.issues
        scored = header.model_copy(update={'line_items': line_items, 'legacy_items': [], 'issues': issues})
        confidence = self.scorer.score(scored, normalization)

        ctx.metadata.duration_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.info(
            f"✅ Extraction complete: {len(line_items)} line items from {len(chunks)} chunk(s), "
            f"confidence {confidence.overall}%"
        )

        return MergedExtraction(
            po_number=header.po_number,
            supplier=header.supplier,
            dates=header.dates,
            totals=header.totals,
            notes=header.notes,
            line_items=line_items,
            issues=issues,
            suggestions=header.suggestions,
            is_purchase_order=header.is_purchase_order,
            confidence=confidence,
            metadata=ctx.metadata,
        )

    def _timed(self, ctx: _RunContext, stage: ExtractionStage, func, *args):
        stage_started = time.perf_counter()
        result = func(*args)
        ctx.stage_times[stage.value] = round((time.perf_counter() - stage_started) * 1000, 3)
        return result

    def _normalize(self, text: str, options: ExtractionOptions, ctx: _RunContext) -> NormalizationResult:
        if options.disable_text_preprocessing:
            return NormalizationResult.passthrough(text)
        try:
            return self.normalizer.normalize(text, NormalizationOptions(vendor_key=options.vendor_key))
        except Exception as e:
            logger.error(f"❌ Text preprocessing failed, using raw text: {e}")
            ctx.issues.append(PREPROCESSING_FAILED)
            return NormalizationResult.passthrough(text, reasons=['preprocessing_error'])

    def _anchors(self, text: str, options: ExtractionOptions) -> Optional[AnchorResult]:
        if options.disable_anchor_extraction or self.anchor_extractor is None:
            return None
        settings = dict(options.anchor_options)
        settings['pattern_set'] = options.anchor_pattern_set or settings.get('pattern_set') or options.vendor_key
        if settings.get('patterns') is not None:
            settings['patterns'] = tuple(settings['patterns'])
        try:
            return self.anchor_extractor.extract_anchors(text, AnchorOptions(**settings))
        except Exception as e:
            logger.warning(f"Anchor extraction skipped: {e}")
            return None

    async def _request(self, messages: List[Dict[str, str]], schema: OutputSchema,
                       ctx: _RunContext) -> ExtractionPayload:
        reply = await self.client.extract(messages, schema)
        ctx.record(reply)
        return self.parser.parse(reply)

    async def _extract_whole(self, text: str, segments: Segments, ctx: _RunContext) -> ExtractionPayload:
        messages = self.prompt_builder.full_extraction(text, segments)
        try:
            return await self._request(messages, PURCHASE_ORDER_SCHEMA, ctx)
        except AuthError:
            raise
        except ExtractionError as e:
            logger.error(f"❌ Whole-document extraction failed: {e}")
            raise ExtractionFailedError(
                f"Purchase order extraction failed: {e}",
                retryable=e.retryable,
                issues=ctx.issues,
            ) from e

    async def _extract_chunked(self, text: str, chunks: List[ChunkSpec], segments: Segments,
                               options: ExtractionOptions,
                               ctx: _RunContext) -> Tuple[ExtractionPayload, List[ExtractionPayload]]:
        count = len(chunks)
        first = chunks[0]
        logger.info(f"🔍 Processing chunk 1/{count} to establish document structure...")

        try:
            header = await self._request(
                self.prompt_builder.full_extraction(first.slice(text), segments, 1, count),
                PURCHASE_ORDER_SCHEMA,
                ctx,
            )
        except AuthError:
            raise
        except ExtractionError as e:
            logger.warning(f"⚠️ Chunk 1/{count} failed ({e}); retrying with truncated document")
            ctx.metadata.fallback_used = True
            ctx.metadata.failed_chunks.append(1)
            ctx.issues.append(
                f"Chunk 1/{count} could not be processed ({e}); extracted from the first "
                f"{options.fallback_truncation_chars} characters only, later line items may be missing"
            )
            truncated = text[:options.fallback_truncation_chars] + TRUNCATION_MARKER
            return await self._extract_whole(truncated, segments, ctx), []

        results = await self._extract_remaining(text, chunks[1:], segments, options, ctx)

        payloads = [header]
        for spec, (payload, chunk_issues) in zip(chunks[1:], results):
            ctx.issues.extend(chunk_issues)
            if payload is None:
                ctx.metadata.failed_chunks.append(spec.index + 1)
            else:
                payloads.append(payload)
        return header, payloads

    async def _extract_remaining(self, text: str, chunks: List[ChunkSpec], segments: Segments,
                                 options: ExtractionOptions,
                                 ctx: _RunContext) -> List[Tuple[Optional[ExtractionPayload], List[str]]]:
        total = ctx.metadata.chunk_count

        if options.max_concurrent_chunks <= 1:
            results = []
            for spec in chunks:
                if options.inter_chunk_delay > 0:
                    await self._sleep(options.inter_chunk_delay)
                results.append(await self._extract_line_items(text, spec, total, segments, ctx))
            return results

        semaphore = asyncio.Semaphore(options.max_concurrent_chunks)

        async def run(spec: ChunkSpec):
            async with semaphore:
                result = await self._extract_line_items(text, spec, total, segments, ctx)
                if options.inter_chunk_delay > 0:
                    await self._sleep(options.inter_chunk_delay)
                return result

        tasks = [asyncio.ensure_future(run(spec)) for spec in chunks]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Stop sibling chunks still calling the model
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _extract_line_items(self, text: str, spec: ChunkSpec, total: int, segments: Segments,
                                  ctx: _RunContext) -> Tuple[Optional[ExtractionPayload], List[str]]:
        number = spec.index + 1
        logger.info(f"🔍 Processing chunk {number}/{total}...")
        messages = self.prompt_builder.line_items(spec.slice(text), segments, number, total)
        try:
            payload = await self._request(messages, LINE_ITEMS_SCHEMA, ctx)
        except AuthError:
            raise
        except ExtractionError as e:
            logger.warning(f"⚠️ Failed to process chunk {number}/{total}: {e}")
            return None, [f"Chunk {number}/{total} failed: {e}"]

        if not payload.is_purchase_order:
            return None, [f"Chunk {number}/{total} returned no line items"]

        logger.info(f"📋 Chunk {number}: extracted {len(payload.all_line_items)} line items")
        return payload, [f"Chunk {number}/{total}: {issue}" for issue in payload.issues]


def _own_line_items(payload: ExtractionPayload) -> List[LineItem]:
    return list(payload.line_items) if payload.line_items else list(payload.legacy_items)


async def extract_purchase_order(text: str, client: ExtractionClient,
                                 options: Optional[ExtractionOptions] = None,
                                 **components) -> MergedExtraction:
    """
    Extract a purchase order with a one-off orchestrator

    Args:
        text: Raw document text
        client: Extraction client (for example OpenAIExtractionService)
        options: Per-request options
        **components: Optional PurchaseOrderExtractor component overrides

    Returns:
        MergedExtraction
    """
    return await PurchaseOrderExtractor(client, **components).extract(text, options)
