"""
Purchase Order Extraction

Components:
- DocumentSegmenter: header / line-item / totals segmentation
- PromptBuilder: role-tagged messages and output schemas
- ResponseParser: tolerant JSON parsing into ExtractionPayload
- LineItemMerger: order-preserving line item de-duplication
- ConfidenceScorer: bounded confidence profile
- PurchaseOrderExtractor: end-to-end orchestration
"""

from .segmenter import DocumentSegmenter, SegmenterConfig, Segments
from .prompt_builder import PromptBuilder, PURCHASE_ORDER_SCHEMA, LINE_ITEMS_SCHEMA
from .response_parser import ResponseParser, clean_json_response, repair_json, load_json_object
from .merger import LineItemMerger
from .confidence import ConfidenceScorer, coerce_confidence, quality_to_score, score_to_quality
from .orchestrator import (
    PurchaseOrderExtractor,
    ExtractionOptions,
    ExtractionStage,
    extract_purchase_order,
)

__all__ = [
    'DocumentSegmenter',
    'SegmenterConfig',
    'Segments',
    'PromptBuilder',
    'PURCHASE_ORDER_SCHEMA',
    'LINE_ITEMS_SCHEMA',
    'ResponseParser',
    'clean_json_response',
    'repair_json',
    'load_json_object',
    'LineItemMerger',
    'ConfidenceScorer',
    'coerce_confidence',
    'quality_to_score',
    'score_to_quality',
    'PurchaseOrderExtractor',
    'ExtractionOptions',
    'ExtractionStage',
    'extract_purchase_order',
]
