"""
poextract - purchase order extraction

Turns raw purchase-order text (PDF-extracted, OCR or CSV) into structured
data with an LLM, splitting long documents into overlapping chunks.

Usage:
    from poextract import OpenAIExtractionService, extract_purchase_order

    service = OpenAIExtractionService(api_key="sk-...")
    result = await extract_purchase_order(text, service)
    print(result.to_dict())
"""

from .models import MergedExtraction, LineItem, ExtractionPayload, NormalizationResult, ConfidenceProfile
from .processors.chunking import ChunkConfig, ChunkPlanner, ChunkSpec
from .processors.preprocessing import TextNormalizer, RegexAnchorExtractor
from .processors.llm import OpenAIExtractionService, ExtractionError, ExtractionFailedError, AuthError
from .processors.purchase_order import PurchaseOrderExtractor, ExtractionOptions, extract_purchase_order
from .config import ExtractionSettings, setup_logging

__version__ = "1.0.0"

__all__ = [
    'MergedExtraction',
    'LineItem',
    'ExtractionPayload',
    'NormalizationResult',
    'ConfidenceProfile',
    'ChunkConfig',
    'ChunkPlanner',
    'ChunkSpec',
    'TextNormalizer',
    'RegexAnchorExtractor',
    'OpenAIExtractionService',
    'ExtractionError',
    'ExtractionFailedError',
    'AuthError',
    'PurchaseOrderExtractor',
    'ExtractionOptions',
    'extract_purchase_order',
    'ExtractionSettings',
    'setup_logging',
]
