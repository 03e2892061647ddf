from .purchase_order import (
    LineItem,
    Supplier,
    OrderDates,
    Totals,
    QualityIndicators,
    ExtractionPayload,
    NormalizationResult,
    ConfidenceProfile,
    TokenUsage,
    ModelReply,
    ExtractionMetadata,
    MergedExtraction,
    RawText,
    parse_decimal,
    parse_date,
)

__all__ = [
    'LineItem',
    'Supplier',
    'OrderDates',
    'Totals',
    'QualityIndicators',
    'ExtractionPayload',
    'NormalizationResult',
    'ConfidenceProfile',
    'TokenUsage',
    'ModelReply',
    'ExtractionMetadata',
    'MergedExtraction',
    'RawText',
    'parse_decimal',
    'parse_date',
]
