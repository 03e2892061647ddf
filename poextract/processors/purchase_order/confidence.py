"""
Confidence Scorer

Combines the model's self-reported confidence with document quality
indicators, field completeness and the number of reported issues into one
bounded score.

Scoring:
- start from the model confidence (number or {"overall": n}; values above 1
  are percentages; missing or invalid -> 0.5)
- quality score < 0.5 -> x0.8, < 0.7 -> x0.9
- completeness < 0.6 -> x0.8, < 0.8 -> x0.9
- issues > 3 -> x0.8, > 1 -> x0.9
- floor at 0.1
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ...models import ConfidenceProfile, ExtractionPayload, NormalizationResult, QualityIndicators

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
CONFIDENCE_FLOOR = 0.1

QUALITY_SCORES = {
    'high': 1.0,
    'complete': 1.0,
    'medium': 0.6,
    'partial': 0.6,
    'low': 0.3,
    'incomplete': 0.3,
}
DEFAULT_QUALITY_SCORE = 0.5


def coerce_confidence(value: Any, default: Optional[float] = DEFAULT_CONFIDENCE) -> Optional[float]:
    """Model-reported confidence as a 0..1 float"""
    if isinstance(value, dict):
        value = value.get('overall')
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip('%'))
        except ValueError:
            return default
    if not isinstance(value, (int, float, Decimal)):
        return default

    value = float(value)
    if math.isnan(value) or math.isinf(value) or value < 0:
        return default
    if value > 1:
        value = value / 100
    return min(value, 1.0)


def quality_to_score(label: Optional[str]) -> float:
    return QUALITY_SCORES.get((label or '').strip().lower(), DEFAULT_QUALITY_SCORE)


def score_to_quality(score: float) -> str:
    if score >= 0.8:
        return 'high'
    if score >= 0.6:
        return 'medium'
    return 'low'


class ConfidenceScorer:
    """Scores a (merged) extraction payload"""

    def score(self, payload: ExtractionPayload,
              normalization: Optional[NormalizationResult] = None,
              quality: Optional[QualityIndicators] = None) -> ConfidenceProfile:
        """
        Compute the confidence profile

        Args:
            payload: Payload carrying the final header fields, line items and issues
            normalization: Normalization outcome for the document
            quality: Quality indicators; defaults to those reported in the payload

        Returns:
            ConfidenceProfile with 0.1 <= normalized <= 1
        """
        quality = quality or payload.quality_indicators
        adjustments: List[str] = []

        confidence = coerce_confidence(payload.confidence)

        quality_score = self.quality_score(quality)
        if quality_score < 0.5:
            confidence *= 0.8
            adjustments.append('low_document_quality')
        elif quality_score < 0.7:
            confidence *= 0.9
            adjustments.append('medium_document_quality')

        field_scores = self.field_scores(payload)
        completeness = sum(field_scores.values()) / len(field_scores)
        if completeness < 0.6:
            confidence *= 0.8
            adjustments.append('low_completeness')
        elif completeness < 0.8:
            confidence *= 0.9
            adjustments.append('partial_completeness')

        issue_count = len(payload.issues)
        if issue_count > 3:
            confidence *= 0.8
            adjustments.append('many_issues')
        elif issue_count > 1:
            confidence *= 0.9
            adjustments.append('some_issues')

        if confidence < CONFIDENCE_FLOOR:
            adjustments.append('floor_applied')
        normalized = round(max(confidence, CONFIDENCE_FLOOR), 4)

        if normalization is not None and normalization.fallback_applied:
            adjustments.append('normalization_fallback')

        per_field = dict(field_scores)
        for name, value in payload.field_confidences.items():
            reported = coerce_confidence(value, default=None)
            if reported is not None:
                per_field[name] = round(reported, 4)

        logger.debug(
            f"Confidence {normalized} (quality={quality_score:.2f}, "
            f"completeness={completeness:.2f}, issues={issue_count})"
        )
        return ConfidenceProfile.from_normalized(normalized, per_field=per_field, adjustments=adjustments)

    @staticmethod
    def quality_score(quality: QualityIndicators) -> float:
        scores = [
            quality_to_score(quality.image_clarity),
            quality_to_score(quality.text_legibility),
            quality_to_score(quality.document_completeness),
        ]
        return sum(scores) / len(scores)

    @staticmethod
    def field_scores(payload: ExtractionPayload) -> Dict[str, float]:
        """Completeness score per field group, each in 0..1"""
        supplier = payload.supplier
        if supplier.name and supplier.has_contact:
            supplier_score = 1.0
        elif supplier.name:
            supplier_score = 0.7
        elif supplier.has_contact:
            supplier_score = 0.3
        else:
            supplier_score = 0.0

        items = payload.all_line_items
        if items:
            usable = [i for i in items if i.has_description and i.has_quantity_or_price]
            line_items_score = len(usable) / len(items)
        else:
            line_items_score = 0.0

        dates = payload.dates
        dates_score = (0.6 if dates.order_date else 0.0) + (0.4 if dates.delivery_date else 0.0)
        order_date, delivery_date = dates.parsed('order_date'), dates.parsed('delivery_date')
        if order_date and delivery_date and delivery_date < order_date:
            dates_score = 0.3

        totals = payload.totals
        totals_score = 1.0 if totals.total is not None else 0.0

        return {
            'poNumber': 1.0 if payload.po_number else 0.0,
            'supplier': supplier_score,
            'lineItems': round(line_items_score, 4),
            'dates': round(dates_score, 4),
            'totals': totals_score,
        }
