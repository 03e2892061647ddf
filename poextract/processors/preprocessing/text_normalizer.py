"""
Text Normalizer

Cleans OCR / PDF-extracted purchase-order text before it is sent to a
model: boilerplate removal, table compression, whitespace normalization
and compression of common header labels. A signal check guarantees the
cleaned text never loses a category of key content the original had;
when it would, the original text is returned untouched.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Union

from ...models import NormalizationResult, parse_date
from ..chunking.base import estimate_tokens as _estimate_tokens_for_length

logger = logging.getLogger(__name__)

PatternLike = Union[str, Pattern[str]]

OCR_ARTIFACTS = [
    r'Scanned by [^\n]+',
    r'Page \d+ of \d+',
    r'--- Page Break ---',
    r'\[Barcode: [^\]]+\]',
    r'Document ID: [^\n]+',
    r'Confidential[^\n]*',
    r'Print Date: [^\n]+',
    r'Generated on [^\n]+',
    r'This document was electronically generated.*',
    r'Powered by (?:QuickBooks|Xero|SAP).*',
    r'Thank you for your (?:business|order).*',
    r'Remit (?:Payment|To):[^\n]*',
    r'Please retain for your records.*',
    # Watermarks and stamps
    r'\[DRAFT\]',
    r'\[COPY\]',
    r'\[DUPLICATE\]',
]

DEFAULT_VENDOR_ARTIFACTS = {
    'exotic_wholesale': [
        r'Exotic Wholesale(?: Inc\.| LLC)?[^\n]*',
        r'Toll Free: 1-800-EXOTIC',
        r'Wholesale Portal: https?://exoticwholesale\.com[^\s]*',
    ],
    'northern_supply': [
        r'Northern Supply (?:LLC|Ltd\.)[^\n]*',
        r'Customer Success Desk: [^\n]*',
        r'Generated via NorthernOne ERP',
    ],
}

PO_NUMBER_LABEL = re.compile(
    r'\b(?:Purchase\s+Order|P\.O\.|PO)(?:\s*(?:(?:Number|No)\b\.?|#)\s*:?|\s*:)\s*([A-Za-z0-9][\w\-/.]*)',
    re.IGNORECASE,
)
ORDER_DATE_LABEL = re.compile(
    r'\b((?:Invoice|Order|PO)\s+Date)\s*:?\s*([A-Za-z]+\.?\s+\d{1,2},?\s+\d{4})',
    re.IGNORECASE,
)
SUPPLIER_LABEL = re.compile(r'\b(?:Supplier|Vendor)\s+Name\s*:?[ \t]*([^\n]+)', re.IGNORECASE)
TOTAL_LABEL = re.compile(
    r'\b(Grand\s+Total|Total|Amount\s+Due)\s*:?\s*\$?\s*(\d[\d,]*(?:\.\d+)?)',
    re.IGNORECASE,
)

KEY_SIGNAL_PATTERNS = {
    'po_number': re.compile(r'(?:purchase\s+order|po|p\.o\.)\s*(?:number|no\.?|#)', re.IGNORECASE),
    'invoice': re.compile(r'invoice\s*(?:number|no\.?|#)?', re.IGNORECASE),
    'supplier': re.compile(r'\b(?:supplier|vendor)\b', re.IGNORECASE),
    'totals': re.compile(r'\b(?:grand\s+)?total\b', re.IGNORECASE),
    'line_items': re.compile(r'\b(?:qty|quantity|description|unit\s*price|amount)\b', re.IGNORECASE),
}

COLUMN_GAP = re.compile(r'[ \t\r\f\v]{2,}|\t+')


@dataclass(frozen=True)
class NormalizationOptions:
    """Per-call switches for the normalizer"""

    remove_artifacts: bool = True
    normalize_whitespace: bool = True
    compress_patterns: bool = True
    compress_tables: bool = True
    vendor_key: Optional[str] = None
    extra_patterns: Sequence[PatternLike] = ()


def _compile(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    if isinstance(pattern, re.Pattern):
        return pattern
    raise ValueError(f"Artifact patterns must be regular expressions, got {type(pattern).__name__}")


def _label(words: str) -> str:
    return ' '.join(words.split())


def extract_key_signals(text: Optional[str]) -> Dict[str, int]:
    """Count occurrences of each key-signal category"""
    if not text or not isinstance(text, str):
        return {key: 0 for key in KEY_SIGNAL_PATTERNS}
    return {key: len(pattern.findall(text)) for key, pattern in KEY_SIGNAL_PATTERNS.items()}


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)"""
    return _estimate_tokens_for_length(len(text))


class TextNormalizer:
    """Purchase-order text cleaner with a safety fallback"""

    def __init__(self):
        self._ocr_artifacts = [_compile(p) for p in OCR_ARTIFACTS]
        self._vendor_artifacts: Dict[str, List[Pattern[str]]] = {
            key: [_compile(p) for p in patterns]
            for key, patterns in DEFAULT_VENDOR_ARTIFACTS.items()
        }

    def register_vendor_artifacts(self, vendor_key: str,
                                  patterns: Union[PatternLike, Iterable[PatternLike]]) -> None:
        """
        Add boilerplate patterns removed for a specific vendor

        Args:
            vendor_key: Vendor identifier passed as NormalizationOptions.vendor_key
            patterns: One pattern or an iterable of patterns (strings or compiled regexes)
        """
        if not vendor_key or not isinstance(vendor_key, str):
            raise ValueError("vendor_key must be a non-empty string")

        if isinstance(patterns, (str, re.Pattern)):
            patterns = [patterns]
        compiled = [_compile(p) for p in patterns]

        existing = self._vendor_artifacts.get(vendor_key, [])
        self._vendor_artifacts[vendor_key] = existing + compiled
        logger.debug(f"Registered {len(compiled)} artifact pattern(s) for vendor '{vendor_key}'")

    @property
    def vendor_keys(self) -> List[str]:
        return sorted(self._vendor_artifacts)

    def normalize(self, text: str, options: Optional[NormalizationOptions] = None) -> NormalizationResult:
        """
        Clean text for model consumption

        Args:
            text: Raw extracted document text
            options: Normalization switches

        Returns:
            NormalizationResult; when the safety check fails, its text is the
            original input and fallback_applied is set
        """
        options = options or NormalizationOptions()
        started = time.perf_counter()
        original_length = len(text)

        optimized = text
        if options.remove_artifacts:
            optimized = self.remove_artifacts(optimized, options.vendor_key, options.extra_patterns)
        if options.compress_tables:
            optimized = self.compress_tables(optimized)
        if options.normalize_whitespace:
            optimized = self.normalize_whitespace(optimized)
        if options.compress_patterns:
            optimized = self.compress_po_format(optimized)

        reasons = self._fallback_reasons(text, optimized)
        duration_ms = round((time.perf_counter() - started) * 1000, 3)

        if reasons:
            logger.warning(f"Text normalization fallback applied ({'; '.join(reasons)}); using original text")
            return NormalizationResult.passthrough(text, reasons=reasons, duration_ms=duration_ms)

        optimized_length = len(optimized)
        reduction = round((1 - optimized_length / original_length) * 100, 1) if original_length else 0.0
        logger.info(
            f"Text normalization: {original_length} -> {optimized_length} chars "
            f"({reduction}% reduction) in {duration_ms}ms"
        )
        return NormalizationResult(
            text=optimized,
            original_length=original_length,
            optimized_length=optimized_length,
            reduction_percent=reduction,
            estimated_token_savings=(original_length - optimized_length) // 4,
            duration_ms=duration_ms,
        )

    def remove_artifacts(self, text: str, vendor_key: Optional[str] = None,
                         extra_patterns: Sequence[PatternLike] = ()) -> str:
        """Remove OCR, ERP and vendor boilerplate"""
        patterns = list(self._ocr_artifacts)
        if vendor_key:
            patterns.extend(self._vendor_artifacts.get(vendor_key, []))
        patterns.extend(_compile(p) for p in extra_patterns)

        for pattern in patterns:
            text = pattern.sub('', text)
        return text

    def compress_tables(self, text: str) -> str:
        """Turn column gaps into pipe separators on lines with at least three columns"""
        lines = []
        for line in text.split('\n'):
            if len(COLUMN_GAP.findall(line.strip())) >= 2:
                line = COLUMN_GAP.sub(' | ', line.strip())
            lines.append(line)
        return '\n'.join(lines)

    def normalize_whitespace(self, text: str) -> str:
        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = re.sub(r'\t+', ' ', text)
        text = re.sub(r'[ ]{2,}', ' ', text)
        lines = [line.strip() for line in text.split('\n')]
        return '\n'.join(line for line in lines if line).strip()

    def compress_po_format(self, text: str) -> str:
        """
        Shorten common header labels ("Purchase Order Number: 123" -> "PO#123")

        Date and amount labels keep their words ("Invoice Date", "Amount Due")
        so the compressed text still carries the same key signals.
        """
        text = PO_NUMBER_LABEL.sub(lambda m: f"PO#{m.group(1).strip()}", text)
        text = ORDER_DATE_LABEL.sub(self._compress_date, text)
        text = SUPPLIER_LABEL.sub(lambda m: f"Supplier:{m.group(1).strip()}", text)
        text = TOTAL_LABEL.sub(lambda m: f"{_label(m.group(1))}:{m.group(2).replace(',', '')}", text)
        return text

    @staticmethod
    def _compress_date(match: 're.Match[str]') -> str:
        cleaned = match.group(2).replace('.', '').replace(',', '')
        parsed = parse_date(' '.join(cleaned.split()))
        return f"{_label(match.group(1))}:{parsed.isoformat()}" if parsed else match.group(0)

    @staticmethod
    def _fallback_reasons(original: str, optimized: str) -> List[str]:
        if not optimized.strip():
            return ['empty_output']

        original_signals = extract_key_signals(original)
        optimized_signals = extract_key_signals(optimized)
        lost = [
            key for key, count in original_signals.items()
            if count > 0 and optimized_signals.get(key, 0) == 0
        ]
        return [f"lost_signals:{','.join(lost)}"] if lost else []
