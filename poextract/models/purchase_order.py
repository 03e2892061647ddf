"""
Purchase Order Data Models with Pydantic Validation

Tolerant schemas for model-extracted purchase-order data. Every extracted
field is nullable: a language model reply is partial more often than not,
and downstream scoring needs to see the gaps rather than have them
rejected at parse time.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
import re

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from pydantic.alias_generators import to_camel


DATE_FORMATS = [
    '%Y-%m-%d',      # ISO format
    '%m/%d/%Y',      # US format
    '%d/%m/%Y',      # EU format
    '%m-%d-%Y',
    '%d-%m-%Y',
    '%Y/%m/%d',
    '%B %d, %Y',     # January 15, 2024
    '%b %d, %Y',     # Jan 15, 2024
    '%B %d %Y',
    '%b %d %Y',
    '%d %B %Y',      # 15 January 2024
    '%d %b %Y',      # 15 Jan 2024
]


def parse_decimal(v: Any) -> Optional[Decimal]:
    """Parse a decimal from numbers or currency strings; unparseable -> None"""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, Decimal):
        return v
    if isinstance(v, (int, float)):
        return Decimal(str(v))
    if isinstance(v, str):
        # Remove currency symbols, commas, spaces
        cleaned = re.sub(r'[^\d.\-]', '', v.strip())
        if cleaned and cleaned not in ('-', '.', '-.'):
            try:
                return Decimal(cleaned)
            except InvalidOperation:
                return None
    return None


def parse_date(v: Any) -> Optional[date]:
    """Parse dates from various formats"""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(v, fmt).date()
            except ValueError:
                continue
    return None


def _optional_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float, Decimal)):
        return str(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return None


def _key_part(v: Any) -> str:
    if v is None:
        return ''
    if isinstance(v, Decimal):
        # Plain notation so 2, 2.0 and 2.00 share one identity
        return format(v.normalize(), 'f')
    return str(v)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LineItem(_CamelModel):
    """Purchase order line item; every field may be missing"""

    product_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    total: Optional[Decimal] = None

    @field_validator('product_code', 'description', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator('quantity', 'unit_price', 'total', mode='before')
    @classmethod
    def coerce_decimal(cls, v: Any) -> Optional[Decimal]:
        return parse_decimal(v)

    def dedup_key(self) -> str:
        """Composite identity used to collapse duplicates across overlapping chunks"""
        return '|'.join(_key_part(v) for v in (
            self.product_code, self.description, self.quantity, self.unit_price, self.total
        ))

    @property
    def has_description(self) -> bool:
        return bool(self.description)

    @property
    def has_quantity_or_price(self) -> bool:
        return self.quantity is not None or self.unit_price is not None


class Supplier(_CamelModel):
    """Supplier / vendor party"""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator('name', 'phone', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v: Any) -> Optional[str]:
        """Normalize email to lowercase"""
        v = _optional_text(v)
        return v.lower() if v else None

    @field_validator('address', mode='before')
    @classmethod
    def flatten_address(cls, v: Any) -> Optional[str]:
        """Models sometimes return structured addresses; keep a single line"""
        if isinstance(v, dict):
            parts = [_optional_text(part) for part in v.values()]
            v = ', '.join(p for p in parts if p)
        return _optional_text(v)

    @property
    def has_contact(self) -> bool:
        return bool(self.email or self.phone or self.address)


class OrderDates(_CamelModel):
    order_date: Optional[str] = None
    delivery_date: Optional[str] = None

    @field_validator('order_date', 'delivery_date', mode='before')
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[str]:
        """ISO format when the value parses, raw text otherwise"""
        parsed = parse_date(v)
        if parsed is not None:
            return parsed.isoformat()
        return _optional_text(v)

    def parsed(self, name: str) -> Optional[date]:
        return parse_date(getattr(self, name))


class Totals(_CamelModel):
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    shipping: Optional[Decimal] = None
    total: Optional[Decimal] = None

    @field_validator('subtotal', 'tax', 'shipping', 'total', mode='before')
    @classmethod
    def coerce_decimal(cls, v: Any) -> Optional[Decimal]:
        return parse_decimal(v)


class QualityIndicators(_CamelModel):
    """Model-reported document quality labels (high / medium / low)"""

    image_clarity: Optional[str] = None
    text_legibility: Optional[str] = None
    document_completeness: Optional[str] = None

    @field_validator('image_clarity', 'text_legibility', 'document_completeness', mode='before')
    @classmethod
    def lowercase_label(cls, v: Any) -> Optional[str]:
        v = _optional_text(v)
        return v.lower() if v else None


class ExtractionPayload(_CamelModel):
    """Parsed, typed model output for one chunk (or the whole document)"""

    po_number: Optional[str] = None
    supplier: Supplier = Field(default_factory=Supplier)
    dates: OrderDates = Field(default_factory=OrderDates)
    totals: Totals = Field(default_factory=Totals)
    notes: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    # Legacy alias array some prompts produce under "items"
    legacy_items: List[LineItem] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    confidence: Any = None
    field_confidences: Dict[str, Any] = Field(default_factory=dict)
    quality_indicators: QualityIndicators = Field(default_factory=QualityIndicators)
    is_purchase_order: bool = True

    @field_validator('po_number', 'notes', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @classmethod
    def not_a_purchase_order(cls) -> 'ExtractionPayload':
        """Typed empty result for replies that reject the document outright"""
        return cls(
            confidence=0,
            issues=['Document is not a valid purchase order'],
            suggestions=['Please upload a valid purchase order document'],
            is_purchase_order=False,
        )

    @property
    def all_line_items(self) -> List[LineItem]:
        return list(self.line_items) + list(self.legacy_items)


class NormalizationResult(_CamelModel):
    """Outcome of text normalization, including fallback provenance"""

    text: str
    original_length: int = Field(..., ge=0)
    optimized_length: int = Field(..., ge=0)
    reduction_percent: float = 0.0
    estimated_token_savings: int = 0
    duration_ms: float = 0.0
    fallback_applied: bool = False
    fallback_reasons: List[str] = Field(default_factory=list)

    @classmethod
    def passthrough(cls, text: str, reasons: Optional[List[str]] = None,
                    duration_ms: float = 0.0) -> 'NormalizationResult':
        """Result that leaves the input untouched"""
        return cls(
            text=text,
            original_length=len(text),
            optimized_length=len(text),
            duration_ms=duration_ms,
            fallback_applied=bool(reasons),
            fallback_reasons=list(reasons or []),
        )


class ConfidenceProfile(_CamelModel):
    """Overall and per-field confidence"""

    overall: int = Field(..., ge=0, le=100)
    normalized: float = Field(..., ge=0.0, le=1.0)
    per_field: Dict[str, float] = Field(default_factory=dict)
    adjustments: List[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_overall(self) -> 'ConfidenceProfile':
        """overall is always the rounded percentage of normalized"""
        if self.overall != round(self.normalized * 100):
            raise ValueError(
                f"overall ({self.overall}) must equal round(normalized * 100) "
                f"for normalized={self.normalized}"
            )
        return self

    @classmethod
    def from_normalized(cls, normalized: float, per_field: Optional[Dict[str, float]] = None,
                        adjustments: Optional[List[str]] = None) -> 'ConfidenceProfile':
        normalized = min(max(float(normalized), 0.0), 1.0)
        return cls(
            overall=round(normalized * 100),
            normalized=normalized,
            per_field=per_field or {},
            adjustments=adjustments or [],
        )


class TokenUsage(_CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: 'TokenUsage') -> 'TokenUsage':
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def from_response(cls, usage: Any) -> 'TokenUsage':
        """Build from an OpenAI usage object (or dict); missing usage -> zeros"""
        if usage is None:
            return cls()
        if hasattr(usage, 'model_dump'):
            usage = usage.model_dump()
        if not isinstance(usage, dict):
            return cls()
        return cls(
            prompt_tokens=int(usage.get('prompt_tokens') or 0),
            completion_tokens=int(usage.get('completion_tokens') or 0),
            total_tokens=int(usage.get('total_tokens') or 0),
        )


class ModelReply(_CamelModel):
    """Raw structured reply from one model call"""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    schema_name: Optional[str] = None


class ExtractionMetadata(_CamelModel):
    """Provenance for a merged extraction"""

    normalization: Optional[NormalizationResult] = None
    anchor_stats: Optional[Dict[str, Any]] = None
    segment_source: Optional[str] = None
    chunk_count: int = 0
    failed_chunks: List[int] = Field(default_factory=list)
    truncated_input: bool = False
    fallback_used: bool = False
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    model: Optional[str] = None
    duration_ms: float = 0.0


class MergedExtraction(_CamelModel):
    """Final extraction result for one purchase order document"""

    po_number: Optional[str] = None
    supplier: Supplier = Field(default_factory=Supplier)
    dates: OrderDates = Field(default_factory=OrderDates)
    totals: Totals = Field(default_factory=Totals)
    notes: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    is_purchase_order: bool = True
    confidence: ConfidenceProfile
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict; line items are also exposed under the legacy "items" key"""
        data = self.model_dump(mode='json', by_alias=True)
        data['items'] = list(data['lineItems'])
        return data


@dataclass(frozen=True)
class RawText:
    """Document text as received; never mutated"""

    text: str

    @property
    def byte_length(self) -> int:
        return len(self.text.encode('utf-8'))

    def __len__(self) -> int:
        return len(self.text)
