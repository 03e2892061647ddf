"""
Response Parser

Turns a raw model reply into a typed ExtractionPayload. Replies are
repaired before parsing (markdown fences, comments, trailing commas, text
around the JSON object); replies that refuse the document as "not a
purchase order" become a typed empty result instead of an error.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ...models import ExtractionPayload, LineItem, ModelReply
from ..llm.errors import MalformedResponseError
from . import field_extractors as fx

logger = logging.getLogger(__name__)

REJECTION_PHRASES = re.compile(
    r'unable to extract|not a (?:valid )?purchase order|appears to be|not valid',
    re.IGNORECASE,
)

FENCE = re.compile(r'^\s*```(?:json|JSON)?\s*|\s*```\s*$')


def clean_json_response(content: str) -> str:
    """Remove markdown code fences and surrounding whitespace"""
    return FENCE.sub('', content.strip()).strip()


def repair_json(content: str) -> str:
    """
    Strip // and /* */ comments and trailing commas outside string literals

    Args:
        content: JSON-like text

    Returns:
        Text suitable for json.loads when the only defects were these
    """
    out: List[str] = []
    i = 0
    in_string = False
    length = len(content)

    while i < length:
        ch = content[i]
        if in_string:
            out.append(ch)
            if ch == '\\' and i + 1 < length:
                out.append(content[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif content.startswith('//', i):
            newline = content.find('\n', i)
            i = length if newline == -1 else newline
        elif content.startswith('/*', i):
            close = content.find('*/', i + 2)
            i = length if close == -1 else close + 2
        elif ch == ',':
            j = i + 1
            while j < length and content[j].isspace():
                j += 1
            if j < length and content[j] in '}]':
                i += 1
            else:
                out.append(ch)
                i += 1
        else:
            out.append(ch)
            i += 1

    return ''.join(out)


def _outermost_object(content: str) -> Optional[str]:
    start = content.find('{')
    end = content.rfind('}')
    if start == -1 or end <= start:
        return None
    return content[start:end + 1]


def load_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Best-effort JSON object from a model reply; None when nothing parses"""
    cleaned = clean_json_response(content)
    candidates = [cleaned]
    block = _outermost_object(cleaned)
    if block is not None and block != cleaned:
        candidates.append(block)

    for candidate in candidates:
        for text in (candidate, repair_json(candidate)):
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data
            if isinstance(data, list):
                # A bare array is taken as the line items
                return {'lineItems': data}
    return None


def _as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    items = []
    for item in value:
        if isinstance(item, str):
            if item.strip():
                items.append(item.strip())
        elif isinstance(item, dict):
            message = item.get('message') or item.get('description') or item.get('issue')
            items.append(str(message) if message else json.dumps(item, sort_keys=True, default=str))
        elif item is not None:
            items.append(str(item))
    return items


class ResponseParser:
    """Parses model replies into ExtractionPayload"""

    def parse(self, raw_reply: Union[str, ModelReply]) -> ExtractionPayload:
        """
        Parse one model reply

        Args:
            raw_reply: ModelReply or its raw content

        Returns:
            ExtractionPayload (a typed empty result for "not a purchase order" replies)

        Raises:
            MalformedResponseError: if the reply has no usable structured content
        """
        content = raw_reply.content if isinstance(raw_reply, ModelReply) else raw_reply
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("Model reply was empty")

        data = load_json_object(content)
        if data is None:
            if REJECTION_PHRASES.search(content):
                logger.warning("Model reply rejected the document as a purchase order")
                return ExtractionPayload.not_a_purchase_order()
            raise MalformedResponseError(f"Model reply is not valid JSON: {content[:200]!r}")

        try:
            return self._to_payload(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Model reply did not match the extraction schema: {e}") from e

    def _to_payload(self, data: Dict[str, Any]) -> ExtractionPayload:
        if not fx.has_extraction_fields(data):
            keys = ', '.join(sorted(str(key) for key in data)) or 'none'
            raise MalformedResponseError(f"Model reply has no extraction fields (keys: {keys})")

        issues = _as_text_list(data.get('issues'))
        line_items, dropped = self._line_items(fx.first_present(fx.LINE_ITEMS, data))
        legacy_items, legacy_dropped = self._line_items(fx.first_present(fx.LEGACY_ITEMS, data))
        if dropped + legacy_dropped:
            issues.append(f"{dropped + legacy_dropped} line item row(s) were not objects and were ignored")

        field_confidences = fx.first_present(fx.FIELD_CONFIDENCES, data)
        quality = fx.first_present(fx.QUALITY_INDICATORS, data)

        return ExtractionPayload(
            po_number=fx.first_present(fx.PO_NUMBER, data),
            supplier={
                'name': fx.first_present(fx.SUPPLIER_NAME, data),
                'email': fx.first_present(fx.SUPPLIER_EMAIL, data),
                'phone': fx.first_present(fx.SUPPLIER_PHONE, data),
                'address': fx.first_present(fx.SUPPLIER_ADDRESS, data),
            },
            dates={
                'order_date': fx.first_present(fx.ORDER_DATE, data),
                'delivery_date': fx.first_present(fx.DELIVERY_DATE, data),
            },
            totals={
                'subtotal': fx.first_present(fx.SUBTOTAL, data),
                'tax': fx.first_present(fx.TAX, data),
                'shipping': fx.first_present(fx.SHIPPING, data),
                'total': fx.first_present(fx.TOTAL, data),
            },
            notes=fx.first_present(fx.NOTES, data),
            line_items=line_items,
            legacy_items=legacy_items,
            issues=issues,
            suggestions=_as_text_list(data.get('suggestions')),
            confidence=fx.first_present(fx.CONFIDENCE, data),
            field_confidences=field_confidences if isinstance(field_confidences, dict) else {},
            quality_indicators=quality if isinstance(quality, dict) else {},
        )

    @staticmethod
    def _line_items(rows: Any) -> Tuple[List[LineItem], int]:
        if not isinstance(rows, list):
            return [], 0

        items: List[LineItem] = []
        dropped = 0
        for row in rows:
            if not isinstance(row, dict):
                dropped += 1
                continue
            item = LineItem(**fx.line_item_fields(row))
            if item.dedup_key() == '||||':
                logger.debug("Skipping empty line item row")
                continue
            items.append(item)
        return items, dropped
