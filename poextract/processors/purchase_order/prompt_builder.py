"""
Prompt construction for purchase-order extraction requests
"""

from typing import Dict, List, Optional

from ..llm.openai_service import OutputSchema
from ..llm.prompt_manager import PromptManager, get_prompt_manager
from .segmenter import Segments

FULL_EXTRACTION_PROMPT = 'po_extraction'
LINE_ITEMS_PROMPT = 'po_line_items'

_NULLABLE_STRING = {'type': ['string', 'null']}
_NULLABLE_NUMBER = {'type': ['number', 'string', 'null']}

LINE_ITEM_SCHEMA = {
    'type': 'object',
    'properties': {
        'productCode': _NULLABLE_STRING,
        'description': _NULLABLE_STRING,
        'quantity': _NULLABLE_NUMBER,
        'unitPrice': _NULLABLE_NUMBER,
        'total': _NULLABLE_NUMBER,
    },
}

_QUALITY_LABEL = {'type': ['string', 'null']}

PURCHASE_ORDER_SCHEMA = OutputSchema(
    name='extract_purchase_order',
    description='Extract structured purchase order data including every line item',
    parameters={
        'type': 'object',
        'properties': {
            'confidence': {'type': 'number'},
            'extractedData': {
                'type': 'object',
                'properties': {
                    'poNumber': _NULLABLE_STRING,
                    'supplier': {
                        'type': 'object',
                        'properties': {
                            'name': _NULLABLE_STRING,
                            'email': _NULLABLE_STRING,
                            'phone': _NULLABLE_STRING,
                            'address': _NULLABLE_STRING,
                        },
                    },
                    'lineItems': {'type': 'array', 'items': LINE_ITEM_SCHEMA},
                    'dates': {
                        'type': 'object',
                        'properties': {
                            'orderDate': _NULLABLE_STRING,
                            'deliveryDate': _NULLABLE_STRING,
                        },
                    },
                    'totals': {
                        'type': 'object',
                        'properties': {
                            'subtotal': _NULLABLE_NUMBER,
                            'tax': _NULLABLE_NUMBER,
                            'shipping': _NULLABLE_NUMBER,
                            'total': _NULLABLE_NUMBER,
                        },
                    },
                    'notes': _NULLABLE_STRING,
                },
            },
            'fieldConfidences': {'type': 'object', 'additionalProperties': {'type': 'number'}},
            'qualityIndicators': {
                'type': 'object',
                'properties': {
                    'imageClarity': _QUALITY_LABEL,
                    'textLegibility': _QUALITY_LABEL,
                    'documentCompleteness': _QUALITY_LABEL,
                },
            },
            'issues': {'type': 'array', 'items': {'type': 'string'}},
            'suggestions': {'type': 'array', 'items': {'type': 'string'}},
        },
        'required': ['extractedData'],
    },
)

LINE_ITEMS_SCHEMA = OutputSchema(
    name='extract_po_line_items',
    description='Extract every line item from one portion of a purchase order',
    parameters={
        'type': 'object',
        'properties': {
            'lineItems': {'type': 'array', 'items': LINE_ITEM_SCHEMA},
            'issues': {'type': 'array', 'items': {'type': 'string'}},
        },
        'required': ['lineItems'],
    },
)


class PromptBuilder:
    """Builds role-tagged message lists for each extraction request"""

    def __init__(self, prompt_manager: Optional[PromptManager] = None, include_examples: bool = True):
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.include_examples = include_examples

    def full_extraction(self, content: str, segments: Optional[Segments] = None,
                        chunk_number: int = 1, chunk_count: int = 1) -> List[Dict[str, str]]:
        """Messages for a whole-document (or first-chunk) extraction"""
        segments = segments or Segments()
        return self._messages(
            FULL_EXTRACTION_PROMPT,
            content=content,
            chunk_number=chunk_number,
            chunk_count=chunk_count,
            header=segments.header,
            line_item_blocks=segments.line_item_blocks,
            table_columns=segments.table_columns,
            totals=segments.totals,
        )

    def line_items(self, content: str, segments: Optional[Segments] = None,
                   chunk_number: int = 2, chunk_count: int = 2) -> List[Dict[str, str]]:
        """Messages for a line-item-only extraction of a later chunk"""
        segments = segments or Segments()
        return self._messages(
            LINE_ITEMS_PROMPT,
            content=content,
            chunk_number=chunk_number,
            chunk_count=chunk_count,
            table_columns=segments.table_columns,
        )

    def _messages(self, prompt_name: str, **variables) -> List[Dict[str, str]]:
        messages = []
        system_prompt = self.prompt_manager.get_system_prompt(prompt_name)
        if system_prompt:
            messages.append({'role': 'system', 'content': system_prompt.strip()})
        if self.include_examples:
            messages.extend(self.prompt_manager.get_examples(prompt_name))
        messages.append({
            'role': 'user',
            'content': self.prompt_manager.get_user_prompt(prompt_name, **variables).strip(),
        })
        return messages
