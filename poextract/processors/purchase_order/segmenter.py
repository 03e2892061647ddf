"""
Document Segmenter

Splits a purchase order into header, line-item table and totals sections
used as prompt context. Anchor snippets are routed by category when
available; otherwise line-based heuristics are applied to the text.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..chunking.planner import TOTALS_LINE
from ..preprocessing.anchor_extractor import AnchorResult

logger = logging.getLogger(__name__)

HEADER_ANCHORS = {'po_number', 'invoice_number', 'supplier', 'ship_to', 'bill_to'}
TOTALS_ANCHORS = {'totals'}
LINE_ITEM_ANCHORS = {'line_items'}

QUANTITY_WORD = re.compile(r'\b(?:qty|quantity|units?|ordered)\b', re.IGNORECASE)
PRICE_WORD = re.compile(r'\b(?:price|amount|cost|rate|ext(?:ended)?)\b', re.IGNORECASE)
TOTALS_WORD = re.compile(r'\b(?:sub\s*-?\s*total|total|balance|amount\s+due)\b', re.IGNORECASE)


@dataclass(frozen=True)
class SegmenterConfig:
    header_lines: int = 12
    totals_lines: int = 3
    max_block_chars: int = 2000
    max_line_item_blocks: int = 4


@dataclass
class Segments:
    header: str = ''
    line_item_blocks: List[str] = field(default_factory=list)
    totals: str = ''
    source: str = 'heuristic'

    @property
    def is_empty(self) -> bool:
        return not (self.header or self.line_item_blocks or self.totals)

    @property
    def table_columns(self) -> str:
        """First line of the first line-item block (the column header row)"""
        if not self.line_item_blocks:
            return ''
        return self.line_item_blocks[0].split('\n', 1)[0].strip()


class DocumentSegmenter:
    """Routes document text into header / line items / totals"""

    def __init__(self, config: Optional[SegmenterConfig] = None):
        self.config = config or SegmenterConfig()

    def segment(self, text: str, anchor_result: Optional[AnchorResult] = None,
                fallback_source: Optional[str] = None) -> Segments:
        """
        Build segments for a document (or one chunk of it)

        Args:
            text: Text the segments describe
            anchor_result: Anchor snippets located in text, if any
            fallback_source: Text used by the heuristics when no snippets are available

        Returns:
            Segments; any part may be empty
        """
        if anchor_result is not None and anchor_result.snippets:
            return self._from_anchors(anchor_result)
        return self._from_heuristics(fallback_source if fallback_source is not None else text)

    def _from_anchors(self, anchor_result: AnchorResult) -> Segments:
        header, totals, blocks = [], [], []
        for snippet in sorted(anchor_result.snippets, key=lambda s: s.start):
            if snippet.anchor_id in HEADER_ANCHORS:
                header.append(snippet.snippet)
            elif snippet.anchor_id in TOTALS_ANCHORS:
                totals.append(snippet.snippet)
            elif snippet.anchor_id in LINE_ITEM_ANCHORS:
                blocks.append(snippet.snippet[:self.config.max_block_chars])
            else:
                logger.debug(f"Unrouted anchor '{snippet.anchor_id}' added to header")
                header.append(snippet.snippet)

        return Segments(
            header='\n'.join(_dedupe(header)),
            line_item_blocks=_dedupe(blocks)[:self.config.max_line_item_blocks],
            totals='\n'.join(_dedupe(totals)),
            source='anchors',
        )

    def _from_heuristics(self, text: str) -> Segments:
        lines = [line for line in text.split('\n') if line.strip()]
        if not lines:
            return Segments()

        header = '\n'.join(lines[:self.config.header_lines])
        totals_lines = [line for line in lines if TOTALS_WORD.search(line)]
        totals = '\n'.join(totals_lines[-self.config.totals_lines:])

        return Segments(
            header=header,
            line_item_blocks=self._line_item_blocks(lines),
            totals=totals,
            source='heuristic',
        )

    def _line_item_blocks(self, lines: List[str]) -> List[str]:
        blocks: List[str] = []
        i = 0
        while i < len(lines) and len(blocks) < self.config.max_line_item_blocks:
            line = lines[i]
            if not (QUANTITY_WORD.search(line) and PRICE_WORD.search(line)):
                i += 1
                continue

            block = [line]
            size = len(line)
            i += 1
            while i < len(lines) and not TOTALS_LINE.search(lines[i]):
                if size + len(lines[i]) + 1 > self.config.max_block_chars:
                    break
                block.append(lines[i])
                size += len(lines[i]) + 1
                i += 1
            blocks.append('\n'.join(block))

        return blocks


def _dedupe(parts: List[str]) -> List[str]:
    seen = set()
    unique = []
    for part in parts:
        key = ' '.join(part.split())
        if key and key not in seen:
            seen.add(key)
            unique.append(part)
    return unique
