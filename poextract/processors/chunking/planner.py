"""
Adaptive Chunk Planner

Splits normalized purchase-order text into overlapping windows sized for a
model request. Boundaries prefer line breaks so table rows stay intact, and
the overlap grows when a window ends inside a table row so the row is seen
whole by the next request.

Technical Properties:
- Deterministic: identical text and config always give identical plans
- Coverage: chunk ranges cover [0, len(text)) without gaps
- Bounded: at most max_iterations passes, at most max_chunks chunks
"""

import logging
import math
import re
from typing import List, Optional

from .base import ChunkConfig, ChunkSpec, DEFAULT_CHUNK_CONFIG
from .fixed_size import FixedSizeChunker

logger = logging.getLogger(__name__)

BOUNDARY_CHARACTERS = ('\n', ' ', '|')

TOTALS_LINE = re.compile(
    r'\b(?:sub\s*-?\s*total|grand\s+total|total|amount\s+due|balance(?:\s+due)?)\b',
    re.IGNORECASE,
)


def looks_like_table_row(line: str) -> bool:
    """Delimited row that is not a totals line"""
    delimited = '|' in line or '\t' in line or line.count(',') >= 2
    return delimited and not TOTALS_LINE.search(line)


class ChunkPlanner:
    """Plans chunk boundaries over normalized text"""

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or DEFAULT_CHUNK_CONFIG
        self._fallback = FixedSizeChunker()

    def plan(self, text: str, config: Optional[ChunkConfig] = None) -> List[ChunkSpec]:
        """
        Plan chunks for text

        Args:
            text: Normalized document text
            config: Optional per-call configuration (defaults to the planner's)

        Returns:
            Ordered chunk specs; empty for empty text
        """
        config = config or self.config
        text_length = len(text)
        if text_length == 0:
            return []

        ranges: List[List[int]] = []  # [start, end, overlap]
        start = 0
        iterations = 0

        while start < text_length and iterations < config.max_iterations:
            iterations += 1
            target = min(start + config.max_chunk_chars, text_length)
            end = target if target == text_length else self._find_boundary(text, start, target, config)

            if ranges and end - start < config.min_chunk_chars:
                ranges[-1][1] = end
            else:
                ranges.append([start, end, 0])

            if end >= text_length:
                ranges[-1][2] = 0
                break

            overlap = self._adaptive_overlap(text, ranges[-1][0], end, config)
            next_start = max(end - overlap, start + 1)
            ranges[-1][2] = end - next_start
            start = next_start

        covered = bool(ranges) and ranges[-1][1] == text_length
        if not covered or len(ranges) > config.max_chunks:
            logger.warning(
                f"Adaptive plan unusable ({len(ranges)} chunks, covered={covered}, "
                f"iterations={iterations}); falling back to fixed-size chunks"
            )
            return self._fixed_size_plan(text, config)

        specs = [
            ChunkSpec(index=i, start=s, end=e, overlap_chars=o)
            for i, (s, e, o) in enumerate(ranges)
        ]
        logger.info(f"Planned {len(specs)} chunk(s) for {text_length} chars")
        return specs

    def _find_boundary(self, text: str, start: int, target: int, config: ChunkConfig) -> int:
        """Nearest newline, else space, else pipe, searching back from target"""
        floor = max(start + 1, target - config.boundary_lookback_chars)
        for character in BOUNDARY_CHARACTERS:
            position = text.rfind(character, floor - 1, target)
            if position != -1:
                return position + 1
        return target

    def _adaptive_overlap(self, text: str, chunk_start: int, end: int, config: ChunkConfig) -> int:
        base = config.overlap_chars
        cap = (end - chunk_start) // 2

        # Row containing the chunk's last character, possibly running past end
        row_start = text.rfind('\n', chunk_start, end - 1)
        row_start = chunk_start if row_start == -1 else row_start + 1
        row_end = text.find('\n', end - 1)
        if row_end == -1:
            row_end = len(text)
        row = text[row_start:row_end]

        if looks_like_table_row(row):
            overlap = max(base, math.ceil(1.5 * len(row)))
        else:
            trailing = text[row_start:end].rstrip('\n')
            overlap = base
            if len(trailing) < base:
                overlap = max(len(trailing), base // 2)

        return min(overlap, cap)

    def _fixed_size_plan(self, text: str, config: ChunkConfig) -> List[ChunkSpec]:
        overlap = config.overlap_chars // 2
        step = math.ceil(max(len(text) - overlap, 1) / config.max_chunks)
        return self._fallback.plan(text, step + overlap, overlap)


def plan_chunks(text: str, config: Optional[ChunkConfig] = None) -> List[ChunkSpec]:
    """Plan chunks with a throwaway planner"""
    return ChunkPlanner(config).plan(text)
