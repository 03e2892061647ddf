"""
Fixed-Size Chunking

Splits text strictly by character count.
- No boundary search
- Deterministic and extremely fast

Used as the degraded path when adaptive planning would produce too many
chunks or cannot finish within its iteration budget.
"""

import logging
from typing import List

from .base import ChunkSpec

logger = logging.getLogger(__name__)


class FixedSizeChunker:
    """Fixed-size character windows with a constant overlap"""

    def plan(self, text: str, chunk_chars: int, overlap_chars: int) -> List[ChunkSpec]:
        """
        Split text into fixed-size windows

        Args:
            text: Input text
            chunk_chars: Window size in characters
            overlap_chars: Characters repeated at the start of each following window

        Returns:
            List of chunk specs covering the whole text
        """
        if chunk_chars <= overlap_chars:
            raise ValueError("chunk_chars must be larger than overlap_chars")

        specs: List[ChunkSpec] = []
        text_length = len(text)
        start_idx = 0

        while start_idx < text_length:
            end_idx = min(start_idx + chunk_chars, text_length)
            overlap = 0 if end_idx == text_length else overlap_chars
            specs.append(ChunkSpec(index=len(specs), start=start_idx, end=end_idx, overlap_chars=overlap))

            if end_idx == text_length:
                break

            # Move to next chunk with overlap
            start_idx = end_idx - overlap_chars

        logger.debug(f"Fixed-size plan: {len(specs)} chunks of {chunk_chars} chars")
        return specs
