"""
Chunk planning for long purchase-order documents

Components:
- ChunkPlanner: adaptive, boundary-aware planning
- FixedSizeChunker: degraded fixed-window planning
"""

from .base import ChunkSpec, ChunkConfig, DEFAULT_CHUNK_CONFIG, estimate_tokens
from .fixed_size import FixedSizeChunker
from .planner import ChunkPlanner, plan_chunks, looks_like_table_row

__all__ = [
    'ChunkSpec',
    'ChunkConfig',
    'DEFAULT_CHUNK_CONFIG',
    'ChunkPlanner',
    'FixedSizeChunker',
    'plan_chunks',
    'looks_like_table_row',
    'estimate_tokens',
]
