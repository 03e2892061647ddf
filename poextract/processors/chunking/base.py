"""
Base types for chunk planning
"""

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping


def estimate_tokens(length: int) -> int:
    """Rough token estimate (~4 chars per token)"""
    return math.ceil(length / 4) if length > 0 else 0


@dataclass(frozen=True)
class ChunkSpec:
    """A planned [start, end) window over the normalized document text"""

    index: int
    start: int
    end: int
    overlap_chars: int = 0  # How far the next chunk starts before this one ends
    length: int = field(init=False)
    estimated_tokens: int = field(init=False)

    def __post_init__(self):
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid chunk range [{self.start}, {self.end})")
        if self.overlap_chars < 0:
            raise ValueError("overlap_chars must be non-negative")
        object.__setattr__(self, 'length', self.end - self.start)
        object.__setattr__(self, 'estimated_tokens', estimate_tokens(self.end - self.start))

    def slice(self, text: str) -> str:
        """Return this chunk's text"""
        return text[self.start:self.end]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'start': self.start,
            'end': self.end,
            'length': self.length,
            'overlap_chars': self.overlap_chars,
            'estimated_tokens': self.estimated_tokens,
        }


@dataclass(frozen=True)
class ChunkConfig:
    """Configuration for chunk planning"""

    max_chunk_chars: int = 4200
    min_chunk_chars: int = 600
    overlap_chars: int = 180
    max_iterations: int = 50
    max_chunks: int = 12
    boundary_lookback_chars: int = 400

    def __post_init__(self):
        if self.max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be positive")
        if self.min_chunk_chars < 0 or self.min_chunk_chars > self.max_chunk_chars:
            raise ValueError("min_chunk_chars must be between 0 and max_chunk_chars")
        if self.overlap_chars < 0 or self.overlap_chars >= self.max_chunk_chars:
            raise ValueError("overlap_chars must be non-negative and smaller than max_chunk_chars")
        if self.max_iterations <= 0 or self.max_chunks <= 0:
            raise ValueError("max_iterations and max_chunks must be positive")
        if self.boundary_lookback_chars < 0:
            raise ValueError("boundary_lookback_chars must be non-negative")

    def with_overrides(self, overrides: Mapping[str, Any]) -> 'ChunkConfig':
        """Return a copy with the given fields replaced; unknown keys are rejected"""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown chunking options: {', '.join(sorted(unknown))}")
        return replace(self, **dict(overrides))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Read-only baseline; callers derive per-request configs from it
DEFAULT_CHUNK_CONFIG = ChunkConfig()
