"""
Text preprocessing applied before chunk planning

Components:
- TextNormalizer: boilerplate removal and compression with a safety fallback
- RegexAnchorExtractor: default AnchorExtractor implementation
"""

from .text_normalizer import (
    TextNormalizer,
    NormalizationOptions,
    extract_key_signals,
    estimate_tokens,
)
from .anchor_extractor import (
    AnchorExtractor,
    RegexAnchorExtractor,
    AnchorPattern,
    AnchorOptions,
    AnchorSnippet,
    AnchorStats,
    AnchorResult,
    DEFAULT_PATTERNS,
    register_pattern_set,
    get_pattern_set,
    clear_pattern_registry,
)

__all__ = [
    'TextNormalizer',
    'NormalizationOptions',
    'extract_key_signals',
    'estimate_tokens',
    'AnchorExtractor',
    'RegexAnchorExtractor',
    'AnchorPattern',
    'AnchorOptions',
    'AnchorSnippet',
    'AnchorStats',
    'AnchorResult',
    'DEFAULT_PATTERNS',
    'register_pattern_set',
    'get_pattern_set',
    'clear_pattern_registry',
]
