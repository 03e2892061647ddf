"""
poextract Processors Module

Contains the extraction pipeline:
- Preprocessing (text normalization, anchor extraction)
- Chunk planning
- Model calls (OpenAI service, retry policies, prompts)
- Purchase order extraction (segmenting, parsing, merging, scoring)
"""

from . import preprocessing
from . import chunking
from . import llm
from . import purchase_order

__all__ = ['preprocessing', 'chunking', 'llm', 'purchase_order']
