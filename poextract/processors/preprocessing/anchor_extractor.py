"""
Anchor Extraction

Locates labelled regions of a purchase order (PO number, supplier, ship/bill
to, totals, the line-item table) and returns them as positioned snippets.
The segmenter routes snippets into prompt sections; callers that only need
a reduced document can use ``combined_text``.

Any object with an ``extract_anchors(text, options)`` method satisfying
``AnchorExtractor`` can be plugged into the orchestrator.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union, runtime_checkable

logger = logging.getLogger(__name__)

SNIPPET_SEPARATOR = '\n---\n'


@dataclass(frozen=True)
class AnchorPattern:
    """One anchor: a regex plus how much context to keep around each match"""

    id: str
    label: str
    pattern: str
    context_before: Optional[int] = None
    context_after: Optional[int] = None
    max_matches: Optional[int] = None
    # When set, capture from the match to the first terminator (or the end of text)
    terminator_pattern: Optional[str] = None
    flags: int = re.IGNORECASE


@dataclass(frozen=True)
class AnchorOptions:
    pattern_set: Optional[str] = None
    patterns: Optional[Tuple[AnchorPattern, ...]] = None
    context_before: int = 60
    context_after: int = 160
    max_matches_per_pattern: int = 3
    min_reduction_percent: float = 10
    min_snippets: int = 1
    global_max_snippets: int = 50


@dataclass(frozen=True)
class AnchorSnippet:
    anchor_id: str
    label: str
    start: int
    end: int
    snippet: str


@dataclass
class AnchorStats:
    original_length: int
    reduced_length: int
    reduction_percent: float = 0.0
    anchors_matched: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'original_length': self.original_length,
            'reduced_length': self.reduced_length,
            'reduction_percent': self.reduction_percent,
            'anchors_matched': dict(self.anchors_matched),
        }


@dataclass
class AnchorResult:
    applied: bool
    combined_text: str
    snippets: List[AnchorSnippet]
    stats: AnchorStats


@runtime_checkable
class AnchorExtractor(Protocol):
    """Anything that can locate labelled anchors in document text"""

    def extract_anchors(self, text: str, options: Optional[AnchorOptions] = None) -> AnchorResult:
        ...


DEFAULT_PATTERNS: Tuple[AnchorPattern, ...] = (
    AnchorPattern(
        id='po_number', label='Purchase Order',
        pattern=r'(?:purchase\s+order|po)\s*(?:number|no\.?|#)\s*[:#-]?\s*',
        context_before=40, context_after=140,
    ),
    AnchorPattern(
        id='invoice_number', label='Invoice Number',
        pattern=r'(?:invoice|inv)\s*(?:number|no\.?|#)\s*[:#-]?\s*',
        context_before=40, context_after=120,
    ),
    AnchorPattern(
        id='supplier', label='Supplier',
        pattern=r'(?:supplier|vendor|from)\s*(?:name|:)\s*',
        context_before=30, context_after=160,
    ),
    AnchorPattern(
        id='ship_to', label='Ship To',
        pattern=r'(?:ship\s*to|deliver\s*to|destination)\s*[:]?\s*',
        context_before=30, context_after=160,
    ),
    AnchorPattern(
        id='bill_to', label='Bill To',
        pattern=r'(?:bill\s*to|pay\s*to)\s*[:]?\s*',
        context_before=30, context_after=160,
    ),
    AnchorPattern(
        id='totals', label='Totals',
        pattern=r'(?:subtotal|tax|shipping|total\s*(?:amount)?|grand\s*total)\s*[:]?\s*',
        context_before=60, context_after=160,
    ),
    AnchorPattern(
        id='line_items', label='Line Items',
        pattern=r'(?:qty|description|unit\s*price|extended\s*price|item|product)',
        context_before=80,
        max_matches=1,
        terminator_pattern=(
            r'(?:subtotal|sub-total|sub\s+total|total\s*(?:amount)?|grand\s*total'
            r'|payment\s*terms|notes|comments|thank\s*you|signature)'
        ),
    ),
)


_pattern_registry: Dict[str, Dict[str, Any]] = {}


def register_pattern_set(identifier: str, patterns: Union[AnchorPattern, Iterable[AnchorPattern]],
                         **options: Any) -> None:
    """
    Register a named pattern set (for example per merchant or per vendor)

    Args:
        identifier: Name selected through AnchorOptions.pattern_set
        patterns: Patterns appended to the set
        **options: AnchorOptions field overrides applied when the set is used
    """
    if not identifier or not isinstance(identifier, str):
        raise ValueError("Pattern set identifier must be a non-empty string")

    if isinstance(patterns, AnchorPattern):
        patterns = [patterns]
    patterns = list(patterns)
    if not all(isinstance(p, AnchorPattern) and p.pattern for p in patterns):
        raise ValueError("Each pattern must be an AnchorPattern with a pattern")

    existing = _pattern_registry.get(identifier, {'patterns': [], 'options': {}})
    _pattern_registry[identifier] = {
        'patterns': existing['patterns'] + patterns,
        'options': {**existing['options'], **options},
    }


def get_pattern_set(identifier: Optional[str]) -> Optional[Dict[str, Any]]:
    return _pattern_registry.get(identifier) if identifier else None


def clear_pattern_registry() -> None:
    _pattern_registry.clear()


class RegexAnchorExtractor:
    """Default anchor extractor driven by AnchorPattern regexes"""

    def extract_anchors(self, text: str, options: Optional[AnchorOptions] = None) -> AnchorResult:
        """
        Find anchor snippets in text

        Args:
            text: Normalized document text
            options: Extraction options; a registered pattern set may supply defaults

        Returns:
            AnchorResult with snippets ordered by position
        """
        options = self._resolve_options(options or AnchorOptions())

        if not text:
            return self._not_applied(text or '', {}, [])

        snippets: List[AnchorSnippet] = []
        anchors_matched: Dict[str, int] = {}
        seen_ranges = set()
        max_snippets = options.global_max_snippets if options.global_max_snippets > 0 else None

        for anchor in options.patterns:
            if max_snippets and len(snippets) >= max_snippets:
                break

            limit = anchor.max_matches if anchor.max_matches is not None else options.max_matches_per_pattern
            before = anchor.context_before if anchor.context_before is not None else options.context_before
            after = anchor.context_after if anchor.context_after is not None else options.context_after

            matches = 0
            for match in re.finditer(anchor.pattern, text, anchor.flags):
                if matches >= limit or (max_snippets and len(snippets) >= max_snippets):
                    break
                matches += 1
                anchors_matched[anchor.id] = anchors_matched.get(anchor.id, 0) + 1

                start = max(0, match.start() - before)
                if anchor.terminator_pattern:
                    terminator = re.compile(anchor.terminator_pattern, re.IGNORECASE).search(text, match.end())
                    end = terminator.start() if terminator else len(text)
                else:
                    end = min(len(text), match.end() + after)

                if (start, end) in seen_ranges:
                    continue
                seen_ranges.add((start, end))

                snippet = text[start:end].strip()
                if not snippet:
                    continue
                snippets.append(AnchorSnippet(anchor.id, anchor.label, start, end, snippet))

        if not snippets:
            return self._not_applied(text, anchors_matched, [])

        snippets.sort(key=lambda s: s.start)
        combined = SNIPPET_SEPARATOR.join(s.snippet for s in snippets)
        reduction = round((1 - len(combined) / len(text)) * 100)

        applied = (
            reduction >= options.min_reduction_percent
            and len(snippets) >= options.min_snippets
            and len(combined) < len(text)
        )
        if not applied:
            logger.debug(f"Anchor reduction {reduction}% below threshold; keeping full text")
            return self._not_applied(text, anchors_matched, snippets)

        logger.info(f"Anchor extraction: {len(snippets)} snippet(s), {reduction}% reduction")
        return AnchorResult(
            applied=True,
            combined_text=combined,
            snippets=snippets,
            stats=AnchorStats(len(text), len(combined), reduction, anchors_matched),
        )

    @staticmethod
    def _resolve_options(options: AnchorOptions) -> AnchorOptions:
        registered = get_pattern_set(options.pattern_set)
        if registered:
            # Set options only fill fields the caller left at their defaults
            defaults = AnchorOptions()
            fill = {
                name: value for name, value in registered['options'].items()
                if getattr(options, name) == getattr(defaults, name)
            }
            options = replace(options, **fill)
        patterns = options.patterns or (tuple(registered['patterns']) if registered else None) or DEFAULT_PATTERNS
        return replace(options, patterns=tuple(patterns))

    @staticmethod
    def _not_applied(text: str, anchors_matched: Dict[str, int],
                     snippets: List[AnchorSnippet]) -> AnchorResult:
        return AnchorResult(
            applied=False,
            combined_text=text,
            snippets=snippets,
            stats=AnchorStats(len(text), len(text), 0, anchors_matched),
        )
