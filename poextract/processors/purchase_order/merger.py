"""
Line item merging across chunk payloads
"""

import logging
from typing import Iterable, List

from ...models import ExtractionPayload, LineItem

logger = logging.getLogger(__name__)


class LineItemMerger:
    """Concatenates line items in chunk order and drops exact duplicates"""

    def merge(self, payloads: Iterable[ExtractionPayload]) -> List[LineItem]:
        """
        Merge line items from all chunk payloads

        Items repeated because of chunk overlap share a composite key
        (product code, description, quantity, unit price, total); only the
        first occurrence is kept and order is otherwise preserved.

        Args:
            payloads: Chunk payloads in chunk order

        Returns:
            Deduplicated line items
        """
        combined: List[LineItem] = []
        for payload in payloads:
            combined.extend(payload.all_line_items)
        return self.deduplicate(combined)

    @staticmethod
    def deduplicate(items: Iterable[LineItem]) -> List[LineItem]:
        seen = set()
        unique: List[LineItem] = []
        total = 0
        for item in items:
            total += 1
            key = item.dedup_key()
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)

        if total != len(unique):
            logger.info(f"Merged {total} line items into {len(unique)} unique items")
        return unique
