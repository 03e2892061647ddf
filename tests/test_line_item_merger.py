"""
Tests for LineItemMerger
"""

from poextract.models import ExtractionPayload, LineItem
from poextract.processors.purchase_order import LineItemMerger


def item(code, description, quantity=None, unit_price=None, total=None):
    return LineItem(product_code=code, description=description, quantity=quantity,
                    unit_price=unit_price, total=total)


class TestLineItemMerger:
    """Tests for merging chunk payloads"""

    def test_overlap_duplicates_are_removed_in_order(self):
        first = ExtractionPayload(line_items=[item('A1', 'Bolt', 2, 1), item('A2', 'Nut', 3, '0.50')])
        second = ExtractionPayload(line_items=[item('A2', 'Nut', '3.0', 0.5), item('A3', 'Washer', 10, 0.1)])

        merged = LineItemMerger().merge([first, second])

        assert [i.product_code for i in merged] == ['A1', 'A2', 'A3']

    def test_same_product_with_different_quantity_is_kept(self):
        payload = ExtractionPayload(line_items=[item('A1', 'Bolt', 2, 1), item('A1', 'Bolt', 5, 1)])

        merged = LineItemMerger().merge([payload])

        assert [i.quantity for i in merged] == [2, 5]

    def test_legacy_items_are_included(self):
        payload = ExtractionPayload(line_items=[item('A1', 'Bolt')], legacy_items=[item('B1', 'Gear')])

        merged = LineItemMerger().merge([payload])

        assert [i.product_code for i in merged] == ['A1', 'B1']

    def test_deduplicate_is_idempotent(self):
        items = [item('A1', 'Bolt', 1), item('A1', 'Bolt', 1), item('A2', 'Nut'), item(None, 'Nut')]

        once = LineItemMerger.deduplicate(items)
        twice = LineItemMerger.deduplicate(once)

        assert once == twice
        assert len(once) == 3

    def test_empty(self):
        assert LineItemMerger().merge([]) == []

    def test_dedup_key_ignores_decimal_formatting(self):
        assert item('A', 'x', 2, '1.50').dedup_key() == item('A', 'x', '2.00', 1.5).dedup_key()
        assert item(None, 'x').dedup_key() == '|x|||'
