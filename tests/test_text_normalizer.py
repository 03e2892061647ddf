"""
Tests for TextNormalizer

Covers artifact removal, table compression, header label compression and
the signal-based fallback that returns the original text.
"""

import re

import pytest

from poextract.processors.preprocessing import (
    NormalizationOptions,
    TextNormalizer,
    extract_key_signals,
)


SAMPLE_PO = (
    "Purchase Order Number: PO-1001\n"
    "Page 1 of 2\n"
    "Supplier Name: Acme Tools\n"
    "Scanned by CamScanner\n"
    "Description  Qty  Unit Price\n"
    "Widget  2  10.00\n"
    "Total: $1,020.00\n"
)


@pytest.fixture
def normalizer():
    return TextNormalizer()


class TestNormalize:
    """Tests for the full normalization pipeline"""

    def test_cleans_and_compresses_purchase_order(self, normalizer):
        result = normalizer.normalize(SAMPLE_PO)

        assert result.fallback_applied is False
        assert result.text == (
            "PO#PO-1001\n"
            "Supplier:Acme Tools\n"
            "Description | Qty | Unit Price\n"
            "Widget | 2 | 10.00\n"
            "Total:1020.00"
        )
        assert result.original_length == len(SAMPLE_PO)
        assert result.optimized_length == len(result.text)
        assert result.reduction_percent > 0
        assert result.estimated_token_savings == (len(SAMPLE_PO) - len(result.text)) // 4

    def test_invoice_date_and_amount_due_keep_their_signals(self, normalizer):
        text = (
            "PO Number: 77\n"
            "Invoice Date: March 5, 2024\n"
            "Supplier Name: Acme Tools\n"
            "Description  Qty  Unit Price\n"
            "Widget  2  1.00\n"
            "Amount Due: $2.00\n"
        )

        result = normalizer.normalize(text)

        assert result.fallback_applied is False
        assert result.fallback_reasons == []
        assert result.text == (
            "PO#77\n"
            "Invoice Date:2024-03-05\n"
            "Supplier:Acme Tools\n"
            "Description | Qty | Unit Price\n"
            "Widget | 2 | 1.00\n"
            "Amount Due:2.00"
        )

    def test_artifact_that_strips_po_number_falls_back(self, normalizer):
        text = "PO# 4500123\nSupplier: Acme\nTotal: 50.00"
        options = NormalizationOptions(extra_patterns=[r'PO#\s*\d+'])

        result = normalizer.normalize(text, options)

        assert result.fallback_applied is True
        assert result.text == text
        assert result.fallback_reasons == ['lost_signals:po_number']
        assert result.optimized_length == result.original_length

    def test_output_consisting_only_of_artifacts_falls_back(self, normalizer):
        result = normalizer.normalize("Page 1 of 2")

        assert result.fallback_applied is True
        assert result.fallback_reasons == ['empty_output']
        assert result.text == "Page 1 of 2"

    def test_empty_input_is_returned_unchanged(self, normalizer):
        result = normalizer.normalize("")

        assert result.text == ""
        assert result.fallback_reasons == ['empty_output']

    def test_disabled_steps_are_skipped(self, normalizer):
        options = NormalizationOptions(
            remove_artifacts=False,
            compress_tables=False,
            compress_patterns=False,
        )

        result = normalizer.normalize("PO Number: 77\nPage 1 of 2\n\n\nTotal: 5.00", options)

        assert result.text == "PO Number: 77\nPage 1 of 2\nTotal: 5.00"

    @pytest.mark.parametrize('text', [
        SAMPLE_PO,
        "Invoice No: 12\nVendor: Foo\nQty Description\n1 Bolt\nGrand Total 3.00",
        "PO#55\nConfidential - internal\nAmount Due: 10.00",
        "Print Date: 2024-01-01\nSupplier Name: X\nUnit Price 2.00",
    ])
    def test_never_loses_a_key_signal_category(self, normalizer, text):
        result = normalizer.normalize(text)

        if result.text != text:
            before = extract_key_signals(text)
            after = extract_key_signals(result.text)
            for key, count in before.items():
                if count:
                    assert after[key] > 0, key


class TestVendorArtifacts:
    """Tests for per-vendor boilerplate"""

    def test_vendor_patterns_apply_only_with_vendor_key(self, normalizer):
        normalizer.register_vendor_artifacts('acme', r'ACME PORTAL[^\n]*')
        text = "PO Number: 77\nACME PORTAL v2\nTotal: 5.00"

        with_key = normalizer.normalize(text, NormalizationOptions(vendor_key='acme'))
        without_key = normalizer.normalize(text)

        assert with_key.text == "PO#77\nTotal:5.00"
        assert without_key.text == "PO#77\nACME PORTAL v2\nTotal:5.00"

    def test_compiled_patterns_are_accepted(self, normalizer):
        normalizer.register_vendor_artifacts('acme', [re.compile(r'Ref: \w+')])

        assert 'acme' in normalizer.vendor_keys
        assert normalizer.remove_artifacts("Ref: ABC\nPO#1", 'acme') == "\nPO#1"

    def test_registration_appends_to_existing_vendor(self, normalizer):
        normalizer.register_vendor_artifacts('exotic_wholesale', r'Extra line')

        cleaned = normalizer.remove_artifacts("Toll Free: 1-800-EXOTIC\nExtra line", 'exotic_wholesale')

        assert cleaned.strip() == ""

    def test_rejects_invalid_registrations(self, normalizer):
        with pytest.raises(ValueError):
            normalizer.register_vendor_artifacts('', r'x')
        with pytest.raises(ValueError):
            normalizer.register_vendor_artifacts('acme', [123])


class TestCompression:
    """Tests for individual compression steps"""

    def test_order_date_is_rewritten_as_iso(self, normalizer):
        assert normalizer.compress_po_format("Order Date: January 15, 2024") == "Order Date:2024-01-15"

    def test_unparseable_date_is_left_alone(self, normalizer):
        assert normalizer.compress_po_format("Order Date: Smarch 99, 2024") == "Order Date: Smarch 99, 2024"

    def test_po_box_is_not_treated_as_po_number(self, normalizer):
        assert normalizer.compress_po_format("PO Box 55") == "PO Box 55"

    def test_table_compression_requires_three_columns(self, normalizer):
        assert normalizer.compress_tables("Ship To:  Main St") == "Ship To:  Main St"
        assert normalizer.compress_tables("A1  Bolt  3") == "A1 | Bolt | 3"

    def test_whitespace_normalization(self, normalizer):
        assert normalizer.normalize_whitespace("  a\t\tb  \r\n\r\n  c   d ") == "a b\nc d"
