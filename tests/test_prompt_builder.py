"""
Tests for PromptManager and PromptBuilder
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from poextract.processors.llm import PromptManager, get_prompt_manager
from poextract.processors.purchase_order import (
    LINE_ITEMS_SCHEMA,
    PURCHASE_ORDER_SCHEMA,
    PromptBuilder,
    Segments,
)


SEGMENTS = Segments(
    header="PO#4500123\nSupplier:Acme Tools",
    line_item_blocks=["SKU | Description | Qty | Unit Price\nAT-1 | Hammer | 1 | 9.00"],
    totals="Total:9.00",
    source='anchors',
)


class TestPromptManager:
    """Tests for YAML prompt loading"""

    def test_lists_packaged_prompts(self):
        assert PromptManager().list_prompts() == ['po_extraction', 'po_line_items']

    def test_load_prompt_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            prompt_data = {
                'name': 'test_prompt',
                'system_prompt': 'You are a test system.',
                'user_prompt_template': 'Process: {{ content }}',
                'examples': [{'user': 'in', 'assistant': 'out'}],
            }
            with open(Path(tmpdir) / "test_prompt.yaml", 'w') as f:
                yaml.dump(prompt_data, f)

            manager = PromptManager(prompts_dir=tmpdir)

            assert manager.get_system_prompt('test_prompt') == 'You are a test system.'
            assert manager.get_user_prompt('test_prompt', content='PO#1') == 'Process: PO#1'
            assert manager.get_examples('test_prompt') == [
                {'role': 'user', 'content': 'in'},
                {'role': 'assistant', 'content': 'out'},
            ]

    def test_prompt_caching(self):
        manager = PromptManager()

        first = manager.load_prompt('po_extraction')
        assert manager.load_prompt('po_extraction') is first

        manager.clear_cache()
        assert manager.load_prompt('po_extraction') is not first

    def test_missing_prompt_uses_passthrough_template(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = PromptManager(prompts_dir=tmpdir)

            assert manager.get_system_prompt('missing') == ''
            assert manager.get_user_prompt('missing', content='raw') == 'raw'

    def test_default_manager_is_shared(self):
        assert get_prompt_manager() is get_prompt_manager()
        assert get_prompt_manager('/tmp') is not get_prompt_manager()


class TestPromptBuilder:
    """Tests for request message construction"""

    def test_single_chunk_request(self):
        messages = PromptBuilder().full_extraction("PO#1\nTotal:5.00")

        assert [m['role'] for m in messages] == ['system', 'user', 'assistant', 'user']
        assert 'purchase order' in messages[0]['content'].lower()
        assert 'Document Content (Chunk 1/1):\nPO#1\nTotal:5.00' in messages[-1]['content']
        assert 'IMPORTANT' not in messages[-1]['content']

    def test_first_chunk_request_carries_document_context(self):
        messages = PromptBuilder().full_extraction("chunk one", SEGMENTS, chunk_number=1, chunk_count=3)

        user = messages[-1]['content']
        assert 'This is chunk 1 of 3' in user
        assert 'Supplier:Acme Tools' in user
        assert 'SKU | Description | Qty | Unit Price' in user
        assert 'Total:9.00' in user
        assert user.endswith('Document Content (Chunk 1/3):\nchunk one')

    def test_full_request_includes_line_item_sections(self):
        segments = Segments(
            header="PO#1",
            line_item_blocks=["SKU | Qty\nA | 1", "SKU | Qty\nB | 2"],
            source='anchors',
        )

        user = PromptBuilder().full_extraction("content", segments)[-1]['content']

        assert 'Line item sections:\nSKU | Qty\nA | 1\n---\nSKU | Qty\nB | 2' in user
        assert 'Line item table columns' not in user

    def test_line_item_request(self):
        messages = PromptBuilder().line_items("AT-2 | Saw | 1 | 20.00", SEGMENTS, chunk_number=2, chunk_count=3)

        assert [m['role'] for m in messages] == ['system', 'user']
        user = messages[-1]['content']
        assert 'chunk 2 of 3' in user
        assert 'SKU | Description | Qty | Unit Price' in user
        assert 'Supplier:Acme Tools' not in user
        assert user.endswith('AT-2 | Saw | 1 | 20.00')

    def test_examples_can_be_disabled(self):
        messages = PromptBuilder(include_examples=False).full_extraction("PO#1")

        assert [m['role'] for m in messages] == ['system', 'user']

    @pytest.mark.parametrize('schema, required', [
        (PURCHASE_ORDER_SCHEMA, ['extractedData']),
        (LINE_ITEMS_SCHEMA, ['lineItems']),
    ])
    def test_schemas_are_function_tools(self, schema, required):
        tool = schema.as_tool()

        assert tool['type'] == 'function'
        assert tool['function']['name'] == schema.name
        assert tool['function']['parameters']['required'] == required
