"""
Tests for the poextract CLI

The OpenAI service is patched out; everything else runs for real.
"""

import json
from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner

from poextract.cli import cli
from poextract.models import ModelReply, TokenUsage
from poextract.processors.llm import AuthError


PO_TEXT = (
    "Purchase Order Number: 4500123\n"
    "Page 1 of 1\n"
    "Supplier Name: Acme Tools\n"
    "SKU | Description | Qty | Unit Price | Amount\n"
    "A1 | Bolt | 2 | 1.00 | 2.00\n"
    "Total: 2.00\n"
)

REPLY = ModelReply(
    content=json.dumps({
        'confidence': 0.9,
        'extractedData': {
            'poNumber': '4500123',
            'supplier': {'name': 'Acme Tools'},
            'lineItems': [{'productCode': 'A1', 'description': 'Bolt', 'quantity': 2,
                           'unitPrice': 1.0, 'total': 2.0}],
            'totals': {'total': 2.0},
        },
    }),
    usage=TokenUsage(prompt_tokens=50, completion_tokens=10, total_tokens=60),
    model='gpt-4o-mini',
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def po_file(tmp_path):
    path = tmp_path / 'po.txt'
    path.write_text(PO_TEXT)
    return path


@pytest.fixture
def service():
    with patch('poextract.cli.OpenAIExtractionService') as service_class:
        instance = Mock()
        instance.extract = AsyncMock(return_value=REPLY)
        service_class.return_value = instance
        yield service_class


class TestExtractCommand:
    """Tests for `poextract extract`"""

    def test_writes_result_json(self, runner, po_file, service, tmp_path):
        output = tmp_path / 'result.json'

        result = runner.invoke(cli, ['extract', str(po_file), '--log-level', 'ERROR', '-o', str(output)])

        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert data['poNumber'] == '4500123'
        assert data['supplier']['name'] == 'Acme Tools'
        assert data['items'][0]['productCode'] == 'A1'
        assert data['metadata']['chunkCount'] == 1
        service.return_value.extract.assert_awaited_once()

    def test_model_option_overrides_configuration(self, runner, po_file, service):
        result = runner.invoke(cli, ['extract', str(po_file), '--log-level', 'ERROR', '--model', 'gpt-4o'])

        assert result.exit_code == 0, result.output
        assert service.call_args.kwargs['model'] == 'gpt-4o'

    def test_no_preprocess_sends_raw_text(self, runner, po_file, service):
        result = runner.invoke(cli, ['extract', str(po_file), '--log-level', 'ERROR', '--no-preprocess'])

        assert result.exit_code == 0, result.output
        messages = service.return_value.extract.await_args.args[0]
        assert 'Page 1 of 1' in messages[-1]['content']

    def test_auth_error_is_reported(self, runner, po_file, service):
        service.return_value.extract.side_effect = AuthError("invalid key", status_code=401)

        result = runner.invoke(cli, ['extract', str(po_file), '--log-level', 'ERROR'])

        assert result.exit_code == 1
        assert 'Authentication failed' in result.output

    def test_extraction_failure_is_reported(self, runner, tmp_path, service):
        empty = tmp_path / 'empty.txt'
        empty.write_text("   \n")

        result = runner.invoke(cli, ['extract', str(empty), '--log-level', 'ERROR'])

        assert result.exit_code == 1
        assert 'Extraction failed' in result.output
        service.return_value.extract.assert_not_awaited()

    def test_invalid_chunking_is_a_usage_error(self, runner, po_file, service):
        result = runner.invoke(cli, ['extract', str(po_file), '--log-level', 'ERROR', '--overlap-chars', '5000'])

        assert result.exit_code == 2
        assert 'overlap_chars' in result.output
        service.return_value.extract.assert_not_awaited()

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ['extract', str(tmp_path / 'missing.txt')])

        assert result.exit_code == 2


class TestNormalizeCommand:
    """Tests for `poextract normalize`"""

    def test_prints_report_without_text(self, runner, po_file):
        result = runner.invoke(cli, ['normalize', str(po_file), '--log-level', 'ERROR'])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data['originalLength'] == len(PO_TEXT)
        assert data['optimizedLength'] < data['originalLength']
        assert data['fallbackApplied'] is False
        assert 'text' not in data

    def test_show_text(self, runner, po_file):
        result = runner.invoke(cli, ['normalize', str(po_file), '--log-level', 'ERROR', '--show-text'])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)['text'].startswith('PO#4500123')


class TestPlanCommand:
    """Tests for `poextract plan`"""

    def test_prints_chunk_plan(self, runner, tmp_path):
        path = tmp_path / 'table.txt'
        rows = [f"SKU-{i:03d} | Widget {i} | 1 | 2.00 | 2.00" for i in range(100)]
        path.write_text("\n".join(rows))

        result = runner.invoke(cli, ['plan', str(path), '--log-level', 'ERROR',
                                     '--max-chunk-chars', '1000', '--overlap-chars', '100'])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data['chunkCount'] == len(data['chunks']) > 1
        assert data['chunks'][0]['start'] == 0
        assert data['chunks'][-1]['end'] == data['textLength']
        assert all(chunk['length'] <= 1000 for chunk in data['chunks'][:-1])

    def test_invalid_chunking_is_a_usage_error(self, runner, po_file):
        result = runner.invoke(cli, ['plan', str(po_file), '--log-level', 'ERROR', '--overlap-chars', '5000'])

        assert result.exit_code == 2
