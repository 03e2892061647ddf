"""
poextract CLI commands

This module provides command-line interface for purchase order extraction.
"""

import asyncio
import json
import logging
from pathlib import Path

import click

from poextract.config import ExtractionSettings, setup_logging
from poextract.processors.chunking import ChunkPlanner
from poextract.processors.llm import AuthError, ExtractionFailedError, OpenAIExtractionService
from poextract.processors.preprocessing import NormalizationOptions, TextNormalizer
from poextract.processors.purchase_order import PurchaseOrderExtractor
from poextract.jobs import CostTracker, RateLimiter

logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def read_document(path: str) -> str:
    """Read document text from a .txt/.csv file or a text-based PDF"""
    file_path = Path(path)
    if file_path.suffix.lower() == '.pdf':
        from pdfminer.high_level import extract_text
        return extract_text(str(file_path))
    return file_path.read_text(encoding='utf-8', errors='replace')


def _load_settings(config, log_level) -> ExtractionSettings:
    settings = ExtractionSettings.load(config)
    setup_logging(log_level or settings.get('logging.level', 'INFO'), settings.get('logging.file'))
    return settings


def _chunk_overrides(max_chunk_chars, overlap_chars) -> dict:
    overrides = {}
    if max_chunk_chars is not None:
        overrides['max_chunk_chars'] = max_chunk_chars
    if overlap_chars is not None:
        overrides['overlap_chars'] = overlap_chars
    return overrides


def _emit(data, output) -> None:
    text = json.dumps(data, indent=2, default=str)
    if output:
        Path(output).write_text(text + '\n', encoding='utf-8')
        click.echo(f'Wrote {output}')
    else:
        click.echo(text)


@click.group()
def cli():
    """poextract command-line interface"""
    pass


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--vendor-key', help='Vendor key selecting vendor artifacts and anchor patterns')
@click.option('--no-preprocess', is_flag=True, help='Send raw text without normalization')
@click.option('--no-anchors', is_flag=True, help='Skip anchor extraction')
@click.option('--max-chunk-chars', type=int, help='Maximum characters per chunk')
@click.option('--overlap-chars', type=int, help='Overlap between consecutive chunks')
@click.option('--model', help='OpenAI model (overrides configuration)')
@click.option('--config', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
@click.option('--output', '-o', type=click.Path(), help='Write JSON result to this file')
def extract(path, vendor_key, no_preprocess, no_anchors, max_chunk_chars, overlap_chars,
            model, config, log_level, output):
    """Extract a purchase order from PATH and print it as JSON"""
    settings = _load_settings(config, log_level)

    chunking = _chunk_overrides(max_chunk_chars, overlap_chars)
    try:
        chunk_config = settings.chunk_config().with_overrides(chunking)
    except ValueError as e:
        raise click.BadParameter(str(e))

    text = read_document(path)
    options = settings.extraction_options(
        vendor_key=vendor_key,
        disable_text_preprocessing=no_preprocess,
        disable_anchor_extraction=no_anchors,
    )

    service_kwargs = settings.service_kwargs()
    if model:
        service_kwargs['model'] = model
    cost_tracker = CostTracker()
    service = OpenAIExtractionService(
        rate_limiter=RateLimiter(settings.rate_limit_config()),
        cost_tracker=cost_tracker,
        **service_kwargs,
    )
    extractor = PurchaseOrderExtractor(service, chunk_config=chunk_config)

    try:
        result = asyncio.run(extractor.extract(text, options))
    except AuthError as e:
        raise click.ClickException(f'Authentication failed: {e}')
    except ExtractionFailedError as e:
        for issue in e.issues:
            click.echo(f'  - {issue}', err=True)
        raise click.ClickException(f'Extraction failed: {e}')

    _emit(result.to_dict(), output)
    summary = cost_tracker.get_summary()
    logger.info(f"Estimated cost: ${summary['total_cost']:.4f} over {summary['requests']} request(s)")


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--vendor-key', help='Vendor key selecting vendor artifacts')
@click.option('--show-text', is_flag=True, help='Include the normalized text in the output')
@click.option('--config', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
def normalize(path, vendor_key, show_text, config, log_level):
    """Normalize the text in PATH and print the normalization report"""
    _load_settings(config, log_level)

    result = TextNormalizer().normalize(read_document(path), NormalizationOptions(vendor_key=vendor_key))
    data = result.model_dump(mode='json', by_alias=True)
    if not show_text:
        data.pop('text', None)
    _emit(data, None)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--max-chunk-chars', type=int, help='Maximum characters per chunk')
@click.option('--overlap-chars', type=int, help='Overlap between consecutive chunks')
@click.option('--no-preprocess', is_flag=True, help='Plan over the raw text')
@click.option('--config', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
def plan(path, max_chunk_chars, overlap_chars, no_preprocess, config, log_level):
    """Print the chunk plan for PATH"""
    settings = _load_settings(config, log_level)

    text = read_document(path)
    if not no_preprocess:
        text = TextNormalizer().normalize(text).text

    try:
        chunk_config = settings.chunk_config().with_overrides(_chunk_overrides(max_chunk_chars, overlap_chars))
    except ValueError as e:
        raise click.BadParameter(str(e))

    chunks = ChunkPlanner(chunk_config).plan(text)
    _emit({
        'textLength': len(text),
        'chunkCount': len(chunks),
        'chunks': [chunk.to_dict() for chunk in chunks],
    }, None)


if __name__ == '__main__':
    cli()
