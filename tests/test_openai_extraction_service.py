"""
Tests for OpenAIExtractionService

The OpenAI client is always mocked.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest

from poextract.jobs import CostTracker
from poextract.processors.llm import (
    AuthError,
    ExtractionTimeoutError,
    OpenAIExtractionService,
    OutputSchema,
    RetryPolicy,
    TimeoutPolicy,
    payload_size,
)


SCHEMA = OutputSchema(
    name='extract_purchase_order',
    description='Extract a purchase order',
    parameters={'type': 'object', 'properties': {}},
)

MESSAGES = [
    {'role': 'system', 'content': 'You extract purchase orders.'},
    {'role': 'user', 'content': 'PO#1'},
]


def make_response(arguments=None, content=None, usage=None, model='gpt-4o-mini', finish_reason='tool_calls'):
    message = Mock()
    message.content = content
    if arguments is None:
        message.tool_calls = None
    else:
        tool_call = Mock()
        tool_call.function.arguments = arguments
        message.tool_calls = [tool_call]

    choice = Mock()
    choice.message = message
    choice.finish_reason = finish_reason

    response = Mock()
    response.choices = [choice]
    response.model = model
    response.usage = usage if usage is not None else {
        'prompt_tokens': 120, 'completion_tokens': 30, 'total_tokens': 150,
    }
    return response


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def client():
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=make_response('{"poNumber": "1"}'))
    return client


class TestOpenAIExtractionService:
    """Tests for structured extraction calls"""

    @pytest.mark.asyncio
    async def test_returns_tool_arguments(self, client):
        service = OpenAIExtractionService(client=client, sleep=AsyncMock())

        reply = await service.extract(MESSAGES, SCHEMA)

        assert json.loads(reply.content) == {"poNumber": "1"}
        assert reply.usage.total_tokens == 150
        assert reply.model == 'gpt-4o-mini'
        assert reply.schema_name == 'extract_purchase_order'
        assert reply.finish_reason == 'tool_calls'

    @pytest.mark.asyncio
    async def test_forces_the_schema_tool(self, client):
        service = OpenAIExtractionService(client=client, model='gpt-4.1-mini', temperature=0.0, max_tokens=2000)

        await service.extract(MESSAGES, SCHEMA)

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs['model'] == 'gpt-4.1-mini'
        assert kwargs['messages'] == MESSAGES
        assert kwargs['tools'] == [SCHEMA.as_tool()]
        assert kwargs['tool_choice'] == {'type': 'function', 'function': {'name': 'extract_purchase_order'}}
        assert kwargs['temperature'] == 0.0
        assert kwargs['max_tokens'] == 2000

    @pytest.mark.asyncio
    async def test_falls_back_to_message_content(self, client):
        client.chat.completions.create.return_value = make_response(content='{"lineItems": []}')
        client.chat.completions.create.return_value.usage = None
        service = OpenAIExtractionService(client=client)

        reply = await service.extract(MESSAGES, SCHEMA)

        assert reply.content == '{"lineItems": []}'
        assert reply.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, client):
        client.chat.completions.create.side_effect = [
            StatusError("bad gateway", 502),
            make_response('{"poNumber": "2"}'),
        ]
        sleep = AsyncMock()
        service = OpenAIExtractionService(client=client, sleep=sleep, rng=lambda: 0.0)

        reply = await service.extract(MESSAGES, SCHEMA)

        assert json.loads(reply.content) == {"poNumber": "2"}
        assert client.chat.completions.create.await_count == 2
        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_auth_errors_are_not_retried(self, client):
        client.chat.completions.create.side_effect = StatusError("invalid key", 401)
        sleep = AsyncMock()
        service = OpenAIExtractionService(client=client, sleep=sleep)

        with pytest.raises(AuthError):
            await service.extract(MESSAGES, SCHEMA)

        assert client.chat.completions.create.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self, client):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        client.chat.completions.create.side_effect = slow
        service = OpenAIExtractionService(
            client=client,
            retry_policy=RetryPolicy(max_attempts=1),
            timeout_policy=TimeoutPolicy(base_seconds=0.01, seconds_per_100kb=0, max_additional_seconds=0),
        )

        with pytest.raises(ExtractionTimeoutError):
            await service.extract(MESSAGES, SCHEMA)

    @pytest.mark.asyncio
    async def test_records_usage(self, client):
        rate_limiter = Mock()
        rate_limiter.acquire = AsyncMock()
        cost_tracker = CostTracker()
        service = OpenAIExtractionService(client=client, rate_limiter=rate_limiter, cost_tracker=cost_tracker)

        await service.extract(MESSAGES, SCHEMA)

        rate_limiter.acquire.assert_awaited_once()
        rate_limiter.record_usage.assert_called_once_with(150)
        summary = cost_tracker.get_summary()
        assert summary['requests'] == 1
        assert summary['by_model']['gpt-4o-mini']['tokens'] == {'input': 120, 'output': 30}


def test_payload_size_counts_utf8_bytes():
    assert payload_size([{'role': 'user', 'content': 'é'}, {'role': 'system', 'content': None}]) == 2
