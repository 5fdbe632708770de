import pytest
from fastapi.testclient import TestClient
from loguru import logger

from app.api.deps import get_chat_gateway
from app.core.config import settings
from app.core.errors import EmptyResponseError, MissingCredentialError, UpstreamError
from app.main import app
from app.schemas.chat import ChatTurn
from app.services.chat_gateway import build_chat_gateway, build_upstream_messages, parse_chat_request
from conftest import FakeUpstream


def _client_with(gateway) -> TestClient:
    app.dependency_overrides[get_chat_gateway] = lambda: gateway
    return TestClient(app)


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def test_chat_returns_first_choice_and_usage(upstream):
    with _client_with(upstream.gateway()) as client:
        response = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'Hi'}]})
    assert response.status_code == 200
    assert response.json() == {'message': 'Hello!', 'usage': {'total_tokens': 5}}


def test_chat_forwards_one_system_turn_then_caller_turns(upstream):
    turns = [
        {'role': 'user', 'content': 'first'},
        {'role': 'assistant', 'content': 'second'},
        {'role': 'user', 'content': 'third'},
    ]
    with _client_with(upstream.gateway()) as client:
        client.post('/api/chat', json={'messages': turns})

    assert len(upstream.requests) == 1
    request = upstream.requests[0]
    assert request.url.path == '/v1/chat/completions'
    assert request.headers['authorization'] == 'Bearer test-key'
    payload = upstream.payloads[0]
    assert payload['messages'][0] == {'role': 'system', 'content': settings.SYSTEM_PROMPT}
    assert payload['messages'][1:] == turns
    assert [m['role'] for m in payload['messages']].count('system') == 1
    assert payload['model'] == 'deepseek-chat'
    assert payload['temperature'] == 0.7
    assert payload['max_tokens'] == 1000
    assert payload['stream'] is False


def test_chat_requires_messages(upstream):
    with _client_with(upstream.gateway()) as client:
        missing = client.post('/api/chat', json={})
        wrong_type = client.post('/api/chat', json={'messages': 'Hi'})
        bad_item = client.post('/api/chat', json={'messages': [{'content': 'no role'}]})
        not_json = client.post('/api/chat', content=b'not json', headers={'content-type': 'application/json'})

    for response in (missing, wrong_type, bad_item, not_json):
        assert response.status_code == 400
        assert response.json() == {'error': 'Messages array is required'}
    assert upstream.requests == []


def test_chat_without_credential_fails_before_network():
    gateway = build_chat_gateway(settings.model_copy(update={'DEEPSEEK_API_KEY': None}))
    with _client_with(gateway) as client:
        response = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'Hi'}]})
        no_body = client.post('/api/chat')
    assert response.status_code == 500
    assert response.json() == {'error': 'DeepSeek API key is not configured'}
    assert no_body.status_code == 500


def test_chat_passes_upstream_status_through_and_logs_body():
    upstream = FakeUpstream(status_code=429, text='{"error": "rate limited: secret detail"}')
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level='ERROR')
    try:
        with _client_with(upstream.gateway()) as client:
            response = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'Hi'}]})
    finally:
        logger.remove(sink_id)

    assert response.status_code == 429
    assert response.json() == {'error': 'Failed to get response from AI service'}
    assert 'secret detail' not in response.text
    assert len(upstream.requests) == 1
    logged = [r for r in records if r['message'] == 'chat_gateway.upstream_error']
    assert logged
    assert 'secret detail' in logged[0]['extra']['body']


@pytest.mark.parametrize(
    'body',
    [
        {'choices': [], 'usage': {}},
        {'choices': [{'message': {'role': 'assistant', 'content': ''}}]},
        {'choices': [{'message': {'role': 'assistant', 'content': None}}]},
    ],
)
def test_chat_reports_empty_upstream_reply(body):
    upstream = FakeUpstream(body=body)
    with _client_with(upstream.gateway()) as client:
        response = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'Hi'}]})
    assert response.status_code == 500
    assert response.json() == {'error': 'No response from AI service'}


def test_chat_with_malformed_usage_returns_json_error():
    upstream = FakeUpstream(body={'choices': [{'message': {'role': 'assistant', 'content': 'Hi'}}], 'usage': 'lots'})
    with _client_with(upstream.gateway()) as client:
        response = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'Hi'}]})
    assert response.status_code == 500
    assert response.json() == {'error': 'Internal server error'}


def test_build_upstream_messages_keeps_order():
    turns = [ChatTurn(role='user', content='a'), ChatTurn(role='assistant', content='b')]
    messages = build_upstream_messages('sys', turns)
    assert messages == [
        {'role': 'system', 'content': 'sys'},
        {'role': 'user', 'content': 'a'},
        {'role': 'assistant', 'content': 'b'},
    ]


def test_parse_chat_request_accepts_system_turns():
    turns = parse_chat_request({'messages': [{'role': 'system', 'content': 'x'}]})
    assert turns[0].role.value == 'system'


@pytest.mark.anyio
async def test_gateway_raises_typed_errors():
    unconfigured = build_chat_gateway(settings.model_copy(update={'DEEPSEEK_API_KEY': None}))
    assert not unconfigured.configured
    with pytest.raises(MissingCredentialError):
        await unconfigured.complete([ChatTurn(role='user', content='Hi')])

    failing = FakeUpstream(status_code=503, text='down').gateway()
    with pytest.raises(UpstreamError) as excinfo:
        await failing.complete([ChatTurn(role='user', content='Hi')])
    assert excinfo.value.status_code == 503

    empty = FakeUpstream(body={'choices': []}).gateway()
    with pytest.raises(EmptyResponseError):
        await empty.complete([ChatTurn(role='user', content='Hi')])
