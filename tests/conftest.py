import json
import os
import tempfile
from pathlib import Path
from uuid import uuid4

import httpx
import pytest

TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix='chat-api-tests-'))
TEST_DB_URL = os.getenv('TEST_DATABASE_URL', f"sqlite:///{TEST_DATA_DIR / 'test.db'}")
os.environ['DATABASE_URL'] = TEST_DB_URL
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['DEEPSEEK_API_KEY'] = ''
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from app.core.config import settings
from app.db.init_db import init_db
from app.services.chat_gateway import ChatGateway, build_chat_gateway

HELLO_COMPLETION = {
    'id': 'cmpl-1',
    'object': 'chat.completion',
    'model': 'deepseek-chat',
    'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': 'Hello!'}, 'finish_reason': 'stop'}],
    'usage': {'total_tokens': 5},
}


class FakeUpstream:
    """Stands in for the chat-completion API behind an httpx mock transport."""

    def __init__(self, status_code: int = 200, body=None, text: str | None = None) -> None:
        self.status_code = status_code
        self.body = HELLO_COMPLETION if body is None and text is None else body
        self.text = text
        self.requests: list[httpx.Request] = []

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)

    def gateway(self) -> ChatGateway:
        config = settings.model_copy(update={'DEEPSEEK_API_KEY': 'test-key'})
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return build_chat_gateway(config, http_client=http_client)


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture(autouse=True, scope='session')
def _configure_test_database():
    init_db(drop_all=True)
    yield


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


def register_and_login(client, email: str | None = None, password: str = 'secret123') -> dict:
    email = email or f"{uuid4()}@b.com"
    client.post('/api/auth/register', json={'email': email, 'password': password, 'display_name': 'Tester'})
    login = client.post('/api/auth/login', json={'email': email, 'password': password})
    token = login.json()['access_token']
    return {'Authorization': f"Bearer {token}"}
