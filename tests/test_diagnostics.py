from datetime import datetime

from fastapi.testclient import TestClient

from app.main import app


def test_get_reports_environment_and_key_presence():
    with TestClient(app) as client:
        response = client.get('/api/test')
    assert response.status_code == 200
    body = response.json()
    assert body['message'] == 'API routes are working!'
    assert body['environment'] == 'development'
    assert body['apiKeyPresent'] is False
    datetime.fromisoformat(body['timestamp'])


def test_post_returns_fixed_shape():
    with TestClient(app) as client:
        response = client.post('/api/test')
    assert response.status_code == 200
    assert set(response.json()) == {'message', 'timestamp'}
    assert response.json()['message'] == 'POST endpoint is working!'
