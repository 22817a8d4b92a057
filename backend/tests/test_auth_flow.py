import pytest
from fastapi.testclient import TestClient

from eduflow.main import app
from helpers import bearer, find, register

client = TestClient(app)


def test_register_login_round_trip():
    # register issues a token straight away
    r = client.request('GET', '/auth/register', json={'username': 'a', 'password': 'p'})
    assert r.status_code == 200
    t1 = r.json()['token']
    # login issues a second, distinct token
    r2 = client.request('GET', '/auth/login', json={'username': 'a', 'password': 'p'})
    assert r2.status_code == 200
    t2 = r2.json()['token']
    assert t1 != t2
    # both are valid at the same time
    assert find(client, t1, 'course').status_code == 200
    assert find(client, t2, 'course').status_code == 200
    # username is taken now
    r3 = client.request('GET', '/auth/register', json={'username': 'a', 'password': 'other'})
    assert r3.status_code == 409


def test_post_variants_of_auth_routes():
    token = register(client, 'poster')
    r = client.post('/auth/login', json={'username': 'poster', 'password': 'pass123'})
    assert r.status_code == 200
    assert r.json()['token'] != token


def test_usernames_are_case_sensitive():
    register(client, 'Alice')
    register(client, 'alice')
    r = client.post('/auth/login', json={'username': 'ALICE', 'password': 'pass123'})
    assert r.status_code == 401


def test_bad_credentials_are_rejected_without_body():
    register(client, 'bob', 'right')
    wrong_pw = client.post('/auth/login', json={'username': 'bob', 'password': 'wrong'})
    unknown = client.post('/auth/login', json={'username': 'nobody', 'password': 'right'})
    assert wrong_pw.status_code == 401
    assert unknown.status_code == 401
    assert wrong_pw.content == b''
    assert unknown.content == b''


def test_malformed_auth_payloads_are_bad_requests():
    assert client.post('/auth/register', json={'username': 'x'}).status_code == 400
    assert client.post('/auth/register', json={'username': '', 'password': 'p'}).status_code == 400
    assert client.post('/auth/login', content=b'not json', headers={'Content-Type': 'application/json'}).status_code == 400


def test_logout_invalidates_only_that_token():
    t1 = register(client, 'carol')
    t2 = client.post('/auth/login', json={'username': 'carol', 'password': 'pass123'}).json()['token']
    r = client.request('GET', '/auth/logout', headers=bearer(t1))
    assert r.status_code == 200
    assert r.content == b''
    after = find(client, t1, 'course')
    assert after.status_code == 401
    assert after.content == b''
    assert find(client, t2, 'course').status_code == 200


def test_logout_twice_is_unauthorized():
    token = register(client, 'dave')
    assert client.post('/auth/logout', headers=bearer(token)).status_code == 200
    assert client.post('/auth/logout', headers=bearer(token)).status_code == 401


def test_missing_or_malformed_authorization_header():
    token = register(client, 'erin')
    cases = [
        {},
        {'Authorization': ''},
        {'Authorization': token},
        {'Authorization': f'Basic {token}'},
        {'Authorization': 'Bearer '},
        {'Authorization': f'Bearer {token} extra'},
        {'Authorization': 'Bearer not-a-real-token'},
    ]
    for headers in cases:
        r = client.get('/data/course', headers=headers)
        assert r.status_code == 401, headers
        assert r.content == b''
        assert r.headers['WWW-Authenticate'] == 'Bearer'
    assert client.post('/auth/logout').status_code == 401


def test_scheme_is_case_insensitive():
    token = register(client, 'frank')
    r = client.get('/data/course', headers={'Authorization': f'bearer {token}'})
    assert r.status_code == 200


def test_bearer_scheme_is_published_in_openapi():
    schema = client.get('/openapi.json').json()
    assert schema['components']['securitySchemes']['HTTPBearer'] == {'type': 'http', 'scheme': 'bearer'}
    assert {'HTTPBearer': []} in schema['paths']['/data/{entity}']['get']['security']


def test_bearer_token_requires_a_single_token():
    from fastapi.security import HTTPAuthorizationCredentials
    from eduflow.auth import bearer_token
    from eduflow.errors import Unauthorized

    assert bearer_token(HTTPAuthorizationCredentials(scheme='Bearer', credentials='abc')) == 'abc'
    for scheme, value in [('Bearer', 'a b'), ('Bearer', ' abc'), ('Bearer', ''), ('Basic', 'abc')]:
        with pytest.raises(Unauthorized):
            bearer_token(HTTPAuthorizationCredentials(scheme=scheme, credentials=value))
    with pytest.raises(Unauthorized):
        bearer_token(None)


def test_gate_runs_before_entity_lookup_and_body_parsing():
    # unknown entity and garbage body still answer 401 without a token
    r = client.post('/data/nope', content=b'{{{', headers={'Content-Type': 'application/json'})
    assert r.status_code == 401
    r = client.get('/data/nope')
    assert r.status_code == 401


def test_expired_token_is_rejected(monkeypatch):
    from datetime import timedelta
    from eduflow import services

    token = register(client, 'gina')
    real_now = services.utcnow()
    monkeypatch.setattr('eduflow.services.utcnow', lambda: real_now + services.TOKEN_TTL + timedelta(seconds=1))
    assert find(client, token, 'course').status_code == 401


def test_health_and_request_id_header():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers
    r2 = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r2.headers['X-Request-ID'] == 'abc123'
