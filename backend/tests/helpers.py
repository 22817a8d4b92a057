"""Small request helpers shared by the HTTP tests."""


def register(client, username, password='pass123'):
    r = client.post('/auth/register', json={'username': username, 'password': password})
    assert r.status_code == 200, r.text
    return r.json()['token']


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


def save(client, token, entity, payload):
    return client.post(f'/data/{entity}', json=payload, headers=bearer(token))


def delete(client, token, entity, payload):
    # httpx only accepts a JSON body on DELETE through request()
    return client.request('DELETE', f'/data/{entity}', json=payload, headers=bearer(token))


def find(client, token, entity, **filters):
    return client.get(f'/data/{entity}', params=filters, headers=bearer(token))
