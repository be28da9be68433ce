from storeroom.constants.roles import Role


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_login_errors(client, make_user):
    assert client.post('/iam/auth/login', json={}).status_code == 400
    user = make_user()
    bad = client.post('/iam/auth/login', json={'email': user.email, 'password': 'nope'})
    assert bad.status_code == 401
    assert bad.get_json()['error']['detail'] == 'invalid credentials'


def test_internal_error_shape(client, make_user, auth_headers, monkeypatch):
    admin = make_user(role=Role.SYSTEM_ADMIN, is_superuser=True)
    headers = auth_headers(admin)
    # Monkeypatch AFTER login so auth works; only break audit listing
    import storeroom.routes.iam as iam_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(iam_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/iam/audit/logs', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
