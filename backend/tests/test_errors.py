from flask_jwt_extended import create_access_token
from commerce_rbac.constants.roles import Role
from tests.test_utils_seed import unique, ensure_user, jwt_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_missing_token_is_401(client):
    assert client.get('/orders').status_code == 401
    assert client.get('/pages/navigation').status_code == 401


def test_forbidden_uses_error_envelope(client, app_context):
    buyer = ensure_user(f"{unique('err-buyer')}@example.com", Role.BUYER)
    resp = client.get('/audit/logs', headers=jwt_headers(buyer))
    assert resp.status_code == 403
    assert resp.get_json() == {'error': {'status': 403, 'title': 'Forbidden', 'detail': 'Missing capability'}}


def test_invalid_role_claim_is_a_server_error(client, app_context, caplog):
    token = create_access_token(identity='424242', additional_claims={
        'email': 'ghost@example.com', 'name': 'Ghost', 'role': 'GHOST', 'company_id': None,
    })
    with caplog.at_level('ERROR'):
        resp = client.get('/pages/navigation', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 500
    assert resp.get_json()['error']['detail'] == 'Unexpected error'
    assert 'invalid role' in caplog.text


def test_missing_record_is_404_before_scope(client, app_context):
    root = ensure_user(f"{unique('err-root')}@example.com", Role.SUPER_ADMIN)
    resp = client.get('/users/987654321', headers=jwt_headers(root))
    assert resp.status_code == 404
    assert resp.get_json()['error']['title'] == 'Not Found'
