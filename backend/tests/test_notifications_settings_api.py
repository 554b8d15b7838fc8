from datetime import datetime, timedelta, timezone
from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.audit import AuditRecord
from commerce_rbac.models.notification import Notification
from tests.test_utils_seed import unique, ensure_user, seed_tenant, jwt_headers


def _notify(user=None, is_global=False, expires_at=None, title=None):
    session = get_db()
    n = Notification(title=title or unique('note'), message='hello', user_id=user.id if user else None,
                     is_global=is_global, expires_at=expires_at)
    session.add(n); session.commit(); session.refresh(n)
    return n


def test_sending_rules(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    _, admin, buyer = seed_tenant('Notify')
    _, _, foreign = seed_tenant('NotifyOther')
    ops = ensure_user(f"{unique('ops')}@example.com", Role.OPERATION)
    broadcast = client.post('/notifications', json={'title': 'Maintenance', 'message': 'Tonight', 'is_global': True},
                            headers=jwt_headers(root))
    assert broadcast.status_code == 201
    nid = broadcast.get_json()['id']
    audit = get_db().query(AuditRecord).filter_by(action='NOTIFICATION.GLOBAL_SEND', resource_id=str(nid)).one()
    assert audit.category == 'system'
    h = jwt_headers(admin)
    assert client.post('/notifications', json={'title': 't', 'message': 'm', 'is_global': True}, headers=h).status_code == 403
    direct = client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': buyer.id, 'type': 'success'}, headers=h)
    assert direct.status_code == 201
    assert direct.get_json()['user_id'] == buyer.id
    assert client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': foreign.id}, headers=h).status_code == 403
    assert client.post('/notifications', json={'title': 't', 'message': 'm'}, headers=h).status_code == 400
    assert client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': buyer.id, 'type': 'loud'},
                       headers=h).status_code == 400
    assert client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': buyer.id},
                       headers=jwt_headers(ops)).status_code == 403


def test_listing_respects_audience_and_expiry(client, app_context):
    _, _, buyer = seed_tenant('Inbox')
    _, _, other = seed_tenant('InboxOther')
    now = datetime.now(timezone.utc)
    mine = _notify(buyer)
    live_global = _notify(is_global=True, expires_at=now + timedelta(days=1))
    expired_global = _notify(is_global=True, expires_at=now - timedelta(days=1))
    theirs = _notify(other)
    body = client.get('/notifications', query_string={'limit': 100}, headers=jwt_headers(buyer)).get_json()
    ids = {n['id'] for n in body['data']}
    assert {mine.id, live_global.id} <= ids
    assert expired_global.id not in ids
    assert theirs.id not in ids
    assert body['unread_count'] >= 2


def test_read_and_delete(client, app_context):
    _, _, buyer = seed_tenant('ReadDel')
    _, _, other = seed_tenant('ReadDelOther')
    h = jwt_headers(buyer)
    mine = _notify(buyer)
    theirs = _notify(other)
    shared = _notify(is_global=True)
    before = client.get('/notifications/unread-count', headers=h).get_json()['unread_count']
    read = client.post(f'/notifications/{mine.id}/read', headers=h)
    assert read.status_code == 200
    assert read.get_json()['is_read'] is True
    assert read.get_json()['read_at'] is not None
    assert client.get('/notifications/unread-count', headers=h).get_json()['unread_count'] == before - 1
    assert client.post(f'/notifications/{theirs.id}/read', headers=h).status_code == 403
    assert client.delete(f'/notifications/{theirs.id}', headers=h).status_code == 403
    assert client.delete(f'/notifications/{shared.id}', headers=h).status_code == 403
    assert client.delete(f'/notifications/{mine.id}', headers=h).status_code == 200
    assert get_db().get(Notification, mine.id) is None


def test_read_all_marks_only_own(client, app_context):
    _, _, buyer = seed_tenant('ReadAll')
    _, _, other = seed_tenant('ReadAllOther')
    _notify(buyer)
    _notify(buyer)
    theirs = _notify(other)
    resp = client.post('/notifications/read-all', headers=jwt_headers(buyer))
    assert resp.status_code == 200
    assert resp.get_json()['updated'] == 2
    assert get_db().get(Notification, theirs.id).is_read is False
    unread = client.get('/notifications', query_string={'unread_only': 'true', 'limit': 100}, headers=jwt_headers(buyer)).get_json()
    assert all(n['user_id'] != buyer.id for n in unread['data'])


def test_settings_lifecycle(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    h = jwt_headers(root)
    key = unique('checkout.max_items')
    category = unique('cat')
    created = client.post('/settings', json={
        'key': key, 'value': 25, 'type': 'number', 'category': category, 'is_public': True,
    }, headers=h)
    assert created.status_code == 201
    assert created.get_json()['value'] == 25
    assert client.post('/settings', json={'key': key, 'value': 1, 'type': 'number'}, headers=h).status_code == 409
    assert client.post('/settings', json={'key': unique('flag'), 'value': 'maybe', 'type': 'boolean'}, headers=h).status_code == 400
    updated = client.put(f'/settings/{key}', json={'value': 30}, headers=h)
    assert updated.status_code == 200
    assert updated.get_json()['value'] == 30
    audit = get_db().query(AuditRecord).filter_by(action='SETTING.UPDATE', resource_id=key).one()
    assert audit.severity == 'warning'
    assert audit.details['changes']['value'] == {'before': 25, 'after': 30}
    assert client.delete(f'/settings/{key}', headers=h).status_code == 200
    assert get_db().query(AuditRecord).filter_by(action='SETTING.DELETE', resource_id=key).count() == 1
    assert client.get(f'/settings/{key}', headers=h).status_code == 404


def test_settings_visibility(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    _, admin, buyer = seed_tenant('SetVis')
    category = unique('cat')
    public_key = unique('site.banner')
    private_key = unique('security.lockout')
    h = jwt_headers(root)
    client.post('/settings', json={'key': public_key, 'value': {'text': 'Sale'}, 'type': 'json', 'category': category,
                                   'is_public': True}, headers=h)
    client.post('/settings', json={'key': private_key, 'value': True, 'type': 'boolean', 'category': category}, headers=h)

    def keys(user, **params):
        resp = client.get('/settings', query_string=dict(params, category=category), headers=jwt_headers(user))
        assert resp.status_code == 200
        return {s['key']: s['value'] for s in resp.get_json()['data']}
    assert keys(buyer) == {public_key: {'text': 'Sale'}}
    assert keys(admin) == {public_key: {'text': 'Sale'}, private_key: True}
    assert keys(admin, public_only='true') == {public_key: {'text': 'Sale'}}
    assert client.get(f'/settings/{private_key}', headers=jwt_headers(buyer)).status_code == 403
    assert client.put(f'/settings/{public_key}', json={'value': {}}, headers=jwt_headers(admin)).status_code == 403


def test_offset_expiry_is_compared_in_utc(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    _, _, buyer = seed_tenant('Expiry')
    karachi = timezone(timedelta(hours=5))
    past = (datetime.now(karachi) - timedelta(hours=1)).replace(microsecond=0)
    future = (datetime.now(karachi) + timedelta(hours=1)).replace(microsecond=0)
    h = jwt_headers(root)
    expired = client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': buyer.id,
                                                  'expires_at': past.isoformat()}, headers=h)
    live = client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': buyer.id,
                                               'expires_at': future.isoformat()}, headers=h)
    assert expired.status_code == 201
    assert live.status_code == 201
    body = client.get('/notifications', query_string={'limit': 100}, headers=jwt_headers(buyer)).get_json()
    ids = {n['id'] for n in body['data']}
    assert expired.get_json()['id'] not in ids
    assert live.get_json()['id'] in ids


def test_non_numeric_target_is_a_bad_request(client, app_context):
    _, admin, _ = seed_tenant('BadTarget')
    resp = client.post('/notifications', json={'title': 't', 'message': 'm', 'user_id': 'abc'}, headers=jwt_headers(admin))
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'user_id must be int'


def test_reading_a_broadcast_keeps_it_unread_for_others(client, app_context):
    _, _, buyer = seed_tenant('Broadcast')
    _, _, other = seed_tenant('BroadcastOther')
    shared = _notify(is_global=True)
    read = client.post(f'/notifications/{shared.id}/read', headers=jwt_headers(buyer))
    assert read.status_code == 200
    assert get_db().get(Notification, shared.id).is_read is False
    unread = client.get('/notifications', query_string={'unread_only': 'true', 'limit': 100},
                        headers=jwt_headers(other)).get_json()
    assert shared.id in {n['id'] for n in unread['data']}
