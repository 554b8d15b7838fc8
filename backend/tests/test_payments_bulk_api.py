import pytest
from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.audit import AuditRecord
from commerce_rbac.models.order import Order
from commerce_rbac.models.payment import Payment
from commerce_rbac.services.payments import PaymentDeclined, charge
from tests.test_utils_seed import unique, ensure_user, ensure_product, seed_tenant, create_order, jwt_headers


def test_simulated_gateway():
    ok = charge(1000, 'USD', 'tok_visa', 'credit_card', 'ORD-1')
    assert ok['transaction_id'].startswith('txn_')
    assert ok['details']['card_last4'] == '4242'
    with pytest.raises(PaymentDeclined) as exc:
        charge(1000, 'USD', 'tok_decline_insufficient', 'credit_card', 'ORD-1')
    assert exc.value.details['reference'] == 'ORD-1'


def test_buyer_pays_own_order(client, app_context):
    _, _, buyer = seed_tenant('Pay')
    order = create_order(buyer, total_cents=5000)
    h = jwt_headers(buyer)
    assert client.post('/payments', json={'order_id': order.id, 'amount_cents': 4999}, headers=h).status_code == 400
    paid = client.post('/payments', json={'order_id': order.id, 'amount_cents': 5000, 'payment_token': 'tok_visa'}, headers=h)
    assert paid.status_code == 201
    body = paid.get_json()
    assert body['status'] == 'completed'
    assert body['order']['status'] == 'CONFIRMED'
    assert body['paid_at'] is not None
    assert get_db().get(Order, order.id).status == 'CONFIRMED'
    again = client.post('/payments', json={'order_id': order.id, 'amount_cents': 5000}, headers=h)
    assert again.status_code == 400
    audit = get_db().query(AuditRecord).filter_by(action='PAYMENT.COMPLETE', resource_id=str(body['id'])).one()
    assert audit.details['amount_cents'] == 5000
    listed = client.get('/payments', headers=h).get_json()
    assert [p['id'] for p in listed['data']] == [body['id']]


def test_declined_payment_is_recorded(client, app_context):
    _, _, buyer = seed_tenant('Decline')
    order = create_order(buyer, total_cents=1200)
    resp = client.post('/payments', json={'order_id': order.id, 'amount_cents': 1200, 'payment_token': 'tok_decline'},
                       headers=jwt_headers(buyer))
    assert resp.status_code == 400
    failed = get_db().query(Payment).filter_by(order_id=order.id).one()
    assert failed.status == 'failed'
    assert failed.failure_reason
    audit = get_db().query(AuditRecord).filter_by(action='PAYMENT.FAILED', resource_id=str(failed.id)).one()
    assert audit.severity == 'warning'
    assert get_db().get(Order, order.id).status == 'PENDING'


def test_payment_scope(client, app_context):
    _, admin, buyer = seed_tenant('PayScope')
    _, other_admin, other_buyer = seed_tenant('PayScopeOther')
    ops = ensure_user(f"{unique('ops')}@example.com", Role.OPERATION)
    order = create_order(buyer, total_cents=700)
    body = {'order_id': order.id, 'amount_cents': 700}
    assert client.post('/payments', json=body, headers=jwt_headers(other_buyer)).status_code == 403
    assert client.post('/payments', json=body, headers=jwt_headers(other_admin)).status_code == 403
    assert client.post('/payments', json=body, headers=jwt_headers(ops)).status_code == 403
    assert client.post('/payments', json=body, headers=jwt_headers(admin)).status_code == 201


def test_payment_status_updates(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    _, _, buyer = seed_tenant('Refund')
    refunded_order = create_order(buyer, total_cents=900)
    failing_order = create_order(buyer, total_cents=400)
    pay_h = jwt_headers(buyer)
    refund_id = client.post('/payments', json={'order_id': refunded_order.id, 'amount_cents': 900}, headers=pay_h).get_json()['id']
    fail_id = client.post('/payments', json={'order_id': failing_order.id, 'amount_cents': 400}, headers=pay_h).get_json()['id']
    assert client.patch(f'/payments/{refund_id}', json={'status': 'refunded'}, headers=pay_h).status_code == 403
    h = jwt_headers(root)
    refunded = client.patch(f'/payments/{refund_id}', json={'status': 'refunded'}, headers=h)
    assert refunded.status_code == 200
    assert refunded.get_json()['refunded_at'] is not None
    audit = get_db().query(AuditRecord).filter_by(action='PAYMENT.STATUS_UPDATE', resource_id=str(refund_id)).one()
    assert audit.severity == 'warning'
    assert audit.details['old_status'] == 'completed'
    failed = client.patch(f'/payments/{fail_id}', json={'status': 'failed', 'failure_reason': 'chargeback'}, headers=h)
    assert failed.status_code == 200
    assert failed.get_json()['order']['status'] == 'CANCELLED'
    assert client.patch(f'/payments/{fail_id}', json={'status': 'lost'}, headers=h).status_code == 400


def test_bulk_order_flow(client, app_context):
    company, admin, buyer = seed_tenant('Bulk')
    other, other_admin, other_buyer = seed_tenant('BulkOther')
    ops = ensure_user(f"{unique('ops')}@example.com", Role.OPERATION)
    product = ensure_product(unique('SKU-BULK'), company=company, price_cents=250)
    foreign = ensure_product(unique('SKU-BFOR'), company=other)
    h = jwt_headers(buyer)
    created = client.post('/bulk-orders', json={'items': [{'product_id': product.id, 'quantity': 100}], 'notes': 'Q3'},
                          headers=h)
    assert created.status_code == 201
    bulk = created.get_json()
    assert bulk['number'].startswith('BULK-')
    assert bulk['estimated_total_cents'] == 25000
    assert bulk['status'] == 'pending'
    assert bulk['company_id'] == company.id
    assert client.post('/bulk-orders', json={'items': [{'product_id': foreign.id, 'quantity': 1}]}, headers=h).status_code == 404
    assert client.post('/bulk-orders', json={'items': []}, headers=h).status_code == 400
    assert client.post('/bulk-orders', json={'items': [{'product_id': product.id, 'quantity': 1}]},
                       headers=jwt_headers(ops)).status_code == 403
    bid = bulk['id']
    assert client.get(f'/bulk-orders/{bid}', headers=jwt_headers(other_buyer)).status_code == 403
    assert client.patch(f'/bulk-orders/{bid}', json={'status': 'approved'}, headers=h).status_code == 403
    assert client.patch(f'/bulk-orders/{bid}', json={'status': 'approved'}, headers=jwt_headers(other_admin)).status_code == 403
    quoted = client.patch(f'/bulk-orders/{bid}', json={'status': 'quoted', 'admin_notes': '10% off'}, headers=jwt_headers(admin))
    assert quoted.status_code == 200
    assert quoted.get_json()['admin_notes'] == '10% off'
    assert client.patch(f'/bulk-orders/{bid}', json={'status': 'converted'}, headers=jwt_headers(admin)).status_code == 400
    rejected = client.patch(f'/bulk-orders/{bid}', json={'status': 'rejected'}, headers=jwt_headers(admin))
    assert rejected.status_code == 200
    audits = get_db().query(AuditRecord).filter_by(action='BULK_ORDER.STATUS_UPDATE', resource_id=str(bid)).order_by(AuditRecord.id).all()
    assert [a.severity for a in audits] == ['info', 'warning']
    mine = client.get('/bulk-orders', headers=h).get_json()
    assert [b['id'] for b in mine['data']] == [bid]
    assert client.get('/bulk-orders', headers=jwt_headers(other_buyer)).get_json()['data'] == []
