from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.audit import AuditRecord
from commerce_rbac.models.product import Product
from tests.test_utils_seed import unique, ensure_user, ensure_product, seed_tenant, jwt_headers


def _catalog(client, user, **params):
    resp = client.get('/catalog/products', query_string=dict(params, limit=100), headers=jwt_headers(user))
    assert resp.status_code == 200
    return {p['sku'] for p in resp.get_json()['data']}


def test_product_visibility_per_company(client, app_context):
    adidas, adidas_admin, adidas_buyer = seed_tenant('Adidas')
    prada, _, prada_buyer = seed_tenant('Prada')
    solo = ensure_user(f"{unique('solo')}@example.com", Role.BUYER)
    prefix = unique('VIS')
    own = ensure_product(f'{prefix}-ADI', company=adidas)
    theirs = ensure_product(f'{prefix}-PRA', company=prada)
    shared = ensure_product(f'{prefix}-GLB')
    assert _catalog(client, adidas_buyer, search=prefix) == {own.sku, shared.sku}
    assert _catalog(client, prada_buyer, search=prefix) == {theirs.sku, shared.sku}
    assert _catalog(client, solo, search=prefix) == {shared.sku}
    assert client.get(f'/catalog/products/{theirs.id}', headers=jwt_headers(adidas_buyer)).status_code == 403
    assert client.get(f'/catalog/products/{own.id}', headers=jwt_headers(adidas_admin)).status_code == 200


def test_super_admin_catalog_hint(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    company, _, _ = seed_tenant('HintCat')
    prefix = unique('HNT')
    private = ensure_product(f'{prefix}-CO', company=company)
    shared = ensure_product(f'{prefix}-GLB')
    assert _catalog(client, root, search=prefix) == {private.sku, shared.sku}
    assert _catalog(client, root, search=prefix, company='global') == {shared.sku}
    assert _catalog(client, root, search=prefix, company=company.id) == {private.sku}


def test_inactive_products_hidden_from_shoppers(client, app_context):
    company, admin, buyer = seed_tenant('Drafts')
    prefix = unique('DRF')
    live = ensure_product(f'{prefix}-LIVE', company=company)
    draft = ensure_product(f'{prefix}-DRAFT', company=company, status='DRAFT')
    assert _catalog(client, buyer, search=prefix) == {live.sku}
    assert _catalog(client, admin, search=prefix) == {live.sku, draft.sku}


def test_company_admin_product_lifecycle(client, app_context):
    company, admin, _ = seed_tenant('ProdLife')
    other, _, _ = seed_tenant('ProdLifeOther')
    h = jwt_headers(admin)
    sku = unique('SKU-NEW')
    created = client.post('/catalog/products', json={
        'name': 'Trail Shoe', 'sku': sku, 'price_cents': 9900, 'stock': 4, 'company_id': other.id,
    }, headers=h)
    assert created.status_code == 201
    body = created.get_json()
    assert body['company_id'] == company.id
    assert body['created_by'] == admin.id
    pid = body['id']
    updated = client.put(f'/catalog/products/{pid}', json={'price_cents': 8900}, headers=h)
    assert updated.status_code == 200
    assert updated.get_json()['price_cents'] == 8900
    assert client.put(f'/catalog/products/{pid}', json={'stock': 100}, headers=h).status_code == 400
    assert client.put(f'/catalog/products/{pid}', json={'company_id': None}, headers=h).status_code == 403
    assert client.delete(f'/catalog/products/{pid}', headers=h).status_code == 403
    audit = get_db().query(AuditRecord).filter_by(action='PRODUCT.UPDATE', resource_id=str(pid)).one()
    assert audit.details['changes']['price_cents'] == {'before': 9900, 'after': 8900}


def test_company_admin_cannot_touch_foreign_or_global_products(client, app_context):
    _, admin, _ = seed_tenant('NoTouch')
    other, _, _ = seed_tenant('NoTouchOther')
    foreign = ensure_product(unique('SKU-FOR'), company=other)
    shared = ensure_product(unique('SKU-GLB'))
    h = jwt_headers(admin)
    assert client.put(f'/catalog/products/{foreign.id}', json={'name': 'Mine'}, headers=h).status_code == 403
    assert client.put(f'/catalog/products/{shared.id}', json={'name': 'Mine'}, headers=h).status_code == 403


def test_super_admin_creates_global_and_deletes(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    h = jwt_headers(root)
    sku = unique('SKU-ROOT')
    created = client.post('/catalog/products', json={'name': 'Mug', 'sku': sku}, headers=h)
    assert created.status_code == 201
    assert created.get_json()['company_id'] is None
    assert client.post('/catalog/products', json={'name': 'Mug 2', 'sku': sku}, headers=h).status_code == 409
    pid = created.get_json()['id']
    deleted = client.delete(f'/catalog/products/{pid}', headers=h)
    assert deleted.status_code == 200
    assert get_db().get(Product, pid) is None
    audit = get_db().query(AuditRecord).filter_by(action='PRODUCT.DELETE', resource_id=str(pid)).one()
    assert audit.severity == 'warning'


def test_operation_maintains_shared_catalog(client, app_context):
    ops = ensure_user(f"{unique('ops')}@example.com", Role.OPERATION)
    buyer = ensure_user(f"{unique('buyer')}@example.com", Role.BUYER)
    created = client.post('/catalog/products', json={'name': 'Tape', 'sku': unique('SKU-OPS')}, headers=jwt_headers(ops))
    assert created.status_code == 201
    assert created.get_json()['company_id'] is None
    assert client.post('/catalog/products', json={'name': 'X', 'sku': unique('SKU-B')}, headers=jwt_headers(buyer)).status_code == 403


def test_cart_rules(client, app_context):
    company, _, buyer = seed_tenant('CartCo')
    other, _, other_buyer = seed_tenant('CartOther')
    foreign = ensure_product(unique('SKU-CF'), company=other)
    inactive = ensure_product(unique('SKU-CI'), company=company, status='INACTIVE')
    product = ensure_product(unique('SKU-CP'), company=company, price_cents=300, stock=5)
    h = jwt_headers(buyer)
    missing = client.post('/cart', json={'product_id': foreign.id}, headers=h)
    assert missing.status_code == 404
    assert missing.get_json()['error']['detail'] == 'Product not found'
    assert client.post('/cart', json={'product_id': inactive.id}, headers=h).status_code == 400
    assert client.post('/cart', json={'product_id': product.id, 'quantity': 6}, headers=h).status_code == 400
    first = client.post('/cart', json={'product_id': product.id, 'quantity': 2}, headers=h)
    assert first.status_code == 201
    again = client.post('/cart', json={'product_id': product.id, 'quantity': 1}, headers=h)
    assert again.status_code == 200
    assert again.get_json()['quantity'] == 3
    cart = client.get('/cart', headers=h).get_json()
    assert cart['item_count'] == 3
    assert cart['subtotal_cents'] == 900
    item_id = first.get_json()['id']
    assert client.patch(f'/cart/{item_id}', json={'quantity': 9}, headers=h).status_code == 400
    assert client.patch(f'/cart/{item_id}', json={'quantity': 1}, headers=h).get_json()['quantity'] == 1
    assert client.delete(f'/cart/{item_id}', headers=jwt_headers(other_buyer)).status_code == 403
    assert client.delete(f'/cart/{item_id}', headers=h).status_code == 200
    assert client.get('/cart', headers=h).get_json()['data'] == []


def test_operation_has_no_cart(client, app_context):
    ops = ensure_user(f"{unique('ops')}@example.com", Role.OPERATION)
    product = ensure_product(unique('SKU-OC'))
    assert client.post('/cart', json={'product_id': product.id}, headers=jwt_headers(ops)).status_code == 403


def test_non_numeric_company_id_is_a_bad_request(client, app_context):
    root = ensure_user(f"{unique('root')}@example.com", Role.SUPER_ADMIN)
    product = ensure_product(unique('SKU-BADCO'))
    h = jwt_headers(root)
    created = client.post('/catalog/products', json={'name': 'Cap', 'sku': unique('SKU-CAP'), 'company_id': 'acme'},
                          headers=h)
    assert created.status_code == 400
    assert created.get_json()['error']['detail'] == 'company_id must be int'
    assert client.put(f'/catalog/products/{product.id}', json={'company_id': 'acme'}, headers=h).status_code == 400
