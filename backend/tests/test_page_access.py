import pytest
from commerce_rbac.constants.roles import Role, ALL_ROLES
from commerce_rbac.errors import InvalidRoleError
from commerce_rbac.services.pages import (
    PAGE_RULES, can_access_page, is_known_page, navigation_for, normalize_path, safe_redirect, unauthorized_view,
)
from tests.test_utils_seed import unique, ensure_user, jwt_headers


def test_super_admin_opens_every_page():
    for path in list(PAGE_RULES) + ['/somewhere/unlisted']:
        assert can_access_page(Role.SUPER_ADMIN, path)


@pytest.mark.parametrize('role,path,expected', [
    (Role.BUYER, '/admin', False),
    (Role.BUYER, '/admin/dashboard', False),
    (Role.BUYER, '/products', True),
    (Role.BUYER, '/orders', True),
    (Role.BUYER, '/shop/dashboard', True),
    (Role.BUYER, '/operations/dashboard', False),
    (Role.ACCOUNT_ADMIN, '/admin/users', True),
    (Role.ACCOUNT_ADMIN, '/admin/companies', False),
    (Role.ACCOUNT_ADMIN, '/admin/audit', False),
    (Role.ACCOUNT_ADMIN, '/company/users', True),
    (Role.ACCOUNT_ADMIN, '/shop/dashboard', False),
    (Role.OPERATION, '/operations', True),
    (Role.OPERATION, '/operations/shipping', True),
    (Role.OPERATION, '/company', False),
    (Role.OPERATION, '/wishlist', False),
    (Role.OPERATION, '/orders', False),
    (Role.OPERATION, '/admin/inventory', True),
    (Role.OPERATION, '/admin/settings', False),
])
def test_page_table(role, path, expected):
    assert can_access_page(role, path) is expected


def test_open_pages_allow_every_role():
    for role in ALL_ROLES:
        for path in ('/products', '/search', '/cart', '/checkout'):
            assert can_access_page(role, path)


def test_path_is_normalized_before_lookup():
    assert normalize_path('/admin/users/?tab=2#top') == '/admin/users'
    assert normalize_path('/') == '/'
    assert not can_access_page(Role.BUYER, '/admin/users/')
    assert not can_access_page(Role.BUYER, '/admin/users?tab=2')


def test_unlisted_paths_fall_through_to_allowed():
    assert not is_known_page('/help/faq')
    assert can_access_page(Role.BUYER, '/help/faq')
    assert is_known_page('/admin/reports')


def test_invalid_role_raises():
    with pytest.raises(InvalidRoleError):
        can_access_page('VISITOR', '/products')


def test_navigation_only_lists_accessible_pages():
    for role in ALL_ROLES:
        for link in navigation_for(role):
            assert can_access_page(role, link['href'])
    buyer = {link['href'] for link in navigation_for(Role.BUYER)}
    assert '/shop/dashboard' in buyer
    assert '/admin/dashboard' not in buyer
    ops = {link['href'] for link in navigation_for(Role.OPERATION)}
    assert {'/operations/orders', '/admin/products'} <= ops
    assert '/cart' not in ops


def test_unauthorized_view():
    view = unauthorized_view(Role.BUYER, '/admin/settings?x=1')
    assert view == {
        'message': "You don't have permission to access this page.",
        'path': '/admin/settings',
        'role': 'BUYER',
    }


@pytest.mark.parametrize('url,expected', [
    ('/products/12', '/products/12'),
    ('/admin/orders?id=3', '/admin/orders?id=3'),
    ('/cart', '/cart'),
    ('/productsX', '/dashboard'),
    ('//evil.example.com', '/dashboard'),
    ('https://evil.example.com/cart', '/dashboard'),
    ('/not-allowed', '/dashboard'),
    (None, '/dashboard'),
])
def test_safe_redirect(url, expected):
    assert safe_redirect(url) == expected


def test_page_access_endpoint(client, app_context):
    buyer = ensure_user(f"{unique('pages-buyer')}@example.com", Role.BUYER)
    ops = ensure_user(f"{unique('pages-ops')}@example.com", Role.OPERATION)
    denied = client.get('/pages/access?path=/admin/users', headers=jwt_headers(buyer))
    assert denied.status_code == 403
    body = denied.get_json()
    assert body['allowed'] is False
    assert body['role'] == 'BUYER'
    assert body['path'] == '/admin/users'
    allowed = client.get('/pages/access', query_string={'path': '/operations/orders'}, headers=jwt_headers(ops))
    assert allowed.status_code == 200
    assert allowed.get_json() == {'path': '/operations/orders', 'allowed': True, 'known': True}
    missing = client.get('/pages/access', headers=jwt_headers(ops))
    assert missing.status_code == 400


def test_navigation_and_capabilities_endpoints(client, app_context):
    buyer = ensure_user(f"{unique('nav-buyer')}@example.com", Role.BUYER)
    nav = client.get('/pages/navigation', headers=jwt_headers(buyer)).get_json()
    assert nav['role'] == 'BUYER'
    assert {'href': '/cart', 'label': 'My Cart'} in nav['data']
    me = client.get('/me/capabilities', headers=jwt_headers(buyer)).get_json()
    assert me['id'] == buyer.id
    assert me['capabilities']['can_place_orders'] is True
    assert me['capabilities']['can_view_audit_logs'] is False
    redirect = client.get('/pages/redirect', query_string={'next': '//evil.example.com'}, headers=jwt_headers(buyer))
    assert redirect.get_json() == {'location': '/dashboard'}
