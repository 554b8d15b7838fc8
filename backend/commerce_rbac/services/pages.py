from __future__ import annotations
"""Page-access resolver for the navigable UI routes.

``can_access_page`` maps a page path to a capability check, a fixed role set, or
an open page. Paths outside the route table fall through to *allowed*; use
``is_known_page`` to tell a table decision from that fallback.
"""
from typing import Callable, Dict, FrozenSet, List, Optional
from commerce_rbac.constants.roles import Role
from commerce_rbac.services.policy import has_capability

PageRule = Callable[[Role], bool]


def _capability(name: str) -> PageRule:
    def rule(role: Role) -> bool:
        return has_capability(role, name)
    return rule


def _roles(*roles: Role) -> PageRule:
    allowed: FrozenSet[Role] = frozenset(roles)

    def rule(role: Role) -> bool:
        return role in allowed
    return rule


def _open(role: Role) -> bool:
    return True


PAGE_RULES: Dict[str, PageRule] = {
    '/admin': _capability('can_access_admin_panel'),
    '/admin/dashboard': _capability('can_access_admin_panel'),
    '/admin/analytics': _capability('can_access_analytics'),
    '/admin/audit': _capability('can_access_audit_logs'),
    '/admin/system-logs': _capability('can_access_audit_logs'),
    '/admin/users': _capability('can_access_user_management'),
    '/admin/companies': _capability('can_access_company_management'),
    '/admin/products': _capability('can_access_product_management'),
    '/admin/orders': _capability('can_access_order_management'),
    '/admin/inventory': _capability('can_access_inventory_management'),
    '/admin/settings': _capability('can_access_system_settings'),
    '/admin/reports': _capability('can_access_reports'),
    '/products': _open,
    '/search': _open,
    '/cart': _open,
    '/checkout': _open,
    '/orders': _capability('can_view_own_orders'),
    '/bulk-orders': _capability('can_create_bulk_orders'),
    '/wishlist': _roles(Role.BUYER, Role.ACCOUNT_ADMIN),
    '/shop/dashboard': _roles(Role.BUYER),
}

_operations_only = _roles(Role.OPERATION)
for _p in ('', '/dashboard', '/orders', '/inventory', '/products', '/shipping', '/quality', '/reports'):
    PAGE_RULES['/operations' + _p] = _operations_only

_company_only = _roles(Role.ACCOUNT_ADMIN)
for _p in ('', '/dashboard', '/users', '/analytics', '/products', '/orders', '/reports'):
    PAGE_RULES['/company' + _p] = _company_only


# (href, label, roles offered the link); a link is shown only if the page check also passes
NAVIGATION = (
    ('/admin/dashboard', 'Admin Dashboard', (Role.SUPER_ADMIN,)),
    ('/admin/analytics', 'Analytics', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN)),
    ('/admin/users', 'User Management', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN)),
    ('/admin/companies', 'Company Management', (Role.SUPER_ADMIN,)),
    ('/admin/products', 'Product Management', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN, Role.OPERATION)),
    ('/admin/orders', 'Order Management', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN, Role.OPERATION)),
    ('/admin/inventory', 'Inventory', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN, Role.OPERATION)),
    ('/admin/audit', 'Audit Logs', (Role.SUPER_ADMIN,)),
    ('/admin/settings', 'System Settings', (Role.SUPER_ADMIN,)),
    ('/admin/reports', 'Reports', (Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN, Role.OPERATION)),
    ('/company/dashboard', 'Company Dashboard', (Role.ACCOUNT_ADMIN,)),
    ('/company/users', 'Team Management', (Role.ACCOUNT_ADMIN,)),
    ('/company/analytics', 'Company Analytics', (Role.ACCOUNT_ADMIN,)),
    ('/company/products', 'Company Products', (Role.ACCOUNT_ADMIN,)),
    ('/company/orders', 'Company Orders', (Role.ACCOUNT_ADMIN,)),
    ('/company/reports', 'Company Reports', (Role.ACCOUNT_ADMIN,)),
    ('/shop/dashboard', 'Shopping Dashboard', (Role.BUYER,)),
    ('/products', 'Browse Products', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/search', 'Search', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/cart', 'My Cart', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/orders', 'My Orders', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/bulk-orders', 'Bulk Orders', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/wishlist', 'Wishlist', (Role.BUYER, Role.ACCOUNT_ADMIN)),
    ('/operations/dashboard', 'Operations Dashboard', (Role.OPERATION,)),
    ('/operations/orders', 'Order Processing', (Role.OPERATION,)),
    ('/operations/inventory', 'Inventory Management', (Role.OPERATION,)),
    ('/operations/products', 'Product Catalog', (Role.OPERATION,)),
    ('/operations/shipping', 'Shipping', (Role.OPERATION,)),
    ('/operations/quality', 'Quality Control', (Role.OPERATION,)),
    ('/operations/reports', 'Operations Reports', (Role.OPERATION,)),
)

ALLOWED_REDIRECT_PATHS = (
    '/', '/dashboard', '/products', '/cart', '/checkout', '/profile', '/settings', '/myorders',
    '/auth/signin', '/auth/register', '/admin/dashboard', '/admin/orders', '/admin/products',
    '/company/dashboard', '/operations/dashboard',
)


def normalize_path(page_path: str) -> str:
    path = (page_path or '').split('?', 1)[0].split('#', 1)[0]
    if len(path) > 1:
        path = path.rstrip('/') or '/'
    return path


def is_known_page(page_path: str) -> bool:
    return normalize_path(page_path) in PAGE_RULES


def can_access_page(role, page_path: str) -> bool:
    """Decide whether ``role`` may open ``page_path``.

    SUPER_ADMIN may open every page. Unknown paths are allowed.
    """
    role = Role.parse(role)
    if role is Role.SUPER_ADMIN:
        return True
    rule = PAGE_RULES.get(normalize_path(page_path))
    if rule is None:
        return True
    return rule(role)


def navigation_for(role) -> List[Dict[str, str]]:
    role = Role.parse(role)
    return [
        {'href': href, 'label': label}
        for href, label, roles in NAVIGATION
        if role in roles and can_access_page(role, href)
    ]


def unauthorized_view(role, page_path: str) -> Dict[str, Optional[str]]:
    role = Role.parse(role)
    return {
        'message': "You don't have permission to access this page.",
        'path': normalize_path(page_path),
        'role': role.value,
    }


def safe_redirect(url: Optional[str], default: str = '/dashboard') -> str:
    """Return ``url`` when it is an allow-listed internal path, else ``default``."""
    if not url:
        return default
    if not url.startswith('/') or url.startswith('//'):
        return default
    for path in ALLOWED_REDIRECT_PATHS:
        if url == path or url.startswith(path + '/') or url.startswith(path + '?'):
            return url
    return default


__all__ = [
    'PAGE_RULES', 'NAVIGATION', 'ALLOWED_REDIRECT_PATHS', 'normalize_path', 'is_known_page',
    'can_access_page', 'navigation_for', 'unauthorized_view', 'safe_redirect',
]
