"""Request scoping rules: which rows a principal may see or touch.

Every data-access path goes through ``scope_filter`` (or the ``apply_scope`` /
``assert_in_scope`` helpers built on it) so the company-privacy and ownership
rules hold uniformly. Rules dispatch over every ``Role`` member explicitly and
raise ``InvalidRoleError`` for anything else.

Field names in the returned predicates are model attribute names. For
``payments`` they refer to the paid ``Order``; for ``inventory`` to the
``Product`` the transaction moves.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional
from flask import abort
from commerce_rbac.constants.roles import Role
from commerce_rbac.errors import InvalidRoleError, UnknownResourceError
from commerce_rbac.models.order import Order
from commerce_rbac.services.policy import Principal
from commerce_rbac.utils.predicates import (
    Predicate, UNCONSTRAINED, DENIED, Eq, IsNull, Gt, all_of, any_of, compile_predicate,
)

OPERATIONS = ('list', 'read', 'write')

SENSITIVE_FIELDS: FrozenSet[str] = frozenset({'password', 'password_hash', 'secret', 'api_key', 'reset_token'})


def _own_company(p: Principal, field: str = 'company_id') -> Predicate:
    # A company admin without a company has nothing to scope to
    if p.company_id is None:
        return DENIED
    return Eq(field, p.company_id)


def _coerce_id(value):
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def _company_hint(value, null_token: str) -> Predicate:
    """Optional super-admin narrowing by an explicit company query parameter."""
    if value is None or value == '' or value == 'all':
        return UNCONSTRAINED
    if value == null_token:
        return IsNull('company_id')
    return Eq('company_id', _coerce_id(value))


def product_visibility(p: Principal) -> Predicate:
    """Company-private products are visible to their company; global ones to everyone."""
    if p.role is Role.SUPER_ADMIN:
        return UNCONSTRAINED
    if p.company_id is None:
        return IsNull('company_id')
    return any_of(Eq('company_id', p.company_id), IsNull('company_id'))


def _users(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return _company_hint(hints.get('company'), 'individual') if op == 'list' else UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p)
    if role is Role.BUYER or role is Role.OPERATION:
        return DENIED
    raise InvalidRoleError(role)


def _companies(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p, 'id')
    if role is Role.BUYER or role is Role.OPERATION:
        return DENIED
    raise InvalidRoleError(role)


def _products(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return _company_hint(hints.get('company'), 'global') if op == 'list' else UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        # tenants never write to the shared catalog
        return _own_company(p) if op == 'write' else product_visibility(p)
    if role is Role.OPERATION:
        return product_visibility(p)
    if role is Role.BUYER:
        return DENIED if op == 'write' else product_visibility(p)
    raise InvalidRoleError(role)


def _orders(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return _company_hint(hints.get('company'), 'individual') if op == 'list' else UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p)
    if role is Role.OPERATION:
        return UNCONSTRAINED
    if role is Role.BUYER:
        own = Eq('user_id', p.id)
        if op == 'write':
            return all_of(own, Eq('status', Order.STATUS_PENDING))
        return own
    raise InvalidRoleError(role)


def _cart_items(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    Role.parse(p.role)
    return Eq('user_id', p.id)


def _notifications(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = Role.parse(p.role)
    if op == 'write':
        return UNCONSTRAINED if role is Role.SUPER_ADMIN else Eq('user_id', p.id)
    now = hints.get('now') or datetime.now(timezone.utc)
    audience = any_of(Eq('user_id', p.id), Eq('is_global', True))
    live = any_of(IsNull('expires_at'), Gt('expires_at', now))
    return all_of(audience, live)


def _settings(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    category = hints.get('category')
    narrowed = Eq('category', category) if category and category != 'all' else UNCONSTRAINED
    if role is Role.SUPER_ADMIN or role is Role.ACCOUNT_ADMIN:
        if op == 'write':
            return UNCONSTRAINED if role is Role.SUPER_ADMIN else DENIED
        public = Eq('is_public', True) if hints.get('public_only') else UNCONSTRAINED
        return all_of(narrowed, public)
    if role is Role.BUYER or role is Role.OPERATION:
        if op == 'write':
            return DENIED
        return all_of(Eq('is_public', True), narrowed)
    raise InvalidRoleError(role)


def _audit_logs(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        # append-only: nobody edits audit rows through the scoping engine
        return DENIED if op == 'write' else UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN or role is Role.BUYER or role is Role.OPERATION:
        return DENIED
    raise InvalidRoleError(role)


def _payments(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p) if op == 'write' else Eq('user_id', p.id)
    if role is Role.BUYER:
        return Eq('user_id', p.id)
    if role is Role.OPERATION:
        return DENIED if op == 'write' else Eq('user_id', p.id)
    raise InvalidRoleError(role)


def _bulk_orders(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return UNCONSTRAINED
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p)
    if role is Role.BUYER or role is Role.OPERATION:
        return DENIED if op == 'write' else Eq('user_id', p.id)
    raise InvalidRoleError(role)


def _inventory(p: Principal, op: str, hints: Dict[str, Any]) -> Predicate:
    role = p.role
    if role is Role.SUPER_ADMIN:
        return UNCONSTRAINED
    if role is Role.OPERATION:
        return product_visibility(p)
    if role is Role.ACCOUNT_ADMIN:
        return _own_company(p)
    if role is Role.BUYER:
        return DENIED
    raise InvalidRoleError(role)


_RULES: Mapping[str, Callable[[Principal, str, Dict[str, Any]], Predicate]] = {
    'users': _users,
    'companies': _companies,
    'products': _products,
    'orders': _orders,
    'cart_items': _cart_items,
    'notifications': _notifications,
    'settings': _settings,
    'audit_logs': _audit_logs,
    'payments': _payments,
    'bulk_orders': _bulk_orders,
    'inventory': _inventory,
}

RESOURCE_TYPES = tuple(_RULES)


def scope_filter(principal: Principal, resource_type: str, operation: str = 'list', **hints) -> Predicate:
    """Return the row filter for ``principal`` acting on ``resource_type``.

    ``DENIED`` means the role has no access at all (403), as opposed to a
    predicate that merely matches no rows (200 with an empty list).
    Unknown resource types or operations raise ``UnknownResourceError``.
    """
    rule = _RULES.get(resource_type)
    if rule is None:
        raise UnknownResourceError(f'Unknown resource type: {resource_type!r}')
    if operation not in OPERATIONS:
        raise UnknownResourceError(f'Unknown operation: {operation!r}')
    return rule(principal, operation, hints)


def writable_order_fields(principal: Principal) -> FrozenSet[str]:
    role = principal.role
    if role is Role.SUPER_ADMIN or role is Role.ACCOUNT_ADMIN:
        return frozenset({'status', 'notes'})
    if role is Role.OPERATION:
        return frozenset({'status'})
    if role is Role.BUYER:
        return frozenset()
    raise InvalidRoleError(role)


def is_in_scope(principal: Principal, resource_type: str, record: Any, operation: str = 'read', **hints) -> bool:
    pred = scope_filter(principal, resource_type, operation, **hints)
    return not pred.forbidden and pred.matches(record)


def assert_in_scope(principal: Principal, resource_type: str, record: Any, operation: str = 'read', **hints):
    """Abort 403 when a record fetched by id lies outside the principal's scope."""
    if not is_in_scope(principal, resource_type, record, operation, **hints):
        abort(403, description='Resource outside your scope')


def apply_scope(query, principal: Principal, resource_type: str, model, operation: str = 'list', **hints):
    """Filter a SQLAlchemy query by the principal's scope; 403 when the role has none."""
    pred = scope_filter(principal, resource_type, operation, **hints)
    if pred.forbidden:
        abort(403, description='Forbidden')
    return query.filter(compile_predicate(pred, model))


def redact_fields(record: Optional[Any]):
    """Strip secret fields from a serialized record (and nested records).

    Not role-conditional: no role ever receives these fields.
    """
    if isinstance(record, Mapping):
        return {k: redact_fields(v) for k, v in record.items() if k not in SENSITIVE_FIELDS}
    if isinstance(record, list):
        return [redact_fields(r) for r in record]
    return record


__all__ = [
    'OPERATIONS', 'RESOURCE_TYPES', 'SENSITIVE_FIELDS', 'scope_filter', 'product_visibility',
    'writable_order_fields', 'is_in_scope', 'assert_in_scope', 'apply_scope', 'redact_fields',
]
