"""Central definitions of the four roles and their capability matrix.

Each role row is written out in full. Rows are never derived from one another:
changing a value for ACCOUNT_ADMIN must not move anything for BUYER.
Extend cautiously; adding a role means adding a complete row here.
"""
from __future__ import annotations
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from commerce_rbac.errors import InvalidRoleError


class Role(str, Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    ACCOUNT_ADMIN = 'ACCOUNT_ADMIN'
    BUYER = 'BUYER'
    OPERATION = 'OPERATION'

    @classmethod
    def parse(cls, value) -> 'Role':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidRoleError(value) from None


ALL_ROLES: Tuple[Role, ...] = tuple(Role)

PAGE_CAPABILITIES = (
    'can_access_admin_panel',
    'can_access_analytics',
    'can_access_audit_logs',
    'can_access_user_management',
    'can_access_company_management',
    'can_access_product_management',
    'can_access_order_management',
    'can_access_inventory_management',
    'can_access_system_settings',
    'can_access_reports',
)

DATA_CAPABILITIES = (
    'can_create_products',
    'can_edit_products',
    'can_delete_products',
    'can_create_users',
    'can_edit_users',
    'can_delete_users',
    'can_create_orders',
    'can_edit_orders',
    'can_cancel_orders',
    'can_process_payments',
    'can_manage_inventory',
    'can_view_all_companies',
    'can_create_companies',
    'can_edit_companies',
    'can_delete_companies',
    'can_view_analytics',
    'can_export_data',
    'can_manage_settings',
    'can_view_audit_logs',
)

SHOPPING_CAPABILITIES = (
    'can_place_orders',
    'can_view_own_orders',
    'can_view_all_orders',
    'can_add_to_cart',
    'can_create_bulk_orders',
    'can_approve_bulk_orders',
)

NOTIFICATION_CAPABILITIES = (
    'can_send_global_notifications',
    'can_view_notifications',
)

CAPABILITIES: Tuple[str, ...] = PAGE_CAPABILITIES + DATA_CAPABILITIES + SHOPPING_CAPABILITIES + NOTIFICATION_CAPABILITIES


_SUPER_ADMIN = {
    # Page access
    'can_access_admin_panel': True,
    'can_access_analytics': True,
    'can_access_audit_logs': True,
    'can_access_user_management': True,
    'can_access_company_management': True,
    'can_access_product_management': True,
    'can_access_order_management': True,
    'can_access_inventory_management': True,
    'can_access_system_settings': True,
    'can_access_reports': True,
    # Data operations
    'can_create_products': True,
    'can_edit_products': True,
    'can_delete_products': True,
    'can_create_users': True,
    'can_edit_users': True,
    'can_delete_users': True,
    'can_create_orders': True,
    'can_edit_orders': True,
    'can_cancel_orders': True,
    'can_process_payments': True,
    'can_manage_inventory': True,
    'can_view_all_companies': True,
    'can_create_companies': True,
    'can_edit_companies': True,
    'can_delete_companies': True,
    'can_view_analytics': True,
    'can_export_data': True,
    'can_manage_settings': True,
    'can_view_audit_logs': True,
    # Shopping & orders
    'can_place_orders': True,
    'can_view_own_orders': True,
    'can_view_all_orders': True,
    'can_add_to_cart': True,
    'can_create_bulk_orders': True,
    'can_approve_bulk_orders': True,
    # Notifications
    'can_send_global_notifications': True,
    'can_view_notifications': True,
}

_ACCOUNT_ADMIN = {
    # Page access
    'can_access_admin_panel': True,
    'can_access_analytics': True,
    'can_access_audit_logs': False,
    'can_access_user_management': True,  # company users only
    'can_access_company_management': False,
    'can_access_product_management': True,
    'can_access_order_management': True,  # company orders only
    'can_access_inventory_management': True,
    'can_access_system_settings': False,
    'can_access_reports': True,  # company reports only
    # Data operations
    'can_create_products': True,
    'can_edit_products': True,
    'can_delete_products': False,  # deactivate only
    'can_create_users': True,  # own company
    'can_edit_users': True,  # own company
    'can_delete_users': False,  # deactivate only
    'can_create_orders': True,
    'can_edit_orders': True,  # company orders only
    'can_cancel_orders': True,
    'can_process_payments': True,
    'can_manage_inventory': True,
    'can_view_all_companies': False,
    'can_create_companies': False,
    'can_edit_companies': True,  # own company
    'can_delete_companies': False,
    'can_view_analytics': True,
    'can_export_data': True,  # company data only
    'can_manage_settings': False,
    'can_view_audit_logs': False,
    # Shopping & orders
    'can_place_orders': True,
    'can_view_own_orders': True,
    'can_view_all_orders': True,  # company orders only
    'can_add_to_cart': True,
    'can_create_bulk_orders': True,
    'can_approve_bulk_orders': True,  # company bulk orders only
    # Notifications
    'can_send_global_notifications': False,  # company notifications only
    'can_view_notifications': True,
}

_OPERATION = {
    # Page access
    'can_access_admin_panel': True,  # limited panel
    'can_access_analytics': False,
    'can_access_audit_logs': False,
    'can_access_user_management': False,
    'can_access_company_management': False,
    'can_access_product_management': True,
    'can_access_order_management': True,
    'can_access_inventory_management': True,
    'can_access_system_settings': False,
    'can_access_reports': True,  # operational reports
    # Data operations
    'can_create_products': True,
    'can_edit_products': True,
    'can_delete_products': False,
    'can_create_users': False,
    'can_edit_users': False,
    'can_delete_users': False,
    'can_create_orders': False,
    'can_edit_orders': True,  # status only
    'can_cancel_orders': False,
    'can_process_payments': False,
    'can_manage_inventory': True,
    'can_view_all_companies': False,
    'can_create_companies': False,
    'can_edit_companies': False,
    'can_delete_companies': False,
    'can_view_analytics': False,
    'can_export_data': True,  # operational data
    'can_manage_settings': False,
    'can_view_audit_logs': False,
    # Shopping & orders
    'can_place_orders': False,
    'can_view_own_orders': False,
    'can_view_all_orders': True,  # for processing
    'can_add_to_cart': False,
    'can_create_bulk_orders': False,
    'can_approve_bulk_orders': False,
    # Notifications
    'can_send_global_notifications': False,
    'can_view_notifications': True,
}

_BUYER = {
    # Page access
    'can_access_admin_panel': False,
    'can_access_analytics': False,
    'can_access_audit_logs': False,
    'can_access_user_management': False,
    'can_access_company_management': False,
    'can_access_product_management': False,
    'can_access_order_management': False,
    'can_access_inventory_management': False,
    'can_access_system_settings': False,
    'can_access_reports': False,
    # Data operations
    'can_create_products': False,
    'can_edit_products': False,
    'can_delete_products': False,
    'can_create_users': False,
    'can_edit_users': False,
    'can_delete_users': False,
    'can_create_orders': True,
    'can_edit_orders': False,
    'can_cancel_orders': True,  # own orders while pending
    'can_process_payments': False,
    'can_manage_inventory': False,
    'can_view_all_companies': False,
    'can_create_companies': False,
    'can_edit_companies': False,
    'can_delete_companies': False,
    'can_view_analytics': False,
    'can_export_data': False,
    'can_manage_settings': False,
    'can_view_audit_logs': False,
    # Shopping & orders
    'can_place_orders': True,
    'can_view_own_orders': True,
    'can_view_all_orders': False,
    'can_add_to_cart': True,
    'can_create_bulk_orders': True,
    'can_approve_bulk_orders': False,
    # Notifications
    'can_send_global_notifications': False,
    'can_view_notifications': True,
}


def _freeze(rows: Dict[Role, Dict[str, bool]]) -> Mapping[Role, Mapping[str, bool]]:
    expected = set(CAPABILITIES)
    for role in ALL_ROLES:
        row = rows[role]
        missing = expected - set(row)
        extra = set(row) - expected
        if missing or extra:
            raise RuntimeError(f'Capability matrix row {role.value} incomplete: missing={sorted(missing)} extra={sorted(extra)}')
        bad = [k for k, v in row.items() if not isinstance(v, bool)]
        if bad:
            raise RuntimeError(f'Capability matrix row {role.value} has non-boolean values: {sorted(bad)}')
    return MappingProxyType({role: MappingProxyType(dict(rows[role])) for role in ALL_ROLES})


ROLE_CAPABILITIES = _freeze({
    Role.SUPER_ADMIN: _SUPER_ADMIN,
    Role.ACCOUNT_ADMIN: _ACCOUNT_ADMIN,
    Role.OPERATION: _OPERATION,
    Role.BUYER: _BUYER,
})

__all__ = [
    'Role', 'ALL_ROLES', 'CAPABILITIES', 'PAGE_CAPABILITIES', 'DATA_CAPABILITIES',
    'SHOPPING_CAPABILITIES', 'NOTIFICATION_CAPABILITIES', 'ROLE_CAPABILITIES',
]
