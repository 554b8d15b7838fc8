from __future__ import annotations
"""Route decorator that records an audit entry after a successful mutation.

Usage examples:

@audit_log('PRODUCT.CREATE', resource='product', entity_id_key='id', meta_keys=['sku', 'company_id'])
def create_product():
    ... return _product_json(p), 201

@audit_log('USER.UPDATE', resource='user', entity_id_key='id', category='user_management',
           diff_keys=['role', 'is_active'], pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def update_user(user_id): ...

Parameters:
  action: audit action code (e.g. PRODUCT.CREATE)
  resource: resource label stored on the record
  entity_id_key: key in the returned JSON object whose value becomes resource_id
  entity_id_arg: view argument used when the payload has no entity_id_key
  meta_keys: keys projected from the returned JSON into details
  meta_builder: callable(data, rv, args, kwargs) -> dict; overrides meta_keys
  diff_keys / pre_fetch: snapshot taken before the handler runs; changed keys
    land in details['changes'] as {'before', 'after'} pairs
  severity / category: passed through to record_audit (severity None = derived)

Handlers abort() on failure, so the decorator only sees successful returns.
The handler is expected to have committed before returning; the audit row is
written afterwards in a separate session.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from commerce_rbac.services.audit import record_audit
from commerce_rbac.services.policy import current_principal

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def audit_log(
    action: str,
    *,
    resource: str,
    entity_id_key: Optional[str] = 'id',
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
    severity: Optional[str] = None,
    category: str = 'data',
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.warning('Audit pre-fetch failed for %s', action, exc_info=True)
            rv = fn(*args, **kwargs)
            try:
                data = _extract_payload(rv)
                if not isinstance(data, dict):
                    data = {}
                entity_id = None
                if entity_id_key and entity_id_key in data:
                    entity_id = data.get(entity_id_key)
                elif entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                if meta_builder:
                    details = meta_builder(data, rv, args, kwargs) or {}
                elif meta_keys:
                    details = {k: data.get(k) for k in meta_keys if k in data}
                else:
                    details = {}
                if diff_keys and isinstance(before_snapshot, dict):
                    changes = {}
                    for k in diff_keys:
                        if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k):
                            changes[k] = {'before': before_snapshot.get(k), 'after': data.get(k)}
                    if changes:
                        details['changes'] = changes
                        if 'status' in changes:
                            details['old_status'] = changes['status']['before']
                            details['new_status'] = changes['status']['after']
                record_audit(
                    action, resource, entity_id, current_principal(),
                    details=details, severity=severity, category=category,
                )
            except Exception:
                # the mutation already committed; the response stands
                logger.exception('Audit decorator failed for %s', action)
            return rv
        return wrapper
    return outer


__all__ = ['audit_log']
