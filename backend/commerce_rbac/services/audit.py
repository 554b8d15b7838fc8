from __future__ import annotations
"""Audit trail writer.

``record_audit`` is called after the primary transaction of a guarded mutation
has committed. It writes through its own session, so a failing audit insert can
neither roll back nor fail the request that triggered it: errors are logged and
``None`` is returned.

With ``AUDIT_ASYNC`` enabled the insert is handed to a small thread pool and the
call returns immediately.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional
from flask import current_app, has_app_context, has_request_context, request as current_request
from commerce_rbac.models.audit import AuditRecord, SEVERITIES, CATEGORIES

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None

# status values whose arrival is a risk signal
_WARNING_STATUSES = frozenset({'CANCELLED', 'cancelled', 'rejected', 'failed', 'refunded'})
_SENSITIVE_CHANGES = frozenset({'role', 'is_active', 'company_id'})


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='audit')
    return _executor


def client_info(req=None) -> Dict[str, str]:
    """Caller ip / user agent: first X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    if req is None:
        if not has_request_context():
            return {'ip_address': 'unknown', 'user_agent': 'unknown'}
        req = current_request
    forwarded = req.headers.get('X-Forwarded-For')
    ip = None
    if forwarded:
        ip = forwarded.split(',')[0].strip() or None
    ip = ip or req.headers.get('X-Real-IP') or req.remote_addr or 'unknown'
    return {'ip_address': ip, 'user_agent': (req.headers.get('User-Agent') or 'unknown')[:255]}


def default_severity(action: str, details: Optional[Mapping[str, Any]]) -> str:
    details = details or {}
    if action.upper().endswith('.DELETE'):
        return 'warning'
    if details.get('new_status') in _WARNING_STATUSES:
        return 'warning'
    if details.get('bulk'):
        return 'warning'
    changes = details.get('changes')
    if isinstance(changes, Mapping) and _SENSITIVE_CHANGES.intersection(changes):
        return 'warning'
    return 'info'


def _write(entry: Dict[str, Any]) -> Optional[AuditRecord]:
    from commerce_rbac import new_session
    session = None
    try:
        session = new_session()
        record = AuditRecord(**entry)
        session.add(record)
        session.commit()
        return record
    except Exception:
        logger.exception('Audit write failed for %s on %s/%s', entry.get('action'), entry.get('resource'), entry.get('resource_id'))
        if session is not None:
            try:
                session.rollback()
            except Exception:
                logger.exception('Audit session rollback failed')
        return None
    finally:
        if session is not None:
            session.close()


def record_audit(
    action: str,
    resource: str,
    resource_id: Any,
    principal,
    details: Optional[Dict[str, Any]] = None,
    severity: Optional[str] = None,
    category: str = 'data',
    request=None,
) -> Optional[AuditRecord]:
    """Append one audit record for a mutation that already succeeded.

    Returns the stored record, or ``None`` when the write failed or was
    dispatched asynchronously. Severity/category outside the closed sets raise
    ``ValueError``.
    """
    if severity is None:
        severity = default_severity(action, details)
    if severity not in SEVERITIES:
        raise ValueError(f'Invalid audit severity: {severity!r}')
    if category not in CATEGORIES:
        raise ValueError(f'Invalid audit category: {category!r}')
    entry = {
        'action': action,
        'resource': resource,
        'resource_id': str(resource_id) if resource_id is not None else None,
        'actor_id': principal.id,
        'actor_email': principal.email or 'unknown@example.com',
        'actor_name': principal.name or 'Unknown User',
        'details': dict(details or {}),
        'severity': severity,
        'category': category,
        **client_info(request),
    }
    if has_app_context() and current_app.config.get('AUDIT_ASYNC'):
        _get_executor().submit(_write, entry)
        return None
    return _write(entry)


__all__ = ['record_audit', 'client_info', 'default_severity']
