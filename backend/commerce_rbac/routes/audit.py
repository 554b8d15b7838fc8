from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import or_
from commerce_rbac import get_db
from commerce_rbac.models.audit import AuditRecord, SEVERITIES, CATEGORIES
from commerce_rbac.decorators.auth import require_capability
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict

audit_bp = Blueprint('audit', __name__)

AUDIT_FIELDS = (
    'id', 'action', 'resource', 'resource_id', 'actor_id', 'actor_email', 'actor_name', 'details',
    'severity', 'category', 'ip_address', 'user_agent', 'timestamp',
)


@audit_bp.get('/logs')
@require_capability('can_view_audit_logs')
def list_audit_logs():
    session = get_db()
    q = apply_scope(session.query(AuditRecord), current_principal(), 'audit_logs', AuditRecord)
    filter_specs = {
        'category': {'op': lambda qu, v: qu.filter(AuditRecord.category == v), 'validate': lambda v: v in CATEGORIES},
        'severity': {'op': lambda qu, v: qu.filter(AuditRecord.severity == v), 'validate': lambda v: v in SEVERITIES},
        'resource': {'op': lambda qu, v: qu.filter(AuditRecord.resource == v)},
        'actor_id': {'coerce': int, 'op': lambda qu, v: qu.filter(AuditRecord.actor_id == v)},
        'search': {'op': lambda qu, v: qu.filter(or_(
            AuditRecord.action.ilike(f'%{v}%'),
            AuditRecord.resource.ilike(f'%{v}%'),
            AuditRecord.actor_email.ilike(f'%{v}%'),
            AuditRecord.actor_name.ilike(f'%{v}%'),
        ))},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(AuditRecord.timestamp.desc(), AuditRecord.id.desc()), lambda r: model_dict(r, AUDIT_FIELDS))
