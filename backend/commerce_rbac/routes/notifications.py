from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request, abort
from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.authz import User
from commerce_rbac.models.notification import Notification
from commerce_rbac.decorators.auth import require_capability
from commerce_rbac.services.audit import record_audit
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope, is_in_scope
from commerce_rbac.utils.filters import apply_filters, parse_bool
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import positive_int, require_fields, validate_status

notifications_bp = Blueprint('notifications', __name__)

SENDER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ACCOUNT_ADMIN})

NOTIFICATION_FIELDS = (
    'id', 'title', 'message', 'type', 'user_id', 'is_global', 'is_read', 'read_at', 'meta', 'expires_at', 'created_at',
)


def _notification_json(n: Notification):
    return model_dict(n, NOTIFICATION_FIELDS)


def _visible(principal):
    session = get_db()
    return apply_scope(session.query(Notification), principal, 'notifications', Notification)


def _parse_expiry(raw):
    if raw in (None, ''):
        return None
    try:
        dt = datetime.fromisoformat(str(raw).replace('Z', '+00:00'))
    except ValueError:
        abort(400, description='expires_at must be ISO-8601')
    # stored as UTC wall-clock time
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@notifications_bp.get('')
@require_capability('can_view_notifications')
def list_notifications():
    principal = current_principal()
    filter_specs = {
        'unread_only': {'coerce': parse_bool, 'op': lambda qu, v: qu.filter(Notification.is_read.is_(False)) if v else qu},
        'type': {'op': lambda qu, v: qu.filter(Notification.type == v), 'validate': lambda v: v in Notification.ALL_TYPES},
    }
    q = apply_filters(_visible(principal), filter_specs, request.args)
    payload = paginated(q.order_by(Notification.created_at.desc(), Notification.id.desc()), _notification_json)
    payload['unread_count'] = _visible(principal).filter(Notification.is_read.is_(False)).count()
    return payload


@notifications_bp.get('/unread-count')
@require_capability('can_view_notifications')
def unread_count():
    return {'unread_count': _visible(current_principal()).filter(Notification.is_read.is_(False)).count()}


@notifications_bp.post('')
@require_capability('can_view_notifications')
def create_notification():
    session = get_db()
    principal = current_principal()
    if principal.role not in SENDER_ROLES:
        abort(403, description='Not allowed to send notifications')
    data = request.json or {}
    require_fields(data, 'title', 'message')
    type_ = validate_status(data.get('type', 'info'), Notification.ALL_TYPES, 'type')
    is_global = bool(data.get('is_global'))
    user_id = None
    if is_global:
        if not principal.can('can_send_global_notifications'):
            abort(403, description='Missing capability')
    else:
        if data.get('user_id') is None:
            abort(400, description='user_id required unless is_global')
        target = session.get(User, positive_int(data['user_id'], 'user_id'))
        if not target:
            abort(404, description='User not found')
        # company admins can only reach their own company
        if not principal.is_super_admin and not is_in_scope(principal, 'users', target, 'read'):
            abort(403, description='Resource outside your scope')
        user_id = target.id
    n = Notification(
        title=data['title'],
        message=data['message'],
        type=type_,
        user_id=user_id,
        is_global=is_global,
        meta=data.get('meta') or {},
        expires_at=_parse_expiry(data.get('expires_at')),
    )
    session.add(n)
    session.commit()
    if is_global:
        record_audit('NOTIFICATION.GLOBAL_SEND', 'notification', n.id, principal,
                     details={'title': n.title, 'type': n.type}, category='system')
    return _notification_json(n), 201


@notifications_bp.post('/<int:notification_id>/read')
@require_capability('can_view_notifications')
def mark_read(notification_id: int):
    session = get_db()
    n = session.get(Notification, notification_id)
    if not n:
        abort(404)
    assert_in_scope(current_principal(), 'notifications', n, 'read')
    # broadcasts share one row, so reading one must not clear it for everyone
    if not n.is_read and not n.is_global:
        n.is_read = True
        n.read_at = datetime.now(timezone.utc)
        session.commit()
    return _notification_json(n)


@notifications_bp.post('/read-all')
@require_capability('can_view_notifications')
def mark_all_read():
    session = get_db()
    principal = current_principal()
    now = datetime.now(timezone.utc)
    updated = (
        session.query(Notification)
        .filter(Notification.user_id == principal.id, Notification.is_read.is_(False))
        .update({'is_read': True, 'read_at': now}, synchronize_session=False)
    )
    session.commit()
    return {'updated': updated}


@notifications_bp.delete('/<int:notification_id>')
@require_capability('can_view_notifications')
def delete_notification(notification_id: int):
    session = get_db()
    n = session.get(Notification, notification_id)
    if not n:
        abort(404)
    assert_in_scope(current_principal(), 'notifications', n, 'write')
    session.delete(n)
    session.commit()
    return {'id': notification_id, 'deleted': True}
