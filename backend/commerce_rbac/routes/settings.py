from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from commerce_rbac import get_db
from commerce_rbac.models.setting import SystemSetting
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import parse_bool
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import (
    require_fields, validate_status, parse_setting_value, serialize_setting_value,
)

settings_bp = Blueprint('settings', __name__)


def _setting_json(s: SystemSetting):
    out = model_dict(s, ('id', 'key', 'type', 'category', 'is_public', 'description', 'updated_at'))
    out['value'] = parse_setting_value(s.value, s.type)
    return out


def _prefetch_setting(key):
    s = get_db().execute(select(SystemSetting).where(SystemSetting.key == key)).scalar_one_or_none()
    return _setting_json(s) if s else {}


def _get_setting_or_404(key: str) -> SystemSetting:
    s = get_db().execute(select(SystemSetting).where(SystemSetting.key == key)).scalar_one_or_none()
    if not s:
        abort(404)
    return s


@settings_bp.get('')
@require_principal
def list_settings():
    session = get_db()
    try:
        public_only = parse_bool(request.args.get('public_only', 'false'))
    except ValueError:
        abort(400, description='public_only invalid')
    q = apply_scope(
        session.query(SystemSetting), current_principal(), 'settings', SystemSetting,
        category=request.args.get('category'), public_only=public_only,
    )
    return paginated(q.order_by(SystemSetting.category, SystemSetting.key), _setting_json)


@settings_bp.get('/<key>')
@require_principal
def get_setting(key: str):
    s = _get_setting_or_404(key)
    assert_in_scope(current_principal(), 'settings', s, 'read')
    return _setting_json(s)


@settings_bp.post('')
@require_capability('can_manage_settings')
@audit_log('SETTING.CREATE', resource='setting', entity_id_key='key', meta_keys=['category', 'is_public'], category='system')
def create_setting():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'key')
    if 'value' not in data:
        abort(400, description='value required')
    type_ = validate_status(data.get('type', 'string'), SystemSetting.ALL_TYPES, 'type')
    if session.query(SystemSetting).filter_by(key=data['key']).one_or_none():
        abort(409, description='Setting key already exists')
    s = SystemSetting(
        key=data['key'],
        value=serialize_setting_value(data['value'], type_),
        type=type_,
        category=data.get('category') or 'general',
        is_public=bool(data.get('is_public', False)),
        description=data.get('description'),
    )
    session.add(s)
    session.commit()
    return _setting_json(s), 201


@settings_bp.put('/<key>')
@require_capability('can_manage_settings')
@audit_log(
    'SETTING.UPDATE',
    resource='setting',
    entity_id_key='key',
    diff_keys=['value', 'type', 'category', 'is_public'],
    pre_fetch=lambda a, kw: _prefetch_setting(kw.get('key')),
    severity='warning',
    category='system',
)
def update_setting(key: str):
    session = get_db()
    s = _get_setting_or_404(key)
    assert_in_scope(current_principal(), 'settings', s, 'write')
    data = request.json or {}
    type_ = validate_status(data.get('type', s.type), SystemSetting.ALL_TYPES, 'type')
    if 'value' in data:
        s.value = serialize_setting_value(data['value'], type_)
    elif type_ != s.type:
        s.value = serialize_setting_value(s.value, type_)
    s.type = type_
    if 'category' in data:
        s.category = data['category'] or 'general'
    if 'is_public' in data:
        s.is_public = bool(data['is_public'])
    if 'description' in data:
        s.description = data['description']
    session.commit()
    return _setting_json(s)


@settings_bp.delete('/<key>')
@require_capability('can_manage_settings')
@audit_log('SETTING.DELETE', resource='setting', entity_id_key='key', category='system')
def delete_setting(key: str):
    session = get_db()
    s = _get_setting_or_404(key)
    assert_in_scope(current_principal(), 'settings', s, 'write')
    session.delete(s)
    session.commit()
    return {'key': key, 'deleted': True}
