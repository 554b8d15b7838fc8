from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, or_
from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role, ALL_ROLES
from commerce_rbac.errors import InvalidRoleError
from commerce_rbac.models.authz import User
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import positive_int, require_fields

users_bp = Blueprint('users', __name__)

ROLE_VALUES = frozenset(r.value for r in ALL_ROLES)
USER_FIELDS = ('id', 'name', 'email', 'role', 'company_id', 'is_active', 'created_at')


def _user_json(u: User):
    return model_dict(u, USER_FIELDS)


def _prefetch_user(user_id):
    u = get_db().get(User, user_id)
    return _user_json(u) if u else {}


def _parse_role(value) -> Role:
    try:
        return Role.parse(value)
    except InvalidRoleError:
        abort(400, description='role invalid')


def _get_user_or_404(user_id: int) -> User:
    u = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not u:
        abort(404)
    return u


@users_bp.get('')
@require_principal
def list_users():
    session = get_db()
    p = current_principal()
    q = apply_scope(session.query(User), p, 'users', User, company=request.args.get('company'))
    filter_specs = {
        'search': {'op': lambda qu, v: qu.filter(or_(User.name.ilike(f'%{v}%'), User.email.ilike(f'%{v}%')))},
        'role': {'op': lambda qu, v: qu.filter(User.role == v), 'validate': lambda v: v in ROLE_VALUES},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(User.id), _user_json)


@users_bp.get('/<int:user_id>')
@require_principal
def get_user(user_id: int):
    u = _get_user_or_404(user_id)
    assert_in_scope(current_principal(), 'users', u, 'read')
    return _user_json(u)


@users_bp.post('')
@require_capability('can_create_users')
@audit_log('USER.CREATE', resource='user', category='user_management', meta_keys=['email', 'role', 'company_id'])
def create_user():
    session = get_db()
    p = current_principal()
    data = request.json or {}
    require_fields(data, 'name', 'email', 'password')
    role = _parse_role(data.get('role', Role.BUYER.value))
    company_id = data.get('company_id')
    if not p.is_super_admin:
        if role is Role.SUPER_ADMIN:
            abort(403, description='Only super admins can create super admins')
        if p.company_id is None:
            abort(403, description='No company assigned')
        company_id = p.company_id
    if session.query(User).filter_by(email=data['email']).one_or_none():
        abort(409, description='Email already registered')
    u = User(name=data['name'], email=data['email'], role=role.value,
             company_id=positive_int(company_id, 'company_id') if company_id is not None else None)
    u.set_password(data['password'])
    session.add(u)
    session.commit()
    return _user_json(u), 201


@users_bp.put('/<int:user_id>')
@require_capability('can_edit_users')
@audit_log(
    'USER.UPDATE',
    resource='user',
    category='user_management',
    diff_keys=['name', 'role', 'company_id', 'is_active'],
    pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')),
)
def update_user(user_id: int):
    session = get_db()
    p = current_principal()
    u = _get_user_or_404(user_id)
    assert_in_scope(p, 'users', u, 'write')
    data = request.json or {}
    if 'name' in data:
        if not data['name']:
            abort(400, description='name cannot be empty')
        u.name = data['name']
    if 'role' in data:
        role = _parse_role(data['role'])
        if role is Role.SUPER_ADMIN and not p.is_super_admin:
            abort(403, description='Only super admins can grant super admin')
        u.role = role.value
    if 'company_id' in data:
        if not p.is_super_admin:
            abort(403, description='Only super admins can move users between companies')
        u.company_id = positive_int(data['company_id'], 'company_id') if data['company_id'] is not None else None
    if 'is_active' in data:
        if u.id == p.id and not data['is_active']:
            abort(400, description='Cannot deactivate yourself')
        u.is_active = bool(data['is_active'])
    if data.get('password'):
        u.set_password(data['password'])
    session.commit()
    return _user_json(u)


@users_bp.delete('/<int:user_id>')
@require_capability('can_delete_users')
@audit_log('USER.DELETE', resource='user', category='user_management', meta_keys=['email'])
def delete_user(user_id: int):
    session = get_db()
    p = current_principal()
    u = _get_user_or_404(user_id)
    assert_in_scope(p, 'users', u, 'write')
    if u.id == p.id:
        abort(400, description='Cannot delete yourself')
    payload = {'id': u.id, 'email': u.email, 'deleted': True}
    session.delete(u)
    session.commit()
    return payload
