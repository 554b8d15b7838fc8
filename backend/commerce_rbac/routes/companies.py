from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from commerce_rbac import get_db
from commerce_rbac.models.authz import Company
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import require_fields

companies_bp = Blueprint('companies', __name__)


def _company_json(c: Company):
    return model_dict(c, ('id', 'name', 'email', 'is_active', 'created_at'))


def _prefetch_company(company_id):
    c = get_db().get(Company, company_id)
    return _company_json(c) if c else {}


def _get_company_or_404(company_id: int) -> Company:
    c = get_db().execute(select(Company).where(Company.id == company_id)).scalar_one_or_none()
    if not c:
        abort(404)
    return c


@companies_bp.get('')
@require_principal
def list_companies():
    session = get_db()
    q = apply_scope(session.query(Company), current_principal(), 'companies', Company)
    q = apply_filters(q, {'search': {'op': lambda qu, v: qu.filter(Company.name.ilike(f'%{v}%'))}}, request.args)
    return paginated(q.order_by(Company.name), _company_json)


@companies_bp.get('/<int:company_id>')
@require_principal
def get_company(company_id: int):
    c = _get_company_or_404(company_id)
    assert_in_scope(current_principal(), 'companies', c, 'read')
    return _company_json(c)


@companies_bp.post('')
@require_capability('can_create_companies')
@audit_log('COMPANY.CREATE', resource='company', category='user_management', meta_keys=['name'])
def create_company():
    session = get_db()
    data = request.json or {}
    require_fields(data, 'name')
    if session.query(Company).filter_by(name=data['name']).one_or_none():
        abort(409, description='Company name already exists')
    c = Company(name=data['name'], email=data.get('email'))
    session.add(c)
    session.commit()
    return _company_json(c), 201


@companies_bp.put('/<int:company_id>')
@require_capability('can_edit_companies')
@audit_log(
    'COMPANY.UPDATE',
    resource='company',
    category='user_management',
    diff_keys=['name', 'email', 'is_active'],
    pre_fetch=lambda a, kw: _prefetch_company(kw.get('company_id')),
)
def update_company(company_id: int):
    session = get_db()
    p = current_principal()
    c = _get_company_or_404(company_id)
    assert_in_scope(p, 'companies', c, 'write')
    data = request.json or {}
    if 'name' in data:
        if not data['name']:
            abort(400, description='name cannot be empty')
        c.name = data['name']
    if 'email' in data:
        c.email = data['email']
    if 'is_active' in data:
        if not p.is_super_admin:
            abort(403, description='Only super admins can change company status')
        c.is_active = bool(data['is_active'])
    session.commit()
    return _company_json(c)


@companies_bp.delete('/<int:company_id>')
@require_capability('can_delete_companies')
@audit_log('COMPANY.DELETE', resource='company', category='user_management', meta_keys=['name'])
def delete_company(company_id: int):
    session = get_db()
    c = _get_company_or_404(company_id)
    payload = {'id': c.id, 'name': c.name, 'deleted': True}
    session.delete(c)
    session.commit()
    return payload
