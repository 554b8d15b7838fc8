from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, or_
from commerce_rbac import get_db
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.product import Product
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import require_fields, positive_int, validate_status

catalog_bp = Blueprint('catalog', __name__)

PRODUCT_FIELDS = (
    'id', 'name', 'sku', 'description', 'price_cents', 'stock', 'min_stock', 'status',
    'company_id', 'created_by', 'created_at', 'updated_at',
)


def _product_json(p: Product):
    return model_dict(p, PRODUCT_FIELDS)


def _prefetch_product(product_id):
    p = get_db().get(Product, product_id)
    return _product_json(p) if p else {}


def _get_product_or_404(product_id: int) -> Product:
    p = get_db().execute(select(Product).where(Product.id == product_id)).scalar_one_or_none()
    if not p:
        abort(404)
    return p


@catalog_bp.get('/products')
@require_principal
def list_products():
    session = get_db()
    principal = current_principal()
    q = apply_scope(session.query(Product), principal, 'products', Product, company=request.args.get('company'))
    if not principal.can('can_edit_products'):
        # shoppers only see what can be bought
        q = q.filter(Product.status == Product.STATUS_ACTIVE)
    filter_specs = {
        'search': {'op': lambda qu, v: qu.filter(or_(Product.name.ilike(f'%{v}%'), Product.sku.ilike(f'%{v}%')))},
        'status': {'op': lambda qu, v: qu.filter(Product.status == v), 'validate': lambda v: v in Product.ALL_STATUSES},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(Product.name, Product.id), _product_json)


@catalog_bp.get('/products/<int:product_id>')
@require_principal
def get_product(product_id: int):
    p = _get_product_or_404(product_id)
    assert_in_scope(current_principal(), 'products', p, 'read')
    return _product_json(p)


@catalog_bp.post('/products')
@require_capability('can_create_products')
@audit_log('PRODUCT.CREATE', resource='product', meta_keys=['sku', 'company_id', 'price_cents'])
def create_product():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    require_fields(data, 'name', 'sku')
    if principal.is_super_admin:
        company_id = data.get('company_id')
        company_id = positive_int(company_id, 'company_id') if company_id is not None else None
    else:
        # operations staff without a company maintain the shared catalog
        if principal.company_id is None and principal.role is Role.ACCOUNT_ADMIN:
            abort(403, description='No company assigned')
        company_id = principal.company_id
    if session.query(Product).filter_by(sku=data['sku']).one_or_none():
        abort(409, description='SKU already exists')
    status = validate_status(data.get('status', Product.STATUS_ACTIVE), Product.ALL_STATUSES)
    p = Product(
        name=data['name'],
        sku=data['sku'],
        description=data.get('description'),
        price_cents=positive_int(data.get('price_cents', 0), 'price_cents', allow_zero=True),
        stock=positive_int(data.get('stock', 0), 'stock', allow_zero=True),
        min_stock=positive_int(data.get('min_stock', 0), 'min_stock', allow_zero=True),
        status=status,
        company_id=company_id,
        created_by=principal.id,
    )
    session.add(p)
    session.commit()
    return _product_json(p), 201


@catalog_bp.put('/products/<int:product_id>')
@require_capability('can_edit_products')
@audit_log(
    'PRODUCT.UPDATE',
    resource='product',
    diff_keys=['name', 'price_cents', 'min_stock', 'status', 'company_id'],
    pre_fetch=lambda a, kw: _prefetch_product(kw.get('product_id')),
)
def update_product(product_id: int):
    session = get_db()
    principal = current_principal()
    p = _get_product_or_404(product_id)
    assert_in_scope(principal, 'products', p, 'write')
    data = request.json or {}
    if 'stock' in data:
        abort(400, description='stock changes go through inventory transactions')
    if 'name' in data:
        if not data['name']:
            abort(400, description='name cannot be empty')
        p.name = data['name']
    if 'description' in data:
        p.description = data['description']
    if 'price_cents' in data:
        p.price_cents = positive_int(data['price_cents'], 'price_cents', allow_zero=True)
    if 'min_stock' in data:
        p.min_stock = positive_int(data['min_stock'], 'min_stock', allow_zero=True)
    if 'status' in data:
        p.status = validate_status(data['status'], Product.ALL_STATUSES)
    if 'company_id' in data:
        if not principal.is_super_admin:
            abort(403, description='Only super admins can reassign products')
        p.company_id = positive_int(data['company_id'], 'company_id') if data['company_id'] is not None else None
    session.commit()
    return _product_json(p)


@catalog_bp.delete('/products/<int:product_id>')
@require_capability('can_delete_products')
@audit_log('PRODUCT.DELETE', resource='product', meta_keys=['sku'])
def delete_product(product_id: int):
    session = get_db()
    p = _get_product_or_404(product_id)
    assert_in_scope(current_principal(), 'products', p, 'write')
    payload = {'id': p.id, 'sku': p.sku, 'deleted': True}
    session.delete(p)
    session.commit()
    return payload
