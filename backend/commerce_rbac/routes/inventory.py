from __future__ import annotations
from flask import Blueprint, request, abort
from commerce_rbac import get_db
from commerce_rbac.models.inventory import InventoryTransaction
from commerce_rbac.models.product import Product
from commerce_rbac.decorators.auth import require_capability
from commerce_rbac.services.audit import record_audit
from commerce_rbac.services.inventory import InsufficientStockError, apply_stock_change, notify_low_stock, stock_status
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import apply_filters, parse_bool
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import positive_int, validate_status

inventory_bp = Blueprint('inventory', __name__)


def _transaction_json(tx: InventoryTransaction):
    return model_dict(tx, ('id', 'product_id', 'type', 'quantity', 'reason', 'reference', 'user_id', 'created_at'))


def _stock_json(p: Product):
    out = model_dict(p, ('id', 'name', 'sku', 'stock', 'min_stock', 'company_id'))
    out['stock_status'] = stock_status(p)
    return out


@inventory_bp.get('/transactions')
@require_capability('can_manage_inventory')
def list_transactions():
    session = get_db()
    q = session.query(InventoryTransaction).join(Product, InventoryTransaction.product_id == Product.id)
    q = apply_scope(q, current_principal(), 'inventory', Product)
    filter_specs = {
        'product_id': {'coerce': int, 'op': lambda qu, v: qu.filter(InventoryTransaction.product_id == v)},
        'type': {'op': lambda qu, v: qu.filter(InventoryTransaction.type == v), 'validate': lambda v: v in InventoryTransaction.ALL_TYPES},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc()), _transaction_json)


@inventory_bp.post('/transactions')
@require_capability('can_manage_inventory')
def create_transaction():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    if data.get('product_id') is None or data.get('quantity') is None:
        abort(400, description='product_id and quantity required')
    type_ = validate_status(data.get('type'), InventoryTransaction.ALL_TYPES, 'type')
    quantity = positive_int(data['quantity'], 'quantity', allow_zero=type_ == InventoryTransaction.TYPE_ADJUSTMENT)
    product = session.get(Product, positive_int(data['product_id'], 'product_id'))
    if not product:
        abort(404, description='Product not found')
    assert_in_scope(principal, 'inventory', product, 'write')
    old_stock = product.stock
    try:
        tx = apply_stock_change(session, product, type_, quantity, principal.id,
                                reason=data.get('reason'), reference=data.get('reference'))
    except InsufficientStockError:
        abort(400, description='Insufficient stock for this transaction')
    session.commit()
    record_audit('INVENTORY.TRANSACTION', 'inventory', tx.id, principal, details={
        'product_id': product.id,
        'sku': product.sku,
        'type': type_,
        'old_stock': old_stock,
        'new_stock': product.stock,
        'reason': tx.reason,
    })
    notify_low_stock(session, product)
    out = _transaction_json(tx)
    out['stock'] = product.stock
    return out, 201


@inventory_bp.get('/stock')
@require_capability('can_manage_inventory')
def stock_report():
    session = get_db()
    q = apply_scope(session.query(Product), current_principal(), 'inventory', Product)
    try:
        low_only = parse_bool(request.args.get('low_stock', 'false'))
    except ValueError:
        abort(400, description='low_stock invalid')
    if low_only:
        q = q.filter(Product.stock <= Product.min_stock)
    return paginated(q.order_by(Product.stock, Product.id), _stock_json)
