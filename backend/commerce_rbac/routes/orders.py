from __future__ import annotations
import secrets
import string
from flask import Blueprint, request, abort
from sqlalchemy import select
from commerce_rbac import get_db
from commerce_rbac.config.checkout import ORDER_NUMBER_PREFIX, compute_totals
from commerce_rbac.models.cart_item import CartItem
from commerce_rbac.models.inventory import InventoryTransaction
from commerce_rbac.models.order import Order, OrderItem
from commerce_rbac.models.product import Product
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.audit import record_audit
from commerce_rbac.services.inventory import InsufficientStockError, apply_stock_change, notify_low_stock
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import (
    apply_scope, assert_in_scope, product_visibility, scope_filter, writable_order_fields,
)
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.fsm import TransitionValidator
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.predicates import compile_predicate
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import validate_status

orders_bp = Blueprint('orders', __name__)

# PENDING -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED
# anything before SHIPPED may be CANCELLED
ORDER_FSM = TransitionValidator({
    Order.STATUS_PENDING: {Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED},
    Order.STATUS_CONFIRMED: {Order.STATUS_PROCESSING, Order.STATUS_CANCELLED},
    Order.STATUS_PROCESSING: {Order.STATUS_SHIPPED, Order.STATUS_CANCELLED},
    Order.STATUS_SHIPPED: {Order.STATUS_DELIVERED},
    Order.STATUS_DELIVERED: set(),
    Order.STATUS_CANCELLED: set(),
})

ORDER_FIELDS = (
    'id', 'order_number', 'status', 'subtotal_cents', 'tax_cents', 'shipping_cents', 'total_cents',
    'notes', 'user_id', 'company_id', 'created_at', 'updated_at',
)


def _order_json(o: Order, with_items: bool = False):
    out = model_dict(o, ORDER_FIELDS)
    if with_items:
        out['items'] = [model_dict(i, ('id', 'product_id', 'quantity', 'price_cents')) for i in o.items]
    return out


def _prefetch_order(order_id):
    o = get_db().get(Order, order_id)
    return _order_json(o) if o else {}


def _get_order_or_404(order_id: int) -> Order:
    o = get_db().execute(select(Order).where(Order.id == order_id)).scalar_one_or_none()
    if not o:
        abort(404)
    return o


def _order_number() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return ORDER_NUMBER_PREFIX + ''.join(secrets.choice(alphabet) for _ in range(10))


def restock_order(session, order: Order, user_id: int):
    """Return the stock of a cancelled order's items."""
    restocked = []
    for item in order.items:
        product = session.get(Product, item.product_id)
        if product is None:
            continue
        apply_stock_change(session, product, InventoryTransaction.TYPE_IN, item.quantity, user_id,
                           reason='order_cancelled', reference=order.order_number)
        restocked.append(product)
    return restocked


def transition_order(session, order: Order, target: str, user_id: int):
    validate_status(target, Order.ALL_STATUSES)
    ORDER_FSM.assert_can_transition(order.status, target)
    if target == Order.STATUS_CANCELLED:
        restock_order(session, order, user_id)
    order.status = target


@orders_bp.get('')
@require_principal
def list_orders():
    session = get_db()
    q = apply_scope(session.query(Order), current_principal(), 'orders', Order, company=request.args.get('company'))
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(Order.status == v), 'validate': lambda v: v in Order.ALL_STATUSES},
        'user_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Order.user_id == v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(Order.created_at.desc(), Order.id.desc()), _order_json)


@orders_bp.get('/<int:order_id>')
@require_principal
def get_order(order_id: int):
    o = _get_order_or_404(order_id)
    assert_in_scope(current_principal(), 'orders', o, 'read')
    return _order_json(o, with_items=True)


@orders_bp.post('/checkout')
@require_capability('can_place_orders')
def checkout():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    rows = (
        session.query(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .filter(compile_predicate(scope_filter(principal, 'cart_items'), CartItem))
        .filter(compile_predicate(product_visibility(principal), Product))
        .order_by(CartItem.id)
        .all()
    )
    if not rows:
        abort(400, description='Cart is empty')
    subtotal = 0
    for item, product in rows:
        if product.status != Product.STATUS_ACTIVE:
            abort(400, description=f'{product.name} is no longer available')
        if product.stock < item.quantity:
            abort(400, description=f'Insufficient stock for {product.name}')
        subtotal += product.price_cents * item.quantity
    order = Order(
        order_number=_order_number(),
        status=Order.STATUS_PENDING,
        notes=data.get('notes'),
        user_id=principal.id,
        company_id=principal.company_id,
        **compute_totals(subtotal),
    )
    session.add(order)
    session.flush()
    for item, product in rows:
        session.add(OrderItem(order_id=order.id, product_id=product.id, quantity=item.quantity,
                              price_cents=product.price_cents))
        try:
            apply_stock_change(session, product, InventoryTransaction.TYPE_OUT, item.quantity, principal.id,
                               reason='sale', reference=order.order_number)
        except InsufficientStockError as e:
            session.rollback()
            abort(400, description=str(e))
        session.delete(item)
    session.commit()
    record_audit('ORDER.CREATE', 'order', order.id, principal, details={
        'order_number': order.order_number,
        'total_cents': order.total_cents,
        'items': [{'product_id': p.id, 'quantity': i.quantity} for i, p in rows],
    })
    for _, product in rows:
        notify_low_stock(session, product)
    session.refresh(order)
    return _order_json(order, with_items=True), 201


@orders_bp.patch('/<int:order_id>')
@require_capability('can_edit_orders')
@audit_log(
    'ORDER.UPDATE',
    resource='order',
    diff_keys=['status', 'notes'],
    pre_fetch=lambda a, kw: _prefetch_order(kw.get('order_id')),
    meta_keys=['order_number'],
)
def update_order(order_id: int):
    session = get_db()
    principal = current_principal()
    o = _get_order_or_404(order_id)
    assert_in_scope(principal, 'orders', o, 'write')
    data = request.json or {}
    if not data:
        abort(400, description='Nothing to update')
    allowed = writable_order_fields(principal)
    blocked = sorted(k for k in data if k not in allowed)
    if blocked:
        abort(403, description=f"Fields not editable: {', '.join(blocked)}")
    if 'status' in data and data['status'] != o.status:
        transition_order(session, o, data['status'], principal.id)
    if 'notes' in data:
        o.notes = data['notes']
    session.commit()
    return _order_json(o)


@orders_bp.post('/<int:order_id>/cancel')
@require_capability('can_cancel_orders')
@audit_log(
    'ORDER.CANCEL',
    resource='order',
    diff_keys=['status'],
    pre_fetch=lambda a, kw: _prefetch_order(kw.get('order_id')),
    meta_keys=['order_number'],
)
def cancel_order(order_id: int):
    session = get_db()
    principal = current_principal()
    o = _get_order_or_404(order_id)
    # buyers: own PENDING orders only
    assert_in_scope(principal, 'orders', o, 'write')
    transition_order(session, o, Order.STATUS_CANCELLED, principal.id)
    session.commit()
    return _order_json(o)
