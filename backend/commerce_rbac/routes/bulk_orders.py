from __future__ import annotations
import secrets
import string
from flask import Blueprint, request, abort
from commerce_rbac import get_db
from commerce_rbac.config.checkout import BULK_ORDER_NUMBER_PREFIX
from commerce_rbac.models.bulk_order import BulkOrder
from commerce_rbac.models.product import Product
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.decorators.audit import audit_log
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope, product_visibility
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.fsm import TransitionValidator
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import positive_int, validate_status

bulk_orders_bp = Blueprint('bulk_orders', __name__)

BULK_FSM = TransitionValidator({
    BulkOrder.STATUS_PENDING: {BulkOrder.STATUS_QUOTED, BulkOrder.STATUS_APPROVED, BulkOrder.STATUS_REJECTED},
    BulkOrder.STATUS_QUOTED: {BulkOrder.STATUS_APPROVED, BulkOrder.STATUS_REJECTED},
    BulkOrder.STATUS_APPROVED: {BulkOrder.STATUS_CONVERTED, BulkOrder.STATUS_REJECTED},
    BulkOrder.STATUS_REJECTED: set(),
    BulkOrder.STATUS_CONVERTED: set(),
})

BULK_FIELDS = (
    'id', 'number', 'status', 'user_id', 'company_id', 'items', 'estimated_total_cents',
    'notes', 'admin_notes', 'created_at', 'updated_at',
)


def _bulk_json(b: BulkOrder):
    return model_dict(b, BULK_FIELDS)


def _prefetch_bulk(bulk_id):
    b = get_db().get(BulkOrder, bulk_id)
    return _bulk_json(b) if b else {}


def _get_bulk_or_404(bulk_id: int) -> BulkOrder:
    b = get_db().get(BulkOrder, bulk_id)
    if not b:
        abort(404)
    return b


@bulk_orders_bp.get('')
@require_principal
def list_bulk_orders():
    session = get_db()
    q = apply_scope(session.query(BulkOrder), current_principal(), 'bulk_orders', BulkOrder)
    filter_specs = {
        'status': {'op': lambda qu, v: qu.filter(BulkOrder.status == v), 'validate': lambda v: v in BulkOrder.ALL_STATUSES},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(BulkOrder.created_at.desc(), BulkOrder.id.desc()), _bulk_json)


@bulk_orders_bp.get('/<int:bulk_id>')
@require_principal
def get_bulk_order(bulk_id: int):
    b = _get_bulk_or_404(bulk_id)
    assert_in_scope(current_principal(), 'bulk_orders', b, 'read')
    return _bulk_json(b)


@bulk_orders_bp.post('')
@require_capability('can_create_bulk_orders')
@audit_log('BULK_ORDER.CREATE', resource='bulk_order', meta_keys=['number', 'estimated_total_cents'])
def create_bulk_order():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    raw_items = data.get('items')
    if not isinstance(raw_items, list) or not raw_items:
        abort(400, description='items required')
    visible = product_visibility(principal)
    items = []
    total = 0
    for raw in raw_items:
        if not isinstance(raw, dict) or raw.get('product_id') is None:
            abort(400, description='each item needs product_id and quantity')
        product = session.get(Product, positive_int(raw['product_id'], 'product_id'))
        if not product or not visible.matches(product):
            abort(404, description='Product not found')
        quantity = positive_int(raw.get('quantity'), 'quantity')
        items.append({
            'product_id': product.id,
            'sku': product.sku,
            'name': product.name,
            'quantity': quantity,
            'unit_price_cents': product.price_cents,
        })
        total += product.price_cents * quantity
    alphabet = string.ascii_uppercase + string.digits
    b = BulkOrder(
        number=BULK_ORDER_NUMBER_PREFIX + ''.join(secrets.choice(alphabet) for _ in range(10)),
        user_id=principal.id,
        company_id=principal.company_id,
        items=items,
        estimated_total_cents=total,
        notes=data.get('notes'),
    )
    session.add(b)
    session.commit()
    return _bulk_json(b), 201


@bulk_orders_bp.patch('/<int:bulk_id>')
@require_capability('can_approve_bulk_orders')
@audit_log(
    'BULK_ORDER.STATUS_UPDATE',
    resource='bulk_order',
    diff_keys=['status', 'admin_notes'],
    pre_fetch=lambda a, kw: _prefetch_bulk(kw.get('bulk_id')),
    meta_keys=['number'],
)
def update_bulk_order(bulk_id: int):
    session = get_db()
    b = _get_bulk_or_404(bulk_id)
    assert_in_scope(current_principal(), 'bulk_orders', b, 'write')
    data = request.json or {}
    if 'status' in data and data['status'] != b.status:
        target = validate_status(data['status'], BulkOrder.ALL_STATUSES)
        BULK_FSM.assert_can_transition(b.status, target)
        b.status = target
    if 'admin_notes' in data:
        b.admin_notes = data['admin_notes']
    session.commit()
    return _bulk_json(b)
