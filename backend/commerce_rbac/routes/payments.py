from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request, abort
from commerce_rbac import get_db
from commerce_rbac.models.order import Order
from commerce_rbac.models.payment import Payment
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.routes.orders import ORDER_FSM, transition_order
from commerce_rbac.services.audit import record_audit
from commerce_rbac.services.payments import PAYMENT_METHODS, PaymentDeclined, charge
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import apply_scope, assert_in_scope
from commerce_rbac.utils.filters import apply_filters
from commerce_rbac.utils.listing import paginated
from commerce_rbac.utils.serialization import iso, model_dict
from commerce_rbac.utils.validation import positive_int, validate_status

payments_bp = Blueprint('payments', __name__)

PAYMENT_FIELDS = (
    'id', 'order_id', 'amount_cents', 'currency', 'status', 'method', 'gateway_id', 'gateway_data',
    'failure_reason', 'paid_at', 'refunded_at', 'created_at',
)


def _payment_json(pay: Payment, order: Order = None):
    out = model_dict(pay, PAYMENT_FIELDS)
    if order is not None:
        out['order'] = model_dict(order, ('id', 'order_number', 'status', 'total_cents', 'user_id', 'company_id'))
    return out


@payments_bp.get('')
@require_principal
def list_payments():
    session = get_db()
    q = session.query(Payment, Order).join(Order, Payment.order_id == Order.id)
    q = apply_scope(q, current_principal(), 'payments', Order)
    filter_specs = {
        'order_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Payment.order_id == v)},
        'status': {'op': lambda qu, v: qu.filter(Payment.status == v), 'validate': lambda v: v in Payment.ALL_STATUSES},
    }
    q = apply_filters(q, filter_specs, request.args)
    return paginated(q.order_by(Payment.created_at.desc(), Payment.id.desc()), lambda row: _payment_json(*row))


@payments_bp.post('')
@require_principal
def create_payment():
    """Charge an order: admins with can_process_payments within their scope, or the buyer who placed it."""
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    if data.get('order_id') is None or data.get('amount_cents') is None:
        abort(400, description='order_id and amount_cents required')
    method = validate_status(data.get('method', 'credit_card'), PAYMENT_METHODS, 'method')
    currency = (data.get('currency') or 'USD').upper()
    order = session.get(Order, positive_int(data['order_id'], 'order_id'))
    if not order:
        abort(404, description='Order not found')
    assert_in_scope(principal, 'payments', order, 'write')
    amount = positive_int(data['amount_cents'], 'amount_cents')
    if amount != order.total_cents:
        abort(400, description='Amount mismatch')
    existing = (
        session.query(Payment)
        .filter(Payment.order_id == order.id, Payment.status.in_([Payment.STATUS_COMPLETED, Payment.STATUS_PENDING]))
        .first()
    )
    if existing:
        abort(400, description='Payment already exists for this order')
    try:
        result = charge(amount, currency, data.get('payment_token'), method, order.order_number)
    except PaymentDeclined as e:
        failed = Payment(order_id=order.id, amount_cents=amount, currency=currency, status=Payment.STATUS_FAILED,
                         method=method, failure_reason=str(e), gateway_data=e.details)
        session.add(failed)
        session.commit()
        record_audit('PAYMENT.FAILED', 'payment', failed.id, principal, details={
            'order_id': order.id, 'amount_cents': amount, 'reason': str(e), 'new_status': Payment.STATUS_FAILED,
        })
        abort(400, description=str(e))
    pay = Payment(
        order_id=order.id,
        amount_cents=amount,
        currency=currency,
        status=Payment.STATUS_COMPLETED,
        method=method,
        gateway_id=result['transaction_id'],
        gateway_data=result['details'],
        paid_at=datetime.now(timezone.utc),
    )
    session.add(pay)
    if ORDER_FSM.can_transition(order.status, Order.STATUS_CONFIRMED):
        order.status = Order.STATUS_CONFIRMED
    session.commit()
    record_audit('PAYMENT.COMPLETE', 'payment', pay.id, principal, details={
        'order_id': order.id,
        'amount_cents': amount,
        'method': method,
        'transaction_id': pay.gateway_id,
    })
    return _payment_json(pay, order), 201


@payments_bp.patch('/<int:payment_id>')
@require_capability('can_process_payments')
def update_payment_status(payment_id: int):
    session = get_db()
    principal = current_principal()
    pay = session.get(Payment, payment_id)
    if not pay:
        abort(404)
    order = session.get(Order, pay.order_id)
    assert_in_scope(principal, 'payments', order, 'write')
    data = request.json or {}
    status = validate_status(data.get('status'), Payment.ALL_STATUSES)
    old_status = pay.status
    pay.status = status
    if status == Payment.STATUS_FAILED:
        pay.failure_reason = data.get('failure_reason') or pay.failure_reason
        # a failed charge voids the order while it can still be cancelled
        if ORDER_FSM.can_transition(order.status, Order.STATUS_CANCELLED):
            transition_order(session, order, Order.STATUS_CANCELLED, principal.id)
    if status == Payment.STATUS_REFUNDED:
        pay.refunded_at = datetime.now(timezone.utc)
    session.commit()
    record_audit('PAYMENT.STATUS_UPDATE', 'payment', pay.id, principal, details={
        'order_id': order.id,
        'old_status': old_status,
        'new_status': status,
        'refunded_at': iso(pay.refunded_at),
    })
    return _payment_json(pay, order)
