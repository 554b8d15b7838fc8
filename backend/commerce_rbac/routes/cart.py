from __future__ import annotations
from flask import Blueprint, request, abort
from commerce_rbac import get_db
from commerce_rbac.models.cart_item import CartItem
from commerce_rbac.models.product import Product
from commerce_rbac.decorators.auth import require_capability, require_principal
from commerce_rbac.services.policy import current_principal
from commerce_rbac.services.scoping import assert_in_scope, product_visibility, scope_filter
from commerce_rbac.utils.predicates import compile_predicate
from commerce_rbac.utils.serialization import model_dict
from commerce_rbac.utils.validation import positive_int

cart_bp = Blueprint('cart', __name__)


def _item_json(item: CartItem, product: Product):
    out = model_dict(item, ('id', 'product_id', 'quantity', 'created_at'))
    out['product'] = model_dict(product, ('id', 'name', 'sku', 'price_cents', 'stock', 'status'))
    out['line_total_cents'] = product.price_cents * item.quantity
    return out


def _visible_product(principal, product_id) -> Product:
    product = get_db().get(Product, product_id)
    # hidden products answer like missing ones
    if not product or not product_visibility(principal).matches(product):
        abort(404, description='Product not found')
    return product


def _cart_rows(session, principal):
    return (
        session.query(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .filter(compile_predicate(scope_filter(principal, 'cart_items'), CartItem))
        .filter(compile_predicate(product_visibility(principal), Product))
        .order_by(CartItem.id)
        .all()
    )


@cart_bp.get('')
@require_principal
def list_cart():
    session = get_db()
    rows = _cart_rows(session, current_principal())
    items = [_item_json(item, product) for item, product in rows]
    return {
        'data': items,
        'item_count': sum(i['quantity'] for i in items),
        'subtotal_cents': sum(i['line_total_cents'] for i in items),
    }


@cart_bp.post('')
@require_capability('can_add_to_cart')
def add_to_cart():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    if data.get('product_id') is None:
        abort(400, description='product_id required')
    quantity = positive_int(data.get('quantity', 1), 'quantity')
    product = _visible_product(principal, positive_int(data['product_id'], 'product_id'))
    if product.status != Product.STATUS_ACTIVE:
        abort(400, description='Product is not available')
    item = session.query(CartItem).filter_by(user_id=principal.id, product_id=product.id).one_or_none()
    wanted = quantity + (item.quantity if item else 0)
    if product.stock < wanted:
        abort(400, description='Insufficient stock')
    created = item is None
    if created:
        item = CartItem(user_id=principal.id, product_id=product.id, quantity=quantity)
        session.add(item)
    else:
        item.quantity = wanted
    session.commit()
    return _item_json(item, product), 201 if created else 200


@cart_bp.patch('/<int:item_id>')
@require_capability('can_add_to_cart')
def update_cart_item(item_id: int):
    session = get_db()
    principal = current_principal()
    item = session.get(CartItem, item_id)
    if not item:
        abort(404)
    assert_in_scope(principal, 'cart_items', item, 'write')
    data = request.json or {}
    quantity = positive_int(data.get('quantity'), 'quantity')
    product = _visible_product(principal, item.product_id)
    if product.stock < quantity:
        abort(400, description='Insufficient stock')
    item.quantity = quantity
    session.commit()
    return _item_json(item, product)


@cart_bp.delete('/<int:item_id>')
@require_principal
def remove_cart_item(item_id: int):
    session = get_db()
    item = session.get(CartItem, item_id)
    if not item:
        abort(404)
    assert_in_scope(current_principal(), 'cart_items', item, 'write')
    session.delete(item)
    session.commit()
    return {'id': item_id, 'deleted': True}
