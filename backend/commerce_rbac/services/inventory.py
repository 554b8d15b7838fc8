from __future__ import annotations
import logging
from typing import Optional
from sqlalchemy import or_
from commerce_rbac.constants.roles import Role
from commerce_rbac.models.authz import User
from commerce_rbac.models.inventory import InventoryTransaction
from commerce_rbac.models.notification import Notification
from commerce_rbac.models.product import Product
from commerce_rbac.services.policy import roles_with_capability

logger = logging.getLogger(__name__)


class InsufficientStockError(ValueError):
    pass


def stock_status(product: Product) -> str:
    if product.stock <= product.min_stock:
        return 'low'
    if product.stock <= product.min_stock * 2:
        return 'medium'
    return 'good'


def apply_stock_change(session, product: Product, type_: str, quantity: int, user_id: int,
                       reason: Optional[str] = None, reference: Optional[str] = None) -> InventoryTransaction:
    """Move stock and record the signed delta. The caller commits.

    ``in`` adds, ``out`` removes, ``adjustment`` sets the absolute level.
    Stock never goes below zero.
    """
    if type_ not in InventoryTransaction.ALL_TYPES:
        raise ValueError(f'unknown inventory transaction type {type_!r}')
    quantity = abs(int(quantity))
    if type_ == InventoryTransaction.TYPE_IN:
        new_stock = product.stock + quantity
    elif type_ == InventoryTransaction.TYPE_OUT:
        new_stock = product.stock - quantity
    else:
        new_stock = quantity
    if new_stock < 0:
        raise InsufficientStockError(f'Insufficient stock for {product.sku}')
    tx = InventoryTransaction(
        product_id=product.id,
        type=type_,
        quantity=new_stock - product.stock,
        reason=reason,
        reference=reference,
        user_id=user_id,
    )
    product.stock = new_stock
    session.add(tx)
    return tx


def notify_low_stock(session, product: Product) -> int:
    """Notify inventory managers when ``product`` is at or below its minimum.

    Super admins hear about every product. Other managers only hear about
    products they can see: company-private ones go to that company's staff,
    global ones to operations. Runs after the stock change committed; failures
    are logged and yield 0.
    """
    if product.stock > product.min_stock:
        return 0
    try:
        managers = roles_with_capability('can_manage_inventory')
        audience = User.role == Role.SUPER_ADMIN.value
        if product.company_id is None:
            if Role.OPERATION in managers:
                audience = or_(audience, User.role == Role.OPERATION.value)
        else:
            scoped = [r.value for r in managers if r is not Role.SUPER_ADMIN]
            audience = or_(audience, User.role.in_(scoped) & (User.company_id == product.company_id))
        recipients = session.query(User).filter(User.is_active.is_(True), audience).all()
        for user in recipients:
            session.add(Notification(
                title='Low stock alert',
                message=f'{product.name} ({product.sku}) is down to {product.stock} units (minimum {product.min_stock}).',
                type='warning',
                user_id=user.id,
                meta={'product_id': product.id, 'stock': product.stock, 'min_stock': product.min_stock},
            ))
        session.commit()
        return len(recipients)
    except Exception:
        logger.exception('Low stock notification failed for product %s', product.id)
        session.rollback()
        return 0


__all__ = ['InsufficientStockError', 'stock_status', 'apply_stock_change', 'notify_low_stock']
