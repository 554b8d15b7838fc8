from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, DateTime, func
from typing import Optional

from .authz import Base


class InventoryTransaction(Base):
    __tablename__ = 'inventory_transactions'
    TYPE_IN = 'in'
    TYPE_OUT = 'out'
    TYPE_ADJUSTMENT = 'adjustment'
    ALL_TYPES = (TYPE_IN, TYPE_OUT, TYPE_ADJUSTMENT)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    # signed stock delta
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(64))
    reference: Mapped[Optional[str]] = mapped_column(String(64))
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    product = relationship('Product')
