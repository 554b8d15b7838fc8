from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, JSON, ForeignKey, DateTime, func
from typing import Optional, List, Dict, Any

from .authz import Base


class BulkOrder(Base):
    __tablename__ = 'bulk_orders'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_QUOTED = 'quoted'
    STATUS_CONVERTED = 'converted'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_QUOTED, STATUS_CONVERTED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    company_id: Mapped[Optional[int]] = mapped_column(ForeignKey('companies.id'), index=True)
    # [{product_id, sku, name, quantity, unit_price_cents}]
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    estimated_total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
