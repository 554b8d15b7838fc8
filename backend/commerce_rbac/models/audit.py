from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, func
from typing import Optional

from .authz import Base  # reuse same metadata

SEVERITIES = ('info', 'warning', 'error', 'critical')
CATEGORIES = ('authentication', 'user_management', 'system', 'data', 'security')


class AuditRecord(Base):
    """Append-only audit trail entry; never updated or deleted by the app."""
    __tablename__ = 'audit_records'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    actor_email: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(128), nullable=False)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default='info', index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default='system', index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(255))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
