from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from commerce_rbac.services.scoping import redact_fields


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def model_dict(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Project ``fields`` off an ORM row into a redacted JSON-safe dict."""
    out: Dict[str, Any] = {}
    for name in fields:
        value = getattr(obj, name, None)
        out[name] = iso(value) if isinstance(value, datetime) else value
    return redact_fields(out)


__all__ = ['iso', 'model_dict']
