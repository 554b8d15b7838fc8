from __future__ import annotations
from typing import Tuple
from flask import request, abort
from sqlalchemy.orm import Query
from commerce_rbac.config.pagination import normalize_pagination
from commerce_rbac.services.scoping import redact_fields


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': redact_fields(rows),
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def paginated(q: Query, serialize):
    """Paginate ``q`` from request args and serialize each row."""
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [serialize(r) for r in paged_q.all()]
    return build_list_payload(rows, total, limit, offset)


__all__ = ['apply_pagination', 'build_list_payload', 'paginated']
