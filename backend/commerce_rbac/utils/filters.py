from __future__ import annotations
from typing import Any, Dict
from flask import abort


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Apply optional query-string filters.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': callable, 'validate': callable } }
    Missing, empty and ``all`` values are skipped. Bad values abort 400.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '' or val == 'all':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if str(value).strip().lower() in ('1', 'true', 'yes', 'on'):
        return True
    if str(value).strip().lower() in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f'not a boolean: {value!r}')


__all__ = ['apply_filters', 'parse_bool']
