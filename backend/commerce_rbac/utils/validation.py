from __future__ import annotations
"""Request payload validation helpers with uniform 400 responses."""
import json
from typing import Any, Iterable, Mapping
from flask import abort


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def require_fields(data: Mapping[str, Any], *names: str):
    missing = [n for n in names if data.get(n) in (None, '')]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def positive_int(value: Any, field_name: str, allow_zero: bool = False) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be int')
    if out < 0 or (out == 0 and not allow_zero):
        abort(400, description=f'{field_name} must be positive')
    return out


def parse_setting_value(raw: Any, type_: str) -> Any:
    """Parse a stored setting string by its declared type; ValueError when it does not fit."""
    if type_ == 'string':
        return str(raw)
    if type_ == 'number':
        text = str(raw).strip()
        try:
            return int(text)
        except ValueError:
            return float(text)
    if type_ == 'boolean':
        text = str(raw).strip().lower()
        if text not in ('true', 'false'):
            raise ValueError('boolean setting must be true or false')
        return text == 'true'
    if type_ == 'json':
        return json.loads(raw) if isinstance(raw, str) else raw
    raise ValueError(f'unknown setting type {type_!r}')


def serialize_setting_value(value: Any, type_: str) -> str:
    """Store a setting value as text after checking it parses as ``type_``; aborts 400 otherwise."""
    if type_ == 'json' and not isinstance(value, str):
        text = json.dumps(value)
    elif isinstance(value, bool):
        text = 'true' if value else 'false'
    else:
        text = str(value)
    try:
        parse_setting_value(text, type_)
    except ValueError as e:
        abort(400, description=f'value invalid for type {type_}: {e}')
    return text


__all__ = ['validate_status', 'require_fields', 'positive_int', 'parse_setting_value', 'serialize_setting_value']
