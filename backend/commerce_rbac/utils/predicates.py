"""Declarative row filters produced by the scoping engine.

A predicate is an immutable value. It can be evaluated against a single record
(mapping or ORM object) with ``matches`` or turned into a SQLAlchemy clause for
a model with ``compile_predicate``:

    pred = AnyOf((Eq('company_id', 7), IsNull('company_id')))
    pred.matches({'company_id': None})                     # True
    session.query(Product).filter(compile_predicate(pred, Product))

``DENIED`` is the forbidden outcome and is distinct from a predicate that
happens to match nothing.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Tuple
from sqlalchemy import and_, or_, true, false


def _value(record: Any, field: str):
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class Predicate:
    forbidden = False

    def matches(self, record: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Unconstrained(Predicate):
    def matches(self, record: Any) -> bool:
        return True


@dataclass(frozen=True)
class Denied(Predicate):
    forbidden = True

    def matches(self, record: Any) -> bool:
        return False


UNCONSTRAINED = Unconstrained()
DENIED = Denied()


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any

    def matches(self, record: Any) -> bool:
        return _value(record, self.field) == self.value


@dataclass(frozen=True)
class IsNull(Predicate):
    field: str

    def matches(self, record: Any) -> bool:
        return _value(record, self.field) is None


@dataclass(frozen=True)
class Gt(Predicate):
    field: str
    value: Any

    def matches(self, record: Any) -> bool:
        current = _value(record, self.field)
        if current is None:
            return False
        bound = self.value
        if isinstance(current, datetime) and isinstance(bound, datetime):
            current, bound = _aware(current), _aware(bound)
        return current > bound


@dataclass(frozen=True)
class AllOf(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, record: Any) -> bool:
        return all(c.matches(record) for c in self.clauses)


@dataclass(frozen=True)
class AnyOf(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, record: Any) -> bool:
        return any(c.matches(record) for c in self.clauses)


def all_of(*clauses: Predicate) -> Predicate:
    """Conjunction with DENIED absorbing and UNCONSTRAINED dropped."""
    if any(c.forbidden for c in clauses):
        return DENIED
    kept = tuple(c for c in clauses if not isinstance(c, Unconstrained))
    if not kept:
        return UNCONSTRAINED
    if len(kept) == 1:
        return kept[0]
    return AllOf(kept)


def any_of(*clauses: Predicate) -> Predicate:
    """Disjunction with UNCONSTRAINED absorbing and DENIED dropped."""
    if any(isinstance(c, Unconstrained) for c in clauses):
        return UNCONSTRAINED
    kept = tuple(c for c in clauses if not c.forbidden)
    if not kept:
        return DENIED
    if len(kept) == 1:
        return kept[0]
    return AnyOf(kept)


def compile_predicate(pred: Predicate, model):
    if isinstance(pred, Unconstrained):
        return true()
    if isinstance(pred, Denied):
        return false()
    if isinstance(pred, Eq):
        col = getattr(model, pred.field)
        return col.is_(None) if pred.value is None else col == pred.value
    if isinstance(pred, IsNull):
        return getattr(model, pred.field).is_(None)
    if isinstance(pred, Gt):
        return getattr(model, pred.field) > pred.value
    if isinstance(pred, AllOf):
        return and_(*(compile_predicate(c, model) for c in pred.clauses))
    if isinstance(pred, AnyOf):
        return or_(*(compile_predicate(c, model) for c in pred.clauses))
    raise TypeError(f'Unsupported predicate {pred!r}')


__all__ = [
    'Predicate', 'Unconstrained', 'Denied', 'UNCONSTRAINED', 'DENIED', 'Eq', 'IsNull', 'Gt',
    'AllOf', 'AnyOf', 'all_of', 'any_of', 'compile_predicate',
]
