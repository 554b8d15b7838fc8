from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import pytest
from commerce_rbac import get_db
from commerce_rbac.models.product import Product
from commerce_rbac.utils.predicates import (
    UNCONSTRAINED, DENIED, Eq, IsNull, Gt, AllOf, AnyOf, all_of, any_of, compile_predicate,
)
from tests.test_utils_seed import unique, ensure_company, ensure_product


def test_all_of_simplifies():
    a, b = Eq('user_id', 1), Eq('status', 'PENDING')
    assert all_of() is UNCONSTRAINED
    assert all_of(UNCONSTRAINED, a) == a
    assert all_of(a, DENIED) is DENIED
    assert all_of(a, b) == AllOf((a, b))


def test_any_of_simplifies():
    a, b = Eq('company_id', 4), IsNull('company_id')
    assert any_of() is DENIED
    assert any_of(DENIED, a) == a
    assert any_of(a, UNCONSTRAINED) is UNCONSTRAINED
    assert any_of(a, b) == AnyOf((a, b))


def test_denied_is_distinct_from_matching_nothing():
    nothing = Eq('company_id', -1)
    assert DENIED.forbidden
    assert not nothing.forbidden
    assert not nothing.matches({'company_id': 3})


def test_matches_mappings_and_objects():
    pred = AllOf((Eq('user_id', 7), AnyOf((IsNull('expires_at'), Gt('expires_at', 10)))))
    assert pred.matches({'user_id': 7, 'expires_at': None})
    assert pred.matches(SimpleNamespace(user_id=7, expires_at=11))
    assert not pred.matches({'user_id': 7, 'expires_at': 10})
    assert not pred.matches({'user_id': 8})


def test_gt_compares_naive_datetimes_as_utc():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert Gt('expires_at', now).matches({'expires_at': datetime(2026, 1, 1, 13, 0)})
    assert not Gt('expires_at', now).matches({'expires_at': datetime(2026, 1, 1, 11, 0)})
    assert not Gt('expires_at', now).matches({'expires_at': None})


def test_compile_predicate_filters_queries(app_context):
    company = ensure_company(unique('PredCo'))
    prefix = unique('PRED')
    own = ensure_product(f'{prefix}-OWN', company=company)
    shared = ensure_product(f'{prefix}-GLB')
    other = ensure_product(f'{prefix}-OTHER', company=ensure_company(unique('PredOther')))
    session = get_db()
    base = session.query(Product).filter(Product.sku.like(f'{prefix}%'))
    pred = any_of(Eq('company_id', company.id), IsNull('company_id'))
    skus = {p.sku for p in base.filter(compile_predicate(pred, Product)).all()}
    assert skus == {own.sku, shared.sku}
    assert other.sku not in skus
    assert base.filter(compile_predicate(DENIED, Product)).count() == 0
    assert base.filter(compile_predicate(UNCONSTRAINED, Product)).count() == 3


def test_compile_rejects_unknown_predicate():
    with pytest.raises(TypeError):
        compile_predicate(object(), Product)
    # the expiry window compiles too
    clause = compile_predicate(Gt('created_at', datetime.now(timezone.utc) - timedelta(days=1)), Product)
    assert clause is not None
