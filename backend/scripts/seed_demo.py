#!/usr/bin/env python
"""Idempotent demo seed: two companies, one user per role, a small catalog.

Usage:
    python backend/scripts/seed_demo.py                 # seed normally
    python backend/scripts/seed_demo.py --show-matrix   # print the role -> capability matrix
    python backend/scripts/seed_demo.py --dry-run       # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --export-json   # dump the matrix as JSON to stdout
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from commerce_rbac import create_app, get_db  # type: ignore
from commerce_rbac.constants.roles import ALL_ROLES, CAPABILITIES, Role
from commerce_rbac.models.authz import Base, Company, User
from commerce_rbac.models.product import Product
from commerce_rbac.models.setting import SystemSetting
# register every table on Base.metadata for the bootstrap create_all
import commerce_rbac.models.order  # noqa: F401
import commerce_rbac.models.cart_item  # noqa: F401
import commerce_rbac.models.notification  # noqa: F401
import commerce_rbac.models.inventory  # noqa: F401
import commerce_rbac.models.payment  # noqa: F401
import commerce_rbac.models.bulk_order  # noqa: F401
import commerce_rbac.models.audit  # noqa: F401
from commerce_rbac.services.policy import get_capabilities, roles_with_capability

DEMO_COMPANIES = ('Adidas', 'Prada')

# (email, name, role, company name or None)
DEMO_USERS = (
    ('admin@example.com', 'Platform Admin', Role.SUPER_ADMIN, None),
    ('admin@adidas.example.com', 'Adidas Admin', Role.ACCOUNT_ADMIN, 'Adidas'),
    ('buyer@adidas.example.com', 'Adidas Buyer', Role.BUYER, 'Adidas'),
    ('admin@prada.example.com', 'Prada Admin', Role.ACCOUNT_ADMIN, 'Prada'),
    ('buyer@example.com', 'Individual Buyer', Role.BUYER, None),
    ('ops@example.com', 'Operations', Role.OPERATION, None),
)

# (sku, name, price_cents, stock, min_stock, company name or None)
DEMO_PRODUCTS = (
    ('GLB-TSHIRT', 'Plain T-Shirt', 1500, 200, 20, None),
    ('GLB-MUG', 'Coffee Mug', 900, 8, 10, None),
    ('ADI-RUNNER', 'Adidas Runner', 12000, 40, 5, 'Adidas'),
    ('PRA-BAG', 'Prada Tote', 250000, 5, 2, 'Prada'),
)

DEMO_SETTINGS = (
    ('site.name', 'Commerce Demo', 'string', 'general', True),
    ('checkout.tax_rate', '10', 'number', 'checkout', True),
    ('security.max_login_attempts', '5', 'number', 'security', False),
)


def ensure_companies(session):
    existing = {c.name: c for c in session.execute(select(Company)).scalars().all()}
    created = 0
    for name in DEMO_COMPANIES:
        if name not in existing:
            existing[name] = Company(name=name, email=f'contact@{name.lower()}.example.com')
            session.add(existing[name])
            created += 1
    session.flush()
    return existing, created


def ensure_users(session, companies):
    password = os.getenv('SEED_DEMO_PASSWORD', 'ChangeMe123!')
    created = 0
    for email, name, role, company in DEMO_USERS:
        if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
            continue
        user = User(name=name, email=email, role=role.value,
                    company_id=companies[company].id if company else None)
        user.set_password(password)
        session.add(user)
        created += 1
    session.flush()
    return created


def ensure_products(session, companies):
    created = 0
    for sku, name, price, stock, min_stock, company in DEMO_PRODUCTS:
        if session.execute(select(Product).where(Product.sku == sku)).scalar_one_or_none():
            continue
        session.add(Product(sku=sku, name=name, price_cents=price, stock=stock, min_stock=min_stock,
                            company_id=companies[company].id if company else None))
        created += 1
    return created


def ensure_settings(session):
    created = 0
    for key, value, type_, category, is_public in DEMO_SETTINGS:
        if session.execute(select(SystemSetting).where(SystemSetting.key == key)).scalar_one_or_none():
            continue
        session.add(SystemSetting(key=key, value=value, type=type_, category=category, is_public=is_public))
        created += 1
    return created


def build_matrix():
    return {role.value: dict(get_capabilities(role)) for role in ALL_ROLES}


def print_matrix():
    name_w = max(len(c) for c in CAPABILITIES)
    header = ' | '.join(r.value.ljust(13) for r in ALL_ROLES)
    print(f"{'Capability'.ljust(name_w)} | {header}")
    print('-' * (name_w + 3 + len(header)))
    for cap in CAPABILITIES:
        holders = set(roles_with_capability(cap))
        cells = ' | '.join(('yes' if r in holders else '-').ljust(13) for r in ALL_ROLES)
        print(f'{cap.ljust(name_w)} | {cells}')


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed demo companies, users and catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  dry run: seed_demo.py --dry-run\n  show matrix: seed_demo.py --show-matrix\n""")
    )
    p.add_argument('--show-matrix', action='store_true', help='Print the role -> capability matrix')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', action='store_true', help='Print the capability matrix as JSON and exit')
    return p.parse_args()


def main():
    args = parse_args()
    if args.export_json:
        print(json.dumps(build_matrix(), indent=2, sort_keys=True))
        return
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM companies LIMIT 1'))
        except Exception:
            # bootstrap only; real environments run `alembic upgrade head`
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        session.commit()

    with app.app_context():
        session = get_db()
        companies, created_c = ensure_companies(session)
        created_u = ensure_users(session, companies)
        created_p = ensure_products(session, companies)
        created_s = ensure_settings(session)
        summary = f"Companies: {created_c}, Users: {created_u}, Products: {created_p}, Settings: {created_s}"
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) would create {summary}")
        else:
            session.commit()
            print(f"[DONE] created {summary}")
    if args.show_matrix:
        print_matrix()


if __name__ == '__main__':
    main()
