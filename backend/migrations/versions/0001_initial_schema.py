"""initial commerce schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [sa.Column(n, sa.DateTime(timezone=True), server_default=sa.func.now()) for n in names]


def upgrade():
    op.create_table('companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('email', sa.String(length=128)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps('created_at'),
    )
    op.create_index('ix_companies_name', 'companies', ['name'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='BUYER'),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='SET NULL')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps('created_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_company_id', 'users', ['company_id'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id', ondelete='CASCADE')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_sku', 'products', ['sku'])
    op.create_index('ix_products_company_id', 'products', ['company_id'])

    op.create_table('orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id')),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_company_id', 'orders', ['company_id'])

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table('cart_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps('created_at'),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_user_product'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='info'),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE')),
        sa.Column('is_global', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        sa.Column('meta', sa.JSON()),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        *_timestamps('created_at'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_global', 'notifications', ['is_global'])

    op.create_table('system_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=128), nullable=False, unique=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='string'),
        sa.Column('category', sa.String(length=64), nullable=False, server_default='general'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('description', sa.Text()),
        *_timestamps('updated_at'),
    )
    op.create_index('ix_system_settings_key', 'system_settings', ['key'])
    op.create_index('ix_system_settings_category', 'system_settings', ['category'])

    op.create_table('inventory_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=64)),
        sa.Column('reference', sa.String(length=64)),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps('created_at'),
    )
    op.create_index('ix_inventory_transactions_product_id', 'inventory_transactions', ['product_id'])

    op.create_table('payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('gateway_id', sa.String(length=64)),
        sa.Column('gateway_data', sa.JSON()),
        sa.Column('failure_reason', sa.String(length=255)),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('refunded_at', sa.DateTime(timezone=True)),
        *_timestamps('created_at'),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])

    op.create_table('bulk_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id')),
        sa.Column('items', sa.JSON()),
        sa.Column('estimated_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text()),
        sa.Column('admin_notes', sa.Text()),
        *_timestamps('created_at', 'updated_at'),
    )
    op.create_index('ix_bulk_orders_status', 'bulk_orders', ['status'])
    op.create_index('ix_bulk_orders_user_id', 'bulk_orders', ['user_id'])
    op.create_index('ix_bulk_orders_company_id', 'bulk_orders', ['company_id'])

    op.create_table('audit_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=64), nullable=False),
        sa.Column('resource_id', sa.String(length=64)),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('actor_email', sa.String(length=128), nullable=False),
        sa.Column('actor_name', sa.String(length=128), nullable=False),
        sa.Column('details', sa.JSON()),
        sa.Column('severity', sa.String(length=16), nullable=False, server_default='info'),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='system'),
        sa.Column('ip_address', sa.String(length=64)),
        sa.Column('user_agent', sa.String(length=255)),
        *_timestamps('timestamp'),
    )
    op.create_index('ix_audit_records_action', 'audit_records', ['action'])
    op.create_index('ix_audit_records_resource_id', 'audit_records', ['resource_id'])
    op.create_index('ix_audit_records_actor_id', 'audit_records', ['actor_id'])
    op.create_index('ix_audit_records_severity', 'audit_records', ['severity'])
    op.create_index('ix_audit_records_category', 'audit_records', ['category'])
    op.create_index('ix_audit_records_timestamp', 'audit_records', ['timestamp'])


def downgrade():
    for table in (
        'audit_records', 'bulk_orders', 'payments', 'inventory_transactions', 'system_settings',
        'notifications', 'cart_items', 'order_items', 'orders', 'products', 'users', 'companies',
    ):
        op.drop_table(table)
