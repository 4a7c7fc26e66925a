"""orders core tables

Revision ID: 0001_orders_core
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_orders_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='staff'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table('menu_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=80), nullable=False, server_default='General'),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_menu_items_name', 'menu_items', ['name'])
    op.create_index('ix_menu_items_category', 'menu_items', ['category'])
    op.create_index('ix_menu_items_is_available', 'menu_items', ['is_available'])

    op.create_table('settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_settings_key', 'settings', ['key'], unique=True)

    counters = op.create_table('counters',
        sa.Column('name', sa.String(length=32), primary_key=True),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
    )
    op.bulk_insert(counters, [{'name': 'order', 'value': 0}])

    op.create_table('orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='PENDING'),
        sa.Column('order_type', sa.String(length=16), nullable=False, server_default='STAFF'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_orders_order_id', 'orders', ['order_id'], unique=True)
    op.create_index('ix_orders_customer_name', 'orders', ['customer_name'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_order_type', 'orders', ['order_type'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table('reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('taken_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('original_created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('taken_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_reports_order_id', 'reports', ['order_id'], unique=True)
    op.create_index('ix_reports_taken_at', 'reports', ['taken_at'])


def downgrade():
    for table in ('reports', 'orders', 'counters', 'settings', 'menu_items', 'users'):
        op.drop_table(table)
