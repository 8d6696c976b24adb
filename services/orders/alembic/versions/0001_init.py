"""catalog, orders, order_items and payments

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('name_ar', sa.String(100), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('name_ar', sa.String(200), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('description_ar', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10,3), nullable=False),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('fulfillment_type', sa.String(20), nullable=False),
        sa.Column('scheduled_time', sa.DateTime, nullable=True),
        sa.Column('total_amount', sa.Numeric(10,3), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_orders_owner_id', 'orders', ['owner_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('product_name_snapshot', sa.String(200), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price_at_order', sa.Numeric(10,3), nullable=False)
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False, unique=True),
        sa.Column('method', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(10,3), nullable=False),
        sa.Column('transaction_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_payments_transaction_id', 'payments', ['transaction_id'])

def downgrade():
    op.drop_table('payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('categories')
