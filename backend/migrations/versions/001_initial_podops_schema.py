"""Initial PodOps schema

Revision ID: 001_initial_podops_schema
Revises:
Create Date: 2026-10-19

Stores, catalog, classification rules, batches and units, orders,
stock pools and the order event timeline.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_podops_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - create all PodOps tables."""
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('shop_domain', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.String(length=255), nullable=True),
        sa.Column('inventory_location_id', sa.String(length=255), nullable=True),
        sa.Column('bosta_api_key', sa.String(length=255), nullable=True),
        sa.Column('shipping_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stores_id'), 'stores', ['id'], unique=False)
    op.create_index(op.f('ix_stores_shop_domain'), 'stores', ['shop_domain'], unique=True)

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('product_type', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id', 'store_id', name='uq_products_external_store')
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_store_id'), 'products', ['store_id'], unique=False)
    op.create_index(op.f('ix_products_product_type'), 'products', ['product_type'], unique=False)

    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id', 'product_id', name='uq_variants_external_product')
    )
    op.create_index(op.f('ix_product_variants_id'), 'product_variants', ['id'], unique=False)
    op.create_index(op.f('ix_product_variants_product_id'), 'product_variants', ['product_id'], unique=False)
    op.create_index(op.f('ix_product_variants_sku'), 'product_variants', ['sku'], unique=False)

    op.create_table('product_type_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('variant_title', sa.String(length=255), nullable=True),
        sa.Column('is_pod', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('requires_stock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'name', 'variant_title', name='uq_rules_store_name_variant')
    )
    op.create_index(op.f('ix_product_type_rules_id'), 'product_type_rules', ['id'], unique=False)
    op.create_index(op.f('ix_product_type_rules_store_id'), 'product_type_rules', ['store_id'], unique=False)

    op.create_table('batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='PENDING'),
        sa.Column('handles_stock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('qr_code_token', sa.String(length=64), nullable=True),
        sa.Column('qr_code_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('capacity >= 0', name='ck_batches_capacity_non_negative'),
        sa.CheckConstraint('capacity <= max_capacity', name='ck_batches_capacity_within_max'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_batches_id'), 'batches', ['id'], unique=False)
    op.create_index(op.f('ix_batches_name'), 'batches', ['name'], unique=False)
    op.create_index(op.f('ix_batches_status'), 'batches', ['status'], unique=False)
    op.create_index(op.f('ix_batches_qr_code_token'), 'batches', ['qr_code_token'], unique=True)
    op.create_index(op.f('ix_batches_created_at'), 'batches', ['created_at'], unique=False)

    op.create_table('batch_rules',
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rule_id'], ['product_type_rules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('batch_id', 'rule_id')
    )

    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=False),
        sa.Column('order_number', sa.String(length=50), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('address1', sa.String(length=255), nullable=True),
        sa.Column('address2', sa.String(length=255), nullable=True),
        sa.Column('province', sa.String(length=100), nullable=True),
        sa.Column('total_price', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('is_prepaid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='PENDING'),
        sa.Column('delivery_id', sa.String(length=100), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id', 'store_id', name='uq_orders_external_store')
    )
    op.create_index(op.f('ix_orders_id'), 'orders', ['id'], unique=False)
    op.create_index(op.f('ix_orders_store_id'), 'orders', ['store_id'], unique=False)
    op.create_index(op.f('ix_orders_order_number'), 'orders', ['order_number'], unique=False)
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=True),
        sa.Column('external_line_item_id', sa.String(length=100), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_items_id'), 'order_items', ['id'], unique=False)
    op.create_index(op.f('ix_order_items_order_id'), 'order_items', ['order_id'], unique=False)
    op.create_index(op.f('ix_order_items_product_id'), 'order_items', ['product_id'], unique=False)
    op.create_index(op.f('ix_order_items_status'), 'order_items', ['status'], unique=False)

    op.create_table('batch_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('order_item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='WAITING_BATCH'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_item_id'], ['order_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_batch_items_id'), 'batch_items', ['id'], unique=False)
    op.create_index(op.f('ix_batch_items_batch_id'), 'batch_items', ['batch_id'], unique=False)
    op.create_index(op.f('ix_batch_items_order_item_id'), 'batch_items', ['order_item_id'], unique=False)

    op.create_table('batch_item_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_item_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='WAITING_BATCH'),
        sa.Column('qr_code_token', sa.String(length=64), nullable=True),
        sa.Column('qr_code_url', sa.Text(), nullable=True),
        sa.Column('replaces_unit_id', sa.Integer(), nullable=True),
        sa.Column('replacement_reason', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['batch_item_id'], ['batch_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['replaces_unit_id'], ['batch_item_units.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_batch_item_units_id'), 'batch_item_units', ['id'], unique=False)
    op.create_index(op.f('ix_batch_item_units_batch_item_id'), 'batch_item_units', ['batch_item_id'], unique=False)
    op.create_index(op.f('ix_batch_item_units_status'), 'batch_item_units', ['status'], unique=False)
    op.create_index(op.f('ix_batch_item_units_qr_code_token'), 'batch_item_units', ['qr_code_token'], unique=True)

    op.create_table('batch_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('size_bytes', sa.Integer(), nullable=True),
        sa.Column('storage_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_batch_files_id'), 'batch_files', ['id'], unique=False)
    op.create_index(op.f('ix_batch_files_batch_id'), 'batch_files', ['batch_id'], unique=False)

    op.create_table('returned_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_item_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_item_id'], ['order_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_returned_items_id'), 'returned_items', ['id'], unique=False)
    op.create_index(op.f('ix_returned_items_order_item_id'), 'returned_items', ['order_item_id'], unique=False)
    op.create_index(op.f('ix_returned_items_order_id'), 'returned_items', ['order_id'], unique=False)

    op.create_table('stock_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_type', sa.String(length=255), nullable=False),
        sa.Column('variant_title', sa.String(length=255), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('current_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'product_type', 'variant_title', name='uq_stock_variant_key')
    )
    op.create_index(op.f('ix_stock_variants_id'), 'stock_variants', ['id'], unique=False)
    op.create_index(op.f('ix_stock_variants_store_id'), 'stock_variants', ['store_id'], unique=False)

    op.create_table('main_stocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_main_stocks_id'), 'main_stocks', ['id'], unique=False)

    op.create_table('main_stock_rules',
        sa.Column('main_stock_id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['main_stock_id'], ['main_stocks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rule_id'], ['product_type_rules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('main_stock_id', 'rule_id')
    )

    op.create_table('main_stock_quantities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('main_stock_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['main_stock_id'], ['main_stocks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('main_stock_id', 'sku', name='uq_main_stock_sku')
    )
    op.create_index(op.f('ix_main_stock_quantities_id'), 'main_stock_quantities', ['id'], unique=False)
    op.create_index(op.f('ix_main_stock_quantities_main_stock_id'), 'main_stock_quantities', ['main_stock_id'], unique=False)

    op.create_table('order_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('old_value', sa.String(length=100), nullable=True),
        sa.Column('new_value', sa.String(length=100), nullable=True),
        sa.Column('metadata_key', sa.String(length=100), nullable=True),
        sa.Column('metadata_value', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_events_id'), 'order_events', ['id'], unique=False)
    op.create_index(op.f('ix_order_events_order_id'), 'order_events', ['order_id'], unique=False)
    op.create_index(op.f('ix_order_events_event_type'), 'order_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_order_events_created_at'), 'order_events', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema - drop all PodOps tables."""
    op.drop_table('order_events')
    op.drop_table('main_stock_quantities')
    op.drop_table('main_stock_rules')
    op.drop_table('main_stocks')
    op.drop_table('stock_variants')
    op.drop_table('returned_items')
    op.drop_table('batch_files')
    op.drop_table('batch_item_units')
    op.drop_table('batch_items')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('batch_rules')
    op.drop_table('batches')
    op.drop_table('product_type_rules')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('stores')
