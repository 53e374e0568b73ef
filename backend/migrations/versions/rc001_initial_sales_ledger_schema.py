"""Initial schema: catalog, sale transactions, daily aggregates, stock ledger, targets

Revision ID: rc001_initial
Revises:
Create Date: 2026-10-17

This migration adds:
1. products and staff (catalog lookups used by the engine)
2. sale_transactions with the (status, sale_date, id) range index that the
   reconciler requires
3. daily_sales_summaries, daily_staff_sales, daily_product_sales
4. monthly_stock_ledgers
5. monthly_targets
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'rc001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('pos_description', sa.String(length=255), nullable=True),
        sa.Column('selling_rate_per_kg_cents', sa.Integer(), nullable=False),
        sa.Column('purchase_price_per_kg_cents', sa.Integer(), nullable=True),
        sa.Column('hsn_code', sa.String(length=32), nullable=True),
        sa.Column('tax_percentage', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_product_code'), ['product_code'], unique=True)
        batch_op.create_index('ix_products_active_code', ['is_active', 'product_code'], unique=False)

    op.create_table('staff',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('staff', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_staff_staff_id'), ['staff_id'], unique=True)

    # ==========================================================================
    # 2. SALE TRANSACTIONS
    # ==========================================================================
    op.create_table('sale_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=True),
        sa.Column('barcode_scanned', sa.String(length=128), nullable=True),
        sa.Column('weight_grams', sa.Integer(), nullable=True),
        sa.Column('line_value_cents', sa.Integer(), nullable=True),
        sa.Column('staff_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='SOLD'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('sale_date', sa.String(length=10), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('selling_rate_per_kg_cents', sa.Integer(), nullable=True),
        sa.Column('purchase_price_per_kg_cents', sa.Integer(), nullable=True),
        sa.Column('status_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_transactions', schema=None) as batch_op:
        # Required by the paginated day scan (reconciler refuses to run without it)
        batch_op.create_index('ix_sale_tx_status_date_id', ['status', 'sale_date', 'id'], unique=False)
        batch_op.create_index('ix_sale_tx_staff_date', ['staff_id', 'sale_date'], unique=False)
        batch_op.create_index('ix_sale_tx_product_date', ['product_code', 'sale_date'], unique=False)

    # ==========================================================================
    # 3. DAILY AGGREGATES
    # ==========================================================================
    op.create_table('daily_sales_summaries',
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('total_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hourly_breakdown', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('date')
    )

    op.create_table('daily_staff_sales',
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('staff_stats', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('date')
    )

    op.create_table('daily_product_sales',
        sa.Column('key', sa.String(length=96), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('total_weight_grams', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('key')
    )
    with op.batch_alter_table('daily_product_sales', schema=None) as batch_op:
        batch_op.create_index('ix_daily_product_sales_date_product', ['date', 'product_code'], unique=False)
        batch_op.create_index('ix_daily_product_sales_product_date', ['product_code', 'date'], unique=False)

    # ==========================================================================
    # 4. MONTHLY STOCK LEDGER
    # ==========================================================================
    op.create_table('monthly_stock_ledgers',
        sa.Column('key', sa.String(length=96), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('year', sa.String(length=4), nullable=False),
        sa.Column('opening_stock_grams', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_restocked_grams', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('restock_entries', sa.JSON(), nullable=False),
        sa.Column('total_sold_grams', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_sales_sync_date', sa.String(length=10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('key')
    )
    with op.batch_alter_table('monthly_stock_ledgers', schema=None) as batch_op:
        batch_op.create_index('ix_monthly_ledgers_month_product', ['month', 'product_code'], unique=False)

    # ==========================================================================
    # 5. MONTHLY TARGETS
    # ==========================================================================
    op.create_table('monthly_targets',
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('weeks', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('month')
    )


def downgrade():
    op.drop_table('monthly_targets')

    with op.batch_alter_table('monthly_stock_ledgers', schema=None) as batch_op:
        batch_op.drop_index('ix_monthly_ledgers_month_product')
    op.drop_table('monthly_stock_ledgers')

    with op.batch_alter_table('daily_product_sales', schema=None) as batch_op:
        batch_op.drop_index('ix_daily_product_sales_product_date')
        batch_op.drop_index('ix_daily_product_sales_date_product')
    op.drop_table('daily_product_sales')
    op.drop_table('daily_staff_sales')
    op.drop_table('daily_sales_summaries')

    with op.batch_alter_table('sale_transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_sale_tx_product_date')
        batch_op.drop_index('ix_sale_tx_staff_date')
        batch_op.drop_index('ix_sale_tx_status_date_id')
    op.drop_table('sale_transactions')

    with op.batch_alter_table('staff', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_staff_staff_id'))
    op.drop_table('staff')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_active_code')
        batch_op.drop_index(batch_op.f('ix_products_product_code'))
    op.drop_table('products')
