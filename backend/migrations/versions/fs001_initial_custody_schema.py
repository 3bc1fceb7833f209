"""initial custody schema

Revision ID: fs001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the FieldStock schema:
- users: sales hierarchy members (admin, regional_manager, team_leader, field_officer)
- products: catalog with default commission amounts
- devices: serialized handsets with custody status, holder and version counter
- allocation_records: append-only custody ledger
- sales / commissions: sale records and their commission fan-out
- receipt_sequences: atomic receipt number counter
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'fs001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _commission_columns():
    return [
        sa.Column('fo_commission_cents', sa.Integer(), nullable=True),
        sa.Column('team_leader_commission_cents', sa.Integer(), nullable=True),
        sa.Column('regional_manager_commission_cents', sa.Integer(), nullable=True),
    ]


def upgrade():
    # ============================================================================
    # users: hierarchy members (weak self-references)
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('region', sa.String(length=64), nullable=True),
        sa.Column('team_leader_id', sa.Integer(), nullable=True),
        sa.Column('regional_manager_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['team_leader_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['regional_manager_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_name', 'users', ['name'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_role_region', 'users', ['role', 'region'])
    op.create_index('ix_users_team_leader', 'users', ['team_leader_id'])

    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        *_commission_columns(),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # devices: custody state (IN_STOCK => no holder, ALLOCATED => holder)
    # ============================================================================
    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('imei', sa.String(length=15), nullable=False),
        sa.Column('imei2', sa.String(length=15), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_holder_id', sa.Integer(), nullable=True),
        sa.Column('region', sa.String(length=64), nullable=True),
        *_commission_columns(),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('registered_by_user_id', sa.Integer(), nullable=False),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('IN_STOCK', 'ALLOCATED', 'SOLD', 'RETURNED', 'DEFECTIVE', 'LOCKED', 'LOST')",
            name='ck_devices_status',
        ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['current_holder_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['registered_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('imei'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_devices_status', 'devices', ['status'])
    op.create_index('ix_devices_holder_status', 'devices', ['current_holder_id', 'status'])
    op.create_index('ix_devices_product', 'devices', ['product_id'])
    op.create_index('ix_devices_sale_id', 'devices', ['sale_id'])

    # ============================================================================
    # allocation_records: append-only custody ledger
    # ============================================================================
    op.create_table(
        'allocation_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.Integer(), nullable=False),
        sa.Column('imei', sa.String(length=15), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('from_user_id', sa.Integer(), nullable=False),
        sa.Column('to_user_id', sa.Integer(), nullable=False),
        sa.Column('from_level', sa.String(length=32), nullable=False),
        sa.Column('to_level', sa.String(length=32), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recall_reason', sa.String(length=255), nullable=True),
        sa.Column('recalled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('recalled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['device_id'], ['devices.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['recalled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_alloc_from_created', 'allocation_records', ['from_user_id', 'created_at'])
    op.create_index('ix_alloc_to_created', 'allocation_records', ['to_user_id', 'created_at'])
    op.create_index('ix_alloc_device_created', 'allocation_records', ['device_id', 'created_at'])
    op.create_index('ix_alloc_type_status', 'allocation_records', ['type', 'status'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.Integer(), nullable=True),
        sa.Column('imei', sa.String(length=15), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('sale_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('sold_by_user_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_id_number', sa.String(length=64), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('region', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['device_id'], ['devices.id'], ),
        sa.ForeignKeyConstraint(['sold_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_sold_by_created', 'sales', ['sold_by_user_id', 'created_at'])
    op.create_index('ix_sales_region_created', 'sales', ['region', 'created_at'])

    # ============================================================================
    # commissions: PENDING -> APPROVED -> PAID, or PENDING -> REJECTED
    # ============================================================================
    op.create_table(
        'commissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount_cents >= 0', name='ck_commissions_amount_non_negative'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_commissions_user_status', 'commissions', ['user_id', 'status'])
    op.create_index('ix_commissions_sale', 'commissions', ['sale_id'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])

    # ============================================================================
    # receipt_sequences
    # ============================================================================
    op.create_table(
        'receipt_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('receipt_sequences')
    op.drop_table('commissions')
    op.drop_table('sales')
    op.drop_table('allocation_records')
    op.drop_table('devices')
    op.drop_table('products')
    op.drop_table('users')
