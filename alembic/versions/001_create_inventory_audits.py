"""Create inventory audit tables

Revision ID: 001_inventory_audits
Revises:
Create Date: 2026-10-17

warehouses, products, product_variants and inventory_items belong to the
host inventory schema and must already exist.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_inventory_audits'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create audit header and audit line tables"""

    # ====================
    # INVENTORY AUDITS
    # ====================
    op.create_table(
        'inventory_audits',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('audit_number', sa.String(30), unique=True, nullable=False),
        sa.Column('audit_type', sa.String(30), nullable=False,
                  comment='FULL_INVENTORY, CYCLE_COUNT, SPOT_CHECK, PRODUCT_AUDIT, ANNUAL'),
        sa.Column('method', sa.String(20), nullable=False, server_default='MANUAL'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PLANNED',
                  comment='PLANNED, IN_PROGRESS, COMPLETED, CANCELLED'),
        sa.Column('warehouse_id', sa.Uuid(), sa.ForeignKey('warehouses.id'), nullable=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('planned_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('items_planned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_counted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discrepancies', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('adjustment_value', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('audited_by', sa.String(100), nullable=True),
        sa.Column('supervised_by', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_audit_status_completed', 'inventory_audits', ['status', 'completed_date'])
    op.create_index('idx_audit_warehouse', 'inventory_audits', ['warehouse_id'])

    # ====================
    # INVENTORY AUDIT ITEMS
    # ====================
    op.create_table(
        'inventory_audit_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('audit_id', sa.Uuid(),
                  sa.ForeignKey('inventory_audits.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('product_variants.id'), nullable=True),
        sa.Column('warehouse_id', sa.Uuid(), sa.ForeignKey('warehouses.id'), nullable=False),
        sa.Column('inventory_item_id', sa.Uuid(), sa.ForeignKey('inventory_items.id'), nullable=False),
        sa.Column('location', sa.String(50), nullable=True),
        sa.Column('expected_quantity', sa.Integer(), nullable=False),
        sa.Column('counted_quantity', sa.Integer(), nullable=True),
        sa.Column('variance', sa.Integer(), nullable=True),
        sa.Column('unit_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING',
                  comment='PENDING, COUNTED, VERIFIED, DISCREPANCY'),
        sa.Column('counted_by_id', sa.String(100), nullable=True),
        sa.Column('counted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verified_by_id', sa.String(100), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('discrepancy_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('audit_id', 'inventory_item_id', name='uq_audit_item_inventory'),
    )
    op.create_index('idx_audit_item_audit', 'inventory_audit_items', ['audit_id'])

    print("Created inventory_audits and inventory_audit_items")


def downgrade():
    """Drop audit tables"""
    op.drop_index('idx_audit_item_audit', table_name='inventory_audit_items')
    op.drop_table('inventory_audit_items')
    op.drop_index('idx_audit_warehouse', table_name='inventory_audits')
    op.drop_index('idx_audit_status_completed', table_name='inventory_audits')
    op.drop_table('inventory_audits')
