"""create order, payment and invoice tables

Revision ID: 8e1f2a6c4b10
Revises:
Create Date: 2026-10-19 10:12:41.203114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e1f2a6c4b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('random_prefix', sa.String(length=4), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('customer_name', sa.String(length=100), nullable=False),
        sa.Column('customer_phone', sa.String(length=15), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_gstin', sa.String(length=20), nullable=True),
        sa.Column('delivery_address', sa.JSON(), nullable=True),
        sa.Column('billing_address', sa.JSON(), nullable=True),
        sa.Column('scheduled_for', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('instructions', sa.String(length=500), server_default=sa.text("''"), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('subtotal_amount', sa.BigInteger(), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('tax_amount', sa.BigInteger(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('advance_payment', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('received_amount', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('remaining_amount', sa.BigInteger(), nullable=False),
        sa.Column('excess_amount', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('invoice_generated', sa.Boolean(), nullable=False),
        sa.Column('cancel_reason', sa.String(length=255), server_default=sa.text("''"), nullable=False),
        sa.Column('confirmed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_phone', 'orders', ['customer_phone'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('idx_orders_status_created', 'orders', ['status', 'created_at'])
    op.create_index('idx_orders_phone_created', 'orders', ['customer_phone', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('catalog_item_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('unit_price', sa.BigInteger(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('subtotal', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'payment_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('intent_id', sa.String(length=64), nullable=True),
        sa.Column('confirmation_id', sa.String(length=64), nullable=True),
        sa.Column('signature', sa.String(length=256), nullable=True),
        sa.Column('payment_amount', sa.BigInteger(), nullable=False),
        sa.Column('credited_amount', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('payment_type', sa.String(length=20), nullable=False),
        sa.Column('payment_mode', sa.String(length=20), nullable=False),
        sa.Column('outcome', sa.String(length=20), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='INR', nullable=False),
        sa.Column('error_code', sa.String(length=64), nullable=True),
        sa.Column('error_reason', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('settled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('intent_id'),
        sa.UniqueConstraint('confirmation_id'),
    )
    op.create_index('ix_payment_details_id', 'payment_details', ['id'])
    op.create_index('ix_payment_details_order_id', 'payment_details', ['order_id'])
    op.create_index('ix_payment_details_outcome', 'payment_details', ['outcome'])
    op.create_index('idx_payment_details_outcome_expires', 'payment_details', ['outcome', 'expires_at'])

    op.create_table(
        'invoice_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('customer_name', sa.String(length=100), nullable=False),
        sa.Column('customer_phone', sa.String(length=15), nullable=False),
        sa.Column('customer_gstin', sa.String(length=20), nullable=True),
        sa.Column('billing_address', sa.JSON(), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('merchant_name', sa.String(length=100), nullable=False),
        sa.Column('merchant_gstin', sa.String(length=20), nullable=True),
        sa.Column('subtotal_amount', sa.BigInteger(), nullable=False),
        sa.Column('tax_split_mode', sa.String(length=12), nullable=False),
        sa.Column('cgst_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('cgst_amount', sa.BigInteger(), nullable=False),
        sa.Column('sgst_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('sgst_amount', sa.BigInteger(), nullable=False),
        sa.Column('igst_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('igst_amount', sa.BigInteger(), nullable=False),
        sa.Column('total_tax', sa.BigInteger(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('received_amount', sa.BigInteger(), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False),
        sa.Column('payment_status', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('issued_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_invoice_details_id', 'invoice_details', ['id'])
    op.create_index('ix_invoice_details_invoice_number', 'invoice_details', ['invoice_number'], unique=True)
    op.create_index('ix_invoice_details_payment_status', 'invoice_details', ['payment_status'])
    op.create_index('ix_invoice_details_status', 'invoice_details', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('invoice_details')
    op.drop_table('payment_details')
    op.drop_table('order_items')
    op.drop_table('orders')
