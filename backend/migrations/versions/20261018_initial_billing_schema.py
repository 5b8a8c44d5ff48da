"""Initial billing schema: restaurants, orders, subscriptions, invoices, transactions

Revision ID: 20261018_billing
Revises:
Create Date: 2026-10-18

This migration adds:
1. Restaurant (tenant root) and Order / OrderItem (invoicing input)
2. Subscription (one per restaurant) with notification and payment logs
3. Invoice / InvoiceLine with per-restaurant unique invoice numbers
4. Transaction (payments, refunds, subscription charges)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_billing'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. RESTAURANTS / ORDERS
    # ==========================================================================
    op.create_table('restaurants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('restaurants', schema=None) as batch_op:
        batch_op.create_index('ix_restaurants_is_active', ['is_active'], unique=False)

    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('table_number', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='NEW'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index('ix_orders_restaurant_id', ['restaurant_id'], unique=False)
        batch_op.create_index('ix_orders_restaurant_status', ['restaurant_id', 'status'], unique=False)

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('order_items', schema=None) as batch_op:
        batch_op.create_index('ix_order_items_order_id', ['order_id'], unique=False)

    # ==========================================================================
    # 2. SUBSCRIPTIONS
    # ==========================================================================
    op.create_table('subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=False, server_default='free_trial'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('trial_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('billing_cycle', sa.String(length=16), nullable=False, server_default='monthly'),
        sa.Column('amount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='INR'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='none'),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_billing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('restaurants_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('orders_this_month', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('staff_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tables_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('menu_items_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_restaurants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_orders', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('max_staff', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('max_tables', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('max_menu_items', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('auto_renew', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('restaurant_id', name='uq_subscriptions_restaurant'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('subscriptions', schema=None) as batch_op:
        batch_op.create_index('ix_subscriptions_plan', ['plan'], unique=False)
        batch_op.create_index('ix_subscriptions_status', ['status'], unique=False)
        batch_op.create_index('ix_subscriptions_status_period_end', ['status', 'current_period_end'], unique=False)
        batch_op.create_index('ix_subscriptions_trial', ['trial_active', 'trial_end'], unique=False)

    op.create_table('subscription_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('message', sa.String(length=512), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('subscription_notifications', schema=None) as batch_op:
        batch_op.create_index('ix_subscription_notifications_subscription_id', ['subscription_id'], unique=False)
        batch_op.create_index('ix_sub_notifications_restaurant_sent', ['restaurant_id', 'sent_at'], unique=False)

    op.create_table('subscription_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='INR'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=True),
        sa.Column('transaction_id', sa.String(length=128), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('invoice_url', sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('subscription_payments', schema=None) as batch_op:
        batch_op.create_index('ix_subscription_payments_subscription_id', ['subscription_id'], unique=False)
        batch_op.create_index('ix_sub_payments_restaurant_paid', ['restaurant_id', 'paid_at'], unique=False)

    # ==========================================================================
    # 3. INVOICES
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False, server_default='Walk-in Customer'),
        sa.Column('customer_phone', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('customer_email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('customer_gstin', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('restaurant_name', sa.String(length=255), nullable=False),
        sa.Column('restaurant_address', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('restaurant_phone', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('restaurant_email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('restaurant_gst_number', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('restaurant_logo_url', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('discount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('discount_percentage', sa.Numeric(precision=7, scale=4), nullable=False, server_default='0'),
        sa.Column('is_inter_state', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('cgst_rate', sa.Numeric(precision=7, scale=4), nullable=False, server_default='0'),
        sa.Column('cgst_amount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('sgst_rate', sa.Numeric(precision=7, scale=4), nullable=False, server_default='0'),
        sa.Column('sgst_amount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('igst_rate', sa.Numeric(precision=7, scale=4), nullable=False, server_default='0'),
        sa.Column('igst_amount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('round_off', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('paid_amount', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('upi_id', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('qr_payload', sa.String(length=1024), nullable=False, server_default=''),
        sa.Column('table_number', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('terms_and_conditions', sa.Text(), nullable=False, server_default=''),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        # Per restaurant, not global
        sa.UniqueConstraint('restaurant_id', 'invoice_number', name='uq_invoices_restaurant_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index('ix_invoices_restaurant_id', ['restaurant_id'], unique=False)
        batch_op.create_index('ix_invoices_order_id', ['order_id'], unique=False)
        batch_op.create_index('ix_invoices_restaurant_date', ['restaurant_id', 'invoice_date'], unique=False)
        batch_op.create_index('ix_invoices_restaurant_payment_status', ['restaurant_id', 'payment_status'], unique=False)

    op.create_table('invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('line_amount', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('tax_code', sa.String(length=16), nullable=False, server_default='996331'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoice_lines', schema=None) as batch_op:
        batch_op.create_index('ix_invoice_lines_invoice_id', ['invoice_id'], unique=False)

    # ==========================================================================
    # 4. TRANSACTIONS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='INR'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='UPI'),
        sa.Column('transaction_id', sa.String(length=128), nullable=False),
        sa.Column('payment_proof_id', sa.Integer(), nullable=True),
        sa.Column('plan', sa.String(length=32), nullable=True),
        sa.Column('description', sa.String(length=512), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('refund_reason', sa.String(length=255), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_transactions_transaction_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index('ix_transactions_restaurant_id', ['restaurant_id'], unique=False)
        batch_op.create_index('ix_transactions_restaurant_created', ['restaurant_id', 'created_at'], unique=False)
        batch_op.create_index('ix_transactions_status_type', ['status', 'type'], unique=False)


def downgrade():
    op.drop_table('transactions')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('subscription_payments')
    op.drop_table('subscription_notifications')
    op.drop_table('subscriptions')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('restaurants')
