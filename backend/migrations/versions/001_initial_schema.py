"""
Alembic migration: Initial storefront schema.

Creates the catalog (products, categories), promo codes, orders with a
unique payment intent reference, editable site settings, admin accounts and
the notification outbox.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:12:41.318204
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
    ]


def upgrade() -> None:
    """Create all storefront tables."""
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column(
            'batch',
            sa.Integer(),
            nullable=False,
            server_default=sa.text('1'),
            comment='Pieces per purchasable unit',
        ),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('image', sa.String(length=500), nullable=True),
        sa.Column('is_custom', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('trending', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        comment='Storefront catalog products',
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_active', 'products', ['active'])

    op.create_table(
        'categories',
        _id_column(),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_categories'),
        sa.UniqueConstraint('slug', name='uq_categories_slug'),
        comment='Storefront product categories',
    )
    op.create_index('ix_categories_sort_order', 'categories', ['sort_order'])

    op.create_table(
        'promo_codes',
        _id_column(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_promo_codes'),
        sa.UniqueConstraint('code', name='uq_promo_codes_code'),
        sa.CheckConstraint(
            'discount_value >= 0',
            name='ck_promo_codes_discount_value_non_negative',
        ),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed')",
            name='ck_promo_codes_discount_type_valid',
        ),
        sa.CheckConstraint(
            'usage_count >= 0',
            name='ck_promo_codes_usage_count_non_negative',
        ),
        comment='Promotional codes for checkout discounts',
    )
    op.create_index('ix_promo_codes_active', 'promo_codes', ['active'])

    op.create_table(
        'orders',
        _id_column(),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=50), nullable=False, server_default=sa.text("''")),
        sa.Column('delivery_address', sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column(
            'items',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment='Revalidated line items {id, name, price, quantity, customNotes?}',
        ),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('discount_amount', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('promo_code', sa.String(length=50), nullable=True),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('payment_method', sa.String(length=20), nullable=False, server_default=sa.text("'card'")),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('quoted_price', sa.Integer(), nullable=True, comment='Minor currency units'),
        sa.Column('quote_status', sa.String(length=20), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('payment_intent_id', name='uq_orders_payment_intent_id'),
        sa.CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint(
            'discount_amount >= 0 AND discount_amount <= subtotal',
            name='ck_orders_discount_within_subtotal',
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'ready', 'completed', 'cancelled')",
            name='ck_orders_status_valid',
        ),
        comment='Storefront customer orders',
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'site_settings',
        _id_column(),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_site_settings'),
        sa.UniqueConstraint('key', name='uq_site_settings_key'),
        comment='Editable storefront copy',
    )

    op.create_table(
        'admin_users',
        _id_column(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('last_login_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_admin_users'),
        sa.UniqueConstraint('email', name='uq_admin_users_email'),
        comment='Admin dashboard accounts',
    )

    op.create_table(
        'notification_outbox',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('kind', sa.String(length=50), nullable=False),
        sa.Column('recipient', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('provider_message_id', sa.String(length=255), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_notification_outbox'),
        comment='Transactional email outbox',
    )
    op.create_index(
        'ix_notification_outbox_status_created',
        'notification_outbox',
        ['status', 'created_at'],
    )
    op.create_index('ix_notification_outbox_order_id', 'notification_outbox', ['order_id'])


def downgrade() -> None:
    """Drop all storefront tables."""
    op.drop_index('ix_notification_outbox_order_id', table_name='notification_outbox')
    op.drop_index('ix_notification_outbox_status_created', table_name='notification_outbox')
    op.drop_table('notification_outbox')
    op.drop_table('admin_users')
    op.drop_table('site_settings')
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_promo_codes_active', table_name='promo_codes')
    op.drop_table('promo_codes')
    op.drop_index('ix_categories_sort_order', table_name='categories')
    op.drop_table('categories')
    op.drop_index('ix_products_active', table_name='products')
    op.drop_index('ix_products_category', table_name='products')
    op.drop_table('products')
