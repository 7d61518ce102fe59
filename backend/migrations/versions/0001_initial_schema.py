"""Initial marketplace schema: users, profiles, products, orders, reviews, notifications

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    op.create_table('user_profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('rating', sa.Float(), server_default='0.0', nullable=False),
        sa.Column('total_reviews', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('vendor', 'supplier')", name='user_role_check'),
        sa.CheckConstraint('latitude IS NULL OR (latitude >= -90 AND latitude <= 90)', name='user_latitude_range_check'),
        sa.CheckConstraint('longitude IS NULL OR (longitude >= -180 AND longitude <= 180)', name='user_longitude_range_check'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone', name='user_profiles_phone_key')
    )

    op.create_table('supplier_profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('business_name', sa.String(length=200), nullable=False),
        sa.Column('business_type', sa.String(length=100), nullable=True),
        sa.Column('delivery_radius_km', sa.Integer(), server_default='5', nullable=False),
        sa.Column('min_order_amount', sa.Float(), server_default='0.0', nullable=False),
        sa.Column('avg_delivery_time_minutes', sa.Integer(), server_default='30', nullable=False),
        sa.Column('is_online', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('delivery_radius_km >= 0', name='delivery_radius_non_negative_check'),
        sa.CheckConstraint('min_order_amount >= 0', name='min_order_amount_non_negative_check'),
        sa.ForeignKeyConstraint(['user_profile_id'], ['user_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_profile_id')
    )
    op.create_index('supplier_profiles_is_online_idx', 'supplier_profiles', ['is_online'])

    op.create_table('vendor_profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stall_name', sa.String(length=200), nullable=False),
        sa.Column('food_type', sa.String(length=100), nullable=True),
        sa.Column('daily_budget', sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_profile_id'], ['user_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_profile_id')
    )

    op.create_table('products',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('unit', sa.String(length=50), nullable=False),
        sa.Column('price_per_unit', sa.Float(), nullable=False),
        sa.Column('minimum_order_quantity', sa.Integer(), server_default='1', nullable=False),
        sa.Column('stock_quantity', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('quality_grade', sa.String(length=20), nullable=True),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('price_per_unit > 0', name='price_positive_check'),
        sa.CheckConstraint('minimum_order_quantity > 0', name='minimum_order_quantity_positive_check'),
        sa.CheckConstraint('stock_quantity >= 0', name='stock_non_negative_check'),
        sa.ForeignKeyConstraint(['supplier_profile_id'], ['supplier_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('products_category_idx', 'products', ['category'])

    op.create_table('orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('vendor_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(length=40), nullable=False),
        sa.Column('items', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=30), server_default='pending', nullable=False),
        sa.Column('is_emergency', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=False),
        sa.Column('delivery_latitude', sa.Float(), nullable=True),
        sa.Column('delivery_longitude', sa.Float(), nullable=True),
        sa.Column('estimated_delivery_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voice_notes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('total_amount > 0', name='total_amount_positive_check'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'preparing', 'out_for_delivery', 'delivered', 'cancelled')",
            name='order_status_check'
        ),
        sa.ForeignKeyConstraint(['vendor_profile_id'], ['vendor_profiles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['supplier_profile_id'], ['supplier_profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='orders_order_number_key')
    )
    op.create_index('orders_emergency_status_idx', 'orders', ['is_emergency', 'status'])

    op.create_table('reviews',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewer_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewed_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('quality_rating', sa.Integer(), nullable=True),
        sa.Column('delivery_rating', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='rating_range_check'),
        sa.CheckConstraint('quality_rating IS NULL OR (quality_rating >= 1 AND quality_rating <= 5)', name='quality_rating_range_check'),
        sa.CheckConstraint('delivery_rating IS NULL OR (delivery_rating >= 1 AND delivery_rating <= 5)', name='delivery_rating_range_check'),
        sa.CheckConstraint('reviewer_user_id != reviewed_user_id', name='no_self_review_check'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewer_user_id'], ['user_profiles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_user_id'], ['user_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'reviewer_user_id', name='unique_review_per_order_reviewer')
    )

    op.create_table('notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('is_read', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint("type IN ('order', 'delivery', 'promotion', 'emergency')", name='notification_type_check'),
        sa.ForeignKeyConstraint(['user_profile_id'], ['user_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('notifications_user_profile_id_idx', 'notifications', ['user_profile_id'])


def downgrade():
    op.drop_index('notifications_user_profile_id_idx', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('reviews')
    op.drop_index('orders_emergency_status_idx', table_name='orders')
    op.drop_table('orders')
    op.drop_index('products_category_idx', table_name='products')
    op.drop_table('products')
    op.drop_table('vendor_profiles')
    op.drop_index('supplier_profiles_is_online_idx', table_name='supplier_profiles')
    op.drop_table('supplier_profiles')
    op.drop_table('user_profiles')
