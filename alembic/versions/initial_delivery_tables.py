"""Create users, orders and refresh tokens

Revision ID: initial_delivery_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'initial_delivery_tables'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('ADMIN', 'DELIVERY_PERSON', 'MERCHANT', 'LOGISTICS_TECHNICIAN', name='userrole')
order_status = sa.Enum('PENDING', 'ACCEPTED', 'IN_TRANSIT', 'DELIVERED', 'CANCELLED', name='orderstatus')
order_priority = sa.Enum('LOW', 'NORMAL', 'HIGH', 'URGENT', name='orderpriority')

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(), nullable=False),
        sa.Column('customer_phone', sa.String(), nullable=True),
        sa.Column('delivery_address', sa.String(), nullable=False),
        sa.Column('delivery_coordinates', sa.JSON(), nullable=True),
        sa.Column('scheduled_delivery_time', sa.DateTime(), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('priority', order_priority, nullable=False),
        sa.Column('delivery_person_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('estimated_delivery_duration', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['merchant_id'], ['users.id']),
        sa.ForeignKeyConstraint(['delivery_person_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_merchant_id', 'orders', ['merchant_id'])
    op.create_index('ix_orders_delivery_person_id', 'orders', ['delivery_person_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_priority', 'orders', ['priority'])
    op.create_index('ix_orders_scheduled_delivery_time', 'orders', ['scheduled_delivery_time'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table('refresh_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_refresh_tokens_id', 'refresh_tokens', ['id'])
    op.create_index('ix_refresh_tokens_token', 'refresh_tokens', ['token'], unique=True)
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])

def downgrade():
    op.drop_table('refresh_tokens')
    op.drop_table('orders')
    op.drop_table('users')
    order_priority.drop(op.get_bind(), checkfirst=True)
    order_status.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
