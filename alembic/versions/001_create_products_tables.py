"""Create products and product_sizes tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create products and product_sizes tables."""
    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(100), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, index=True),
        sa.Column('is_discounted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('discounted_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('category_main', sa.String(50), nullable=False),
        sa.Column('category_sub', sa.String(50), nullable=False),
        sa.Column('colors', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('images', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_new_arrival', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('search_text', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()'), index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Owner listings filter by category
    op.create_index(
        'ix_products_owner_category',
        'products',
        ['owner_id', 'category_main', 'category_sub'],
    )

    # Product sizes table
    op.create_table(
        'product_sizes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('value', sa.String(10), nullable=False, index=True),
    )


def downgrade() -> None:
    """Drop products and product_sizes tables."""
    op.drop_table('product_sizes')
    op.drop_index('ix_products_owner_category', table_name='products')
    op.drop_table('products')
