"""initial sales schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2025-08-05 00:00:00.000000

Creates the seven entity tables:
- representatives, clients: territory-scoped reference data
- articles, gifts, packs, pack_articles: catalog
- sales: transactional table referencing clients, representatives and packs

SQLite does not enforce the sales foreign keys unless PRAGMA foreign_keys
is on; dangling references are detected by `flask integrity check`.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # representatives / clients: reference data replaced by import jobs
    # ============================================================================
    op.create_table(
        'representatives',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rep_code', sa.String(length=32), nullable=False),
        sa.Column('rep_name', sa.String(length=128), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('city', sa.String(length=64), nullable=True),
        sa.Column('wilaya', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rep_code', name='uq_representatives_rep_code'),
        sa.UniqueConstraint('username', name='uq_representatives_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_representatives_wilaya', 'representatives', ['wilaya'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=64), nullable=True),
        sa.Column('wilaya', sa.String(length=64), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', name='uq_clients_client_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clients_wilaya', 'clients', ['wilaya'])

    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'articles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'gifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('gift_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'packs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pack_name', sa.String(length=255), nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('gift_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['gift_id'], ['gifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'pack_articles',
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('article_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id'], ),
        sa.ForeignKeyConstraint(['article_id'], ['articles.id'], ),
        sa.PrimaryKeyConstraint('pack_id', 'article_id')
    )

    # ============================================================================
    # sales: revenue history, never deleted by maintenance
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('representative_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['representative_id'], ['representatives.id'], ),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_client_id', 'sales', ['client_id'])
    op.create_index('ix_sales_representative_id', 'sales', ['representative_id'])
    op.create_index('ix_sales_pack_id', 'sales', ['pack_id'])
    op.create_index('ix_sales_representative_created', 'sales', ['representative_id', 'created_at'])


def downgrade():
    op.drop_index('ix_sales_representative_created', table_name='sales')
    op.drop_index('ix_sales_pack_id', table_name='sales')
    op.drop_index('ix_sales_representative_id', table_name='sales')
    op.drop_index('ix_sales_client_id', table_name='sales')
    op.drop_table('sales')
    op.drop_table('pack_articles')
    op.drop_table('packs')
    op.drop_table('gifts')
    op.drop_table('articles')
    op.drop_index('ix_clients_wilaya', table_name='clients')
    op.drop_table('clients')
    op.drop_index('ix_representatives_wilaya', table_name='representatives')
    op.drop_table('representatives')
