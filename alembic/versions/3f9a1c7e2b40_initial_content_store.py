"""initial_content_store

Revision ID: 3f9a1c7e2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7e2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id',           sa.Integer(),     primary_key=True, autoincrement=True),
        sa.Column('username',     sa.String(64),    nullable=False),
        sa.Column('email',        sa.String(255),   nullable=False),
        sa.Column('display_name', sa.String(128),   nullable=False, server_default=''),
        sa.Column('role',         sa.String(32),    nullable=False, server_default='subscriber'),
        sa.Column('is_active',    sa.Boolean(),     nullable=False, server_default='1'),
        sa.Column('created_at',   sa.DateTime(),    nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email',    'users', ['email'],    unique=True)

    op.create_table(
        'posts',
        sa.Column('id',         sa.Integer(),     primary_key=True, autoincrement=True),
        sa.Column('post_type',  sa.String(20),    nullable=False, server_default='post'),
        sa.Column('status',     sa.String(20),    nullable=False, server_default='publish'),
        sa.Column('title',      sa.Text(),        nullable=False, server_default=''),
        sa.Column('slug',       sa.String(200),   nullable=False, server_default=''),
        sa.Column('content',    sa.Text(),        nullable=False, server_default=''),
        sa.Column('excerpt',    sa.Text(),        nullable=False, server_default=''),
        sa.Column('author_id',  sa.Integer(),     sa.ForeignKey('users.id'), nullable=True),
        sa.Column('parent_id',  sa.Integer(),     nullable=False, server_default='0'),
        sa.Column('menu_order', sa.Integer(),     nullable=False, server_default='0'),
        sa.Column('mime_type',  sa.String(100),   nullable=False, server_default=''),
        sa.Column('guid',       sa.String(255),   nullable=False, server_default=''),
        sa.Column('sticky',     sa.Boolean(),     nullable=False, server_default='0'),
        sa.Column('date',       sa.DateTime(),    nullable=False),
        sa.Column('modified',   sa.DateTime(),    nullable=False),
    )
    op.create_index('ix_posts_post_type',        'posts', ['post_type'])
    op.create_index('ix_posts_slug',             'posts', ['slug'])
    op.create_index('ix_posts_author_id',        'posts', ['author_id'])
    op.create_index('ix_posts_parent_id',        'posts', ['parent_id'])
    op.create_index('ix_posts_type_status_date', 'posts', ['post_type', 'status', 'date'])

    op.create_table(
        'postmeta',
        sa.Column('id',         sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column('post_id',    sa.Integer(),   sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('meta_key',   sa.String(255), nullable=False),
        sa.Column('meta_value', sa.Text(),      nullable=True),
    )
    op.create_index('ix_postmeta_meta_key', 'postmeta', ['meta_key'])
    op.create_index('ix_postmeta_post_key', 'postmeta', ['post_id', 'meta_key'])

    op.create_table(
        'terms',
        sa.Column('id',       sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column('taxonomy', sa.String(32),  nullable=False),
        sa.Column('name',     sa.String(200), nullable=False),
        sa.Column('slug',     sa.String(200), nullable=False),
        sa.Column('parent',   sa.Integer(),   nullable=False, server_default='0'),
        sa.UniqueConstraint('taxonomy', 'slug', name='uq_terms_taxonomy_slug'),
    )
    op.create_index('ix_terms_taxonomy', 'terms', ['taxonomy'])

    op.create_table(
        'term_relationships',
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('term_id', sa.Integer(), sa.ForeignKey('terms.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_term_relationships_term_id', 'term_relationships', ['term_id'])


def downgrade() -> None:
    op.drop_index('ix_term_relationships_term_id', table_name='term_relationships')
    op.drop_table('term_relationships')
    op.drop_index('ix_terms_taxonomy', table_name='terms')
    op.drop_table('terms')
    op.drop_index('ix_postmeta_post_key', table_name='postmeta')
    op.drop_index('ix_postmeta_meta_key', table_name='postmeta')
    op.drop_table('postmeta')
    op.drop_index('ix_posts_type_status_date', table_name='posts')
    op.drop_index('ix_posts_parent_id',        table_name='posts')
    op.drop_index('ix_posts_author_id',        table_name='posts')
    op.drop_index('ix_posts_slug',             table_name='posts')
    op.drop_index('ix_posts_post_type',        table_name='posts')
    op.drop_table('posts')
    op.drop_index('ix_users_email',    table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
