"""Create words table

Revision ID: 002
Revises: 001
Create Date: 2025-09-02 12:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'words' not in existing_tables:
        op.create_table(
            'words',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('word', sa.String(length=255), nullable=False),
            sa.Column('word_key', sa.String(length=255), nullable=False),
            sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.UniqueConstraint('user_id', 'word_key', name='uq_words_user_word_key')
        )
        op.create_index('ix_words_id', 'words', ['id'])
        op.create_index('ix_words_user_id', 'words', ['user_id'])
        op.create_index('ix_words_user_added_at', 'words', ['user_id', 'added_at'])
        return

    # Table exists, but make sure the unique constraint is there - submits depend on it
    existing_constraints = [con['name'] for con in inspector.get_unique_constraints('words')]
    if 'uq_words_user_word_key' not in existing_constraints:
        op.create_unique_constraint('uq_words_user_word_key', 'words', ['user_id', 'word_key'])

    existing_indexes = [idx['name'] for idx in inspector.get_indexes('words')]
    if 'ix_words_user_added_at' not in existing_indexes:
        op.create_index('ix_words_user_added_at', 'words', ['user_id', 'added_at'])


def downgrade() -> None:
    op.drop_index('ix_words_user_added_at', table_name='words')
    op.drop_index('ix_words_user_id', table_name='words')
    op.drop_index('ix_words_id', table_name='words')
    op.drop_table('words')
