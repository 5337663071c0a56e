"""Add documents table

Revision ID: a1f3c5e7d9b2
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f3c5e7d9b2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per document, JSON body addressed by (collection, doc_id)
    op.create_table('documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('collection', sa.String(length=100), nullable=False),
        sa.Column('doc_id', sa.String(length=200), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection', 'doc_id', name='uq_documents_collection_doc_id')
    )
    op.create_index(op.f('ix_documents_id'), 'documents', ['id'], unique=False)
    op.create_index(op.f('ix_documents_collection'), 'documents', ['collection'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_documents_collection'), table_name='documents')
    op.drop_index(op.f('ix_documents_id'), table_name='documents')
    op.drop_table('documents')
