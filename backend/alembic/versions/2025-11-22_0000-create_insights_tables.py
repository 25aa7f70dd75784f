"""create_insights_tables

Revision ID: 5b1e3c7a9d20
Revises:
Create Date: 2025-11-22 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5b1e3c7a9d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _common_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was last updated (UTC)'),
    ]


def upgrade() -> None:
    """
    Create the pipeline tables.

    1. clients, submissions, media_files, reviews - rows the pipeline reads
    2. content_features - one analysis result per submission
    3. client_summaries - count-keyed summary cache per client

    Every child table cascades on delete from its parent.
    """

    # ================================
    # clients
    # ================================
    op.create_table(
        'clients',
        *_common_columns(),
        sa.Column('owner_id', sa.String(length=255), nullable=False, comment='Id of the professional user who owns this client'),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_clients')),
    )
    op.create_index(op.f('ix_clients_owner_id'), 'clients', ['owner_id'])

    # ================================
    # submissions
    # ================================
    op.create_table(
        'submissions',
        *_common_columns(),
        sa.Column('created_by_id', sa.String(length=255), nullable=False, comment='Id of the professional user who created the submission'),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('captions', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name=op.f('fk_submissions_client_id_clients'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_submissions')),
    )
    op.create_index(op.f('ix_submissions_client_id'), 'submissions', ['client_id'])
    op.create_index(op.f('ix_submissions_created_by_id'), 'submissions', ['created_by_id'])

    # ================================
    # media_files
    # ================================
    op.create_table(
        'media_files',
        *_common_columns(),
        sa.Column('submission_id', sa.Uuid(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=255), nullable=False),
        sa.Column('file_type', sa.String(length=20), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], name=op.f('fk_media_files_submission_id_submissions'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_media_files')),
    )
    op.create_index(op.f('ix_media_files_submission_id'), 'media_files', ['submission_id'])

    # ================================
    # reviews
    # ================================
    op.create_table(
        'reviews',
        *_common_columns(),
        sa.Column('submission_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], name=op.f('fk_reviews_submission_id_submissions'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_reviews')),
        sa.UniqueConstraint('submission_id', name=op.f('uq_reviews_submission_id')),
    )
    op.create_index(op.f('ix_reviews_status'), 'reviews', ['status'])

    # ================================
    # content_features
    # ================================
    op.create_table(
        'content_features',
        *_common_columns(),
        sa.Column('submission_id', sa.Uuid(), nullable=False, comment='One feature row per submission'),
        sa.Column('ocr_text', sa.Text(), nullable=True),
        sa.Column('theme_tags_json', sa.Text(), nullable=True),
        sa.Column('analysis_status', sa.String(length=20), nullable=False),
        sa.Column('failure_reason', sa.String(length=500), nullable=True),
        sa.Column('last_analyzed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('extracted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], name=op.f('fk_content_features_submission_id_submissions'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content_features')),
        sa.UniqueConstraint('submission_id', name=op.f('uq_content_features_submission_id')),
    )
    # Backfill filters on status
    op.create_index(op.f('ix_content_features_analysis_status'), 'content_features', ['analysis_status'])

    # ================================
    # client_summaries
    # ================================
    op.create_table(
        'client_summaries',
        *_common_columns(),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('approved_count', sa.Integer(), nullable=False),
        sa.Column('rejected_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name=op.f('fk_client_summaries_client_id_clients'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_client_summaries')),
        sa.UniqueConstraint('client_id', name=op.f('uq_client_summaries_client_id')),
    )


def downgrade() -> None:
    """Drop the pipeline tables in reverse dependency order."""
    op.drop_table('client_summaries')
    op.drop_index(op.f('ix_content_features_analysis_status'), table_name='content_features')
    op.drop_table('content_features')
    op.drop_index(op.f('ix_reviews_status'), table_name='reviews')
    op.drop_table('reviews')
    op.drop_index(op.f('ix_media_files_submission_id'), table_name='media_files')
    op.drop_table('media_files')
    op.drop_index(op.f('ix_submissions_created_by_id'), table_name='submissions')
    op.drop_index(op.f('ix_submissions_client_id'), table_name='submissions')
    op.drop_table('submissions')
    op.drop_index(op.f('ix_clients_owner_id'), table_name='clients')
    op.drop_table('clients')
