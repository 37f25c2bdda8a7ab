"""create_lifecycle_tables

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", "src"))

from alembic import op
import sqlalchemy as sa
from field_service.db.base import UUIDType

# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    """Create quote, job, visit, photo and audit tables."""
    op.create_table('service_items',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit_price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=True, comment='Typical on-site time; feeds the suggested visit length'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_service_items_tenant_id', 'service_items', ['tenant_id'])

    op.create_table('quotes',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('request_id', UUIDType(), nullable=True),
        sa.Column('client_id', UUIDType(), nullable=False),
        sa.Column('property_id', UUIDType(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('line_items', sa.JSON(), nullable=False, comment='[{service_item_id, description, quantity, unit_price, total}, ...]'),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft', comment='draft, sent, approved, declined, expired, scheduled'),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quotes_tenant_id', 'quotes', ['tenant_id'])
    op.create_index('ix_quotes_client_id', 'quotes', ['client_id'])
    op.create_index('ix_quotes_tenant_status', 'quotes', ['tenant_id', 'status'])

    op.create_table('jobs',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('quote_id', UUIDType(), nullable=False),
        sa.Column('client_id', UUIDType(), nullable=False),
        sa.Column('property_id', UUIDType(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled', comment='scheduled, in_progress, completed, cancelled'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.UniqueConstraint('tenant_id', 'quote_id', name='uq_jobs_tenant_quote'),
    )
    op.create_index('ix_jobs_tenant_id', 'jobs', ['tenant_id'])
    op.create_index('ix_jobs_client_id', 'jobs', ['client_id'])

    op.create_table('visits',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('job_id', UUIDType(), nullable=False),
        sa.Column('assigned_user_id', UUIDType(), nullable=True),
        sa.Column('scheduled_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled', comment='scheduled, en_route, started, completed, cancelled'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_visits_tenant_id', 'visits', ['tenant_id'])
    op.create_index('ix_visits_job_id', 'visits', ['job_id'])
    op.create_index('ix_visits_assigned_user_id', 'visits', ['assigned_user_id'])

    op.create_table('visit_photos',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('visit_id', UUIDType(), nullable=False),
        sa.Column('storage_key', sa.String(length=512), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='pending, ready'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['visit_id'], ['visits.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_visit_photos_tenant_id', 'visit_photos', ['tenant_id'])
    op.create_index('ix_visit_photos_visit_status', 'visit_photos', ['tenant_id', 'visit_id', 'status'])

    op.create_table('audit_events',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('tenant_id', UUIDType(), nullable=False),
        sa.Column('principal_type', sa.String(length=20), nullable=False, comment='internal, external, system'),
        sa.Column('principal_id', sa.String(length=128), nullable=False),
        sa.Column('event_name', sa.String(length=64), nullable=False),
        sa.Column('subject_type', sa.String(length=32), nullable=False),
        sa.Column('subject_id', UUIDType(), nullable=False),
        sa.Column('correlation_id', sa.String(length=64), nullable=False),
        sa.Column('metadata_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_events_tenant_id', 'audit_events', ['tenant_id'])
    op.create_index('ix_audit_events_event_name', 'audit_events', ['event_name'])
    op.create_index('ix_audit_events_subject', 'audit_events', ['tenant_id', 'subject_type', 'subject_id'])


def downgrade() -> None:
    """Drop all lifecycle tables."""
    op.drop_index('ix_audit_events_subject', 'audit_events')
    op.drop_index('ix_audit_events_event_name', 'audit_events')
    op.drop_index('ix_audit_events_tenant_id', 'audit_events')
    op.drop_table('audit_events')
    op.drop_index('ix_visit_photos_visit_status', 'visit_photos')
    op.drop_index('ix_visit_photos_tenant_id', 'visit_photos')
    op.drop_table('visit_photos')
    op.drop_index('ix_visits_assigned_user_id', 'visits')
    op.drop_index('ix_visits_job_id', 'visits')
    op.drop_index('ix_visits_tenant_id', 'visits')
    op.drop_table('visits')
    op.drop_index('ix_jobs_client_id', 'jobs')
    op.drop_index('ix_jobs_tenant_id', 'jobs')
    op.drop_table('jobs')
    op.drop_index('ix_quotes_tenant_status', 'quotes')
    op.drop_index('ix_quotes_client_id', 'quotes')
    op.drop_index('ix_quotes_tenant_id', 'quotes')
    op.drop_table('quotes')
    op.drop_index('ix_service_items_tenant_id', 'service_items')
    op.drop_table('service_items')
