"""Directory registry and lead ingestion schema

Revision ID: 4e1b9c7d2a60
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4e1b9c7d2a60'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # ── Business registry ────────────────────────────────────────────────
    op.create_table('businesses',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('legal_name', sa.Text(), nullable=False),
        sa.Column('trading_name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('normalized_phone', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('website_domain', sa.Text(), nullable=True),
        sa.Column('street_address', sa.Text(), nullable=True),
        sa.Column('suburb', sa.Text(), nullable=True),
        sa.Column('state', sa.Text(), nullable=True),
        sa.Column('postcode', sa.Text(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('years_experience', sa.Integer(), nullable=True),
        sa.Column('emergency_available', sa.Boolean(), nullable=False),
        sa.Column('raw_business_hours', sa.JSON(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=True),
        sa.Column('external_place_id', sa.Text(), nullable=True),
        sa.Column('edit_token_hash', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_index('ix_businesses_normalized_phone', 'businesses', ['normalized_phone'])
    op.create_index('ix_businesses_website_domain', 'businesses', ['website_domain'])
    op.create_index('ix_businesses_external_place_id', 'businesses', ['external_place_id'])

    op.create_table('service_types',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_table('service_areas',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )
    op.create_table('business_services',
        sa.Column('business_id', sa.Text(), nullable=False),
        sa.Column('service_type_id', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['service_type_id'], ['service_types.id']),
        sa.PrimaryKeyConstraint('business_id', 'service_type_id'),
    )
    op.create_table('business_service_areas',
        sa.Column('business_id', sa.Text(), nullable=False),
        sa.Column('service_area_id', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['service_area_id'], ['service_areas.id']),
        sa.PrimaryKeyConstraint('business_id', 'service_area_id'),
    )
    op.create_table('credentials',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('business_id', sa.Text(), nullable=False),
        sa.Column('credential_type', sa.Text(), nullable=False),
        sa.Column('credential_number', sa.Text(), nullable=False),
        sa.Column('issuing_authority', sa.Text(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('verification_notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'credential_type', name='uq_credential_business_type'),
    )

    # ── Ingestion ────────────────────────────────────────────────────────
    op.create_table('ingestion_runs',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('instance_key', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('params', sa.JSON(), nullable=True),
        sa.Column('stats', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('raw_leads',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('ingestion_run_id', sa.Text(), nullable=False),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('source_url', sa.Text(), nullable=True),
        sa.Column('source_external_id', sa.Text(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('payload_hash', sa.Text(), nullable=False),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('business_id', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['ingestion_run_id'], ['ingestion_runs.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_raw_leads_ingestion_run_id', 'raw_leads', ['ingestion_run_id'])
    op.create_index('ix_raw_leads_payload_hash', 'raw_leads', ['payload_hash'])
    op.create_index('ix_raw_leads_business_id', 'raw_leads', ['business_id'])

    op.create_table('lead_evidence',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('raw_lead_id', sa.Text(), nullable=False),
        sa.Column('claim_type', sa.Text(), nullable=False),
        sa.Column('claim_value', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('provenance', sa.Text(), nullable=False),
        sa.Column('observed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['raw_lead_id'], ['raw_leads.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_evidence_raw_lead_id', 'lead_evidence', ['raw_lead_id'])

    # Weak references: no FKs on raw_lead_id / business_id
    op.create_table('lead_matches',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('raw_lead_id', sa.Text(), nullable=False),
        sa.Column('business_id', sa.Text(), nullable=True),
        sa.Column('match_score', sa.Float(), nullable=False),
        sa.Column('match_strategy', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_matches_raw_lead_id', 'lead_matches', ['raw_lead_id'])

    op.create_table('suggested_updates',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('business_id', sa.Text(), nullable=False),
        sa.Column('raw_lead_id', sa.Text(), nullable=False),
        sa.Column('field_name', sa.Text(), nullable=False),
        sa.Column('current_value', sa.Text(), nullable=True),
        sa.Column('suggested_value', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_suggested_updates_business_id', 'suggested_updates', ['business_id'])
    op.create_index('ix_suggested_updates_raw_lead_id', 'suggested_updates', ['raw_lead_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_suggested_updates_raw_lead_id', 'suggested_updates')
    op.drop_index('ix_suggested_updates_business_id', 'suggested_updates')
    op.drop_table('suggested_updates')
    op.drop_index('ix_lead_matches_raw_lead_id', 'lead_matches')
    op.drop_table('lead_matches')
    op.drop_index('ix_lead_evidence_raw_lead_id', 'lead_evidence')
    op.drop_table('lead_evidence')
    op.drop_index('ix_raw_leads_business_id', 'raw_leads')
    op.drop_index('ix_raw_leads_payload_hash', 'raw_leads')
    op.drop_index('ix_raw_leads_ingestion_run_id', 'raw_leads')
    op.drop_table('raw_leads')
    op.drop_table('ingestion_runs')
    op.drop_table('credentials')
    op.drop_table('business_service_areas')
    op.drop_table('business_services')
    op.drop_table('service_areas')
    op.drop_table('service_types')
    op.drop_index('ix_businesses_external_place_id', 'businesses')
    op.drop_index('ix_businesses_website_domain', 'businesses')
    op.drop_index('ix_businesses_normalized_phone', 'businesses')
    op.drop_table('businesses')
