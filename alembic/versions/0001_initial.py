"""Initial migration

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    # 1. Parties
    op.create_table('party_info',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('admin_id', sa.BigInteger(), nullable=False),
        sa.Column('party_name', sa.String(length=255), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('matches_made', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_party_info_admin_id'), 'party_info', ['admin_id'], unique=False)
    op.create_index(op.f('ix_party_info_ends_at'), 'party_info', ['ends_at'], unique=False)
    op.create_index(op.f('ix_party_info_matches_made'), 'party_info', ['matches_made'], unique=False)

    # 2. Signups, one row per (party, user)
    op.create_table('party_signups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('party_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('uid', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.LargeBinary(), nullable=False),
        sa.Column('hint', sa.LargeBinary(), nullable=False),
        sa.ForeignKeyConstraint(['party_id'], ['party_info.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('party_id', 'uid', name='uq_signup_party_user')
    )
    op.create_index(op.f('ix_party_signups_party_id'), 'party_signups', ['party_id'], unique=False)
    op.create_index(op.f('ix_party_signups_uid'), 'party_signups', ['uid'], unique=False)

    # 3. Matches, written once per resolved party
    op.create_table('party_matches',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('party_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('giver_id', sa.BigInteger(), nullable=False),
        sa.Column('receiver_id', sa.BigInteger(), nullable=False),
        sa.Column('receiver_name', sa.LargeBinary(), nullable=False),
        sa.Column('receiver_hint', sa.LargeBinary(), nullable=False),
        sa.ForeignKeyConstraint(['party_id'], ['party_info.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('party_id', 'giver_id', name='uq_match_party_giver'),
        sa.UniqueConstraint('party_id', 'receiver_id', name='uq_match_party_receiver')
    )
    op.create_index(op.f('ix_party_matches_party_id'), 'party_matches', ['party_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_party_matches_party_id'), table_name='party_matches')
    op.drop_table('party_matches')

    op.drop_index(op.f('ix_party_signups_uid'), table_name='party_signups')
    op.drop_index(op.f('ix_party_signups_party_id'), table_name='party_signups')
    op.drop_table('party_signups')

    op.drop_index(op.f('ix_party_info_matches_made'), table_name='party_info')
    op.drop_index(op.f('ix_party_info_ends_at'), table_name='party_info')
    op.drop_index(op.f('ix_party_info_admin_id'), table_name='party_info')
    op.drop_table('party_info')
