"""create dueliste, duel, proposition and admin_action tables

Revision ID: 4c2d9a71b0e3
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9a71b0e3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'dueliste' not in existing_tables:
        op.create_table(
            'dueliste',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('pseudo', sa.String(length=64), nullable=False),
            sa.Column('statut', sa.String(length=16), nullable=False, server_default='ACTIF'),
        )
        op.create_index('ix_dueliste_pseudo', 'dueliste', ['pseudo'], unique=True)

    if 'duel' not in existing_tables:
        op.create_table(
            'duel',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('provocateur_id', sa.Integer(), sa.ForeignKey('dueliste.id'), nullable=False),
            sa.Column('adversaire_id', sa.Integer(), sa.ForeignKey('dueliste.id'), nullable=False),
            sa.Column('etat', sa.String(length=32), nullable=False, server_default='PROPOSE'),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('raison_refus', sa.String(length=200), nullable=True),
            sa.Column('date_proposition', sa.DateTime(timezone=True), nullable=False),
            sa.Column('date_programmee', sa.DateTime(timezone=True), nullable=True),
            sa.Column('date_acceptation', sa.DateTime(timezone=True), nullable=True),
            sa.Column('date_validation', sa.DateTime(timezone=True), nullable=True),
            sa.Column('date_derniere_proposition', sa.DateTime(timezone=True), nullable=True),
            sa.Column('score_provocateur', sa.Integer(), nullable=True),
            sa.Column('score_adversaire', sa.Integer(), nullable=True),
            sa.Column('vainqueur_id', sa.Integer(), sa.ForeignKey('dueliste.id'), nullable=True),
            sa.Column('valide_par_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('nb_contre_propositions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        )
        op.create_index('ix_duel_provocateur_id', 'duel', ['provocateur_id'])
        op.create_index('ix_duel_adversaire_id', 'duel', ['adversaire_id'])
        op.create_index('ix_duel_etat', 'duel', ['etat'])

    if 'proposition' not in existing_tables:
        op.create_table(
            'proposition',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('duel_id', sa.Integer(), sa.ForeignKey('duel.id', ondelete='CASCADE'), nullable=False),
            sa.Column('score_provocateur', sa.Integer(), nullable=False),
            sa.Column('score_adversaire', sa.Integer(), nullable=False),
            sa.Column('propose_par', sa.Integer(), sa.ForeignKey('dueliste.id'), nullable=False),
            sa.Column('date_proposition', sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint('duel_id', name='uq_proposition_duel_id'),
        )

    if 'admin_action' not in existing_tables:
        op.create_table(
            'admin_action',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('duel_id', sa.Integer(), nullable=False),
            sa.Column('admin_id', sa.Integer(), nullable=False),
            sa.Column('action', sa.String(length=32), nullable=False),
            sa.Column('raison', sa.Text(), nullable=True),
            sa.Column('etat_avant', sa.String(length=32), nullable=True),
            sa.Column('details', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_admin_action_duel_id', 'admin_action', ['duel_id'])


def downgrade():
    op.drop_index('ix_admin_action_duel_id', table_name='admin_action')
    op.drop_table('admin_action')
    op.drop_table('proposition')
    op.drop_index('ix_duel_etat', table_name='duel')
    op.drop_index('ix_duel_adversaire_id', table_name='duel')
    op.drop_index('ix_duel_provocateur_id', table_name='duel')
    op.drop_table('duel')
    op.drop_index('ix_dueliste_pseudo', table_name='dueliste')
    op.drop_table('dueliste')
