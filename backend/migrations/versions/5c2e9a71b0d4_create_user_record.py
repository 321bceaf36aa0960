"""create user_record table

Revision ID: 5c2e9a71b0d4
Revises: 
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a71b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'user_record' in set(insp.get_table_names()):
        return
    op.create_table(
        'user_record',
        sa.Column('user_id', sa.String(length=64), primary_key=True),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_user_record_best_score', 'user_record', ['best_score'])
    op.create_index('ix_user_record_best_streak', 'user_record', ['best_streak'])


def downgrade():
    op.drop_index('ix_user_record_best_streak', table_name='user_record')
    op.drop_index('ix_user_record_best_score', table_name='user_record')
    op.drop_table('user_record')
