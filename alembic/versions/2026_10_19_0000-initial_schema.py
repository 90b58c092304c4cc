"""initial_schema

Revision ID: initial_schema_2026
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_schema_2026'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _ledger_table(name: str) -> None:
    op.create_table(name,
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('merchant', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name=f'ck_{name}_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f(f'ix_{name}_id'), name, ['id'], unique=False)
    op.create_index(op.f(f'ix_{name}_user_id'), name, ['user_id'], unique=False)
    op.create_index(f'idx_{name}_user_date', name, ['user_id', 'date'], unique=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), server_default='user', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    _ledger_table('expenses')
    _ledger_table('incomes')

    op.create_table('banco_chile_keys',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('public_key', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('public_key')
    )
    op.create_index(op.f('ix_banco_chile_keys_id'), 'banco_chile_keys', ['id'], unique=False)
    op.create_index(op.f('ix_banco_chile_keys_user_id'), 'banco_chile_keys', ['user_id'], unique=False)

    op.create_table('bank_email_configs',
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('sender_patterns', sa.JSON(), nullable=False),
        sa.Column('extraction_instructions', sa.Text(), nullable=False),
        sa.Column('example_image_url', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bank_email_configs_bank_name'), 'bank_email_configs', ['bank_name'], unique=False)
    op.create_index(op.f('ix_bank_email_configs_id'), 'bank_email_configs', ['id'], unique=False)

    op.create_table('gmail_connections',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('gmail_address', sa.String(length=255), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('history_id', sa.String(length=64), nullable=True),
        sa.Column('watch_expiration', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gmail_address'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index(op.f('ix_gmail_connections_id'), 'gmail_connections', ['id'], unique=False)

    op.create_table('processed_emails',
        sa.Column('gmail_message_id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gmail_message_id')
    )
    op.create_index(op.f('ix_processed_emails_id'), 'processed_emails', ['id'], unique=False)
    op.create_index(op.f('ix_processed_emails_user_id'), 'processed_emails', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('processed_emails')
    op.drop_table('gmail_connections')
    op.drop_table('bank_email_configs')
    op.drop_table('banco_chile_keys')
    op.drop_table('incomes')
    op.drop_table('expenses')
    op.drop_table('users')
