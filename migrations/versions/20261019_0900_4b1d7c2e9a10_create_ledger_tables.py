"""create ledger tables

Revision ID: 4b1d7c2e9a10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1d7c2e9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name, **kwargs):
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, **kwargs)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('number', sa.String(255), nullable=False, unique=True),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('bank_name', sa.String(255)),
        sa.Column('branch', sa.String(255)),
        sa.Column('description', sa.Text()),
        _money('opening_balance'),
        _money('current_balance'),
        sa.Column('status', sa.String(16), nullable=False),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint("type IN ('bank','cash','mobile_wallet')", name='ck_account_type'),
        sa.CheckConstraint("status IN ('active','inactive')", name='ck_account_status'),
        sa.CheckConstraint('opening_balance >= 0', name='ck_account_opening_balance_positive'),
    )
    op.create_index('ix_accounts_status', 'accounts', ['status'])
    op.create_index('ix_accounts_deleted_at', 'accounts', ['deleted_at'])

    for table in ('income_categories', 'expense_categories'):
        singular = table.split('_')[0]
        op.create_table(
            table,
            sa.Column('id', sa.Uuid(), primary_key=True),
            sa.Column('name', sa.String(255), nullable=False, unique=True),
            sa.Column('code', sa.String(50), unique=True),
            sa.Column('description', sa.Text()),
            sa.Column('status', sa.String(16), nullable=False),
            *_timestamps(),
            sa.CheckConstraint("status IN ('active','inactive')", name=f'ck_{singular}_category_status'),
        )

    op.create_table(
        'identifier_sequences',
        sa.Column('scope', sa.String(64), primary_key=True),
        sa.Column('last_value', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'investors',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('investor_code', sa.String(32), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(32)),
        sa.Column('investor_type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active','inactive')", name='ck_investor_status'),
    )

    op.create_table(
        'funds',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('fund_code', sa.String(32), nullable=False, unique=True),
        sa.Column('investor_id', sa.Uuid(), sa.ForeignKey('investors.id'), nullable=False),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id'), nullable=False),
        _money('current_balance'),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('created_by', sa.String(64)),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active','closed')", name='ck_fund_status'),
    )
    op.create_index('ix_funds_investor_id', 'funds', ['investor_id'])
    op.create_index('ix_funds_investor_status', 'funds', ['investor_id', 'status'])
    op.create_index(
        'uix_funds_one_active_per_investor', 'funds', ['investor_id'], unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'fund_transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('transaction_number', sa.String(32), nullable=False, unique=True),
        sa.Column('fund_id', sa.Uuid(), sa.ForeignKey('funds.id'), nullable=False),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('direction', sa.String(8), nullable=False),
        _money('amount'),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('created_by', sa.String(64)),
        *_timestamps(),
        sa.CheckConstraint("direction IN ('in','out')", name='ck_fund_transaction_direction'),
        sa.CheckConstraint('amount > 0', name='ck_fund_transaction_amount_positive'),
    )
    op.create_index('ix_fund_transactions_fund_id', 'fund_transactions', ['fund_id'])
    op.create_index('ix_fund_transactions_account_id', 'fund_transactions', ['account_id'])

    op.create_table(
        'welfare_loans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('loan_number', sa.String(32), nullable=False, unique=True),
        sa.Column('teacher_id', sa.String(64), nullable=False),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id'), nullable=False),
        _money('loan_amount'),
        _money('total_paid'),
        _money('remaining_amount'),
        sa.Column('installment_count', sa.Integer(), nullable=False),
        sa.Column('paid_installments', sa.Integer(), nullable=False),
        _money('installment_amount'),
        sa.Column('loan_date', sa.Date(), nullable=False),
        sa.Column('first_installment_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('purpose', sa.Text()),
        sa.Column('remarks', sa.Text()),
        sa.Column('approved_by', sa.String(64)),
        sa.Column('created_by', sa.String(64)),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active','paid','cancelled')", name='ck_welfare_loan_status'),
        sa.CheckConstraint('loan_amount > 0', name='ck_welfare_loan_amount_positive'),
        sa.CheckConstraint('installment_count >= 1', name='ck_welfare_loan_installment_count'),
    )
    op.create_index('ix_welfare_loans_teacher_id', 'welfare_loans', ['teacher_id'])
    op.create_index('ix_welfare_loans_status', 'welfare_loans', ['status'])

    op.create_table(
        'welfare_loan_installments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('loan_id', sa.Uuid(), sa.ForeignKey('welfare_loans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        _money('amount'),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('paid_date', sa.Date()),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id')),
        sa.Column('payment_method', sa.String(64)),
        sa.Column('reference_number', sa.String(255)),
        sa.Column('remarks', sa.Text()),
        sa.Column('paid_by', sa.String(64)),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending','paid')", name='ck_welfare_installment_status'),
        sa.CheckConstraint('amount > 0', name='ck_welfare_installment_amount_positive'),
        sa.UniqueConstraint('loan_id', 'installment_number', name='uix_welfare_installment_number'),
    )
    op.create_index('ix_welfare_loan_installments_loan_id', 'welfare_loan_installments', ['loan_id'])

    op.create_table(
        'welfare_fund_donations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('donation_number', sa.String(32), nullable=False, unique=True),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id'), nullable=False),
        _money('amount'),
        sa.Column('donation_date', sa.Date(), nullable=False),
        sa.Column('donor_name', sa.String(255), nullable=False),
        sa.Column('payment_method', sa.String(64), nullable=False),
        sa.Column('reference_number', sa.String(255)),
        sa.Column('remarks', sa.Text()),
        sa.Column('created_by', sa.String(64)),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('amount > 0', name='ck_welfare_donation_amount_positive'),
    )
    op.create_index('ix_welfare_fund_donations_deleted_at', 'welfare_fund_donations', ['deleted_at'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('transaction_number', sa.String(32), nullable=False, unique=True),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('type', sa.String(16), nullable=False),
        _money('amount'),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('income_category_id', sa.Uuid(), sa.ForeignKey('income_categories.id')),
        sa.Column('expense_category_id', sa.Uuid(), sa.ForeignKey('expense_categories.id')),
        sa.Column('transfer_to_account_id', sa.Uuid(), sa.ForeignKey('accounts.id')),
        sa.Column('payment_method', sa.String(64)),
        sa.Column('reference_number', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('created_by', sa.String(64)),
        sa.Column('reversed_at', sa.DateTime(timezone=True)),
        sa.Column('welfare_loan_id', sa.Uuid(), sa.ForeignKey('welfare_loans.id')),
        sa.Column('welfare_installment_id', sa.Uuid(), sa.ForeignKey('welfare_loan_installments.id')),
        sa.Column('welfare_donation_id', sa.Uuid(), sa.ForeignKey('welfare_fund_donations.id')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "type IN ('income','expense','transfer','asset_purchase')", name='ck_transaction_type'
        ),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
    )
    op.create_index('ix_transactions_account_id', 'transactions', ['account_id'])
    op.create_index('ix_transactions_transfer_to_account_id', 'transactions', ['transfer_to_account_id'])
    op.create_index('ix_transactions_welfare_loan_id', 'transactions', ['welfare_loan_id'])
    op.create_index('ix_transactions_welfare_installment_id', 'transactions', ['welfare_installment_id'])
    op.create_index('ix_transactions_welfare_donation_id', 'transactions', ['welfare_donation_id'])
    op.create_index('ix_transactions_deleted_at', 'transactions', ['deleted_at'])
    op.create_index('ix_transactions_account_date', 'transactions', ['account_id', 'transaction_date'])

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('action', sa.String(16), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('subject_type', sa.String(64), nullable=False),
        sa.Column('subject_id', sa.Uuid()),
        sa.Column('actor_id', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("action IN ('create','update','delete')", name='ck_activity_action'),
    )
    op.create_index('ix_activity_logs_subject', 'activity_logs', ['subject_type', 'subject_id'])


def downgrade():
    op.drop_table('activity_logs')
    op.drop_table('transactions')
    op.drop_table('welfare_fund_donations')
    op.drop_table('welfare_loan_installments')
    op.drop_table('welfare_loans')
    op.drop_table('fund_transactions')
    op.drop_table('funds')
    op.drop_table('investors')
    op.drop_table('identifier_sequences')
    op.drop_table('expense_categories')
    op.drop_table('income_categories')
    op.drop_table('accounts')
