"""initial personnel schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # --- authz & audit ---
    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False, unique=True),
        sa.Column('service', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255)),
        _updated_at(),
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'])
    op.create_index('ix_permissions_service', 'permissions', ['service'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('description', sa.String(length=255)),
        _updated_at(),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), unique=True),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('discord_id', sa.String(length=32), unique=True),
        sa.Column('discord_username', sa.String(length=64)),
        sa.Column('password_hash', sa.String(length=255)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_discord_id', 'users', ['discord_id'])

    op.create_table('role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

    # --- employees & units ---
    op.create_table('employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('rank', sa.String(length=64), nullable=False),
        sa.Column('rank_level', sa.Integer(), nullable=False),
        sa.Column('badge_number', sa.String(length=16), unique=True),
        sa.Column('department', sa.String(length=255), nullable=False, server_default='Patrol'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('hired_at', sa.DateTime(timezone=True)),
        sa.Column('terminated_at', sa.DateTime(timezone=True)),
        _updated_at(),
    )
    op.create_index('ix_employees_rank_level', 'employees', ['rank_level'])
    op.create_index('ix_employees_status', 'employees', ['status'])

    op.create_table('rank_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('old_level', sa.Integer(), nullable=False),
        sa.Column('new_level', sa.Integer(), nullable=False),
        sa.Column('old_badge', sa.String(length=16)),
        sa.Column('new_badge', sa.String(length=16)),
        sa.Column('reason', sa.String(length=255)),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_rank_history_employee_id', 'rank_history', ['employee_id'])

    op.create_table('units',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
    )

    op.create_table('unit_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(length=64), nullable=False),
        sa.Column('external_role_id', sa.String(length=32), nullable=False, unique=True),
        sa.Column('is_base', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        sa.Column('description', sa.String(length=255)),
        sa.UniqueConstraint('unit_id', 'label', name='uq_unit_role_label'),
    )
    op.create_index('ix_unit_roles_unit_id', 'unit_roles', ['unit_id'])

    # --- HR applications ---
    op.create_table('applications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('applicant_name', sa.String(length=128), nullable=False),
        sa.Column('discord_id', sa.String(length=32)),
        sa.Column('discord_username', sa.String(length=64)),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='CRITERIA'),
        sa.Column('rejected_from', sa.String(length=16)),
        sa.Column('criteria_answers', sa.JSON()),
        sa.Column('answered_question_ids', sa.JSON()),
        sa.Column('onboarding_completed_ids', sa.JSON()),
        sa.Column('onboarding_bonus_emitted', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('id_card_path', sa.String(length=255)),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id')),
        sa.Column('created_by_id', sa.Integer()),
        sa.Column('processed_by_id', sa.Integer()),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        _updated_at(),
    )
    op.create_index('ix_applications_discord_id', 'applications', ['discord_id'])
    op.create_index('ix_applications_status', 'applications', ['status'])

    for table, text_col in (('application_criteria', 'name'), ('application_questions', 'question'), ('onboarding_items', 'label')):
        op.create_table(table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column(text_col, sa.String(length=255), nullable=False),
            sa.Column('sort_order', sa.Integer(), server_default='0'),
            sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        )

    op.create_table('blacklist',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('discord_id', sa.String(length=32), nullable=False, unique=True),
        sa.Column('username', sa.String(length=128)),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('added_by_id', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )

    # --- academy & uprank ---
    op.create_table('academy_modules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_academy_modules_category', 'academy_modules', ['category'])

    op.create_table('academy_progress',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_id', sa.Integer(), sa.ForeignKey('academy_modules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('completed', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('completed_by_id', sa.Integer()),
        sa.UniqueConstraint('employee_id', 'module_id', name='uq_academy_progress'),
    )

    op.create_table('uprank_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('current_rank', sa.String(length=64), nullable=False),
        sa.Column('target_rank', sa.String(length=64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('achievements', sa.Text()),
        sa.Column('is_academy_request', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('requested_by_id', sa.Integer(), nullable=False),
        sa.Column('processed_by_id', sa.Integer()),
        sa.Column('processed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        _updated_at(),
    )
    op.create_index('ix_uprank_requests_employee_id', 'uprank_requests', ['employee_id'])
    # at most one PENDING request per employee
    op.create_index(
        'uq_uprank_pending_employee', 'uprank_requests', ['employee_id'], unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table('uprank_locks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_uprank_locks_employee_id', 'uprank_locks', ['employee_id'])

    # --- treasury ---
    op.create_table('treasury',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('regular_cash', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('untracked_cash', sa.BigInteger(), nullable=False, server_default='0'),
        _updated_at(),
        sa.CheckConstraint('regular_cash >= 0', name='ck_treasury_regular_non_negative'),
        sa.CheckConstraint('untracked_cash >= 0', name='ck_treasury_untracked_non_negative'),
    )

    op.create_table('treasury_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('pool', sa.String(length=16), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_employee_id', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('amount > 0', name='ck_treasury_tx_amount_positive'),
    )
    op.create_index('ix_treasury_transactions_pool', 'treasury_transactions', ['pool'])
    op.create_index('ix_treasury_transactions_created_at', 'treasury_transactions', ['created_at'])

    # --- sanctions ---
    op.create_table('sanctions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('has_warning', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('warning_completed', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('has_fine', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('fine_amount', sa.Integer()),
        sa.Column('fine_completed', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('has_measure', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('measure', sa.Text()),
        sa.Column('measure_completed', sa.Boolean(), server_default=sa.text('0')),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('issued_by_id', sa.Integer(), nullable=False),
        sa.Column('revoked_by_id', sa.Integer()),
        sa.Column('revoked_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        _updated_at(),
    )
    op.create_index('ix_sanctions_employee_id', 'sanctions', ['employee_id'])
    op.create_index('ix_sanctions_status', 'sanctions', ['status'])

    # --- bonus ---
    op.create_table('bonus_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_type', sa.String(length=64), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('1')),
        _updated_at(),
    )

    op.create_table('bonus_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('config_id', sa.Integer(), sa.ForeignKey('bonus_configs.id'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('activity_type', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('reference_id', sa.String(length=64)),
        sa.Column('reference_type', sa.String(length=64)),
        sa.Column('week_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('week_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('paid_by_id', sa.Integer()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_bonus_payments_employee_id', 'bonus_payments', ['employee_id'])
    op.create_index('ix_bonus_payments_week_start', 'bonus_payments', ['week_start'])

    op.create_table('bonus_weeks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('week_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('week_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('total_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('payment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closed_at', sa.DateTime(timezone=True)),
        sa.Column('closed_by_id', sa.Integer()),
        sa.UniqueConstraint('week_start', 'week_end', name='uq_bonus_week'),
    )

    # --- outbox ---
    op.create_table('outbox_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('dispatched_at', sa.DateTime(timezone=True)),
        sa.Column('failed_at', sa.DateTime(timezone=True)),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text()),
    )
    op.create_index('ix_outbox_events_event_type', 'outbox_events', ['event_type'])
    op.create_index('ix_outbox_events_dispatched_at', 'outbox_events', ['dispatched_at'])
    op.create_index('ix_outbox_events_failed_at', 'outbox_events', ['failed_at'])


def downgrade():
    for tbl in [
        'outbox_events', 'bonus_weeks', 'bonus_payments', 'bonus_configs', 'sanctions', 'treasury_transactions',
        'treasury', 'uprank_locks', 'uprank_requests', 'academy_progress', 'academy_modules', 'blacklist',
        'onboarding_items', 'application_questions', 'application_criteria', 'applications', 'unit_roles', 'units',
        'rank_history', 'employees', 'audit_logs', 'user_roles', 'role_permissions', 'users', 'roles', 'permissions',
    ]:
        op.drop_table(tbl)
