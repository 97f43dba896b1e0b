"""Initial schema

Revision ID: 20261018_000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import func


# revision identifiers, used by Alembic.
revision = '20261018_000000'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=func.now()),
    ]


def upgrade() -> None:
    """
    Создание таблиц компаний, ТС, документов, штрафов, подписок, уведомлений и журналов
    """
    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_vehicles', sa.Integer(), nullable=False),
        sa.Column('max_users', sa.Integer(), nullable=False),
        sa.Column('price_monthly', sa.Numeric(10, 2), nullable=True),
        sa.Column('price_yearly', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index(op.f('ix_subscription_plans_id'), 'subscription_plans', ['id'], unique=False)
    op.create_index(op.f('ix_subscription_plans_is_active'), 'subscription_plans', ['is_active'], unique=False)

    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_companies_id'), 'companies', ['id'], unique=False)

    op.create_table(
        'company_subscriptions',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('payment_reference', sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.id'])
    )
    op.create_index(op.f('ix_company_subscriptions_id'), 'company_subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_company_subscriptions_company_id'), 'company_subscriptions', ['company_id'], unique=False)
    op.create_index(op.f('ix_company_subscriptions_plan_id'), 'company_subscriptions', ['plan_id'], unique=False)
    op.create_index(op.f('ix_company_subscriptions_end_date'), 'company_subscriptions', ['end_date'], unique=False)
    op.create_index(op.f('ix_company_subscriptions_status'), 'company_subscriptions', ['status'], unique=False)
    op.create_index('idx_company_subscriptions_status_end', 'company_subscriptions', ['status', 'end_date'], unique=False)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_company_id'), 'users', ['company_id'], unique=False)

    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('registration_number', sa.String(length=20), nullable=False),
        sa.Column('make', sa.String(length=100), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('vehicle_class', sa.String(length=100), nullable=True),
        sa.Column('fuel_type', sa.String(length=50), nullable=True),
        sa.Column('owner_name', sa.String(length=200), nullable=True),
        sa.Column('chassis_number', sa.String(length=100), nullable=True),
        sa.Column('engine_number', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('last_api_sync', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('registration_number'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_vehicles_id'), 'vehicles', ['id'], unique=False)
    op.create_index(op.f('ix_vehicles_company_id'), 'vehicles', ['company_id'], unique=False)
    op.create_index(op.f('ix_vehicles_status'), 'vehicles', ['status'], unique=False)
    op.create_index(op.f('ix_vehicles_last_api_sync'), 'vehicles', ['last_api_sync'], unique=False)
    op.create_index('idx_vehicles_company_sync', 'vehicles', ['company_id', 'last_api_sync'], unique=False)

    op.create_table(
        'vehicle_compliance',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('registration_valid_until', sa.Date(), nullable=True),
        sa.Column('fitness_valid_until', sa.Date(), nullable=True),
        sa.Column('insurance_valid_until', sa.Date(), nullable=True),
        sa.Column('puc_valid_until', sa.Date(), nullable=True),
        sa.Column('permit_valid_until', sa.Date(), nullable=True),
        sa.Column('tax_valid_until', sa.Date(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_vehicle_compliance_id'), 'vehicle_compliance', ['id'], unique=False)
    op.create_index(op.f('ix_vehicle_compliance_vehicle_id'), 'vehicle_compliance', ['vehicle_id'], unique=True)

    op.create_table(
        'challans',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('challan_number', sa.String(length=100), nullable=False),
        sa.Column('challan_date', sa.DateTime(), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('accused_name', sa.String(length=200), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('payment_url', sa.String(length=500), nullable=True),
        sa.Column('is_notified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('api_response_data', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('challan_number'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_challans_id'), 'challans', ['id'], unique=False)
    op.create_index(op.f('ix_challans_vehicle_id'), 'challans', ['vehicle_id'], unique=False)
    op.create_index(op.f('ix_challans_created_at'), 'challans', ['created_at'], unique=False)

    op.create_table(
        'challan_offences',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('challan_id', sa.Integer(), nullable=False),
        sa.Column('offence_name', sa.Text(), nullable=False),
        sa.Column('mva', sa.String(length=200), nullable=True),
        sa.Column('penalty', sa.Numeric(10, 2), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['challan_id'], ['challans.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_challan_offences_id'), 'challan_offences', ['id'], unique=False)
    op.create_index(op.f('ix_challan_offences_challan_id'), 'challan_offences', ['challan_id'], unique=False)

    op.create_table(
        'notification_settings',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('challan_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('registration_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('insurance_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('puc_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('fitness_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('tax_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('permit_expiry_alerts', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('system_notifications', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('sms_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('push_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index(op.f('ix_notification_settings_id'), 'notification_settings', ['id'], unique=False)
    op.create_index(op.f('ix_notification_settings_user_id'), 'notification_settings', ['user_id'], unique=True)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False, server_default='info'),
        sa.Column('reference_id', sa.String(length=100), nullable=True),
        sa.Column('email_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('sms_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('push_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='SET NULL')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_company_id'), 'notifications', ['company_id'], unique=False)
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_vehicle_id'), 'notifications', ['vehicle_id'], unique=False)
    op.create_index(op.f('ix_notifications_notification_type'), 'notifications', ['notification_type'], unique=False)
    op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)
    op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'], unique=False)
    op.create_index('idx_notifications_user_read', 'notifications', ['user_id', 'is_read'], unique=False)
    op.create_index('idx_notifications_company_created', 'notifications', ['company_id', 'created_at'], unique=False)

    op.create_table(
        'api_request_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('endpoint', sa.String(length=200), nullable=False),
        sa.Column('method', sa.String(length=10), nullable=False, server_default='POST'),
        sa.Column('request_params', sa.Text(), nullable=True),
        sa.Column('response_code', sa.Integer(), nullable=True),
        sa.Column('response_body', sa.Text(), nullable=True),
        sa.Column('execution_time_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL')
    )
    op.create_index(op.f('ix_api_request_logs_id'), 'api_request_logs', ['id'], unique=False)
    op.create_index(op.f('ix_api_request_logs_company_id'), 'api_request_logs', ['company_id'], unique=False)
    op.create_index(op.f('ix_api_request_logs_created_at'), 'api_request_logs', ['created_at'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=True),
        sa.Column('old_values', sa.Text(), nullable=True),
        sa.Column('new_values', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_company_id'), 'audit_logs', ['company_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)
    op.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)

    op.create_table(
        'system_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('module', sa.String(length=200), nullable=True),
        sa.Column('function', sa.String(length=200), nullable=True),
        sa.Column('line_number', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=100), nullable=True),
        sa.Column('event_category', sa.String(length=100), nullable=True),
        sa.Column('extra_data', sa.Text(), nullable=True),
        sa.Column('exception_type', sa.String(length=200), nullable=True),
        sa.Column('exception_message', sa.Text(), nullable=True),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_system_logs_id'), 'system_logs', ['id'], unique=False)
    op.create_index(op.f('ix_system_logs_level'), 'system_logs', ['level'], unique=False)
    op.create_index(op.f('ix_system_logs_event_type'), 'system_logs', ['event_type'], unique=False)
    op.create_index(op.f('ix_system_logs_event_category'), 'system_logs', ['event_category'], unique=False)
    op.create_index(op.f('ix_system_logs_created_at'), 'system_logs', ['created_at'], unique=False)
    op.create_index('idx_system_logs_level_created', 'system_logs', ['level', 'created_at'], unique=False)


def downgrade() -> None:
    """
    Удаление всех таблиц
    """
    for table in (
        'system_logs', 'audit_logs', 'api_request_logs', 'notifications',
        'notification_settings', 'challan_offences', 'challans', 'vehicle_compliance',
        'vehicles', 'users', 'company_subscriptions', 'companies', 'subscription_plans'
    ):
        op.drop_table(table)
