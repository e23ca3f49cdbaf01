"""users, jobs and applications

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('phone', sa.String(20), nullable=False, server_default=''),
        sa.Column('bio', sa.String(500), nullable=False, server_default=''),
        sa.Column('linkedin_profile', sa.String(200), nullable=False, server_default=''),
        sa.Column('github_profile', sa.String(200), nullable=False, server_default=''),
        sa.Column('portfolio_url', sa.String(200), nullable=False, server_default=''),
        sa.Column('role', sa.String(20), nullable=False, server_default='JobSeeker'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('company', sa.String(200), nullable=False),
        sa.Column('description', sa.String(500), nullable=False, server_default=''),
        sa.Column('requirements', sa.String(500), nullable=False, server_default=''),
        sa.Column('location', sa.String(100), nullable=False, server_default=''),
        sa.Column('salary', sa.Numeric(18, 2), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Open'),
        sa.Column('date_posted', sa.DateTime(timezone=True), nullable=False),
        sa.Column('application_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('job_type', sa.String(100), nullable=False, server_default=''),
        sa.Column('experience_level', sa.String(100), nullable=False, server_default=''),
        sa.Column('is_remote', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_jobs_company', 'jobs', ['company'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_date_posted', 'jobs', ['date_posted'])

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('job_id', sa.Integer(), sa.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('applicant_name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False, server_default=''),
        sa.Column('cover_letter', sa.Text(), nullable=False, server_default=''),
        sa.Column('resume_file_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='Submitted'),
        sa.Column('applied_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reviewed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('interview_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(500), nullable=False, server_default=''),
        sa.Column('reviewed_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('source', sa.String(200), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('job_id', 'user_id', name='uq_applications_job_user'),
    )
    op.create_index('ix_applications_job_id', 'applications', ['job_id'])
    op.create_index('ix_applications_user_id', 'applications', ['user_id'])
    op.create_index('ix_applications_status', 'applications', ['status'])
    op.create_index('ix_applications_applied_date', 'applications', ['applied_date'])
    op.create_index('ix_applications_email', 'applications', ['email'])


def downgrade() -> None:
    op.drop_table('applications')
    op.drop_table('jobs')
    op.drop_table('users')
