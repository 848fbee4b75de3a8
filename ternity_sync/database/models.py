"""
SQLAlchemy ORM Models
Defines the staging, bookkeeping and canonical tables the sync engine touches.
"""

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, ForeignKey,
    Integer, String, Text, UniqueConstraint, Index, Float
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, declared_attr

from ternity_sync.utils.helpers import utc_now

Base = declarative_base()

# Raw upstream payloads; JSONB on PostgreSQL
JsonColumn = JSON().with_variant(JSONB(), 'postgresql')


# ============================================
# SYNC BOOKKEEPING MODELS
# ============================================

class SyncRun(Base):
    """One extraction or transform attempt."""
    __tablename__ = 'sync_runs'

    id = Column(Integer, primary_key=True)
    source = Column(String(50), nullable=False)  # 'toggl', 'timetastic', 'pipeline'
    entity = Column(String(100), nullable=False)
    schedule_trigger = Column(String(20), nullable=False, default='manual')  # 'frequent', 'daily', 'manual'
    status = Column(String(20), nullable=False, default='running')  # 'running', 'completed', 'failed'
    record_count = Column(Integer)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    started_at = Column(DateTime, nullable=False, default=utc_now)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index('idx_sync_runs_source_entity', 'source', 'entity'),
        Index('idx_sync_runs_started', 'started_at'),
    )


class SyncMapping(Base):
    """Durable (source, entity, external_id) -> canonical row mapping."""
    __tablename__ = 'sync_mappings'

    id = Column(Integer, primary_key=True)
    source = Column(String(50), nullable=False)
    entity = Column(String(100), nullable=False)
    external_id = Column(String(255), nullable=False)
    target_table = Column(String(100), nullable=False)
    target_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint('source', 'entity', 'external_id', name='uq_sync_mapping_source_entity_ext'),
    )


class SyncScheduleState(Base):
    """Singleton row shared by the scheduler process and the status surface."""
    __tablename__ = 'sync_schedule_state'

    id = Column(Integer, primary_key=True)
    scheduler_started_at = Column(DateTime)
    scheduler_heartbeat_at = Column(DateTime)
    next_frequent_run_at = Column(DateTime)
    next_daily_run_at = Column(DateTime)
    last_frequent_run_at = Column(DateTime)
    last_daily_run_at = Column(DateTime)


# ============================================
# STAGING MODELS
# ============================================

class StagingMixin:
    """Columns shared by every staging table."""

    id = Column(Integer, primary_key=True)
    external_id = Column(String(255), nullable=False, unique=True)
    raw_data = Column(JsonColumn, nullable=False)
    synced_at = Column(DateTime, nullable=False, default=utc_now)

    @declared_attr
    def sync_run_id(cls):
        return Column(Integer, ForeignKey('sync_runs.id', ondelete='SET NULL'))


class StgTogglUser(StagingMixin, Base):
    __tablename__ = 'stg_toggl_users'


class StgTogglClient(StagingMixin, Base):
    __tablename__ = 'stg_toggl_clients'


class StgTogglProject(StagingMixin, Base):
    __tablename__ = 'stg_toggl_projects'


class StgTogglTag(StagingMixin, Base):
    __tablename__ = 'stg_toggl_tags'


class StgTogglTimeEntry(StagingMixin, Base):
    __tablename__ = 'stg_toggl_time_entries'

    # Calendar date of the raw `start`, used for resume and per-year counts
    entry_date = Column(Date, index=True)


class StgTtUser(StagingMixin, Base):
    __tablename__ = 'stg_tt_users'


class StgTtDepartment(StagingMixin, Base):
    __tablename__ = 'stg_tt_departments'


class StgTtLeaveType(StagingMixin, Base):
    __tablename__ = 'stg_tt_leave_types'


class StgTtAbsence(StagingMixin, Base):
    __tablename__ = 'stg_tt_absences'


# ============================================
# CANONICAL MODELS
# ============================================

class User(Base):
    """Canonical user, created and linked by the user matcher."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True)
    toggl_id = Column(String(100), unique=True)
    timetastic_id = Column(String(100), unique=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Client(Base):
    __tablename__ = 'clients'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Project(Base):
    __tablename__ = 'projects'

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False)
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=False, default='#00D4AA')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Label(Base):
    __tablename__ = 'labels'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class LeaveType(Base):
    __tablename__ = 'leave_types'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    days_per_year = Column(Float, nullable=False, default=0)
    color = Column(String(20))
    deducted = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class TimeEntry(Base):
    __tablename__ = 'time_entries'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    description = Column(Text)
    started_at = Column(DateTime)
    stopped_at = Column(DateTime)
    duration_seconds = Column(Integer)
    billable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index('idx_time_entries_user_started', 'user_id', 'started_at'),
    )


class EntryLabel(Base):
    """Time entry <-> label association."""
    __tablename__ = 'entry_labels'

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey('time_entries.id', ondelete='CASCADE'), nullable=False)
    label_id = Column(Integer, ForeignKey('labels.id', ondelete='CASCADE'), nullable=False)

    __table_args__ = (
        UniqueConstraint('entry_id', 'label_id', name='uq_entry_label'),
    )


class LeaveRequest(Base):
    __tablename__ = 'leave_requests'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    leave_type_id = Column(Integer, ForeignKey('leave_types.id'), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    days_count = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default='pending')  # 'pending', 'approved', 'rejected', 'cancelled'
    note = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
