"""
Sync Status Module
Read-only queries behind the operator status surface.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ternity_sync.database.models import SyncRun, SyncScheduleState
from ternity_sync.utils.helpers import utc_now

MAX_PAGE_SIZE = 200


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_run(run: SyncRun) -> Dict:
    return {
        'id': run.id,
        'source': run.source,
        'entity': run.entity,
        'schedule_trigger': run.schedule_trigger,
        'status': run.status,
        'record_count': run.record_count,
        'retry_count': run.retry_count,
        'error_message': run.error_message,
        'started_at': _iso(run.started_at),
        'completed_at': _iso(run.completed_at),
    }


def get_scheduler_status(session: Session, now: datetime = None, stale_seconds: int = 300) -> Dict:
    """
    Scheduler liveness and the latest finished run per source/entity.

    The scheduler is alive when its heartbeat is younger than stale_seconds.
    """
    now = now or utc_now()
    state = session.query(SyncScheduleState).order_by(SyncScheduleState.id).first()

    heartbeat = state.scheduler_heartbeat_at if state else None
    alive = heartbeat is not None and (now - heartbeat).total_seconds() < stale_seconds

    latest_ids = session.query(func.max(SyncRun.id)).filter(
        SyncRun.status != 'running'
    ).group_by(SyncRun.source, SyncRun.entity)

    last_runs = session.query(SyncRun).filter(
        SyncRun.id.in_(latest_ids.scalar_subquery())
    ).order_by(SyncRun.source, SyncRun.entity).all()

    return {
        'alive': alive,
        'scheduler_started_at': _iso(state.scheduler_started_at) if state else None,
        'scheduler_heartbeat_at': _iso(heartbeat),
        'frequent': {
            'next_run_at': _iso(state.next_frequent_run_at) if state else None,
            'last_run_at': _iso(state.last_frequent_run_at) if state else None,
        },
        'daily': {
            'next_run_at': _iso(state.next_daily_run_at) if state else None,
            'last_run_at': _iso(state.last_daily_run_at) if state else None,
        },
        'last_runs': [serialize_run(run) for run in last_runs],
    }


def list_runs(
    session: Session,
    source: str = None,
    status: str = None,
    limit: int = 50,
    offset: int = 0
) -> Dict:
    """Run history, newest first."""
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))

    query = session.query(SyncRun)
    if source:
        query = query.filter(SyncRun.source == source)
    if status:
        query = query.filter(SyncRun.status == status)

    total = query.count()
    runs: List[SyncRun] = query.order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).offset(offset).limit(limit).all()

    return {
        'runs': [serialize_run(run) for run in runs],
        'total': total,
        'limit': limit,
        'offset': offset,
    }
