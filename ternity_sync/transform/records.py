"""
Normalized Records Module
Typed views over raw staged JSON. Each source names and cases its fields
differently; every lookup of a raw field happens here, once per record.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from ternity_sync.utils.helpers import (
    external_id_of, first_present, parse_date, parse_datetime, to_utc_naive
)

ABSENCE_STATUS_MAP = {
    'approved': 'approved',
    'pending': 'pending',
    'declined': 'rejected',
    'rejected': 'rejected',
    'cancelled': 'cancelled',
    'canceled': 'cancelled',
}


def map_absence_status(value: Optional[str]) -> str:
    """Upstream absence status -> canonical status; unknown values become 'pending'."""
    if not isinstance(value, str):
        return 'pending'
    return ABSENCE_STATUS_MAP.get(value.strip().lower(), 'pending')


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_id(value) -> Optional[str]:
    if value is None or value == '' or value == 0:
        return None
    return str(value)


def _lower_email(value) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip().lower()


# ============================================
# TOGGL
# ============================================

@dataclass
class TogglUserRecord:
    # The account user_id is what time entries reference; `id` is organization-level
    external_id: Optional[str]
    email: Optional[str]
    name: Optional[str]

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TogglUserRecord':
        return cls(
            external_id=_optional_id(first_present(raw, 'user_id', 'id', 'Id')),
            email=_lower_email(first_present(raw, 'email', 'Email')),
            name=first_present(raw, 'name', 'fullname', 'username'),
        )


@dataclass
class TogglClientRecord:
    external_id: str
    name: str

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TogglClientRecord':
        return cls(
            external_id=external_id_of(raw),
            name=first_present(raw, 'name', 'Name', default='Unknown Client'),
        )


@dataclass
class TogglProjectRecord:
    external_id: str
    name: str
    color: str
    client_external_id: Optional[str]
    active: bool = True

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TogglProjectRecord':
        return cls(
            external_id=external_id_of(raw),
            name=first_present(raw, 'name', 'Name', default='Unknown Project'),
            color=first_present(raw, 'color', default='#00D4AA'),
            client_external_id=_optional_id(first_present(raw, 'client_id', 'cid')),
            active=bool(first_present(raw, 'active', default=True)),
        )


@dataclass
class TogglTagRecord:
    external_id: str
    name: str

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TogglTagRecord':
        return cls(
            external_id=external_id_of(raw),
            name=first_present(raw, 'name', 'Name', default='Unknown Tag'),
        )


@dataclass
class TogglTimeEntryRecord:
    external_id: str
    user_external_id: Optional[str]
    user_name: Optional[str]
    project_external_id: Optional[str]
    description: str
    started_at: Optional[datetime]
    stopped_at: Optional[datetime]
    duration_seconds: Optional[int]
    billable: bool
    tag_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TogglTimeEntryRecord':
        # Flattened search rows carry `seconds`; the REST shape uses `duration`
        duration = first_present(raw, 'seconds', 'duration')
        return cls(
            external_id=external_id_of(raw),
            user_external_id=_optional_id(first_present(raw, 'user_id', 'uid')),
            user_name=first_present(raw, 'username', 'user_name'),
            project_external_id=_optional_id(first_present(raw, 'project_id', 'pid')),
            description=raw.get('description') or '',
            started_at=to_utc_naive(parse_datetime(raw.get('start'))),
            stopped_at=to_utc_naive(parse_datetime(raw.get('stop'))),
            duration_seconds=int(duration) if _is_number(duration) and duration > 0 else None,
            billable=bool(raw.get('billable', False)),
            tag_ids=[str(t) for t in raw.get('tag_ids') or []],
        )


# ============================================
# TIMETASTIC
# ============================================

@dataclass
class TtUserRecord:
    external_id: Optional[str]
    email: Optional[str]
    name: Optional[str]

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TtUserRecord':
        first = first_present(raw, 'firstname', 'FirstName', 'firstName')
        last = first_present(raw, 'surname', 'Surname', 'lastName')
        name = ' '.join(p for p in (first, last) if p) or None
        return cls(
            external_id=_optional_id(first_present(raw, 'id', 'Id')),
            email=_lower_email(first_present(raw, 'email', 'Email')),
            name=name,
        )


@dataclass
class TtLeaveTypeRecord:
    external_id: str
    name: str
    color: Optional[str]
    deducted: bool
    days_per_year: float

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TtLeaveTypeRecord':
        deducted = first_present(raw, 'deducted', 'Deducted')
        allowance = first_present(raw, 'allowance', 'Allowance')
        return cls(
            external_id=external_id_of(raw),
            name=first_present(raw, 'name', 'Name', default='Unknown Leave Type'),
            color=first_present(raw, 'color', 'Color'),
            deducted=bool(deducted) if isinstance(deducted, (bool, int, float)) else True,
            days_per_year=float(allowance) if _is_number(allowance) else 0,
        )


@dataclass
class TtAbsenceRecord:
    external_id: str
    user_external_id: Optional[str]
    user_name: Optional[str]
    leave_type_external_id: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    days_count: int
    status: str
    note: Optional[str]

    @classmethod
    def from_raw(cls, raw: Dict) -> 'TtAbsenceRecord':
        days = first_present(raw, 'deductionDays', 'DeductionDays', 'duration')
        return cls(
            external_id=external_id_of(raw),
            user_external_id=_optional_id(first_present(raw, 'userId', 'UserId', 'user_id')),
            user_name=first_present(raw, 'userName', 'UserName', 'user_name'),
            leave_type_external_id=_optional_id(
                first_present(raw, 'leaveTypeId', 'LeaveTypeId', 'leave_type_id')
            ),
            start_date=parse_date(first_present(raw, 'startDate', 'StartDate', 'start_date')),
            end_date=parse_date(first_present(raw, 'endDate', 'EndDate', 'end_date')),
            days_count=max(1, round(days)) if _is_number(days) else 1,
            status=map_absence_status(first_present(raw, 'status', 'Status', default='Pending')),
            note=first_present(raw, 'reason', 'Reason'),
        )
