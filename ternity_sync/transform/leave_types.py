"""Timetastic leave types -> leave_types."""

from ternity_sync.database.models import LeaveType, StgTtLeaveType
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TtLeaveTypeRecord


class LeaveTypesTransform(BaseTransform):
    name = 'leave_types'
    source = 'timetastic'
    mapping_entity = 'leave_types'
    staging_model = StgTtLeaveType
    model = LeaveType

    def normalize(self, raw):
        return TtLeaveTypeRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        return {
            'name': record.name,
            'color': record.color,
            'deducted': record.deducted,
            'days_per_year': record.days_per_year,
        }
