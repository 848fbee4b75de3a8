"""
Absences Transform Module
Timetastic absences -> leave_requests, all booked against the "Leave" project.
"""

from ternity_sync.database.models import LeaveRequest, StgTtAbsence
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TtAbsenceRecord


class AbsencesTransform(BaseTransform):
    name = 'absences'
    source = 'timetastic'
    mapping_entity = 'absences'
    staging_model = StgTtAbsence
    model = LeaveRequest

    def prepare(self, session, mappings):
        mappings.load('timetastic', 'users')
        mappings.load('timetastic', 'leave_types')

    def normalize(self, raw):
        return TtAbsenceRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        if not record.user_external_id:
            self.logger.warning(f"  Skipping absence {record.external_id}: no user id")
            return None

        user_id = mappings.find_target_id('timetastic', 'users', record.user_external_id)
        if user_id is None:
            self.logger.warning(
                f"  Skipping absence {record.external_id}: "
                f"no user mapping for timetastic user {record.user_external_id}"
            )
            return None

        if record.start_date is None or record.end_date is None:
            self.logger.warning(f"  Skipping absence {record.external_id}: missing start or end date")
            return None

        leave_type_id = mappings.find_target_id('timetastic', 'leave_types', record.leave_type_external_id)
        if leave_type_id is None:
            leave_type_id = self.context.default_leave_type_id(session)

        return {
            'user_id': user_id,
            'project_id': self.context.leave_project_id(session),
            'leave_type_id': leave_type_id,
            'start_date': record.start_date,
            'end_date': record.end_date,
            'days_count': record.days_count,
            'status': record.status,
            'note': record.note,
        }
