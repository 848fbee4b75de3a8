"""
Transform Context Module
Per-run cache of the default rows transforms fall back to when an upstream
reference cannot be resolved.
"""

from typing import Callable, Dict

from sqlalchemy.orm import Session

from ternity_sync.database.models import Client, LeaveType, Project

UNASSIGNED_CLIENT = 'Unassigned'
NO_PROJECT = 'No Project'
ORGANIZATION_CLIENT = 'Organization'
LEAVE_PROJECT = 'Leave'
OTHER_LEAVE_TYPE = 'Other'


class TransformContext:
    """
    Finds or creates each default row at most once per run.

    Call reset() after a rolled-back transaction, since cached ids may then
    point at rows that were never committed.
    """

    def __init__(self):
        self._ids: Dict[str, int] = {}

    def reset(self) -> None:
        self._ids.clear()

    def _cached(self, key: str, session: Session, factory: Callable[[Session], int]) -> int:
        if key not in self._ids:
            self._ids[key] = factory(session)
        return self._ids[key]

    @staticmethod
    def _client(session: Session, name: str) -> Client:
        client = session.query(Client).filter(Client.name == name).order_by(Client.id).first()
        if client is None:
            client = Client(name=name)
            session.add(client)
            session.flush()
        return client

    @staticmethod
    def _project(session: Session, name: str, client_id: int) -> Project:
        project = session.query(Project).filter(
            Project.name == name,
            Project.client_id == client_id
        ).order_by(Project.id).first()
        if project is None:
            project = Project(name=name, client_id=client_id)
            session.add(project)
            session.flush()
        return project

    def default_client_id(self, session: Session) -> int:
        """Client for projects whose upstream client is unknown."""
        return self._cached(
            'default_client', session,
            lambda s: self._client(s, UNASSIGNED_CLIENT).id
        )

    def no_project_id(self, session: Session) -> int:
        """Project for time entries whose upstream project is unknown."""
        return self._cached(
            'no_project', session,
            lambda s: self._project(s, NO_PROJECT, self.default_client_id(s)).id
        )

    def leave_project_id(self, session: Session) -> int:
        """Project every leave request is booked against."""
        return self._cached(
            'leave_project', session,
            lambda s: self._project(s, LEAVE_PROJECT, self._client(s, ORGANIZATION_CLIENT).id).id
        )

    def default_leave_type_id(self, session: Session) -> int:
        """Leave type for absences whose upstream leave type is unknown."""

        def find_or_create(s: Session) -> int:
            leave_type = s.query(LeaveType).filter(
                LeaveType.name == OTHER_LEAVE_TYPE
            ).order_by(LeaveType.id).first()
            if leave_type is None:
                leave_type = LeaveType(name=OTHER_LEAVE_TYPE, days_per_year=0, deducted=False)
                s.add(leave_type)
                s.flush()
            return leave_type.id

        return self._cached('default_leave_type', session, find_or_create)
