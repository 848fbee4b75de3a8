"""
User Matcher Module
Reconciles user identities across Toggl, Timetastic and the canonical users table.

Phase 1 matches by email using both sources' staged user lists. Phase 2 covers
accounts missing from those lists (Timetastic omits deactivated users): user ids
referenced by staged absences and time entries that are still unmapped are matched
by deriving first.last@<domain> from the display name.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.database.models import StgTogglTimeEntry, StgTogglUser, StgTtAbsence, StgTtUser, User
from ternity_sync.transform.mappings import MappingStore
from ternity_sync.transform.records import (
    TogglTimeEntryRecord, TogglUserRecord, TtAbsenceRecord, TtUserRecord
)
from ternity_sync.utils.helpers import display_name_from_email, email_local_part_from_name
from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)

ID_COLUMNS = {'toggl': 'toggl_id', 'timetastic': 'timetastic_id'}


@dataclass
class MatchedUser:
    email: str
    user_id: Optional[int]
    toggl_id: Optional[str] = None
    timetastic_id: Optional[str] = None
    method: str = 'email'


@dataclass
class CreatedUser:
    email: str
    display_name: str
    source: str
    # None in dry-run: the user would be created
    user_id: Optional[int] = None


@dataclass
class UnmatchedUser:
    name: str
    source: str
    external_id: Optional[str] = None
    reason: str = ''


@dataclass
class MatchReport:
    apply: bool
    matched: List[MatchedUser] = field(default_factory=list)
    created: List[CreatedUser] = field(default_factory=list)
    unmatched: List[UnmatchedUser] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            f"{len(self.matched)} matched, {len(self.created)} "
            f"{'created' if self.apply else 'would be created'}, {len(self.unmatched)} unmatched"
        )


class UserMatcher:
    """
    Two-phase user reconciliation.

    With apply=False nothing is written; the report still partitions every
    identity exactly as an apply run would.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        candidate_domains: Sequence[str] = (),
        ignore_emails: Sequence[str] = (),
        ignore_names: Sequence[str] = ()
    ):
        self.db = db
        self.candidate_domains = [d.strip().lower() for d in candidate_domains if d and d.strip()]
        self.ignore_emails = {e.strip().lower() for e in ignore_emails if e}
        self.ignore_names = {n.strip().lower() for n in ignore_names if n}

    @classmethod
    def from_config(cls, db: DatabaseConnection, config: Dict) -> 'UserMatcher':
        return cls(
            db,
            candidate_domains=config.get('candidate_domains') or [],
            ignore_emails=config.get('ignore_emails') or [],
            ignore_names=config.get('ignore_names') or []
        )

    def match_users(self, apply: bool = False) -> MatchReport:
        logger.info(f"User matching: mode={'APPLY' if apply else 'DRY RUN'}")
        report = MatchReport(apply=apply)

        with self.db.session_scope() as session:
            mappings = MappingStore(session)
            planned = self._match_by_email(session, mappings, report, apply)
            self._match_by_name(session, mappings, report, apply, planned)

            if not apply:
                session.rollback()

        logger.info(f"User matching: {report.summary}")
        return report

    # ========================================
    # Phase 1: email
    # ========================================

    def _email_map(self, session: Session) -> Dict[str, Dict[str, object]]:
        email_map: Dict[str, Dict[str, object]] = OrderedDict()

        for row in session.query(StgTogglUser).order_by(StgTogglUser.id).all():
            record = TogglUserRecord.from_raw(row.raw_data)
            if record.email:
                email_map.setdefault(record.email, {})['toggl'] = record

        for row in session.query(StgTtUser).order_by(StgTtUser.id).all():
            record = TtUserRecord.from_raw(row.raw_data)
            if record.email:
                email_map.setdefault(record.email, {})['timetastic'] = record

        return email_map

    def _match_by_email(
        self,
        session: Session,
        mappings: MappingStore,
        report: MatchReport,
        apply: bool
    ) -> Dict[str, Dict[str, Optional[str]]]:
        """
        Returns:
            Identities phase 1 matched or created, by email ({'toggl': id, 'timetastic': id})
        """
        planned = {}

        for email, sources in self._email_map(session).items():
            if email in self.ignore_emails:
                logger.info(f"  Ignoring {email} (ignore list)")
                continue

            ids = {
                source: getattr(sources.get(source), 'external_id', None)
                for source in ID_COLUMNS
            }
            planned[email] = ids

            existing = find_user_by_email(session, email)
            if existing is not None:
                if apply:
                    for source, external_id in ids.items():
                        if external_id:
                            self._link(session, mappings, existing, source, external_id)
                report.matched.append(
                    MatchedUser(email, existing.id, ids['toggl'], ids['timetastic'])
                )
                continue

            display_name = display_name_from_email(email)
            source_label = '+'.join(source for source, external_id in ids.items() if external_id)
            user_id = None

            if apply:
                user = User(display_name=display_name, email=email)
                session.add(user)
                session.flush()
                for source, external_id in ids.items():
                    if external_id:
                        self._link(session, mappings, user, source, external_id)
                user_id = user.id

            report.created.append(CreatedUser(email, display_name, source_label, user_id))

        return planned

    # ========================================
    # Phase 2: name
    # ========================================

    def _referenced_users(self, session: Session) -> Dict[Tuple[str, str], Optional[str]]:
        """(source, external user id) -> display name, from staged absences and time entries."""
        referenced: Dict[Tuple[str, str], Optional[str]] = OrderedDict()

        for row in session.query(StgTtAbsence).order_by(StgTtAbsence.id).all():
            record = TtAbsenceRecord.from_raw(row.raw_data)
            if record.user_external_id:
                key = ('timetastic', record.user_external_id)
                referenced[key] = referenced.get(key) or record.user_name

        for row in session.query(StgTogglTimeEntry).order_by(StgTogglTimeEntry.id).all():
            record = TogglTimeEntryRecord.from_raw(row.raw_data)
            if record.user_external_id:
                key = ('toggl', record.user_external_id)
                referenced[key] = referenced.get(key) or record.user_name

        return referenced

    def _match_by_name(
        self,
        session: Session,
        mappings: MappingStore,
        report: MatchReport,
        apply: bool,
        planned: Dict[str, Dict[str, Optional[str]]]
    ) -> None:
        known = {source: mappings.mapped_external_ids(source, 'users') for source in ID_COLUMNS}
        for ids in planned.values():
            for source, external_id in ids.items():
                if external_id:
                    known[source].add(external_id)

        for (source, external_id), name in self._referenced_users(session).items():
            if external_id in known[source]:
                continue
            if name and name.strip().lower() in self.ignore_names:
                continue
            if not name:
                report.unmatched.append(UnmatchedUser('', source, external_id, 'no display name'))
                continue

            email, user = self._probe_candidates(session, name, planned)
            if email is None:
                logger.info(f"  Unmatched {source} user {external_id} ({name})")
                report.unmatched.append(UnmatchedUser(name, source, external_id, 'no candidate email'))
                continue

            if apply and user is not None:
                self._link(session, mappings, user, source, external_id)

            known[source].add(external_id)
            report.matched.append(MatchedUser(
                email,
                user.id if user is not None else None,
                toggl_id=external_id if source == 'toggl' else None,
                timetastic_id=external_id if source == 'timetastic' else None,
                method='name'
            ))

    def _probe_candidates(self, session: Session, name: str, planned: Dict) -> Tuple[Optional[str], Optional[User]]:
        local_part = email_local_part_from_name(name)
        if not local_part:
            return None, None

        for domain in self.candidate_domains:
            email = f"{local_part}@{domain}"
            user = find_user_by_email(session, email)
            if user is not None:
                return email, user
            # Dry-run: a user phase 1 would have created
            if email in planned:
                return email, None

        return None, None

    def _link(self, session: Session, mappings: MappingStore, user: User, source: str, external_id: str) -> None:
        """Map an external id to a user and backfill the user's id column if empty."""
        column = ID_COLUMNS[source]

        if not getattr(user, column):
            owner = session.query(User).filter(
                getattr(User, column) == external_id,
                User.id != user.id
            ).first()
            if owner is None:
                setattr(user, column, external_id)
            else:
                logger.warning(
                    f"  {source} id {external_id} already belongs to user {owner.id}; "
                    f"not copying it to user {user.id}"
                )

        mappings.upsert_mapping(source, 'users', external_id, 'users', user.id)


def find_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.query(User).filter(func.lower(User.email) == email.lower()).order_by(User.id).first()


def format_match_report(report: MatchReport) -> str:
    """Human-readable report for the command line."""
    lines = ['=== User Match Report ===']

    if report.matched:
        lines.append(f"\nMatched ({len(report.matched)}):")
        for m in report.matched:
            lines.append(
                f"  {m.email} -> {m.user_id if m.user_id is not None else '(new)'} "
                f"(toggl={m.toggl_id or '-'}, tt={m.timetastic_id or '-'}, by {m.method})"
            )

    if report.created:
        heading = 'Created' if report.apply else 'Would create'
        lines.append(f"\n{heading} ({len(report.created)}):")
        for c in report.created:
            user_id = f" -> {c.user_id}" if c.user_id is not None else ''
            lines.append(f"  {c.email}{user_id} \"{c.display_name}\" (source: {c.source})")

    if report.unmatched:
        lines.append(f"\nUnmatched ({len(report.unmatched)}):")
        for u in report.unmatched:
            lines.append(f"  {u.name or '?'} [{u.source} {u.external_id or '-'}] {u.reason}".rstrip())

    if not report.apply and report.created:
        lines.append('\nRun with --apply to create and link these users.')

    lines.append(f"\nSummary: {report.summary}")
    return '\n'.join(lines)
