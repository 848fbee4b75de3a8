"""
Transform Module
Staging -> canonical transforms, their dependency graph and the fixed run order.
"""

from typing import Dict, List, Sequence, Tuple

from .base import BaseTransform, TransformCounts
from .context import TransformContext
from .mappings import MappingStore
from .clients import ClientsTransform
from .projects import ProjectsTransform
from .labels import LabelsTransform
from .leave_types import LeaveTypesTransform
from .time_entries import TimeEntriesTransform
from .absences import AbsencesTransform
from .users import UserMatcher, MatchReport, format_match_report

from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)

TRANSFORMS = {
    'clients': ClientsTransform,
    'projects': ProjectsTransform,
    'labels': LabelsTransform,
    'leave_types': LeaveTypesTransform,
    'time_entries': TimeEntriesTransform,
    'absences': AbsencesTransform,
}

# entity -> entities whose canonical rows it references.
# 'users' is produced by the user matcher, which runs before any transform.
DEPENDENCIES = {
    'clients': (),
    'projects': ('clients',),
    'labels': (),
    'leave_types': (),
    'time_entries': ('users', 'projects', 'labels'),
    'absences': ('users', 'leave_types'),
}

TRANSFORM_ORDER = ('clients', 'projects', 'labels', 'leave_types', 'time_entries', 'absences')


def validate_order(order: Sequence[str] = TRANSFORM_ORDER, provided: Sequence[str] = ('users',)) -> None:
    """
    Check that every dependency of an entity comes before it.

    Raises:
        ValueError: Naming the first entity whose dependency is out of order or unknown
    """
    seen = set(provided)
    for entity in order:
        if entity not in DEPENDENCIES:
            raise ValueError(f"Unknown transform entity: {entity}")
        missing = [dep for dep in DEPENDENCIES[entity] if dep not in seen]
        if missing:
            raise ValueError(f"Transform '{entity}' must run after: {', '.join(missing)}")
        seen.add(entity)


def run_transforms(
    db,
    tracker,
    entities: Sequence[str] = None,
    context: TransformContext = None
) -> Tuple[Dict[str, TransformCounts], List[str]]:
    """
    Run transforms in dependency order; a failing transform does not stop the rest.

    Args:
        entities: Subset to run (kept in the fixed order); default all

    Returns:
        (counts per succeeded entity, names of failed entities)
    """
    unknown = [e for e in entities or () if e not in TRANSFORMS]
    if unknown:
        raise ValueError(f"Unknown transform entities: {', '.join(unknown)}")

    validate_order()
    context = context or TransformContext()
    to_run = [e for e in TRANSFORM_ORDER if not entities or e in entities]

    results = {}
    failures = []
    for entity in to_run:
        try:
            results[entity] = TRANSFORMS[entity](db, tracker, context).run()
        except Exception:
            failures.append(entity)

    if failures:
        logger.warning(f"Transforms failed: {', '.join(failures)}")

    return results, failures


__all__ = [
    'BaseTransform',
    'TransformCounts',
    'TransformContext',
    'MappingStore',
    'ClientsTransform',
    'ProjectsTransform',
    'LabelsTransform',
    'LeaveTypesTransform',
    'TimeEntriesTransform',
    'AbsencesTransform',
    'UserMatcher',
    'MatchReport',
    'format_match_report',
    'TRANSFORMS',
    'DEPENDENCIES',
    'TRANSFORM_ORDER',
    'validate_order',
    'run_transforms',
]
