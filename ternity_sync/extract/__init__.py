"""
Extract Module
Per-source extractors writing raw upstream records into staging.
"""

from .base import BaseExtractor, ExtractionSummary
from .staging import StagingStore
from .toggl import TogglExtractor, TOGGL_ENTITIES
from .timetastic import TimetasticExtractor, TIMETASTIC_ENTITIES

__all__ = [
    'BaseExtractor',
    'ExtractionSummary',
    'StagingStore',
    'TogglExtractor',
    'TOGGL_ENTITIES',
    'TimetasticExtractor',
    'TIMETASTIC_ENTITIES'
]
