"""
Clients Module
Rate-limited HTTP clients for the upstream source APIs.
"""

from .base import RateLimitedClient, SourceAPIError, parse_retry_after
from .toggl import TogglClient, flatten_search_results
from .timetastic import TimetasticClient

__all__ = [
    'RateLimitedClient',
    'SourceAPIError',
    'parse_retry_after',
    'TogglClient',
    'flatten_search_results',
    'TimetasticClient'
]
