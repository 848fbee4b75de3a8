"""
Ternity Sync
ETL engine syncing Toggl Track and Timetastic into the Ternity time-tracking schema.
"""

__version__ = '1.0.0'
