"""
vstation - assessment and progression engine for virtual workstations.

Scores case submissions, classifies learner errors, grants achievements
and career levels, ranks competitions, and keeps learner progress
reconciled between a local cache and a remote store.
"""

__version__ = "1.0.0"
