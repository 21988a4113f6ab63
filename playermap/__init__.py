"""
playermap - cross-provider player identity mapping.

Links nflverse statistics records to Sleeper draft records by name,
keeps a durable mapping table with confidence scores, queues ambiguous
players for human review and reports on mapping health.

Sub-packages:
    db: sqlite mapping store
    identity: name normalization, scoring, matching, bulk job, review, analytics
    sources: provider record readers (Sleeper, nflverse)
    lib: auth client and the external operations facade
"""

__version__ = "0.3.0"
