"""
Provider record readers.

Each reader exposes fetch_records() -> list[SourceRecord] and raises
SourceFetchError when its record set cannot be loaded.

Modules:
    base: RecordSource protocol and StaticRecordSource
    sleeper: Sleeper all-players endpoint (draft provider)
    nflverse: nflverse player stats release CSV (statistics provider)
"""

from playermap.sources.base import RecordSource, StaticRecordSource
from playermap.sources.nflverse import NFLVersePlayerSource
from playermap.sources.sleeper import SleeperPlayerSource

__all__ = [
    "RecordSource",
    "StaticRecordSource",
    "NFLVersePlayerSource",
    "SleeperPlayerSource",
]
