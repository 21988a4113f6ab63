"""Record-source capability shared by the bulk job and the review queue."""

from __future__ import annotations

from typing import Iterable, Protocol

from playermap.identity.candidate_index import SourceRecord


class RecordSource(Protocol):
    """Anything that can produce one provider's full record set."""

    name: str

    def fetch_records(self) -> list[SourceRecord]:
        ...


class StaticRecordSource:
    """A record set that was fetched (or built) ahead of time."""

    def __init__(self, records: Iterable[SourceRecord], name: str = "static"):
        self.name = name
        self._records = list(records)

    def fetch_records(self) -> list[SourceRecord]:
        return list(self._records)
