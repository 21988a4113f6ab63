"""
Sleeper player reader (draft provider).

The all-players endpoint returns a dict keyed by sleeper_id. Team defenses
and retired placeholders without a name are skipped.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from playermap.config import DEFAULT_HTTP_TIMEOUT, DEFAULT_SLEEPER_PLAYERS_URL
from playermap.errors import SourceFetchError
from playermap.identity.candidate_index import SourceRecord

logger = logging.getLogger(__name__)


def _display_name(player: dict[str, Any]) -> str:
    full = player.get("full_name")
    if not full:
        first = player.get("first_name") or ""
        last = player.get("last_name") or ""
        full = f"{first} {last}"
    return str(full).strip()


def parse_players(data: dict[str, Any]) -> list[SourceRecord]:
    """Turn the raw players payload into SourceRecords."""
    records = []
    skipped = 0

    for sleeper_id, player in data.items():
        if not isinstance(player, dict):
            skipped += 1
            continue

        name = _display_name(player)
        if not name:
            skipped += 1
            continue

        records.append(SourceRecord(
            id=str(player.get("player_id") or sleeper_id),
            display_name=name,
            position=player.get("position") or None,
            team=player.get("team") or None,
        ))

    if skipped:
        logger.debug(f"Skipped {skipped} Sleeper entries without a usable name")
    return records


class SleeperPlayerSource:
    """Fetches the Sleeper NFL player directory."""

    name = "sleeper"

    def __init__(
        self,
        url: str = DEFAULT_SLEEPER_PLAYERS_URL,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_records(self) -> list[SourceRecord]:
        logger.info(f"Fetching Sleeper players: {self.url}")
        try:
            r = self.session.get(self.url, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise SourceFetchError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceFetchError(self.name, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SourceFetchError(self.name, f"unexpected payload type {type(data).__name__}")

        records = parse_players(data)
        logger.info(f"Loaded {len(records)} Sleeper players")
        return records
