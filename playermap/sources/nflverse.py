"""
nflverse player reader (statistics provider).

Reads the player_stats release CSV (one row per player-week) and keeps
one record per player_id.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from playermap.config import NFLVERSE_STATS_URL_TEMPLATE, DEFAULT_NFLVERSE_SEASON
from playermap.errors import SourceFetchError
from playermap.identity.candidate_index import SourceRecord

logger = logging.getLogger(__name__)

WANTED_COLUMNS = {
    "player_id", "player_name", "player_display_name",
    "position", "recent_team", "team",
}


def _clean(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def records_from_frame(df: pd.DataFrame) -> list[SourceRecord]:
    """Collapse a player-stats frame to one SourceRecord per player_id."""
    if "player_id" not in df.columns:
        raise ValueError("player_id column missing")

    df = df.dropna(subset=["player_id"]).drop_duplicates(subset=["player_id"], keep="first")
    team_col = "recent_team" if "recent_team" in df.columns else "team"

    records = []
    for row in df.to_dict(orient="records"):
        name = _clean(row.get("player_display_name")) or _clean(row.get("player_name"))
        if not name:
            continue
        records.append(SourceRecord(
            id=str(row["player_id"]).strip(),
            display_name=name,
            position=_clean(row.get("position")),
            team=_clean(row.get(team_col)),
        ))
    return records


class NFLVersePlayerSource:
    """Loads nflverse players from a player_stats CSV (URL or local path)."""

    name = "nflverse"

    def __init__(
        self,
        location: Optional[Union[str, Path]] = None,
        season: int = DEFAULT_NFLVERSE_SEASON,
    ):
        self.location = location or NFLVERSE_STATS_URL_TEMPLATE.format(season=season)

    def fetch_records(self) -> list[SourceRecord]:
        logger.info(f"Fetching nflverse players: {self.location}")
        try:
            df = pd.read_csv(
                self.location,
                usecols=lambda c: c in WANTED_COLUMNS,
                dtype=str,
                low_memory=False,
            )
            records = records_from_frame(df)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise SourceFetchError(self.name, f"could not read {self.location}: {e}") from e

        logger.info(f"Loaded {len(records)} unique nflverse players")
        return records
