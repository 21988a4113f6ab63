"""
Tests for the provider record readers.
"""

import pandas as pd
import pytest
import requests

from conftest import FakeResponse, FakeSession, rec
from playermap.errors import SourceFetchError
from playermap.sources import NFLVersePlayerSource, SleeperPlayerSource, StaticRecordSource
from playermap.sources.nflverse import records_from_frame
from playermap.sources.sleeper import parse_players


# =============================================================================
# nflverse
# =============================================================================

class TestNFLVerse:

    def test_reads_csv_one_record_per_player(self, tmp_path):
        csv = tmp_path / "player_stats.csv"
        csv.write_text(
            "player_id,player_name,player_display_name,position,recent_team,week,passing_yards\n"
            "00-0033873,P.Mahomes,Patrick Mahomes,QB,KC,1,291\n"
            "00-0033873,P.Mahomes,Patrick Mahomes,QB,KC,2,262\n"
            "00-0035704,D.Moore,D.J. Moore,WR,CHI,1,0\n"
            ",,Ghost Row,WR,CHI,1,0\n"
        )

        records = NFLVersePlayerSource(csv).fetch_records()

        assert records == [
            rec("00-0033873", "Patrick Mahomes", "QB", "KC"),
            rec("00-0035704", "D.J. Moore", "WR", "CHI"),
        ]

    def test_team_column_fallback(self):
        df = pd.DataFrame([
            {"player_id": "00-1", "player_name": "J.Smith", "position": "RB", "team": "NYJ"},
        ])
        assert records_from_frame(df) == [rec("00-1", "J.Smith", "RB", "NYJ")]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceFetchError, match="nflverse"):
            NFLVersePlayerSource(tmp_path / "nope.csv").fetch_records()

    def test_missing_id_column(self, tmp_path):
        csv = tmp_path / "bad.csv"
        csv.write_text("player_name,position\nX,QB\n")
        with pytest.raises(SourceFetchError):
            NFLVersePlayerSource(csv).fetch_records()

    def test_default_location_uses_season(self):
        assert NFLVersePlayerSource(season=2023).location.endswith("player_stats_2023.csv")


# =============================================================================
# Sleeper
# =============================================================================

PAYLOAD = {
    "4046": {
        "player_id": "4046", "full_name": "Patrick Mahomes",
        "position": "QB", "team": "KC",
    },
    "4983": {
        "player_id": "4983", "first_name": "DJ", "last_name": "Moore",
        "position": "WR", "team": "CHI",
    },
    "KC": {"player_id": "KC", "first_name": "", "last_name": "", "position": "DEF"},
    "9999": {"player_id": "9999", "full_name": "Free Agent", "position": "TE", "team": None},
}


class TestSleeper:

    def test_parse_players(self):
        records = parse_players(PAYLOAD)
        assert records == [
            rec("4046", "Patrick Mahomes", "QB", "KC"),
            rec("4983", "DJ Moore", "WR", "CHI"),
            rec("9999", "Free Agent", "TE", None),
        ]

    def test_fetch(self):
        session = FakeSession(FakeResponse(200, PAYLOAD))
        source = SleeperPlayerSource("https://sleeper.test/players", session=session, timeout=3)

        assert len(source.fetch_records()) == 3
        assert session.calls[0]["url"] == "https://sleeper.test/players"
        assert session.calls[0]["timeout"] == 3

    def test_http_error(self):
        source = SleeperPlayerSource(session=FakeSession(FakeResponse(503, {})))
        with pytest.raises(SourceFetchError, match="sleeper"):
            source.fetch_records()

    def test_network_error(self):
        source = SleeperPlayerSource(session=FakeSession(error=requests.Timeout("slow")))
        with pytest.raises(SourceFetchError):
            source.fetch_records()

    def test_invalid_json(self):
        source = SleeperPlayerSource(session=FakeSession(FakeResponse(200, json_error=True)))
        with pytest.raises(SourceFetchError):
            source.fetch_records()

    def test_unexpected_payload(self):
        source = SleeperPlayerSource(session=FakeSession(FakeResponse(200, ["not", "a", "dict"])))
        with pytest.raises(SourceFetchError):
            source.fetch_records()


class TestStaticSource:

    def test_returns_copy(self):
        source = StaticRecordSource([rec("1", "A B")])
        records = source.fetch_records()
        records.clear()
        assert len(source.fetch_records()) == 1
