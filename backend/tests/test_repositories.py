import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy.orm import Session

from backend import db
from backend.repositories import (
    DuplicateError,
    MockDataError,
    MockMatchRepository,
    MockStockRepository,
    NotFoundError,
    SqlMatchRepository,
    SqlStockRepository,
    SqlUserRepository,
)

MATCHES = {
    "teams": [
        {"id": "t1", "name": "Home FC", "country": "England", "elo": 1800},
        {"id": "t2", "name": "Away FC", "country": "England", "elo": 1700},
    ],
    "matches": [
        {
            "id": "m1",
            "league": "Premier League",
            "home_team_id": "t1",
            "away_team_id": "t2",
            "start_time": "2026-11-01T15:00:00Z",
            "status": "scheduled",
            "venue": "Home Ground",
        }
    ],
    "odds": [
        {"id": "o1", "match_id": "m1", "bookmaker": "B", "market": "1X2", "outcome": "home", "price": 1.9},
        {"id": "o2", "match_id": "m1", "bookmaker": "B", "market": "1X2", "outcome": "away", "price": 4.1},
    ],
}

STOCKS = {
    "stocks": [
        {"symbol": "AAPL", "name": "Apple", "market_cap": 100.0, "sector": "Technology"},
        {"symbol": "MSFT", "name": "Microsoft", "market_cap": 90.0, "sector": "Technology"},
    ],
    "prices": [
        {"symbol": "AAPL", "open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 10},
        {"symbol": "ZZZZ", "open": 1, "high": 1, "low": 1, "close": 1, "volume": 1},
    ],
}


class MockRepositoryTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dir = Path(self.tmp.name)

    def write(self, name, payload):
        path = self.dir / name
        path.write_text(json.dumps(payload) if not isinstance(payload, str) else payload, encoding="utf-8")
        return path


class MockMatchRepositoryTests(MockRepositoryTestCase):
    def test_loads_matches_with_teams_and_odds(self):
        repo = MockMatchRepository.from_file(self.write("matches.json", MATCHES))
        matches = repo.list_matches()
        self.assertEqual([m.id for m in matches], ["m1"])
        match = repo.get_match("m1")
        self.assertEqual(match.home_team.name, "Home FC")
        self.assertEqual(match.away_team.elo, 1700.0)
        self.assertEqual(match.start_time, datetime(2026, 11, 1, 15, 0, tzinfo=timezone.utc))
        self.assertEqual([o.outcome for o in repo.list_odds("m1")], ["home", "away"])
        self.assertEqual(repo.list_odds("unknown"), [])

    def test_unknown_match_raises(self):
        repo = MockMatchRepository.from_file(self.write("matches.json", MATCHES))
        with self.assertRaises(NotFoundError):
            repo.get_match("nope")

    def test_missing_file_raises_os_error(self):
        with self.assertRaises(OSError):
            MockMatchRepository.from_file(self.dir / "matches.json")

    def test_invalid_json_raises_mock_data_error(self):
        with self.assertRaises(MockDataError):
            MockMatchRepository.from_file(self.write("matches.json", "{not json"))

    def test_missing_required_field_raises_mock_data_error(self):
        with self.assertRaises(MockDataError):
            MockMatchRepository.from_file(self.write("matches.json", {"teams": [{"name": "x"}]}))

    def test_as_dict_nests_teams(self):
        repo = MockMatchRepository.from_file(self.write("matches.json", MATCHES))
        payload = repo.get_match("m1").as_dict()
        self.assertEqual(payload["home_team_id"], "t1")
        self.assertEqual(payload["home_team"]["name"], "Home FC")
        self.assertEqual(payload["start_time"], "2026-11-01T15:00:00+00:00")


class MockStockRepositoryTests(MockRepositoryTestCase):
    def test_loads_stocks_and_prices(self):
        repo = MockStockRepository.from_file(self.write("stocks.json", STOCKS))
        self.assertEqual([s.symbol for s in repo.list_stocks()], ["AAPL", "MSFT"])
        self.assertEqual(repo.get_stock("aapl").name, "Apple")
        self.assertEqual(repo.latest_price("AAPL").close, 1.5)

    def test_stock_without_price(self):
        repo = MockStockRepository.from_file(self.write("stocks.json", STOCKS))
        with self.assertRaises(NotFoundError):
            repo.latest_price("MSFT")
        self.assertEqual(repo.price_history("MSFT"), [])
        with self.assertRaises(NotFoundError):
            repo.get_stock("ZZZZ")

    def test_price_history_files_are_sorted_newest_first(self):
        self.write(
            "prices_AAPL.json",
            {
                "symbol": "AAPL",
                "prices": [
                    {"timestamp": "2026-10-01T00:00:00Z", "open": 1, "high": 1, "low": 1, "close": 10, "volume": 1},
                    {"timestamp": "2026-10-03T00:00:00Z", "open": 1, "high": 1, "low": 1, "close": 30, "volume": 1},
                    {"timestamp": "2026-10-02T00:00:00Z", "open": 1, "high": 1, "low": 1, "close": 20, "volume": 1},
                ],
            },
        )
        self.write("prices_BROKEN.json", "[]")
        repo = MockStockRepository.from_file(self.write("stocks.json", STOCKS))
        self.assertEqual([p.close for p in repo.price_history("AAPL")], [30, 20, 10])
        self.assertEqual([p.close for p in repo.price_history("AAPL", limit=2)], [30, 20])
        self.assertEqual(repo.latest_price("aapl").close, 30)

    def test_missing_file_raises_os_error(self):
        with self.assertRaises(OSError):
            MockStockRepository.from_file(self.dir / "stocks.json")


class SqlRepositoryTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.engine = db.connect(f"sqlite+pysqlite:///{Path(self.tmp.name) / 'app.db'}")
        self.addCleanup(self.engine.dispose)
        db.migrate(self.engine)

    def seed(self, *rows):
        with Session(self.engine) as session:
            session.add_all(rows)
            session.commit()

    def test_match_repository(self):
        self.seed(
            db.TeamRow(id="t1", name="Home FC", country="England", elo=1800.0),
            db.TeamRow(id="t2", name="Away FC", country="England", elo=1700.0),
        )
        self.seed(
            db.MatchRow(
                id="m1",
                league="Premier League",
                home_team_id="t1",
                away_team_id="t2",
                start_time=datetime(2026, 11, 1, 15, tzinfo=timezone.utc),
                status="scheduled",
                venue="Home Ground",
            )
        )
        self.seed(
            db.OddsRow(id="o1", match_id="m1", bookmaker="B", market="1X2", outcome="home", price=1.9)
        )
        repo = SqlMatchRepository(self.engine)
        self.assertEqual([m.id for m in repo.list_matches()], ["m1"])
        match = repo.get_match("m1")
        self.assertEqual(match.home_team.name, "Home FC")
        self.assertEqual(match.start_time.tzinfo, timezone.utc)
        self.assertEqual([o.price for o in repo.list_odds("m1")], [1.9])
        with self.assertRaises(NotFoundError):
            repo.get_match("m2")

    def test_stock_repository(self):
        self.seed(db.StockRow(symbol="AAPL", name="Apple", market_cap=1.0, sector="Technology"))
        self.seed(
            db.StockPriceRow(
                id="p1", symbol="AAPL", timestamp=datetime(2026, 10, 1, tzinfo=timezone.utc),
                open=1, high=1, low=1, close=10, volume=5,
            ),
            db.StockPriceRow(
                id="p2", symbol="AAPL", timestamp=datetime(2026, 10, 2, tzinfo=timezone.utc),
                open=1, high=1, low=1, close=20, volume=5,
            ),
        )
        repo = SqlStockRepository(self.engine)
        self.assertEqual([s.symbol for s in repo.list_stocks()], ["AAPL"])
        self.assertEqual(repo.get_stock("aapl").name, "Apple")
        self.assertEqual(repo.latest_price("AAPL").close, 20)
        self.assertEqual([p.close for p in repo.price_history("AAPL")], [20, 10])
        with self.assertRaises(NotFoundError):
            repo.latest_price("MSFT")

    def test_user_repository(self):
        repo = SqlUserRepository(self.engine)
        user = repo.create_user("Ada@Example.com", "Ada", "hash")
        self.assertEqual(user.email, "ada@example.com")
        self.assertEqual(repo.get_by_email("ADA@example.com").id, user.id)
        self.assertEqual(repo.get_by_id(user.id).name, "Ada")
        self.assertNotIn("password_hash", user.as_dict())
        with self.assertRaises(DuplicateError):
            repo.create_user("ada@example.com", "Other", "hash")
        with self.assertRaises(NotFoundError):
            repo.get_by_id("missing")


if __name__ == "__main__":
    unittest.main()
