import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import create_engine, inspect

from backend import db


class ConnectTests(unittest.TestCase):
    def test_empty_dsn_fails_before_any_io(self):
        with patch("backend.db.create_engine") as create_engine:
            with self.assertRaises(db.EmptyDSNError):
                db.connect("")
        create_engine.assert_not_called()

    def test_empty_dsn_is_distinct_from_connection_failure(self):
        self.assertFalse(issubclass(db.EmptyDSNError, db.DatabaseConnectionError))
        self.assertTrue(issubclass(db.EmptyDSNError, db.DatabaseError))

    def test_unreachable_database_fails_within_timeout(self):
        started = time.monotonic()
        with self.assertRaises(db.DatabaseConnectionError):
            db.connect("postgresql://user:pw@127.0.0.1:1/nothing", timeout=2.0)
        self.assertLess(time.monotonic() - started, 2.0 + 1.0)

    def test_hung_ping_is_bounded(self):
        def hang(engine):
            time.sleep(2.0)

        with patch("backend.db._select_one", side_effect=hang):
            started = time.monotonic()
            with self.assertRaises(db.DatabaseConnectionError):
                db.connect("sqlite+pysqlite:///:memory:", timeout=0.2)
            self.assertLess(time.monotonic() - started, 1.5)

    def test_hung_pings_share_a_bounded_pool(self):
        release = threading.Event()
        self.addCleanup(release.set)
        engine = create_engine("sqlite+pysqlite:///:memory:")
        self.addCleanup(engine.dispose)

        with patch("backend.db._select_one", side_effect=lambda engine: release.wait(5)):
            for _ in range(6):
                with self.assertRaises(db.DatabaseConnectionError):
                    db.ping(engine, timeout=0.05)
            ping_threads = [t for t in threading.enumerate() if t.name.startswith("db-ping")]
        self.assertLessEqual(len(ping_threads), db.PING_WORKERS)

    def test_malformed_dsn_is_a_connection_error(self):
        with self.assertRaises(db.DatabaseConnectionError):
            db.connect("not a url")

    def test_connect_and_ping_sqlite(self):
        engine = db.connect("sqlite+pysqlite:///:memory:")
        self.addCleanup(engine.dispose)
        db.ping(engine, timeout=1.0)

    def test_normalize_dsn(self):
        self.assertEqual(
            db.normalize_dsn("postgres://u:p@h:5432/d"), "postgresql+psycopg://u:p@h:5432/d"
        )
        self.assertEqual(
            db.normalize_dsn("postgresql://u@h/d"), "postgresql+psycopg://u@h/d"
        )
        self.assertEqual(db.normalize_dsn("sqlite:///x.db"), "sqlite:///x.db")


class MigrateTests(unittest.TestCase):
    def test_migrate_creates_tables(self):
        with tempfile.TemporaryDirectory() as tmp:
            engine = db.connect(f"sqlite+pysqlite:///{Path(tmp) / 'app.db'}")
            try:
                db.migrate(engine)
                db.migrate(engine)
                tables = set(inspect(engine).get_table_names())
            finally:
                engine.dispose()
        self.assertTrue(
            {"users", "teams", "matches", "odds", "stocks", "stock_prices"} <= tables
        )


if __name__ == "__main__":
    unittest.main()
