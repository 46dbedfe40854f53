import os
import tempfile
import threading
import unittest
from datetime import date, datetime, timedelta, timezone

from stableflows.db import get_conn
from stableflows.pipeline.snapshots import (
    MemorySeriesBackend,
    SnapshotStore,
    SqliteSeriesBackend,
    StorageError,
    nearest_to,
)
from stableflows.utils import to_iso_z


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _snap(when: datetime, stable_tvl: float = 100.0):
    return {
        "timestamp": to_iso_z(when),
        "chains": [{
            "rank": 1, "chain": "Ethereum", "stable_tvl": stable_tvl, "defi_tvl": 1000.0,
            "stable_supply": 200.0, "util_percent": stable_tvl / 2, "stbl_defi_percent": stable_tvl / 10,
        }],
        "totals": {
            "stable_tvl": stable_tvl, "defi_tvl": 1000.0, "stable_supply": 200.0,
            "util_percent": stable_tvl / 2, "stbl_defi_percent": stable_tvl / 10,
        },
    }


class SnapshotStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = SnapshotStore(MemorySeriesBackend(), clock=lambda: NOW)

    def test_empty_store(self):
        self.assertIsNone(self.store.latest())
        self.assertEqual(self.store.count(), 0)
        self.assertEqual(self.store.nearest_weekly(12), [])

    def test_same_day_replaces(self):
        self.store.append(_snap(NOW - timedelta(days=1)))
        self.store.append(_snap(NOW.replace(hour=1), stable_tvl=100.0))
        self.store.append(_snap(NOW.replace(hour=9), stable_tvl=150.0))
        self.assertEqual(self.store.count(), 2)
        self.assertEqual(self.store.latest()["totals"]["stable_tvl"], 150.0)

    def test_replace_keeps_position(self):
        self.store.append(_snap(NOW - timedelta(days=2)))
        self.store.append(_snap(NOW - timedelta(days=1)))
        self.store.append(_snap(NOW - timedelta(days=2, hours=-3), stable_tvl=7.0))
        series = self.store.load()
        self.assertEqual(series[0]["totals"]["stable_tvl"], 7.0)
        self.assertEqual(self.store.latest()["timestamp"], to_iso_z(NOW - timedelta(days=1)))

    def test_retention_prunes_old_entries(self):
        self.store.append(_snap(NOW - timedelta(days=400)))
        self.store.append(_snap(NOW - timedelta(days=364)))
        self.store.append(_snap(NOW))
        days = [s["timestamp"][:10] for s in self.store.load()]
        self.assertEqual(days, [(NOW - timedelta(days=364)).date().isoformat(), NOW.date().isoformat()])

    def test_in_range(self):
        for d in (10, 5, 1):
            self.store.append(_snap(NOW - timedelta(days=d)))
        out = self.store.in_range(NOW - timedelta(days=6), NOW)
        self.assertEqual(len(out), 2)

    def test_nearest_weekly_skips_empty_weeks(self):
        for d in (15, 7, 0):
            self.store.append(_snap(NOW - timedelta(days=d)))
        weekly = self.store.nearest_weekly(4)
        self.assertEqual(len(weekly), 3)
        self.assertEqual([w["timestamp"][:10] for w in weekly], [
            (NOW - timedelta(days=15)).date().isoformat(),
            (NOW - timedelta(days=7)).date().isoformat(),
            NOW.date().isoformat(),
        ])

    def test_nearest_weekly_daily_history(self):
        for d in range(30, -1, -1):
            self.store.append(_snap(NOW - timedelta(days=d)))
        weekly = self.store.nearest_weekly(4, today=NOW.date())
        self.assertEqual([w["timestamp"][:10] for w in weekly], [
            (NOW - timedelta(days=21)).date().isoformat(),
            (NOW - timedelta(days=14)).date().isoformat(),
            (NOW - timedelta(days=7)).date().isoformat(),
            NOW.date().isoformat(),
        ])

    def test_entry_between_weeks_is_sampled_twice(self):
        self.store.append(_snap(NOW - timedelta(days=4)))
        weekly = self.store.nearest_weekly(2)
        self.assertEqual(len(weekly), 2)
        self.assertEqual(weekly[0]["timestamp"], weekly[1]["timestamp"])

    def test_previous_week_never_returns_current(self):
        self.store.append(_snap(NOW - timedelta(days=4)))
        self.assertIsNone(self.store.previous_week(self.store.latest()))

    def test_previous_week(self):
        self.store.append(_snap(NOW - timedelta(days=8), stable_tvl=80.0))
        self.store.append(_snap(NOW - timedelta(days=3), stable_tvl=90.0))
        previous = self.store.previous_week(self.store.latest())
        self.assertEqual(previous["totals"]["stable_tvl"], 80.0)
        self.assertIsNone(self.store.previous_week(None))


class NearestToTests(unittest.TestCase):
    def test_tolerance_and_ties(self):
        target = date(2026, 3, 1)
        dated = [(date(2026, 2, 27), "early"), (date(2026, 3, 3), "late")]
        self.assertEqual(nearest_to(dated, target, 4), "early")
        self.assertIsNone(nearest_to([(date(2026, 2, 24), "far")], target, 4))
        self.assertEqual(nearest_to([(date(2026, 2, 25), "edge")], target, 4), "edge")


class SqliteBackendTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmp.name, "test.db")

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip_through_sqlite(self):
        store = SnapshotStore(SqliteSeriesBackend(self.db_path), clock=lambda: NOW)
        store.append(_snap(NOW - timedelta(days=1)))
        store.append(_snap(NOW))
        reopened = SnapshotStore(SqliteSeriesBackend(self.db_path), clock=lambda: NOW)
        self.assertEqual(reopened.count(), 2)
        self.assertEqual(reopened.latest()["timestamp"], to_iso_z(NOW))
        conn = get_conn(self.db_path)
        count = conn.execute("SELECT entry_count FROM kv_series WHERE key=?", (store.key,)).fetchone()[0]
        conn.close()
        self.assertEqual(count, 2)

    def test_corrupt_payload_raises_storage_error(self):
        backend = SqliteSeriesBackend(self.db_path)
        conn = get_conn(self.db_path)
        conn.execute(
            "INSERT INTO kv_series(key, payload_json, payload_sha256, entry_count, updated_at_utc) VALUES(?,?,?,?,?)",
            ("broken", "{not json", "", 0, NOW.isoformat()),
        )
        conn.close()
        with self.assertRaises(StorageError):
            backend.load("broken")

    def test_failed_update_leaves_series_untouched(self):
        store = SnapshotStore(SqliteSeriesBackend(self.db_path), clock=lambda: NOW)
        store.append(_snap(NOW - timedelta(days=1)))
        with self.assertRaises(KeyError):
            store.append({"chains": []})
        self.assertEqual(store.count(), 1)

    def test_concurrent_writers_keep_every_day(self):
        threads_count, per_thread = 4, 15
        errors = []
        SqliteSeriesBackend(self.db_path)

        def writer(offset):
            store = SnapshotStore(SqliteSeriesBackend(self.db_path), clock=lambda: NOW)
            try:
                for i in range(per_thread):
                    store.append(_snap(NOW - timedelta(days=offset * per_thread + i)))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        store = SnapshotStore(SqliteSeriesBackend(self.db_path), clock=lambda: NOW)
        days = {s["timestamp"][:10] for s in store.load()}
        self.assertEqual(len(days), threads_count * per_thread)
        self.assertEqual(store.count(), threads_count * per_thread)


if __name__ == "__main__":
    unittest.main()
