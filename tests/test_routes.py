import os
import tempfile
import unittest
from datetime import timedelta
from unittest import mock

from fastapi.testclient import TestClient

from stableflows.api import routes
from stableflows.config import settings
from stableflows.main import app
from stableflows.pipeline import orchestrator
from stableflows.pipeline.aggregate import aggregate
from stableflows.pipeline.constants import TRACKED_CHAINS
from stableflows.pipeline.orchestrator import analysis_store, snapshot_store
from stableflows.pipeline.snapshots import StorageError
from stableflows.utils import utc_now


def _seed(days_ago, eth_tvl):
    snap = aggregate(
        {"Ethereum": eth_tvl, "Base": 1e9},
        {"Ethereum": 2e10, "Base": 4e9},
        {"Ethereum": 6e10, "Base": 5e9},
        TRACKED_CHAINS,
        now=utc_now() - timedelta(days=days_ago),
    )
    snapshot_store().append(snap)
    return snap


class RoutesTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        patches = [
            mock.patch.object(settings, "db_path", os.path.join(self.tmp.name, "api.db")),
            mock.patch.object(settings, "cron_secret", "s3cret"),
            mock.patch.object(settings, "min_snapshots_for_charts", 2),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)
        self.client = TestClient(app)

    def test_health(self):
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["ok"])

    def test_empty_store(self):
        self.assertEqual(self.client.get("/snapshots/latest").status_code, 404)
        self.assertEqual(self.client.get("/snapshots/count").json(), {"count": 0})
        self.assertEqual(self.client.get("/analysis/latest").status_code, 404)
        self.assertEqual(self.client.get("/snapshots/weekly").json(), [])

    def test_snapshots_and_compare(self):
        _seed(7, 4e9)
        latest = _seed(0, 5e9)
        r = self.client.get("/snapshots/latest")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["timestamp"], latest["timestamp"])
        self.assertEqual(self.client.get("/snapshots/count").json()["count"], 2)
        self.assertEqual(len(self.client.get("/snapshots/weekly", params={"weeks": 2}).json()), 2)

        cmp = self.client.get("/compare/weekly").json()
        eth = next(c for c in cmp["chains"] if c["chain"] == "Ethereum")
        self.assertAlmostEqual(eth["change"]["tvl_change_percent"], 25.0)

    def test_compare_single_midweek_snapshot_has_no_baseline(self):
        _seed(4, 4e9)
        cmp = self.client.get("/compare/weekly").json()
        self.assertIsNone(cmp["previous_timestamp"])
        self.assertIsNone(cmp["totals"])
        self.assertTrue(all(c["change"] is None for c in cmp["chains"]))

    def test_range(self):
        snap = _seed(0, 4e9)
        day = snap["timestamp"][:10]
        r = self.client.get(f"/snapshots/range/{day}/{day}")
        self.assertEqual(len(r.json()), 1)
        self.assertEqual(self.client.get(f"/snapshots/range/nope/{day}").status_code, 400)
        self.assertEqual(self.client.get("/snapshots/range/2026-02-01/2026-01-01").status_code, 400)

    def test_analysis_latest(self):
        analysis_store().append({"timestamp": "2026-03-02T06:00:00.000Z", "bullets": ["a", "b", "c"]})
        self.assertEqual(self.client.get("/analysis/latest").json()["bullets"], ["a", "b", "c"])

    def test_cron_requires_secret(self):
        self.assertEqual(self.client.get("/cron/daily").status_code, 401)
        self.assertEqual(
            self.client.get("/cron/weekly", headers={"Authorization": "Bearer wrong"}).status_code, 401
        )

    def test_cron_daily_runs_refresh(self):
        with mock.patch.object(routes, "run_refresh", return_value={"status": "cached", "timestamp": "t"}) as run:
            r = self.client.get("/cron/daily", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "cached")
        run.assert_called_once()

    def test_refresh_runs_in_background(self):
        with mock.patch.object(orchestrator, "run_refresh") as run:
            r = self.client.post("/refresh", params={"force": "true"})
        self.assertEqual(r.status_code, 202)
        run.assert_called_once_with(r.json()["run_id"], force=True)

    def test_weekly_background_errors_are_contained(self):
        with mock.patch.object(orchestrator, "run_weekly", side_effect=RuntimeError("upstream down")) as run:
            r = self.client.post("/weekly")
        self.assertEqual(r.status_code, 202)
        run.assert_called_once()

    def test_status_unknown(self):
        self.assertEqual(self.client.get("/status/missing").status_code, 404)

    def test_charts(self):
        self.assertEqual(self.client.get("/charts/bogus.png").status_code, 400)
        self.assertEqual(self.client.get("/charts/stable_tvl.png").status_code, 404)
        _seed(7, 4e9)
        _seed(0, 5e9)
        r = self.client.get("/charts/util_percent.png")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], "image/png")
        self.assertTrue(r.content.startswith(b"\x89PNG"))

    def test_storage_error_maps_to_503(self):
        with mock.patch.object(routes, "snapshot_store", side_effect=StorageError("boom")):
            r = self.client.get("/snapshots/latest")
        self.assertEqual(r.status_code, 503)


if __name__ == "__main__":
    unittest.main()
