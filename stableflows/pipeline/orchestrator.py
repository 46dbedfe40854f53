import time, uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
import structlog
from ..db import get_conn, migrate
from ..config import settings
from ..utils import parse_iso, utc_now
from ..providers.defillama_adapter import DefiLlamaAdapter
from ..services.charts import generate_trend_chart
from ..services.formatting import weekly_report_html
from ..services.insights import generate_weekly_analysis
from ..services.telegram import TelegramClient
from .aggregate import aggregate
from .constants import TrackingConfig, load_tracking
from .feeds import defi_tvl_by_chain, stable_tvl_by_chain, supply_by_chain
from .locking import acquire_lock, release_lock
from .runs import start_run, finish_run_ok, finish_run_fail, finish_run_skipped, get_run_status
from .snapshots import AnalysisStore, SnapshotStore, SqliteSeriesBackend

log = structlog.get_logger()

REFRESH_LOCK = "refresh"

def snapshot_store() -> SnapshotStore:
    return SnapshotStore(SqliteSeriesBackend(settings.db_path), retention_days=settings.snapshot_retention_days)

def analysis_store() -> AnalysisStore:
    return AnalysisStore(SqliteSeriesBackend(settings.db_path), keep=settings.analysis_keep)

def tracking_config() -> TrackingConfig:
    return load_tracking(settings.tracking_config_path)

def fetch_feeds(adapter: DefiLlamaAdapter, deadline: float | None = None) -> dict:
    """Fetch the three feeds in parallel and wait for all of them."""
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="feed") as pool:
        futures = {
            "pools": pool.submit(adapter.pools, deadline),
            "stablecoins": pool.submit(adapter.stablecoins, deadline),
            "chains": pool.submit(adapter.chains, deadline),
        }
        return {name: fut.result() for name, fut in futures.items()}

def build_snapshot(feeds: dict, tracking: TrackingConfig, now: datetime | None = None) -> dict:
    stable_tvl, stats = stable_tvl_by_chain(feeds.get("pools") or [], tracking)
    supply = supply_by_chain(feeds.get("stablecoins") or [], tracking)
    defi_tvl = defi_tvl_by_chain(feeds.get("chains") or [], tracking)
    snapshot = aggregate(stable_tvl, supply, defi_tvl, tracking.tracked_chains, now=now)
    log.info(
        "snapshot_built",
        timestamp=snapshot["timestamp"],
        stable_tvl_usd_bn=round(snapshot["totals"]["stable_tvl"] / 1e9, 2),
        util_percent=round(snapshot["totals"]["util_percent"], 2),
        pools_kept=stats.kept,
    )
    return snapshot

def _age_seconds(snapshot: dict | None) -> float | None:
    if not snapshot:
        return None
    ts = parse_iso(snapshot.get("timestamp"))
    if ts is None:
        return None
    return (utc_now() - ts).total_seconds()

def _refresh_and_store(store: SnapshotStore, adapter: DefiLlamaAdapter | None, deadline: float) -> dict:
    adapter = adapter or DefiLlamaAdapter()
    feeds = fetch_feeds(adapter, deadline=deadline)
    snapshot = build_snapshot(feeds, tracking_config())
    store.append(snapshot)
    return snapshot

def _guarded_run(run_id: str, kind: str, body) -> dict:
    """Run body(conn) under the refresh lease with the runs row kept current."""
    conn = get_conn(settings.db_path)
    locked = False
    try:
        migrate(conn)
        start_run(conn, run_id, kind)
        log.info(f"{kind}_started", run_id=run_id)
        locked = acquire_lock(conn, REFRESH_LOCK, run_id)
        if not locked:
            finish_run_skipped(conn, run_id, "lock_held")
            log.warning(f"{kind}_skipped", run_id=run_id, reason="lock_held")
            return {"status": "skipped", "reason": "lock_held"}
        return body(conn)
    except Exception as e:
        log.error(f"{kind}_failed", run_id=run_id, err=str(e))
        finish_run_fail(conn, run_id, str(e))
        raise
    finally:
        if locked:
            release_lock(conn, REFRESH_LOCK, run_id)
        conn.close()

def run_refresh(run_id: str, force: bool = False, adapter: DefiLlamaAdapter | None = None) -> dict:
    def _refresh(conn):
        store = snapshot_store()
        if not force:
            latest = store.latest()
            age = _age_seconds(latest)
            if age is not None and age < settings.refresh_min_age_seconds:
                finish_run_skipped(conn, run_id, "fresh")
                log.info("refresh_cached", run_id=run_id, timestamp=latest["timestamp"], age_sec=round(age))
                return {"status": "cached", "timestamp": latest["timestamp"]}

        started = time.monotonic()
        deadline = started + settings.refresh_time_budget_seconds
        snapshot = _refresh_and_store(store, adapter, deadline)
        finish_run_ok(conn, run_id, snapshot["timestamp"])
        log.info(
            "refresh_finished",
            run_id=run_id,
            status="succeeded",
            forced=force,
            elapsed_sec=round(time.monotonic() - started, 2),
        )
        return {"status": "refreshed", "timestamp": snapshot["timestamp"], "chains": len(snapshot["chains"])}

    return _guarded_run(run_id, "refresh", _refresh)

def _notify_weekly(snapshot: dict, analysis: dict, previous: dict | None, store: SnapshotStore):
    if not (settings.telegram_bot_token and settings.telegram_chat_id):
        return False
    tg = TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id)
    sent = tg.send_message_html_sync(weekly_report_html(snapshot, analysis, previous))
    if store.count() >= settings.min_snapshots_for_charts:
        png = generate_trend_chart(store.nearest_weekly(12), "stable_tvl")
        if png:
            tg.send_photo_sync(png, caption="Stable TVL, weekly")
    return sent

def run_weekly(run_id: str, adapter: DefiLlamaAdapter | None = None) -> dict:
    """Fresh snapshot, narrative against last week, persisted and sent."""
    def _weekly(conn):
        store = snapshot_store()
        deadline = time.monotonic() + settings.refresh_time_budget_seconds
        snapshot = _refresh_and_store(store, adapter, deadline)

        previous = store.previous_week(snapshot)
        analysis = generate_weekly_analysis(
            snapshot,
            previous,
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
        )
        analysis_store().append(analysis)
        sent = _notify_weekly(snapshot, analysis, previous, store)

        finish_run_ok(conn, run_id, snapshot["timestamp"])
        log.info("weekly_finished", run_id=run_id, bullets=len(analysis["bullets"]), notified=sent)
        return {"status": "ok", "timestamp": snapshot["timestamp"], "insights": analysis["bullets"]}

    return _guarded_run(run_id, "weekly", _weekly)

def _run_in_background(fn, run_id: str, **kwargs):
    try:
        fn(run_id, **kwargs)
    except Exception:
        # already recorded on the run row
        log.debug("background_run_errored", run_id=run_id)

def trigger_refresh(background, force: bool = False) -> str:
    run_id = str(uuid.uuid4())
    background.add_task(_run_in_background, run_refresh, run_id, force=force)
    return run_id

def trigger_weekly(background) -> str:
    run_id = str(uuid.uuid4())
    background.add_task(_run_in_background, run_weekly, run_id)
    return run_id

def get_status(run_id: str):
    conn = get_conn(settings.db_path)
    migrate(conn)
    try:
        return get_run_status(conn, run_id)
    finally:
        conn.close()
