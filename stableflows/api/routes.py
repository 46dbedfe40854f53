import uuid
from datetime import date, datetime, time, timezone
from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Response
from .schemas import RefreshRun, StatusResponse, Snapshot, WeeklyAnalysis, WeeklyComparison
from ..pipeline.orchestrator import (
    trigger_refresh, trigger_weekly, run_refresh, run_weekly, get_status, snapshot_store, analysis_store,
)
from ..pipeline.compare import compare_snapshots
from ..pipeline.runs import last_run
from ..services.charts import METRIC_TITLES, generate_trend_chart
from ..config import settings
from ..db import get_conn, migrate

router = APIRouter()

def _check_cron_auth(authorization: str | None):
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(401, 'unauthorized')

def _parse_day(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(400, f'{name} must be YYYY-MM-DD')

@router.get(
    '/health',
    summary="Health check",
    description="Returns service and DB connectivity plus last run metadata.",
    tags=["Health"],
)
def health():
    try:
        conn = get_conn(settings.db_path)
        migrate(conn)
        last = last_run(conn)
        conn.close()
        return {'ok': True, 'db': 'ok', 'last_run': last}
    except Exception as e:
        raise HTTPException(503, f'db_error: {e}')

@router.post(
    '/refresh',
    response_model=RefreshRun,
    status_code=202,
    summary="Trigger refresh",
    description="Builds a new snapshot in the background and returns the run_id. "
                "Skipped when the latest snapshot is under an hour old unless force=true.",
    tags=["Refresh"],
)
def refresh(background: BackgroundTasks, force: bool = False):
    run_id = trigger_refresh(background, force=force)
    return RefreshRun(run_id=run_id)

@router.post(
    '/weekly',
    response_model=RefreshRun,
    status_code=202,
    summary="Trigger weekly report",
    description="Fresh snapshot, weekly analysis and Telegram report, in the background.",
    tags=["Refresh"],
)
def weekly(background: BackgroundTasks):
    run_id = trigger_weekly(background)
    return RefreshRun(run_id=run_id)

@router.get(
    '/cron/daily',
    summary="Daily cron",
    description="Synchronous refresh for an external scheduler. Requires Bearer CRON_SECRET when set.",
    tags=["Refresh"],
)
def cron_daily(authorization: str | None = Header(default=None)):
    _check_cron_auth(authorization)
    run_id = str(uuid.uuid4())
    try:
        result = run_refresh(run_id)
    except Exception as e:
        raise HTTPException(500, f'refresh_failed: {e}')
    return {'ok': True, 'run_id': run_id, **result}

@router.get(
    '/cron/weekly',
    summary="Weekly cron",
    description="Refresh, generate the weekly analysis and send the report. Requires Bearer CRON_SECRET when set.",
    tags=["Refresh"],
)
def cron_weekly(authorization: str | None = Header(default=None)):
    _check_cron_auth(authorization)
    run_id = str(uuid.uuid4())
    try:
        result = run_weekly(run_id)
    except Exception as e:
        raise HTTPException(500, f'weekly_failed: {e}')
    return {'ok': True, 'run_id': run_id, **result}

@router.get(
    '/status/{run_id}',
    response_model=StatusResponse,
    summary="Get run status",
    description="Return status for a given run_id.",
    tags=["Refresh"],
)
def status(run_id: str):
    st = get_status(run_id)
    if not st:
        raise HTTPException(404, 'run not found')
    return st

@router.get(
    '/snapshots/latest',
    response_model=Snapshot,
    summary="Latest snapshot",
    tags=["Snapshots"],
)
def snapshots_latest():
    snap = snapshot_store().latest()
    if not snap:
        raise HTTPException(404, 'no snapshots yet')
    return snap

@router.get(
    '/snapshots/weekly',
    response_model=list[Snapshot],
    summary="Weekly-sampled snapshots",
    description="One snapshot per week (nearest within 4 days), oldest first. Sparse history yields fewer entries.",
    tags=["Snapshots"],
)
def snapshots_weekly(weeks: int = 12):
    if weeks < 1 or weeks > 53:
        raise HTTPException(400, 'weeks must be between 1 and 53')
    return snapshot_store().nearest_weekly(weeks)

@router.get(
    '/snapshots/count',
    summary="Stored snapshot count",
    tags=["Snapshots"],
)
def snapshots_count():
    return {'count': snapshot_store().count()}

@router.get(
    '/snapshots/range/{start}/{end}',
    response_model=list[Snapshot],
    summary="Snapshots in a date range",
    description="Inclusive UTC calendar days, YYYY-MM-DD.",
    tags=["Snapshots"],
)
def snapshots_range(start: str, end: str):
    start_d = _parse_day(start, 'start')
    end_d = _parse_day(end, 'end')
    if start_d > end_d:
        raise HTTPException(400, 'start must be <= end')
    lo = datetime.combine(start_d, time.min, tzinfo=timezone.utc)
    hi = datetime.combine(end_d, time.max, tzinfo=timezone.utc)
    return snapshot_store().in_range(lo, hi)

@router.get(
    '/compare/weekly',
    response_model=WeeklyComparison,
    summary="Week-over-week comparison",
    description="Latest snapshot against the one nearest to a week earlier.",
    tags=["Snapshots"],
)
def compare_weekly():
    store = snapshot_store()
    current = store.latest()
    if not current:
        raise HTTPException(404, 'no snapshots yet')
    return compare_snapshots(current, store.previous_week(current))

@router.get(
    '/analysis/latest',
    response_model=WeeklyAnalysis,
    summary="Latest weekly analysis",
    tags=["Analysis"],
)
def analysis_latest():
    analysis = analysis_store().latest()
    if not analysis:
        raise HTTPException(404, 'no analysis yet')
    return analysis

@router.get(
    '/charts/{metric}.png',
    summary="Weekly trend chart",
    description="PNG line chart of stable_tvl, util_percent or stbl_defi_percent for the headline chains.",
    tags=["Charts"],
    response_class=Response,
)
def chart(metric: str, weeks: int = 12):
    if metric not in METRIC_TITLES:
        raise HTTPException(400, f"metric must be one of {'|'.join(METRIC_TITLES)}")
    store = snapshot_store()
    if store.count() < settings.min_snapshots_for_charts:
        raise HTTPException(404, 'not enough history for charts')
    png = generate_trend_chart(store.nearest_weekly(weeks), metric)
    if png is None:
        raise HTTPException(404, 'not enough weekly points')
    return Response(content=png, media_type="image/png")
