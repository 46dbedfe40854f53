import sqlite3
from ..utils import now_utc_iso

def start_run(conn: sqlite3.Connection, run_id: str, kind: str = "refresh"):
    conn.execute(
        "INSERT OR REPLACE INTO runs(run_id, kind, started_at_utc, status) VALUES(?,?,?,?)",
        (run_id, kind, now_utc_iso(), 'running'),
    )

def finish_run_ok(conn: sqlite3.Connection, run_id: str, snapshot_timestamp: str | None = None):
    conn.execute(
        "UPDATE runs SET finished_at_utc=?, status=?, snapshot_timestamp=? WHERE run_id=?",
        (now_utc_iso(), 'succeeded', snapshot_timestamp, run_id),
    )

def finish_run_skipped(conn: sqlite3.Connection, run_id: str, reason: str):
    conn.execute(
        "UPDATE runs SET finished_at_utc=?, status=?, error_message=? WHERE run_id=?",
        (now_utc_iso(), 'skipped', reason[:1000], run_id),
    )

def finish_run_fail(conn: sqlite3.Connection, run_id: str, err: str):
    conn.execute(
        "UPDATE runs SET finished_at_utc=?, status=?, error_message=? WHERE run_id=?",
        (now_utc_iso(), 'failed', err[:1000], run_id),
    )

def get_run_status(conn: sqlite3.Connection, run_id: str):
    cur = conn.cursor()
    row = cur.execute(
        "SELECT run_id, kind, started_at_utc, finished_at_utc, status, error_message, snapshot_timestamp FROM runs WHERE run_id=?",
        (run_id,),
    ).fetchone()
    if not row: return None
    return {
        'run_id': row[0], 'kind': row[1], 'started_at_utc': row[2], 'finished_at_utc': row[3],
        'status': row[4], 'error_message': row[5], 'snapshot_timestamp': row[6],
    }

def last_run(conn: sqlite3.Connection):
    row = conn.execute(
        "SELECT run_id, kind, status, started_at_utc, finished_at_utc FROM runs ORDER BY started_at_utc DESC LIMIT 1"
    ).fetchone()
    if not row:
        return None
    return {'run_id': row[0], 'kind': row[1], 'status': row[2], 'started_at_utc': row[3], 'finished_at_utc': row[4]}
