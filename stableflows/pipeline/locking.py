import sqlite3
from datetime import datetime, timezone, timedelta

def acquire_lock(conn: sqlite3.Connection, name: str, owner: str, ttl_seconds: int = 1800) -> bool:
    """Take a named lease; an expired lease is taken over."""
    cur = conn.cursor()
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=ttl_seconds)
    cur.execute("BEGIN IMMEDIATE")
    try:
        row = cur.execute("SELECT owner, expires_at_utc FROM locks WHERE name=?", (name,)).fetchone()
        if not row:
            cur.execute(
                "INSERT INTO locks(name, owner, acquired_at_utc, expires_at_utc) VALUES(?,?,?,?)",
                (name, owner, now.isoformat(), exp.isoformat()),
            )
            acquired = True
        elif datetime.fromisoformat(row[1]) < now:
            cur.execute(
                "UPDATE locks SET owner=?, acquired_at_utc=?, expires_at_utc=? WHERE name=?",
                (owner, now.isoformat(), exp.isoformat(), name),
            )
            acquired = True
        else:
            acquired = False
        cur.execute("COMMIT")
    except Exception:
        cur.execute("ROLLBACK")
        raise
    return acquired

def release_lock(conn: sqlite3.Connection, name: str, owner: str):
    cur = conn.cursor()
    cur.execute("DELETE FROM locks WHERE name=? AND owner=?", (name, owner))
