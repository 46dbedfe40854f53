"""Snapshot series persistence.

The whole series lives under one key and is rewritten on every save. That is
fine at one entry per day with a one-year window. Stores only carry the
replace/prune/resample rules; the medium sits behind a SeriesBackend whose
transaction() serializes read-modify-write cycles so overlapping refreshes
cannot drop each other's writes.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta

import structlog

from ..db import get_conn, migrate
from ..utils import day_key, day_key_date, now_utc_iso, parse_iso, sha256_json, utc_now
from .constants import (
    ANALYSES_KEY,
    ANALYSIS_KEEP,
    SNAPSHOT_RETENTION_DAYS,
    SNAPSHOTS_KEY,
    WEEKLY_TOLERANCE_DAYS,
)

log = structlog.get_logger()


class StorageError(RuntimeError):
    """Loading or persisting a series failed."""


def _decode_series(key: str, payload: str | None) -> list[dict]:
    if payload is None:
        return []
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StorageError(f"corrupt series payload for {key}: {e}") from e
    if not isinstance(data, list):
        raise StorageError(f"series payload for {key} is not a list")
    return data


class SeriesBackend(ABC):
    """Key -> list-of-records blob storage."""

    def load(self, key: str) -> list[dict]:
        with self.transaction(key) as tx:
            return tx.load()

    def save(self, key: str, series: list[dict]):
        with self.transaction(key) as tx:
            tx.save(series)

    @abstractmethod
    def transaction(self, key: str):
        """Context manager yielding an exclusive load/save handle for key."""


class _MemoryTx:
    def __init__(self, data: dict, key: str):
        self._data = data
        self._key = key

    def load(self) -> list[dict]:
        return _decode_series(self._key, self._data.get(self._key))

    def save(self, series: list[dict]):
        self._data[self._key] = json.dumps(series)


class MemorySeriesBackend(SeriesBackend):
    """Process-local backend; payloads are kept serialized so callers never share objects."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    @contextmanager
    def transaction(self, key: str):
        with self._lock:
            yield _MemoryTx(self._data, key)


class _SqliteTx:
    def __init__(self, conn: sqlite3.Connection, key: str):
        self._conn = conn
        self._key = key

    def load(self) -> list[dict]:
        row = self._conn.execute("SELECT payload_json FROM kv_series WHERE key=?", (self._key,)).fetchone()
        return _decode_series(self._key, row[0] if row else None)

    def save(self, series: list[dict]):
        payload = json.dumps(series)
        self._conn.execute(
            """
            INSERT INTO kv_series(key, payload_json, payload_sha256, entry_count, updated_at_utc)
            VALUES(?,?,?,?,?)
            ON CONFLICT(key) DO UPDATE SET payload_json=excluded.payload_json,
              payload_sha256=excluded.payload_sha256, entry_count=excluded.entry_count,
              updated_at_utc=excluded.updated_at_utc
            """,
            (self._key, payload, sha256_json(series), len(series), now_utc_iso()),
        )


class SqliteSeriesBackend(SeriesBackend):
    """kv_series table in the app database.

    BEGIN IMMEDIATE takes sqlite's write lock before the read, so concurrent
    processes queue behind each other; the thread lock does the same inside
    one process.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            conn = get_conn(db_path)
            migrate(conn)
            conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {db_path}: {e}") from e

    @contextmanager
    def transaction(self, key: str):
        with self._lock:
            try:
                conn = get_conn(self.db_path)
            except sqlite3.Error as e:
                raise StorageError(f"cannot open {self.db_path}: {e}") from e
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield _SqliteTx(conn, key)
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                _rollback(conn)
                raise StorageError(f"series {key} transaction failed: {e}") from e
            except BaseException:
                _rollback(conn)
                raise
            finally:
                conn.close()


def _rollback(conn: sqlite3.Connection):
    if conn.in_transaction:
        conn.execute("ROLLBACK")


def upsert_day(series: list[dict], snapshot: dict) -> list[dict]:
    """Replace the entry sharing the snapshot's day in place, else append."""
    key = day_key(snapshot["timestamp"])
    out = list(series)
    for index, existing in enumerate(out):
        if day_key(existing.get("timestamp", "")) == key:
            out[index] = snapshot
            return out
    out.append(snapshot)
    return out


def prune_older_than(series: list[dict], cutoff: datetime) -> list[dict]:
    kept = []
    for entry in series:
        ts = parse_iso(entry.get("timestamp"))
        if ts is not None and ts >= cutoff:
            kept.append(entry)
    return kept


def nearest_to(dated: list[tuple[date, dict]], target: date, tolerance_days: int) -> dict | None:
    best = None
    best_diff = None
    for entry_date, entry in dated:
        diff = abs((entry_date - target).days)
        if diff > tolerance_days:
            continue
        if best_diff is None or diff < best_diff:
            best, best_diff = entry, diff
    return best


class SnapshotStore:
    def __init__(
        self,
        backend: SeriesBackend,
        key: str = SNAPSHOTS_KEY,
        retention_days: int = SNAPSHOT_RETENTION_DAYS,
        clock=utc_now,
    ):
        self.backend = backend
        self.key = key
        self.retention_days = int(retention_days)
        self.clock = clock

    def load(self) -> list[dict]:
        return self.backend.load(self.key)

    def append(self, snapshot: dict) -> list[dict]:
        """Upsert the snapshot's day, prune past retention, persist the series."""
        cutoff = self.clock() - timedelta(days=self.retention_days)
        with self.backend.transaction(self.key) as tx:
            series = tx.load()
            before = len(series)
            series = upsert_day(series, snapshot)
            replaced = len(series) == before
            series = prune_older_than(series, cutoff)
            tx.save(series)
        log.info(
            "snapshot_saved",
            day=day_key(snapshot["timestamp"]),
            replaced=replaced,
            entries=len(series),
        )
        return series

    def latest(self) -> dict | None:
        series = self.load()
        return series[-1] if series else None

    def count(self) -> int:
        return len(self.load())

    def in_range(self, start: datetime, end: datetime) -> list[dict]:
        out = []
        for entry in self.load():
            ts = parse_iso(entry.get("timestamp"))
            if ts is not None and start <= ts <= end:
                out.append(entry)
        return out

    def nearest_weekly(self, week_count: int = 12, today: date | None = None) -> list[dict]:
        """One snapshot per week, oldest first.

        For each of the last week_count weeks, the entry whose day is nearest
        to today - 7*i within the tolerance. Weeks with no entry in reach are
        skipped, so sparse history yields fewer points.
        """
        today = today or self.clock().date()
        dated = []
        for entry in self.load():
            entry_date = day_key_date(entry.get("timestamp", ""))
            if entry_date is not None:
                dated.append((entry_date, entry))
        result = []
        for i in range(week_count - 1, -1, -1):
            target = today - timedelta(days=7 * i)
            match = nearest_to(dated, target, WEEKLY_TOLERANCE_DAYS)
            if match is not None:
                result.append(match)
        return result

    def previous_week(self, current: dict | None, today: date | None = None) -> dict | None:
        """Last week's sample to compare current against.

        An entry 3-4 days old is in reach of both this week's and last week's
        target, so the sample can be current itself; that is no baseline.
        """
        if not current:
            return None
        weekly = self.nearest_weekly(2, today=today)
        if len(weekly) < 2:
            return None
        previous = weekly[0]
        if day_key(previous.get("timestamp", "")) == day_key(current.get("timestamp", "")):
            return None
        return previous


class AnalysisStore:
    """Weekly analyses, capped to the most recent entries."""

    def __init__(self, backend: SeriesBackend, key: str = ANALYSES_KEY, keep: int = ANALYSIS_KEEP):
        self.backend = backend
        self.key = key
        self.keep = int(keep)

    def load(self) -> list[dict]:
        return self.backend.load(self.key)

    def append(self, analysis: dict) -> list[dict]:
        with self.backend.transaction(self.key) as tx:
            series = tx.load()
            series.append(analysis)
            series = series[-self.keep:]
            tx.save(series)
        log.info("analysis_saved", entries=len(series))
        return series

    def latest(self) -> dict | None:
        series = self.load()
        return series[-1] if series else None
