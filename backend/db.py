from __future__ import annotations

import csv
import io
import sqlite3
import threading
from typing import Iterable, List, Optional

from alertness.messages import AttentionUpdate

FRAME_KEYS = ["timestamp", "state", "confidence", "ear", "closed_duration", "fps"]


class Database:
    def __init__(self, path: str):
        self.path = path
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS frames (
                    ts REAL,
                    state TEXT,
                    confidence REAL,
                    ear REAL,
                    closed_duration REAL,
                    fps REAL
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_frames_ts ON frames(ts);")
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    ts REAL,
                    type TEXT,
                    details TEXT
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);")
            self.conn.commit()

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    def log_frame(self, update: AttentionUpdate) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO frames (ts, state, confidence, ear, closed_duration, fps)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    update.timestamp,
                    update.state.value,
                    update.confidence,
                    update.ear_value,
                    update.eyes_closed_duration,
                    update.fps,
                ),
            )
            self.conn.commit()

    def log_event(self, event_type: str, ts: float, details: Optional[str] = None) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                "INSERT INTO events (ts, type, details) VALUES (?, ?, ?)",
                (ts, event_type, details or ""),
            )
            self.conn.commit()

    def history(self, start_ts: float, end_ts: float) -> List[dict]:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                SELECT ts, state, confidence, ear, closed_duration, fps
                FROM frames WHERE ts BETWEEN ? AND ? ORDER BY ts ASC
                """,
                (start_ts, end_ts),
            )
            rows = cur.fetchall()
        return [dict(zip(FRAME_KEYS, row)) for row in rows]

    def events(self, start_ts: float, end_ts: float, suffix: Optional[str] = None) -> List[dict]:
        query = "SELECT ts, type, details FROM events WHERE ts BETWEEN ? AND ?"
        params: list = [start_ts, end_ts]
        if suffix:
            query += " AND type LIKE ?"
            params.append(f"%{suffix}")
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(query + " ORDER BY ts ASC", params)
            rows = cur.fetchall()
        keys = ["timestamp", "type", "details"]
        return [dict(zip(keys, row)) for row in rows]

    def alerts(self, start_ts: float, end_ts: float) -> List[dict]:
        return self.events(start_ts, end_ts, suffix="_ALERT")

    def export_csv(self, start_ts: float, end_ts: float) -> Iterable[bytes]:
        yield ",".join(FRAME_KEYS).encode() + b"\n"
        for row in self.history(start_ts, end_ts):
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=FRAME_KEYS)
            writer.writerow(row)
            yield buf.getvalue().encode()
