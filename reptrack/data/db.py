from __future__ import annotations
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from reptrack.common.events import WorkoutRecord

logger = logging.getLogger(__name__)

_DB_PATH = Path("./reptrack.db")

SCHEMA = r"""
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS workout_sessions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  mode TEXT NOT NULL,
  start_time REAL NOT NULL,
  end_time REAL NOT NULL,
  set_count INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS exercise_sets (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id INTEGER NOT NULL,
  set_index INTEGER NOT NULL,
  exercise_id TEXT NOT NULL,
  reps INTEGER NOT NULL,
  reps_left INTEGER,
  reps_right INTEGER,
  weight REAL,
  FOREIGN KEY(session_id) REFERENCES workout_sessions(id)
);
"""

_conn: Optional[sqlite3.Connection] = None


def configure(path: Union[str, Path]):
    """Point the module at another database file; closes any open connection."""
    global _DB_PATH
    close()
    _DB_PATH = Path(path)


def close():
    global _conn
    if _conn is not None:
        _conn.close()
        _conn = None


def get_conn() -> sqlite3.Connection:
    global _conn
    if _conn is None:
        _DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _conn = sqlite3.connect(_DB_PATH.as_posix(), check_same_thread=False)
        _conn.execute("PRAGMA foreign_keys=ON;")
        _conn.executescript(SCHEMA)
        _conn.commit()
    return _conn

# Session writes

def append_workout_record(record: WorkoutRecord) -> int:
    """Record sink for the orchestrators. Returns the new session row id."""
    conn = get_conn()
    with conn:
        cur = conn.execute(
            "INSERT INTO workout_sessions (mode, start_time, end_time, set_count) VALUES (?,?,?,?)",
            (record.mode, record.start_time, record.end_time, record.set_count),
        )
        session_id = cur.lastrowid
        conn.executemany(
            """
            INSERT INTO exercise_sets (
              session_id, set_index, exercise_id, reps, reps_left, reps_right, weight
            ) VALUES (?,?,?,?,?,?,?)
            """,
            [
                (session_id, i, e.exercise_id, e.reps, e.reps_left, e.reps_right, e.weight)
                for i, e in enumerate(record.exercises)
            ],
        )
    logger.info("stored %s session %d with %d sets", record.mode, session_id, record.set_count)
    return session_id

# Reads

def list_sessions(limit: int = 20) -> List[dict]:
    conn = get_conn()
    rows = conn.execute(
        "SELECT id, mode, start_time, end_time, set_count FROM workout_sessions ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [
        {"id": r[0], "mode": r[1], "start_time": r[2], "end_time": r[3], "set_count": r[4]}
        for r in rows
    ]


def get_session_sets(session_id: int) -> List[dict]:
    conn = get_conn()
    rows = conn.execute(
        """
        SELECT exercise_id, reps, reps_left, reps_right, weight
        FROM exercise_sets WHERE session_id=? ORDER BY set_index
        """,
        (session_id,),
    ).fetchall()
    return [
        {"exercise_id": r[0], "reps": r[1], "reps_left": r[2], "reps_right": r[3], "weight": r[4]}
        for r in rows
    ]
