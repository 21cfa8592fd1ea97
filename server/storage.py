"""SQLite storage for capture run metadata."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4


BASE_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = BASE_DIR / 'data'
DB_PATH = DATA_DIR / 'captures.db'


def ensure_dirs() -> None:
    """Ensure data directories exist."""
    DATA_DIR.mkdir(exist_ok=True)


def get_connection() -> sqlite3.Connection:
    """Get a DB connection."""
    ensure_dirs()
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Initialize DB schema."""
    with get_connection() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS runs (
                id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                status TEXT NOT NULL,
                target TEXT NOT NULL,
                request_json TEXT NOT NULL,
                manifests_json TEXT,
                reports_json TEXT,
                error_message TEXT
            )
            """
        )
        conn.commit()


def _row_to_dict(row: sqlite3.Row) -> dict:
    data = dict(row)
    data['manifests'] = json.loads(data.pop('manifests_json') or '{}')
    data['reports'] = json.loads(data.pop('reports_json') or '{}')
    return data


def create_run(target: str, request: dict) -> str:
    """Insert a new run and return its ID."""
    run_id = str(uuid4())
    created_at = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f') + 'Z'
    with get_connection() as conn:
        conn.execute(
            """
            INSERT INTO runs (id, created_at, status, target, request_json)
            VALUES (?, ?, ?, ?, ?)
            """,
            (run_id, created_at, 'queued', target, json.dumps(request))
        )
        conn.commit()
    return run_id


def update_status(run_id: str, status: str, error_message: str = '') -> None:
    """Update run status."""
    with get_connection() as conn:
        conn.execute(
            """
            UPDATE runs
            SET status = ?, error_message = ?
            WHERE id = ?
            """,
            (status, error_message, run_id)
        )
        conn.commit()


def attach_results(run_id: str, manifests: dict, reports: dict) -> None:
    """Attach per-domain manifest and report paths."""
    with get_connection() as conn:
        conn.execute(
            """
            UPDATE runs
            SET manifests_json = ?, reports_json = ?
            WHERE id = ?
            """,
            (json.dumps(manifests), json.dumps(reports), run_id)
        )
        conn.commit()


def get_run(run_id: str) -> dict | None:
    """Fetch run by ID."""
    with get_connection() as conn:
        row = conn.execute(
            "SELECT * FROM runs WHERE id = ?",
            (run_id,)
        ).fetchone()
        if not row:
            return None
        return _row_to_dict(row)


def list_runs(limit: int = 50) -> list:
    """List recent runs."""
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM runs ORDER BY created_at DESC LIMIT ?",
            (limit,)
        ).fetchall()
        return [_row_to_dict(r) for r in rows]
