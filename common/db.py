import os
import sqlite3
from pathlib import Path

SCHEMA_DIR = Path(__file__).resolve().parent / "db"


def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False, timeout=5)
    conn.row_factory = sqlite3.Row
    # WAL lets the HTTP read paths run alongside the stock writer.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_db(db_path: str, schema: str) -> None:
    """Create the database file if needed and apply ``schema`` idempotently.

    ``schema`` is the name of a ``.sql`` file under ``common/db``.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    schema_path = SCHEMA_DIR / f"{schema}.sql"
    conn = connect(db_path)
    try:
        with open(schema_path, "r", encoding="utf-8") as handle:
            conn.executescript(handle.read())
        conn.commit()
    finally:
        conn.close()


def default_db_path(env_name: str, filename: str) -> str:
    return os.environ.get(env_name, str(SCHEMA_DIR / filename))
