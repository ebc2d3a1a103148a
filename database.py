import json
import sqlite3
import time
from contextlib import contextmanager

from config import get_db_path

DB_PATH = get_db_path()


def _get_connection() -> sqlite3.Connection:
    """Create a new database connection."""
    conn = sqlite3.connect(DB_PATH, timeout=10.0)
    conn.row_factory = sqlite3.Row
    return conn


def init_database():
    """Initialize catalog schema. Call on app startup."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = _get_connection()
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS databases (
                name TEXT PRIMARY KEY,
                description TEXT,
                location TEXT,
                properties TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tables (
                db_name TEXT NOT NULL,
                name TEXT NOT NULL,
                columns TEXT NOT NULL,
                partition_keys TEXT NOT NULL,
                location TEXT,
                properties TEXT NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (db_name, name)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_tables_db ON tables(db_name)")
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_transaction():
    """Context manager for database transactions with IMMEDIATE locking."""
    conn = _get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _database_row(row: sqlite3.Row) -> dict:
    data = dict(row)
    data["properties"] = json.loads(data["properties"])
    return data


def _table_row(row: sqlite3.Row) -> dict:
    data = dict(row)
    for key in ("columns", "partition_keys", "properties"):
        data[key] = json.loads(data[key])
    return data


def list_databases() -> list[str]:
    """Return all database names, sorted."""
    conn = _get_connection()
    try:
        cursor = conn.execute("SELECT name FROM databases ORDER BY name")
        return [row["name"] for row in cursor.fetchall()]
    finally:
        conn.close()


def find_database(name: str) -> dict | None:
    """Look up a database by name. Returns dict with database info or None."""
    conn = _get_connection()
    try:
        cursor = conn.execute(
            "SELECT name, description, location, properties, created_at FROM databases WHERE name = ?",
            (name,)
        )
        row = cursor.fetchone()
        return _database_row(row) if row else None
    finally:
        conn.close()


def insert_database(conn: sqlite3.Connection, name: str, description: str | None,
                    location: str | None, properties: dict[str, str]) -> None:
    """Insert a new database record within a transaction."""
    conn.execute(
        "INSERT INTO databases (name, description, location, properties, created_at) VALUES (?, ?, ?, ?, ?)",
        (name, description, location, json.dumps(properties), time.time())
    )


def delete_database(conn: sqlite3.Connection, name: str) -> int:
    """Delete a database and every table inside it. Returns the database row count removed."""
    conn.execute("DELETE FROM tables WHERE db_name = ?", (name,))
    cursor = conn.execute("DELETE FROM databases WHERE name = ?", (name,))
    return cursor.rowcount


def count_tables(conn: sqlite3.Connection, db_name: str) -> int:
    cursor = conn.execute("SELECT COUNT(*) FROM tables WHERE db_name = ?", (db_name,))
    return cursor.fetchone()[0]


def list_tables(db_name: str) -> list[str]:
    """Return the names of all tables in a database, sorted."""
    conn = _get_connection()
    try:
        cursor = conn.execute(
            "SELECT name FROM tables WHERE db_name = ? ORDER BY name", (db_name,)
        )
        return [row["name"] for row in cursor.fetchall()]
    finally:
        conn.close()


def find_table(db_name: str, name: str) -> dict | None:
    """Look up a table. Returns dict with table info or None."""
    conn = _get_connection()
    try:
        cursor = conn.execute(
            "SELECT db_name, name, columns, partition_keys, location, properties, created_at "
            "FROM tables WHERE db_name = ? AND name = ?",
            (db_name, name)
        )
        row = cursor.fetchone()
        return _table_row(row) if row else None
    finally:
        conn.close()


def insert_table(conn: sqlite3.Connection, db_name: str, name: str, columns: list[dict],
                 partition_keys: list[dict], location: str | None,
                 properties: dict[str, str]) -> None:
    """Insert a new table record within a transaction."""
    conn.execute(
        "INSERT INTO tables (db_name, name, columns, partition_keys, location, properties, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (db_name, name, json.dumps(columns), json.dumps(partition_keys), location,
         json.dumps(properties), time.time())
    )


def delete_table(conn: sqlite3.Connection, db_name: str, name: str) -> int:
    """Delete a table within a transaction. Returns the number of rows removed."""
    cursor = conn.execute("DELETE FROM tables WHERE db_name = ? AND name = ?", (db_name, name))
    return cursor.rowcount
