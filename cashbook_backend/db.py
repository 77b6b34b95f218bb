# cashbook_backend/db.py
import os
import sqlite3
from contextlib import contextmanager

from flask import current_app, g

SCHEMA_FILE = os.path.join(os.path.dirname(__file__), "init_db.sql")


def _connect(db_path):
    # ensure directory exists
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db = g._database = _connect(current_app.config['DB_PATH'])
    return db


def close_db(exception=None):
    db = g.pop('_database', None)
    if db is not None:
        db.close()


def query_db(query, args=(), one=False):
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=()):
    """Run a single write and commit. Returns the new row id."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute(query, args)
    conn.commit()
    last = cur.lastrowid
    cur.close()
    return last


def update_db(query, args=()):
    """Run a single UPDATE/DELETE and commit. Returns the affected row count."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute(query, args)
    conn.commit()
    count = cur.rowcount
    cur.close()
    return count


@contextmanager
def transaction():
    """Group several writes; commits on success and rolls back on error."""
    conn = get_db()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db(db_path=None):
    """
    Initialize the SQLite database from init_db.sql.
    Idempotent (IF NOT EXISTS everywhere) so it runs at every app startup.
    """
    if not os.path.exists(SCHEMA_FILE):
        raise FileNotFoundError(f"init_db.sql not found at expected path: {SCHEMA_FILE}")

    conn = _connect(db_path or current_app.config['DB_PATH'])
    try:
        with open(SCHEMA_FILE, 'r', encoding='utf-8') as f:
            sql = f.read()
        conn.executescript(sql)
        conn.commit()
    finally:
        conn.close()
