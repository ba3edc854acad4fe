# filepath: src/infra/db/conn.py
from __future__ import annotations

import sqlite3

from infra.db.cellar_db import connect, init_db


def get_conn() -> sqlite3.Connection:
    """
    Open a connection to the configured cellar database with the schema
    ensured. Rows come back as sqlite3.Row so they behave like dicts.
    """
    conn = connect()
    init_db(conn)
    return conn
