"""
SQLite data-access layer for the cellar storage model.

Schema
------

spaces
    id INTEGER PRIMARY KEY
    cellar_id INTEGER             – owning cellar (inventory subsystem id)
    name TEXT NOT NULL
    kind TEXT                     – room / fridge
    created_at, updated_at TEXT DEFAULT CURRENT_TIMESTAMP

walls
    id INTEGER PRIMARY KEY
    space_id INTEGER REFERENCES spaces(id) ON DELETE CASCADE
    position TEXT                 – left / right / back / front / floor
    UNIQUE(space_id, position)

racks
    id INTEGER PRIMARY KEY
    space_id INTEGER REFERENCES spaces(id) ON DELETE CASCADE
    wall_id  INTEGER REFERENCES walls(id)  ON DELETE CASCADE   – NULL for fridges
    name TEXT                     – optional user-assigned name
    kind TEXT                     – grid / bin
    cols, rows INTEGER
    depth INTEGER                 – grid only
    capacity INTEGER              – bin only, bottles per cell
    sort_order INTEGER
    labels TEXT                   – JSON {"row-col": text}

slots (grid racks; materialized at rack creation)
    id INTEGER PRIMARY KEY
    rack_id INTEGER REFERENCES racks(id) ON DELETE CASCADE
    row_index, col_index, depth_position INTEGER
    lot_id INTEGER                – NULL when empty
    placed_at TEXT
    UNIQUE(rack_id, row_index, col_index, depth_position)

bin_bottles (bin racks)
    id INTEGER PRIMARY KEY
    rack_id INTEGER REFERENCES racks(id) ON DELETE CASCADE
    bin_row, bin_col INTEGER
    lot_id INTEGER NOT NULL
    placed_at TEXT DEFAULT CURRENT_TIMESTAMP

lots (local lot ledger; authoritative copy may live in a remote inventory API)
    id INTEGER PRIMARY KEY
    cellar_id INTEGER
    wine_name, producer_name TEXT
    vintage INTEGER
    color TEXT
    quantity INTEGER CHECK(quantity >= 0)

audit_log
    id INTEGER PRIMARY KEY
    entity TEXT, entity_id INTEGER
    action TEXT                   – create/update/delete/place/remove/unassign
    before_state TEXT (JSON), after_state TEXT (JSON)
    at TEXT DEFAULT CURRENT_TIMESTAMP
    user TEXT
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from app.settings import get_settings


# Helper to safely get lastrowid with static type checkers
def lastrowid(cur: sqlite3.Cursor) -> int:
    """Return a non-None lastrowid or raise at runtime; helps static type checkers."""
    rid = cur.lastrowid
    if rid is None:
        raise RuntimeError("Expected lastrowid after INSERT.")
    return int(rid)


# --------------------------------------------------------------------------- helpers
def connect(db_path: str | Path | None = None) -> sqlite3.Connection:
    path = str(db_path or get_settings().db_path)
    conn = sqlite3.connect(path, timeout=30)
    conn.row_factory = sqlite3.Row
    # Apply robust defaults on every connection
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=30000;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def audit(
    conn: sqlite3.Connection,
    entity: str,
    entity_id: int,
    action: str,
    before: dict | None = None,
    after: dict | None = None,
    user: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO audit_log(entity, entity_id, action, before_state, after_state, user)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            entity,
            entity_id,
            action,
            json.dumps(before) if before is not None else None,
            json.dumps(after) if after is not None else None,
            user,
        ),
    )


# --------------------------------------------------------------------------- schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS spaces(
    id          INTEGER PRIMARY KEY,
    cellar_id   INTEGER NOT NULL,
    name        TEXT NOT NULL,
    kind        TEXT NOT NULL CHECK (kind IN ('room', 'fridge')),
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS walls(
    id          INTEGER PRIMARY KEY,
    space_id    INTEGER NOT NULL REFERENCES spaces(id) ON DELETE CASCADE,
    position    TEXT NOT NULL,
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(space_id, position)
);

CREATE TABLE IF NOT EXISTS racks(
    id          INTEGER PRIMARY KEY,
    space_id    INTEGER NOT NULL REFERENCES spaces(id) ON DELETE CASCADE,
    wall_id     INTEGER REFERENCES walls(id) ON DELETE CASCADE,
    name        TEXT,
    kind        TEXT NOT NULL CHECK (kind IN ('grid', 'bin')),
    cols        INTEGER NOT NULL CHECK (cols > 0),
    rows        INTEGER NOT NULL CHECK (rows > 0),
    depth       INTEGER,
    capacity    INTEGER,
    sort_order  INTEGER DEFAULT 0,
    labels      TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS slots(
    id              INTEGER PRIMARY KEY,
    rack_id         INTEGER NOT NULL REFERENCES racks(id) ON DELETE CASCADE,
    row_index       INTEGER NOT NULL,
    col_index       INTEGER NOT NULL,
    depth_position  INTEGER NOT NULL DEFAULT 1,
    lot_id          INTEGER,
    placed_at       TEXT,
    UNIQUE(rack_id, row_index, col_index, depth_position)
);

CREATE TABLE IF NOT EXISTS bin_bottles(
    id          INTEGER PRIMARY KEY,
    rack_id     INTEGER NOT NULL REFERENCES racks(id) ON DELETE CASCADE,
    bin_row     INTEGER NOT NULL,
    bin_col     INTEGER NOT NULL,
    lot_id      INTEGER NOT NULL,
    placed_at   TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS lots(
    id              INTEGER PRIMARY KEY,
    cellar_id       INTEGER,
    wine_name       TEXT NOT NULL,
    producer_name   TEXT NOT NULL DEFAULT '',
    vintage         INTEGER,
    color           TEXT,
    quantity        INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0)
);

CREATE TABLE IF NOT EXISTS audit_log (
  id           INTEGER PRIMARY KEY,
  entity       TEXT NOT NULL,   -- 'space' | 'wall' | 'rack' | 'slot' | 'bin_bottle'
  entity_id    INTEGER NOT NULL,
  action       TEXT NOT NULL,
  before_state TEXT,            -- JSON
  after_state  TEXT,            -- JSON
  at           TEXT DEFAULT CURRENT_TIMESTAMP,
  user         TEXT
);

CREATE INDEX IF NOT EXISTS idx_walls_space        ON walls(space_id);
CREATE INDEX IF NOT EXISTS idx_racks_space        ON racks(space_id);
CREATE INDEX IF NOT EXISTS idx_racks_wall         ON racks(wall_id);
CREATE INDEX IF NOT EXISTS idx_slots_lot          ON slots(lot_id);
CREATE INDEX IF NOT EXISTS idx_bin_bottles_lot    ON bin_bottles(lot_id);
CREATE INDEX IF NOT EXISTS idx_bin_bottles_cell   ON bin_bottles(rack_id, bin_row, bin_col);
CREATE INDEX IF NOT EXISTS idx_lots_cellar        ON lots(cellar_id);
"""


def init_db(conn: sqlite3.Connection | None = None) -> None:
    """Create tables and indexes (idempotent)."""
    if conn is not None:
        conn.executescript(SCHEMA)
        conn.commit()
        return
    with connect() as own:
        own.executescript(SCHEMA)
        own.commit()
