"""
Populate the SQLite database with a sample cellar.

Creates a few local lots, a room with two walls (a grid rack and a bin rack)
and a wine fridge, then places some bottles so the API has something to show.

It writes to the configured SQLite database (see `app.settings`). Re-running
adds another copy of the sample spaces and lots.

Usage:

    PYTHONPATH=src python3 -m scripts.sample_data
"""

from __future__ import annotations

from app.di import SqliteLotLedger, placement_service_for_conn, topology_service_for_conn
from app.settings import get_settings
from core.utils.logging import get_logger
from infra.db.conn import get_conn
from infra.db.repositories import LotsRepo
from infra.db.session import transaction

SETTINGS = get_settings()
CELLAR_ID = 1

log = get_logger(__name__)

SAMPLE_LOTS = [
    # wine_name, producer_name, vintage, color, quantity
    ("Barolo Brunate", "Giuseppe Rinaldi", 2016, "red", 6),
    ("Chablis 1er Cru Montée de Tonnerre", "Raveneau", 2019, "white", 3),
    ("Rioja Gran Reserva 904", "La Rioja Alta", 2011, "red", 12),
    ("Champagne Brut Réserve", "Charles Heidsieck", None, "sparkling", 4),
]


def main() -> None:
    conn = get_conn()
    try:
        lots = LotsRepo(conn)
        with transaction(conn):
            lot_ids = [
                lots.insert_lot(
                    cellar_id=CELLAR_ID,
                    wine_name=name,
                    producer_name=producer,
                    vintage=vintage,
                    color=color,
                    quantity=qty,
                )
                for name, producer, vintage, color, qty in SAMPLE_LOTS
            ]

        placement = placement_service_for_conn(conn, ledger=SqliteLotLedger(lots))
        topology = topology_service_for_conn(conn, placement=placement)

        room = topology.create_space(CELLAR_ID, "Basement", "room", walls=["left", "back"])
        left, back = topology.list_walls(room.id)
        grid = topology.create_rack(room.id, "grid", columns=6, rows=4, depth=2, wall_id=left.id, name="Left grid")
        bins = topology.create_rack(room.id, "bin", columns=3, rows=2, capacity=12, wall_id=back.id, name="Cases")
        fridge = topology.create_space(CELLAR_ID, "Kitchen fridge", "fridge")
        topology.create_rack(fridge.id, "grid", columns=4, rows=3, name="Door shelf")

        placement.place_in_slot(grid.id, 1, 1, 1, lot_ids[0])
        placement.place_in_slot(grid.id, 1, 2, 1, lot_ids[0])
        placement.place_in_slot(grid.id, 2, 1, 1, lot_ids[1])
        placement.place_many_in_bin(bins.id, 1, 1, lot_ids[2], 6)

        log.info("Sample data inserted into %s", SETTINGS.db_path)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
