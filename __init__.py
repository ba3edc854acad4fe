"""Initialise the wine cellar storage package.

This package contains the storage placement engine for a wine cellar
tracker: spaces, walls and racks, bottle placement into grid slots and
bin cells, staging of multi-bottle selections and per-rack labels, served
over a small JSON HTTP API backed by SQLite. To start the API, run
``python3 src/app/server.py`` after populating the database with
``PYTHONPATH=src python3 -m scripts.sample_data`` or your own scripts.
"""

__all__ = []
