import os
import sys
import tempfile

import pytest

# Ensure 'src/' is on sys.path for imports like 'from core import enums'
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_SRC_PATH = os.path.join(_REPO_ROOT, "src")
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from app.di import (  # noqa: E402
    SqliteLotLedger,
    label_service_for_conn,
    placement_service_for_conn,
    topology_service_for_conn,
)
from infra.db.cellar_db import connect, init_db  # noqa: E402
from infra.db.repositories import LotsRepo  # noqa: E402

API_ENV_VAR = "API_BASE_URL"
CELLAR_ID = 1


def pytest_addoption(parser):
    parser.addoption(
        "--api-base-url",
        action="store",
        default=None,
        help="Override base URL for contract tests (e.g. http://localhost:8000/api)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "contract: mark a test as a contract test")


@pytest.fixture(scope="session")
def api_base_url(pytestconfig):
    # Priority: CLI flag > env var > None (contract tests will skip)
    cli = pytestconfig.getoption("--api-base-url")
    if cli:
        return cli
    return os.environ.get(API_ENV_VAR)


@pytest.fixture
def skip_if_no_api(api_base_url):
    if not api_base_url:
        pytest.skip(
            f"Skipping contract tests: {API_ENV_VAR} is unset and --api-base-url not provided"
        )


# --- SQLite test DB fixtures ---


@pytest.fixture()
def temp_db_path():
    fd, path = tempfile.mkstemp(prefix="cellar_", suffix=".db")
    os.close(fd)
    try:
        yield path
    finally:
        for suffix in ("", "-wal", "-shm"):
            try:
                os.remove(path + suffix)
            except FileNotFoundError:
                pass


@pytest.fixture()
def conn():
    """In-memory cellar database with the full schema."""
    c = connect(":memory:")
    init_db(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture()
def lots(conn):
    return LotsRepo(conn)


@pytest.fixture()
def make_lot(conn, lots):
    """Insert a local lot and return its id."""

    def _make(quantity, wine_name="Test Wine", producer_name="Test Producer", vintage=2018, color="red"):
        lot_id = lots.insert_lot(
            cellar_id=CELLAR_ID,
            wine_name=wine_name,
            producer_name=producer_name,
            vintage=vintage,
            color=color,
            quantity=quantity,
        )
        conn.commit()
        return lot_id

    return _make


@pytest.fixture()
def placement(conn, lots):
    return placement_service_for_conn(conn, ledger=SqliteLotLedger(lots))


@pytest.fixture()
def topology(conn, placement):
    return topology_service_for_conn(conn, placement=placement)


@pytest.fixture()
def labels(conn):
    return label_service_for_conn(conn)


@pytest.fixture()
def room(topology):
    return topology.create_space(CELLAR_ID, "Basement", "room", walls=["left", "back"])


@pytest.fixture()
def left_wall(topology, room):
    return next(w for w in topology.list_walls(room.id) if w.position.value == "left")


@pytest.fixture()
def fridge(topology):
    return topology.create_space(CELLAR_ID, "Kitchen fridge", "fridge")
