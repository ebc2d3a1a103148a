import os
import sys
import time
import socket
import subprocess
import shutil
from contextlib import closing
from pathlib import Path

import pytest


def pytest_configure(config):
    """
    Hook that runs before test collection.
    Set DATA_DIR environment variable for all tests.
    """
    temp_dir = Path("pytest-data-tmp")

    # Clean up if it exists from a previous run
    if temp_dir.exists():
        shutil.rmtree(temp_dir)

    # Create the directory
    temp_dir.mkdir(parents=True, exist_ok=True)

    # Set environment variable BEFORE any test code imports modules
    os.environ["DATA_DIR"] = str(temp_dir)


def pytest_unconfigure(config):
    """
    Hook that runs after all tests complete.
    Clean up temporary data directory.
    """
    temp_dir = Path("pytest-data-tmp")
    if temp_dir.exists():
        shutil.rmtree(temp_dir)


def _wait_for_port(host: str, port: int, timeout: float = 10.0) -> bool:
    """Wait until a TCP port is accepting connections or timeout."""
    end = time.time() + timeout
    while time.time() < end:
        try:
            with closing(socket.create_connection((host, port), timeout=0.5)):
                return True
        except OSError:
            time.sleep(0.1)
    return False


@pytest.fixture(scope="session")
def api_server(tmp_path_factory):
    """
    Start the catalog app from `main:app` in a subprocess using uvicorn.

    The server gets its own data directory. Yields the base URL
    (e.g. http://127.0.0.1:8787) to run tests against.
    """
    host = os.environ.get("API_HOST", "127.0.0.1")
    port = int(os.environ.get("API_PORT", "8787"))

    python = sys.executable
    cmd = [python, "-m", "uvicorn", "main:app", "--host", host, "--port", str(port)]

    env = os.environ.copy()
    env["DATA_DIR"] = str(tmp_path_factory.mktemp("catalog"))

    proc = subprocess.Popen(
        cmd,
        cwd=os.getcwd(),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )

    started = _wait_for_port(host, port, timeout=15.0)
    if not started:
        proc.kill()
        out, err = proc.communicate()
        raise RuntimeError(f"Server failed to start (port {port} not open). stdout:\n{out.decode(errors='ignore')}\nstderr:\n{err.decode(errors='ignore')}")

    base_url = f"http://{host}:{port}"

    try:
        yield base_url
    finally:
        # Terminate the server subprocess
        proc.terminate()
        try:
            proc.wait(timeout=5.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()


@pytest.fixture
def clean_catalog_db():
    """Start every test with an empty catalog database."""
    from database import DB_PATH, init_database

    if DB_PATH.exists():
        DB_PATH.unlink()
    init_database()
    yield DB_PATH
    if DB_PATH.exists():
        DB_PATH.unlink()


@pytest.fixture
def catalog_app(clean_catalog_db):
    """In-process catalog service, driven through FastAPI's TestClient."""
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app, base_url="http://catalog.test:8000") as client:
        yield client


class FakeCatalogClient:
    """In-memory stand-in for MetadataClient."""

    endpoint = ("127.0.0.1", 9)

    def __init__(self, databases: dict[str, set[str]] | None = None, healthy: bool = True):
        self.tables: dict[str, set[str]] = {db: set(t) for db, t in (databases or {}).items()}
        self.healthy = healthy
        self.close_count = 0
        self.created: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self.close_count += 1

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def health_check(self) -> bool:
        return self.healthy

    def database_exists(self, db_name: str) -> bool:
        return db_name in self.tables

    def create_database(self, name: str, *args, **kwargs) -> bool:
        from metabench.exceptions import ServiceError

        if name in self.tables:
            raise ServiceError(f"database '{name}' already exists", status_code=409)
        self.tables[name] = set()
        return True

    def list_databases(self, filter: str | None = None) -> set[str]:
        return set(self.tables)

    def table_exists(self, db_name: str, table_name: str) -> bool:
        return table_name in self.tables.get(db_name, set())

    def create_table(self, table) -> bool:
        from metabench.exceptions import ServiceError

        if table.db_name not in self.tables:
            raise ServiceError(f"database '{table.db_name}' not found", status_code=404)
        if table.name in self.tables[table.db_name]:
            raise ServiceError(f"table '{table.name}' already exists", status_code=409)
        self.tables[table.db_name].add(table.name)
        self.created.append(table.name)
        return True

    def drop_table(self, db_name: str, table_name: str) -> bool:
        from metabench.exceptions import ServiceError

        if table_name not in self.tables.get(db_name, set()):
            raise ServiceError(f"table '{db_name}.{table_name}' not found", status_code=404)
        self.tables[db_name].discard(table_name)
        return True

    def list_tables(self, db_name: str, filter: str | None = None) -> set[str]:
        from metabench.exceptions import ServiceError

        if db_name not in self.tables:
            raise ServiceError(f"database '{db_name}' not found", status_code=404)
        return set(self.tables[db_name])


@pytest.fixture
def fake_client():
    return FakeCatalogClient()
