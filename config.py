import os
from pathlib import Path

import httpx

# Read from environment, default to "data" for production
DATA_DIR = Path(os.environ.get("DATA_DIR", "data"))

# Port the catalog service listens on when a URI does not name one
DEFAULT_PORT = int(os.environ.get("CATALOG_PORT", "8000"))
CATALOG_HOST = os.environ.get("CATALOG_HOST", "0.0.0.0")

METASTORE_URL = os.environ.get("METASTORE_URL", f"http://localhost:{DEFAULT_PORT}")


def get_db_path() -> Path:
    """Get the catalog database file path within the data directory."""
    return DATA_DIR / "catalog.db"


def get_server_url(server: str | None = None) -> str:
    """Normalise a server argument into a base URL.

    Accepts a bare host, ``host:port`` or a full URL. Missing scheme
    defaults to http, missing port to DEFAULT_PORT.
    """
    if not server:
        return METASTORE_URL.rstrip("/")

    if "://" not in server:
        # Unbracketed IPv6 address, e.g. ::1
        if server.count(":") > 1 and not server.startswith("["):
            server = f"[{server}]"
        server = f"http://{server}"

    try:
        url = httpx.URL(server)
        if url.port is None:
            url = url.copy_with(port=DEFAULT_PORT)
    except (httpx.InvalidURL, ValueError) as e:
        raise ValueError(f"invalid server '{server}': {e}") from e
    if not url.host:
        raise ValueError(f"invalid server '{server}': missing host")

    return str(url).rstrip("/")
