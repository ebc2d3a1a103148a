"""
HTTP client for the metadata catalog service.

Exposes existence checks, create/drop and listing operations for
databases and tables. Every remote failure surfaces as ServiceError.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, asdict
from typing import Any

import httpx

from metabench.exceptions import ServiceError

logger = logging.getLogger(__name__)


@dataclass
class Column:
    name: str
    type: str = "string"
    comment: str | None = None


@dataclass
class TableSpec:
    """Descriptor of a table to create."""

    db_name: str
    name: str
    columns: list[Column] = field(default_factory=list)
    partition_keys: list[Column] = field(default_factory=list)
    location: str | None = None
    properties: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Request body for table creation."""
        data = asdict(self)
        del data["db_name"]
        return data


def make_table(
    db_name: str,
    name: str,
    columns: list[Column] | None = None,
    partition_keys: list[Column] | None = None,
) -> TableSpec:
    """Build a table descriptor, with a single string column by default."""
    return TableSpec(
        db_name=db_name,
        name=name,
        columns=columns if columns else [Column("id")],
        partition_keys=partition_keys or [],
    )


def _filter_names(names: list[str], pattern: str | None) -> set[str]:
    """Keep the names matching the whole regular expression. Empty pattern keeps all."""
    if not pattern:
        return set(names)
    regex = re.compile(pattern)
    return {n for n in names if regex.fullmatch(n)}


class MetadataClient:
    """Client for the metadata catalog REST API.

    Holds a single httpx connection pool for its lifetime. Use as a
    context manager, or call close() explicitly; close() is idempotent.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client: httpx.Client | None = http_client or httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
        )

    def __enter__(self) -> MetadataClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MetadataClient({self.base_url})"

    def close(self) -> None:
        if self._client is not None:
            logger.debug("Closing connection to %s", self.base_url)
            if self._owns_client:
                self._client.close()
            self._client = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            raise RuntimeError("Client is closed.")
        return self._client

    @property
    def endpoint(self) -> tuple[str, int]:
        """(host, port) of the service, for raw connection probes."""
        url = httpx.URL(self.base_url)
        port = url.port or (443 if url.scheme == "https" else 80)
        return url.host, port

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceError(f"{method} {path}: {e}") from e
        if response.is_error:
            raise ServiceError(
                f"{method} {path}: {response.status_code} {_detail(response)}",
                status_code=response.status_code,
            )
        return response

    def _exists(self, path: str) -> bool:
        try:
            self._request("GET", path)
        except ServiceError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def health_check(self) -> bool:
        """Check if the service is responding."""
        try:
            response = self.client.get("/v1/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    # Databases

    def database_exists(self, db_name: str) -> bool:
        return self._exists(f"/v1/namespaces/{db_name}")

    def get_database(self, db_name: str) -> dict[str, Any]:
        return _json(self._request("GET", f"/v1/namespaces/{db_name}"))

    def list_databases(self, filter: str | None = None) -> set[str]:
        """Return all database names matching the filter regexp."""
        names = _json(self._request("GET", "/v1/namespaces"), "namespaces")
        return _filter_names(names, filter)

    def create_database(
        self,
        name: str,
        description: str | None = None,
        location: str | None = None,
        properties: dict[str, str] | None = None,
    ) -> bool:
        self._request(
            "POST",
            "/v1/namespaces",
            json={
                "name": name,
                "description": description,
                "location": location,
                "properties": properties or {},
            },
        )
        logger.debug(f"Created database {name}")
        return True

    def drop_database(self, db_name: str, cascade: bool = True) -> bool:
        self._request(
            "DELETE", f"/v1/namespaces/{db_name}", params={"cascade": str(cascade).lower()}
        )
        return True

    # Tables

    def table_exists(self, db_name: str, table_name: str) -> bool:
        return self._exists(f"/v1/namespaces/{db_name}/tables/{table_name}")

    def get_table(self, db_name: str, table_name: str) -> dict[str, Any]:
        return _json(self._request("GET", f"/v1/namespaces/{db_name}/tables/{table_name}"))

    def list_tables(self, db_name: str, filter: str | None = None) -> set[str]:
        """Return all table names in a database matching the filter regexp."""
        names = _json(self._request("GET", f"/v1/namespaces/{db_name}/tables"), "identifiers")
        return _filter_names(names, filter)

    def create_table(self, table: TableSpec) -> bool:
        self._request("POST", f"/v1/namespaces/{table.db_name}/tables", json=table.to_dict())
        return True

    def drop_table(self, db_name: str, table_name: str) -> bool:
        self._request("DELETE", f"/v1/namespaces/{db_name}/tables/{table_name}")
        return True


def _json(response: httpx.Response, key: str | None = None) -> Any:
    """Decode a response body, optionally picking one key; malformed bodies are ServiceError."""
    where = f"{response.request.method} {response.request.url.path}"
    try:
        data = response.json()
    except ValueError as e:
        raise ServiceError(f"{where}: malformed response: {e}", status_code=response.status_code) from e
    if key is None:
        if not isinstance(data, dict):
            raise ServiceError(f"{where}: expected an object", status_code=response.status_code)
        return data
    if not isinstance(data, dict) or not isinstance(data.get(key), list):
        raise ServiceError(f"{where}: response has no '{key}' list", status_code=response.status_code)
    return data[key]


def _detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    return response.text
