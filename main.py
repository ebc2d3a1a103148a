import sqlite3

import fastapi
from fastapi import FastAPI, Response
from fastapi.concurrency import asynccontextmanager
from pydantic import BaseModel, Field
import uvicorn

from config import CATALOG_HOST, DEFAULT_PORT
from database import (
    init_database,
    db_transaction,
    list_databases,
    find_database,
    insert_database,
    delete_database,
    count_tables,
    list_tables,
    find_table,
    insert_table,
    delete_table,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    yield

app = fastapi.FastAPI(lifespan=lifespan)


class DatabaseSpec(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    location: str | None = None
    properties: dict[str, str] = Field(default_factory=dict)


class ColumnSpec(BaseModel):
    name: str = Field(min_length=1)
    type: str = "string"
    comment: str | None = None


class TableSpec(BaseModel):
    name: str = Field(min_length=1)
    columns: list[ColumnSpec] = Field(default_factory=list)
    partition_keys: list[ColumnSpec] = Field(default_factory=list)
    location: str | None = None
    properties: dict[str, str] = Field(default_factory=dict)


def _not_found(what: str) -> fastapi.HTTPException:
    return fastapi.HTTPException(status_code=404, detail=f"{what} not found")


def _require_database(db_name: str) -> dict:
    db = find_database(db_name)
    if db is None:
        raise _not_found(f"database '{db_name}'")
    return db


@app.get("/v1/health")
async def health():
    return {"status": "ok"}


@app.get("/v1/namespaces")
async def get_all_databases():
    return {"namespaces": list_databases()}


@app.post("/v1/namespaces")
async def create_database(spec: DatabaseSpec):
    try:
        with db_transaction() as conn:
            insert_database(conn, spec.name, spec.description, spec.location, spec.properties)
    except sqlite3.IntegrityError:
        raise fastapi.HTTPException(status_code=409, detail=f"database '{spec.name}' already exists")
    return {"namespace": spec.name}


@app.get("/v1/namespaces/{db_name}")
async def get_database(db_name: str):
    return _require_database(db_name)


@app.delete("/v1/namespaces/{db_name}", status_code=204)
async def drop_database(db_name: str, cascade: bool = False):
    with db_transaction() as conn:
        if not cascade and count_tables(conn, db_name) > 0:
            raise fastapi.HTTPException(status_code=409, detail=f"database '{db_name}' is not empty")
        if delete_database(conn, db_name) == 0:
            raise _not_found(f"database '{db_name}'")
    return Response(status_code=204)


@app.get("/v1/namespaces/{db_name}/tables")
async def get_all_tables(db_name: str):
    _require_database(db_name)
    return {"identifiers": list_tables(db_name)}


@app.post("/v1/namespaces/{db_name}/tables")
async def create_table(db_name: str, spec: TableSpec):
    _require_database(db_name)
    try:
        with db_transaction() as conn:
            insert_table(
                conn,
                db_name,
                spec.name,
                [c.model_dump() for c in spec.columns],
                [c.model_dump() for c in spec.partition_keys],
                spec.location,
                spec.properties,
            )
    except sqlite3.IntegrityError:
        raise fastapi.HTTPException(status_code=409, detail=f"table '{db_name}.{spec.name}' already exists")
    return {"identifier": f"{db_name}.{spec.name}"}


@app.get("/v1/namespaces/{db_name}/tables/{table_name}")
async def get_table(db_name: str, table_name: str):
    table = find_table(db_name, table_name)
    if table is None:
        raise _not_found(f"table '{db_name}.{table_name}'")
    return table


@app.delete("/v1/namespaces/{db_name}/tables/{table_name}", status_code=204)
async def drop_table(db_name: str, table_name: str):
    with db_transaction() as conn:
        if delete_table(conn, db_name, table_name) == 0:
            raise _not_found(f"table '{db_name}.{table_name}'")
    return Response(status_code=204)


if __name__ == "__main__":
    uvicorn.run(app, host=CATALOG_HOST, port=DEFAULT_PORT)
