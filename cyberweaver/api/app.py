"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection, initialises the schema
and wires a :class:`~cyberweaver.commands.NodeCommands` onto
``request.app.state.commands``.  On shutdown it closes the connection.  A
failed schema migration aborts startup.

Routers
-------
    /nodes     — batch list / upsert / delete of canvas nodes
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cyberweaver import __version__
from cyberweaver.commands import NodeCommands
from cyberweaver.config import configure_logging, settings
from cyberweaver.db import NodeStore, get_connection, init_schema

from cyberweaver.api.routers import nodes as nodes_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    configure_logging()
    conn = get_connection()
    try:
        init_schema(conn)
        app.state.db = conn
        app.state.commands = NodeCommands(NodeStore(conn))
        logger.info("Serving nodes from %s", settings.db_path)
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="CyberWeaver API",
        description="Batch persistence for canvas nodes (shapes, text, notes).",
        version=__version__,
        lifespan=lifespan,
    )

    # The canvas front-end is served from a different local origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(nodes_router.router, prefix="/nodes", tags=["nodes"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn cyberweaver.api.app:app --reload
app = create_app()
