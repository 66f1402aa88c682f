"""Batch endpoints for canvas nodes.

Routes
------
GET    /nodes          List every node, oldest write first
PUT    /nodes          Upsert a batch of nodes in one transaction
POST   /nodes/delete   Delete a batch of nodes by id
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from cyberweaver.commands import CommandError, NodeCommands

router = APIRouter()

_STATUS_BY_KIND = {"validation": 422, "store": 500}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class NodeIn(BaseModel):
    id: str
    type: str
    x: float
    y: float
    content: str
    width: Optional[float] = None
    height: Optional[float] = None


class NodeResponse(BaseModel):
    id: str
    type: str
    x: float
    y: float
    content: str
    width: Optional[float]
    height: Optional[float]


class UpsertRequest(BaseModel):
    nodes: list[NodeIn]


class DeleteRequest(BaseModel):
    ids: list[str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _commands(request: Request) -> NodeCommands:
    return request.app.state.commands


def _http_error(exc: CommandError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_KIND.get(exc.kind, 500), detail=exc.message)


# ---------------------------------------------------------------------------
# Endpoints
#
# These stay ``async def``: they run on the event loop one at a time, which
# keeps batches on the single shared connection from interleaving.  Plain
# ``def`` routes would run concurrently in FastAPI's thread pool.
# ---------------------------------------------------------------------------

@router.get("", response_model=list[NodeResponse])
async def get_nodes(request: Request) -> list[dict[str, Any]]:
    """Return all nodes ordered by write time, then id."""
    try:
        return await _commands(request).get_nodes()
    except CommandError as exc:
        raise _http_error(exc) from exc


@router.put("", status_code=204)
async def upsert_nodes(body: UpsertRequest, request: Request) -> Response:
    """Insert or replace every node in the batch, or none of them."""
    try:
        await _commands(request).upsert_nodes(n.model_dump() for n in body.nodes)
    except CommandError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.post("/delete", status_code=204)
async def delete_nodes(body: DeleteRequest, request: Request) -> Response:
    """Delete the given ids; unknown ids are ignored."""
    try:
        await _commands(request).delete_nodes(body.ids)
    except CommandError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)
