"""Commands for listing and editing persisted canvas nodes."""

from __future__ import annotations

import asyncio
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

import typer

from cyberweaver.commands import CommandError, NodeCommands
from cyberweaver.db import NodeStore, SchemaError, get_connection, init_schema

nodes_app = typer.Typer(help="List, upsert, delete, export and import nodes.")


@contextmanager
def open_commands() -> Iterator[NodeCommands]:
    """Open the configured DB, migrate it and yield a command surface."""
    conn = get_connection()
    try:
        init_schema(conn)
        yield NodeCommands(NodeStore(conn))
    except SchemaError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    finally:
        conn.close()


def _run(coro: Any) -> Any:
    """Run a command coroutine, turning a CommandError into exit code 1."""
    try:
        return asyncio.run(coro)
    except CommandError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1) from exc


def _format_size(node: dict[str, Any]) -> str:
    if node["width"] is None and node["height"] is None:
        return ""
    width = "-" if node["width"] is None else f"{node['width']:g}"
    height = "-" if node["height"] is None else f"{node['height']:g}"
    return f"  {width}x{height}"


@nodes_app.command("list")
def nodes_list(
    as_json: bool = typer.Option(False, "--json", help="Print nodes as a JSON array."),
) -> None:
    """List all nodes, oldest write first."""
    with open_commands() as commands:
        nodes = _run(commands.get_nodes())

    if as_json:
        typer.echo(json.dumps(nodes, indent=2))
        return
    if not nodes:
        typer.echo("[nodes list] No nodes found.")
        return
    for n in nodes:
        typer.echo(
            f"  {n['id']}  [{n['type']}]  ({n['x']:g}, {n['y']:g})"
            f"{_format_size(n)}  {n['content']!r}"
        )


@nodes_app.command("upsert")
def nodes_upsert(
    node_id: str = typer.Option(..., "--id", help="Node id (the shape: prefix is optional)."),
    node_type: str = typer.Option(..., "--type", help="Node type: geo | text | note."),
    x: float = typer.Option(..., "--x", help="Horizontal position."),
    y: float = typer.Option(..., "--y", help="Vertical position."),
    content: str = typer.Option("", "--content", help="Node text content."),
    width: Optional[float] = typer.Option(None, "--width", help="Optional width."),
    height: Optional[float] = typer.Option(None, "--height", help="Optional height."),
) -> None:
    """Insert a node, or replace it if the id already exists."""
    payload = {
        "id": node_id,
        "type": node_type,
        "x": x,
        "y": y,
        "content": content,
        "width": width,
        "height": height,
    }
    with open_commands() as commands:
        _run(commands.upsert_nodes([payload]))
    typer.echo(f"[nodes upsert] Saved node {node_id!r}.")


@nodes_app.command("delete")
def nodes_delete(
    ids: List[str] = typer.Argument(..., help="Ids of the nodes to delete."),
) -> None:
    """Delete nodes by id.  Unknown ids are ignored."""
    with open_commands() as commands:
        deleted = _run(commands.delete_nodes(ids))
    typer.echo(f"[nodes delete] Deleted {deleted} node(s).")


@nodes_app.command("export")
def nodes_export(
    path: Path = typer.Argument(..., help="Destination JSON file."),
) -> None:
    """Write every node to a JSON file."""
    with open_commands() as commands:
        nodes = _run(commands.get_nodes())
    path.write_text(json.dumps(nodes, indent=2), encoding="utf-8")
    typer.echo(f"[nodes export] Wrote {len(nodes)} node(s) to {path}")


@nodes_app.command("import")
def nodes_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file to import."),
) -> None:
    """Upsert a JSON array of nodes as a single batch."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.echo(f"Error: {path} is not valid JSON: {exc}", err=True)
        raise typer.Exit(1) from exc
    if not isinstance(data, list):
        typer.echo(f"Error: {path} must contain a JSON array of nodes.", err=True)
        raise typer.Exit(1)

    with open_commands() as commands:
        _run(commands.upsert_nodes(data))
    typer.echo(f"[nodes import] Imported {len(data)} node(s) from {path}")
