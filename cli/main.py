"""CyberWeaver CLI — entry-point for node store operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db        → schema creation / migration
    nodes     → list, upsert, delete, export, import
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

# Ensure the project root is on sys.path so that `from cyberweaver.xxx import
# ...` works when the CLI is invoked as `python cli/main.py` from any
# working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from cyberweaver.config import configure_logging, settings
from cyberweaver.db import SchemaError, get_connection, init_schema
from cyberweaver.db.migrations import table_columns

from cli.commands.nodes import nodes_app

app = typer.Typer(
    name="cyberweaver",
    help="CyberWeaver node store CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override CYBERWEAVER_LOG_LEVEL."),
) -> None:
    """Configure logging before any sub-command runs."""
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Create the nodes table, or migrate an older one in place."""
    conn = get_connection()
    try:
        init_schema(conn)
        columns = table_columns(conn)
    except SchemaError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    finally:
        conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")
    typer.echo(f"[db init] Columns: {', '.join(columns)}")


# ---------------------------------------------------------------------------
# Node commands
# ---------------------------------------------------------------------------
app.add_typer(nodes_app, name="nodes")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
