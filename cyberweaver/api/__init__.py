"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from cyberweaver.api import app

    uvicorn cyberweaver.api:app --reload
"""

from cyberweaver.api.app import app

__all__ = ["app"]
