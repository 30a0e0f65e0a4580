"""
asgi.py -- ASGI entry point for Taskboard.

The SPA is served separately and talks to this process only through
/api/v1, so the app object from api.main is exported unchanged.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
