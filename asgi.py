"""
asgi.py -- ASGI entry point for the Results API.

Run with:  uvicorn asgi:app --reload

api/main.py builds the application; this module only re-exports it so the
server command stays stable if the app module moves.
"""

from api.main import app

__all__ = ["app"]
