"""ChitChat: a minimal real-time chat service.

Clients register anonymous accounts, post, edit and delete short text
messages, and receive creations and edits live over a websocket.

Typical usage
-------------
from chitchat import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 3000 --max-history 100
"""

from __future__ import annotations

from .server import create_app

__all__ = ["create_app", "__version__", "get_version"]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
