"""HTTP backend serving the JSON-file content database."""

from editorial.server.app import create_app

__all__ = ["create_app"]
