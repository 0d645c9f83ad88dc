"""Client-side data access: queueing, API access, static mode and publishing."""

from editorial.client.context import ClientContext, Mode

__all__ = ["ClientContext", "Mode"]
