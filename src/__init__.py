"""Editorial CMS data layer.

Client-side request queueing and dual-mode persistence (live backend,
local store, GitHub commits) plus the JSON-file backend they talk to.
"""

__version__ = "0.4.0"
