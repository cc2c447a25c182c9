"""HTTP client and gateway shared by the CLI and the MCP server."""

from .async_utils import run_sync, run_sync_limited
from .client import CatalogClient
from .gateway import HttpGateway, RemoteGateway

__all__ = [
    "CatalogClient",
    "HttpGateway",
    "RemoteGateway",
    "run_sync",
    "run_sync_limited",
]
