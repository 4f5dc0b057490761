"""MCP server using FastMCP for stdio-based access to the stackeer cache."""

from pathlib import Path

from dotenv import load_dotenv
from fastmcp import FastMCP

from .coordinator import FetchCoordinatorService
from .settings import configure_logging, get_settings
from .tools.cache_status import CacheStatusInput, CacheStatusTool
from .tools.clear_cache import ClearCacheInput, ClearCacheTool
from .tools.fetch_resource import FetchResourceInput, FetchResourceTool

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


mcp = FastMCP("stackeer")

# Shared across all tools, created on first use
_service: FetchCoordinatorService | None = None


def _get_service() -> FetchCoordinatorService:
    """Get or create the shared fetch service."""
    global _service
    if _service is None:
        _service = FetchCoordinatorService.from_settings(get_settings())
    return _service


async def fetch_resource(
    url: str,
    kind: str = "text",
    ttl_hours: int | None = None,
    encode_format: str | None = None,
    force_refresh: bool = False,
) -> dict:
    """
    Fetch a text payload or an image, served from the local disk cache while
    the cached copy is younger than ttl_hours.

    Args:
        url: Absolute http(s) URL
        kind: 'text' or 'image'; image content is returned base64 encoded
        ttl_hours: Hours a cached copy stays valid, 0 always refetches.
            Defaults to STACKEER_DEFAULT_TTL_HOURS
        encode_format: 'PNG' or 'JPEG' storage encoding for images
        force_refresh: If true, bypass cache and fetch fresh data
    """
    tool = FetchResourceTool(service=_get_service())
    input_data = FetchResourceInput(
        url=url,
        kind=kind,
        ttl_hours=ttl_hours,
        encode_format=encode_format,
        force_refresh=force_refresh,
    )
    result = await tool.run(input_data)
    return result.model_dump(by_alias=True, exclude_none=True)


async def clear_cache(url: str | None = None) -> dict:
    """
    Clear the cached copy of one URL, or every cached file when url is omitted.

    Args:
        url: Optional URL whose cached copy should be removed
    """
    tool = ClearCacheTool(service=_get_service())
    result = await tool.run(ClearCacheInput(url=url))
    return result.model_dump(by_alias=True, exclude_none=True)


async def cache_status(url: str | None = None) -> dict:
    """
    Report whether a URL has a cached copy, with in-flight and cache statistics.

    Args:
        url: Optional URL to probe
    """
    tool = CacheStatusTool(service=_get_service())
    result = await tool.run(CacheStatusInput(url=url))
    return result.model_dump(by_alias=True, exclude_none=True)


async def get_server_stats() -> dict:
    """
    Get internal statistics including cache hits, misses, and request counts.
    """
    return _get_service().get_stats()


for _tool in (fetch_resource, clear_cache, cache_status, get_server_stats):
    mcp.tool()(_tool)


def main():
    """Run the MCP server."""
    configure_logging(get_settings())
    mcp.run()


if __name__ == "__main__":
    main()
