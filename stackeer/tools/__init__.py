from __future__ import annotations

from typing import Any, Dict

from stackeer.coordinator import FetchCoordinatorService

from .cache_status import CacheStatusTool
from .clear_cache import ClearCacheTool
from .fetch_resource import FetchResourceTool


def build_tools(service: FetchCoordinatorService) -> Dict[str, Any]:
    """Instantiate and return available tool instances keyed by name."""

    tools = [
        FetchResourceTool(service=service),
        ClearCacheTool(service=service),
        CacheStatusTool(service=service),
    ]
    return {tool.name: tool for tool in tools}


__all__ = ["build_tools", "CacheStatusTool", "ClearCacheTool", "FetchResourceTool"]
