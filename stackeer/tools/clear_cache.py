from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stackeer.coordinator import FetchCoordinatorService


class ClearCacheInput(BaseModel):
    """Input schema for clear_cache tool."""

    url: str | None = Field(default=None, description="Clear only this URL; omit to clear everything")

    model_config = ConfigDict(extra="forbid")


class ClearCacheResponse(BaseModel):
    """Response schema for clear_cache tool."""

    status: str = Field(description="Operation status (success)")
    message: str = Field(description="Result message")
    stats: dict[str, int] = Field(description="Service statistics after clearing")


class ClearCacheTool:
    """Tool for clearing one cached URL or the whole disk cache."""

    name = "stackeer.clear_cache"
    description = (
        "Clear the cached copy of a single URL, or every cached file and "
        "statistics when no URL is given."
    )
    input_model = ClearCacheInput
    output_model = ClearCacheResponse

    def __init__(self, service: FetchCoordinatorService) -> None:
        self._service = service

    def descriptor(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
            "outputSchema": self.output_model.model_json_schema(),
        }

    async def invoke(self, raw_arguments: dict | None) -> dict[str, Any]:
        payload = self.input_model.model_validate(raw_arguments or {})
        result = await self.run(payload)
        return result.model_dump(by_alias=True, exclude_none=True)

    async def run(self, payload: ClearCacheInput) -> ClearCacheResponse:
        if payload.url:
            self._service.clear_entry(payload.url)
            message = f"Cached file cleared for {payload.url}"
        else:
            self._service.clear_all()
            self._service.reset_stats()
            message = "Cache cleared and statistics reset"

        return ClearCacheResponse(
            status="success",
            message=message,
            stats=self._service.get_stats(),
        )


__all__ = ["ClearCacheInput", "ClearCacheResponse", "ClearCacheTool"]
