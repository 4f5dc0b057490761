from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stackeer.coordinator import FetchCoordinatorService


class CacheStatusInput(BaseModel):
    url: str | None = Field(default=None, description="URL to probe in the disk cache")

    model_config = ConfigDict(extra="forbid")


class CacheStatusResponse(BaseModel):
    url: str | None = None
    cached: bool | None = None
    in_flight: int = Field(alias="inFlight", description="Downloads currently in progress")
    entries: int = Field(description="Files currently held in the disk cache")
    stats: dict[str, int]

    model_config = ConfigDict(populate_by_name=True)


class CacheStatusTool:
    """Report whether a URL is cached, plus service counters."""

    name = "stackeer.cache_status"
    description = "Report whether a URL has a cached copy and return cache statistics."
    input_model = CacheStatusInput
    output_model = CacheStatusResponse

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

    async def run(self, payload: CacheStatusInput) -> CacheStatusResponse:
        cached = self._service.is_cached(payload.url) if payload.url else None
        return CacheStatusResponse(
            url=payload.url,
            cached=cached,
            in_flight=len(self._service.registry),
            entries=len(self._service.store.keys()),
            stats=self._service.get_stats(),
        )


__all__ = ["CacheStatusInput", "CacheStatusResponse", "CacheStatusTool"]
