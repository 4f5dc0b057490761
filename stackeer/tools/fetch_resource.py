from __future__ import annotations

import base64
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stackeer.consumers import CallbackConsumer
from stackeer.coordinator import FetchCoordinatorService
from stackeer.models import EncodeFormat, FetchCallbacks, FetchOptions, FetchRequest, PayloadKind

logger = logging.getLogger(__name__)


class FetchResourceInput(BaseModel):
    """Input schema for the fetch_resource tool."""

    url: str = Field(description="Absolute http(s) URL of the resource")
    kind: PayloadKind = Field(default=PayloadKind.TEXT, description="'text' or 'image'")
    enable_cache: bool = Field(default=True, alias="enableCache")
    ttl_hours: int | None = Field(
        default=None,
        ge=0,
        alias="ttlHours",
        description="Hours a cached copy stays valid, defaults to the server setting",
    )
    persist_after_use: bool = Field(default=True, alias="persistAfterUse")
    encode_format: EncodeFormat | None = Field(default=None, alias="encodeFormat")
    force_refresh: bool = Field(
        default=False, alias="forceRefresh", description="If true, bypass cache and fetch fresh data"
    )

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("url must not be empty")
        return normalized


class ResponseMeta(BaseModel):
    cache_hit: bool = Field(alias="cacheHit")
    key: str

    model_config = ConfigDict(populate_by_name=True)


class FetchResourceResponse(BaseModel):
    url: str
    kind: PayloadKind
    text: str | None = None
    content_base64: str | None = Field(default=None, alias="contentBase64")
    width: int | None = None
    height: int | None = None
    meta: ResponseMeta

    model_config = ConfigDict(populate_by_name=True)


class FetchResourceTool:
    """Tool implementation for fetching a URL through the disk cache."""

    name = "stackeer.fetch_resource"
    description = (
        "Fetch a text payload or an image from a URL, serving it from the "
        "local disk cache while the cached copy is within its TTL."
    )
    input_model = FetchResourceInput
    output_model = FetchResourceResponse

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

    async def run(self, payload: FetchResourceInput) -> FetchResourceResponse:
        errors: list[str] = []
        images: list[Any] = []
        request = FetchRequest(
            url=payload.url,
            payload_kind=payload.kind,
            options=FetchOptions(
                enable_cache=payload.enable_cache,
                ttl_hours=self._service.default_ttl_hours if payload.ttl_hours is None else payload.ttl_hours,
                persist_after_use=payload.persist_after_use,
                encode_format=payload.encode_format,
            ),
        )
        consumer = CallbackConsumer(images.append) if payload.kind is PayloadKind.BINARY_IMAGE else None
        callbacks = FetchCallbacks(on_error=errors.append)

        if payload.force_refresh:
            result = await self._service.redownload(request, consumer=consumer, callbacks=callbacks)
        else:
            result = await self._service.fetch(request, consumer=consumer, callbacks=callbacks)

        if result is None:
            raise ValueError(errors[-1] if errors else f"Failed to fetch {payload.url}")

        logger.info(
            "fetch_resource",
            extra={"url": result.url, "cache_hit": result.from_cache, "size": len(result.content)},
        )
        response = FetchResourceResponse(
            url=result.url,
            kind=result.payload_kind,
            meta=ResponseMeta(cache_hit=result.from_cache, key=result.key),
        )
        if result.payload_kind is PayloadKind.TEXT:
            response.text = result.text
        else:
            response.content_base64 = base64.b64encode(result.content).decode("ascii")
            if images:
                response.width, response.height = images[-1].size
        return response


__all__ = ["FetchResourceInput", "FetchResourceResponse", "FetchResourceTool"]
