from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .coordinator import FetchCoordinatorService
from .errors import InvalidInputError, StorageError
from .settings import configure_logging, get_settings
from .tools import build_tools


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings)
        service = FetchCoordinatorService.from_settings(settings)

        app.state.settings = settings
        app.state.service = service
        app.state.tools = build_tools(service)
        yield
        await service.aclose()

    app = FastAPI(
        title="Stackeer",
        version="0.1.0",
        summary="Disk-cached fetching of remote images and text payloads",
        lifespan=lifespan,
    )

    @app.get("/healthz", tags=["internal"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/stats", tags=["internal"])
    async def stats() -> dict[str, int]:
        service = getattr(app.state, "service", None)
        if service is None:
            return {}
        return service.get_stats()

    @app.post("/list_tools", tags=["mcp"])
    async def list_tools() -> dict[str, list]:
        tools = getattr(app.state, "tools", {})
        descriptors = [tool.descriptor() for tool in tools.values()]
        return {"tools": descriptors}

    @app.post("/call_tool", tags=["mcp"])
    async def call_tool(payload: dict = Body(default_factory=dict)) -> JSONResponse:
        tool_name = payload.get("toolName")
        if not tool_name:
            raise HTTPException(status_code=400, detail="toolName is required")
        tools = getattr(app.state, "tools", {})
        tool = tools.get(tool_name)
        if not tool:
            raise HTTPException(
                status_code=404, detail=f"Tool '{tool_name}' is not registered."
            )

        arguments = payload.get("arguments") or {}
        try:
            result = await tool.invoke(arguments)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=exc.errors(include_url=False, include_context=False)
            ) from exc
        except InvalidInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except StorageError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        return JSONResponse(content={"data": result})

    return app


app = create_app()
