"""HTTP surface: thin mapping from requests to catalog and detail-cache calls."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scancar import __version__
from scancar.models.errors import ScanCarError, TotalRefreshFailure, UpstreamDetailError, ValidationError
from scancar.pipeline.catalog import Catalog
from scancar.pipeline.orchestrator import ScanCarService
from scancar.pipeline.output import SnapshotFormatter

NO_STORE = {"Cache-Control": "no-store"}


def create_app(service: ScanCarService, manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the FastAPI application for ``service``.

    Args:
        service: Wired service container
        manage_lifecycle: Start and stop the service with the app
    """
    formatter = SnapshotFormatter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await service.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await service.stop()

    app = FastAPI(title="Scan Car", version=__version__, lifespan=lifespan)
    app.state.service = service

    def error_response(status_code: int, error: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": str(error)}, headers=NO_STORE)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return error_response(400, exc)

    @app.exception_handler(UpstreamDetailError)
    async def upstream_error_handler(request: Request, exc: UpstreamDetailError):
        return error_response(500, exc)

    @app.exception_handler(TotalRefreshFailure)
    async def refresh_failure_handler(request: Request, exc: TotalRefreshFailure):
        return error_response(500, exc)

    @app.exception_handler(ScanCarError)
    async def scancar_error_handler(request: Request, exc: ScanCarError):
        service.logger.error("request_failed", path=request.url.path, error=str(exc))
        return error_response(500, exc)

    async def serve_catalog(catalog: Catalog, refresh: bool) -> JSONResponse:
        read = await catalog.read(refresh=refresh)
        headers = dict(NO_STORE)
        if read.stale:
            headers["X-Data-Stale"] = "true"
        return JSONResponse(
            content=formatter.format_payload(read.snapshot, now=service.clock()),
            headers=headers,
        )

    @app.get("/cars")
    async def list_cars(refresh: bool = False):
        return await serve_catalog(service.cars, refresh)

    @app.get("/new-cars")
    async def list_new_cars(refresh: bool = False):
        return await serve_catalog(service.new_cars, refresh)

    @app.get("/cars/detail")
    async def car_detail(url: Optional[str] = None, source: Optional[str] = None):
        lookup = await service.detail_cache.get(url, source)
        return JSONResponse(
            content={"data": formatter.format_detail(lookup.record), "cached": lookup.cached},
            headers=NO_STORE,
        )

    @app.get("/health")
    async def health():
        return JSONResponse(content=service.health(), headers=NO_STORE)

    return app
