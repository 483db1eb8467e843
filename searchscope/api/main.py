from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from searchscope.api.deps import Services, build_services
from searchscope.api.routes import agent, models, report, search
from searchscope.config import Settings, load_settings
from searchscope.exceptions import ErrorKind, SearchScopeError
from searchscope.services.logger import configure_logging


def create_app(settings: Settings | None = None, *, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("SearchScope API starting")
        yield
        logger.info("SearchScope API stopped")

    app = FastAPI(
        title="SearchScope",
        description="Multi-provider search aggregation with LLM ranking and research reports",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SearchScopeError)
    async def handle_search_scope_error(request: Request, exc: SearchScopeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.kind.value}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "kind": ErrorKind.VALIDATION.value, "details": jsonable_encoder(exc.errors())},
        )

    app.include_router(search.router)
    app.include_router(report.router)
    app.include_router(agent.router)
    app.include_router(models.router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "service": "searchscope"}

    return app


def app_factory() -> FastAPI:
    """Entry point for `uvicorn --factory searchscope.api.main:app_factory`."""
    settings = load_settings()
    configure_logging(settings)
    return create_app(settings)
