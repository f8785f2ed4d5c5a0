import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from footprint.api import activities, ai, auth
from footprint.db.session import configure_database, init_db
from footprint.services.emissions import (
    DEFAULT_FACTORS,
    EmissionCalculator,
    EmissionError,
    EmissionFactorTable,
)
from footprint.settings import Settings, settings as default_settings, setup_logging

logger = logging.getLogger(__name__)


def build_calculator(settings: Settings) -> EmissionCalculator:
    if settings.emission_factors_file:
        table = EmissionFactorTable.from_json(settings.emission_factors_file)
    else:
        table = EmissionFactorTable(DEFAULT_FACTORS)
    return EmissionCalculator(table)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    yield


def create_app(settings: Settings = default_settings) -> FastAPI:
    setup_logging(settings.log_level)

    configure_database(settings.database_url)

    app = FastAPI(title="Carbon Footprint Tracker API", lifespan=lifespan)
    app.state.settings = settings
    app.state.calculator = build_calculator(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EmissionError)
    async def emission_error_handler(request: Request, exc: EmissionError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.include_router(auth.router, prefix="/api")
    app.include_router(activities.router, prefix="/api")
    app.include_router(ai.router, prefix="/api")

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "footprint"}

    return app


app = create_app()
