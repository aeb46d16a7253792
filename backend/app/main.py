import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError
from app.api.routes import router
from app.config import settings
from app.modules.errors import InvalidSpeedError, PersistenceError, VesselNotFoundError

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed the fleet, load it into the scheduler and start ticking."""
    from app.database import SessionLocal, engine, init_db, max_concurrent_writers
    from app.modules.fleet_seed import seed_fleet
    from app.modules.scheduler import TICK_MODE_SCHEDULER, FleetScheduler
    from app.modules.sim_clock import SimulationClock
    from app.modules.state_store import VesselStateStore

    if settings.SEED_ON_STARTUP:
        init_db()
        db = SessionLocal()
        try:
            seed_fleet(db)
        except Exception:
            logger.critical("FATAL: fleet seeding failed, refusing to start")
            raise
        finally:
            db.close()

    store = VesselStateStore(SessionLocal)
    scheduler = FleetScheduler(
        store,
        SimulationClock(),
        interval_seconds=settings.SIMULATION_TICK_INTERVAL,
        speed_multiplier=settings.SIMULATION_DEFAULT_SPEED,
        tick_mode=settings.SIMULATION_TICK_MODE,
        write_workers=max_concurrent_writers(engine),
        io_timeout=settings.STORE_IO_TIMEOUT,
        lock_timeout=settings.RESET_LOCK_TIMEOUT,
    )
    scheduler.load()
    app.state.store = store
    app.state.scheduler = scheduler

    if settings.SIMULATION_AUTOSTART and scheduler.tick_mode == TICK_MODE_SCHEDULER:
        scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()


app = FastAPI(
    title="Contoso Sea Fleet",
    description=(
        "Survey fleet simulation: vessel navigation, battery state and a "
        "consistent fleet snapshot for the 3D dashboard."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting: dashboard polls every couple of seconds
limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(router, prefix="/api")


# ── Structured error handlers ─────────────────────────────────────────────────

@app.exception_handler(InvalidSpeedError)
async def invalid_speed_handler(request: Request, exc: InvalidSpeedError):
    return JSONResponse(status_code=400, content={"error": "Invalid speed", "detail": str(exc)})


@app.exception_handler(VesselNotFoundError)
async def not_found_handler(request: Request, exc: VesselNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Not found", "detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "Store unavailable", "detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": "Validation error", "detail": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    return JSONResponse(status_code=409, content={"error": "Conflict", "detail": str(exc.orig) if exc.orig else str(exc)})


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content={"error": "Internal server error", "detail": "An unexpected error occurred."})


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
