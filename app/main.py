from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.config import get_settings
from app.database import engine, init_db
from app.middleware.correlation import CorrelationMiddleware
from app.routes import auth, applications, reminders
from app.services.reminder_scheduler import build_reminder_scheduler
from app.utils import metrics
from app.utils.logger import logger

settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version)
app.state.limiter = auth.limiter
app.state.reminders = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
)
app.add_middleware(CorrelationMiddleware)

# Startup: initialize database, then restore reminder timers in the background
@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name}...")
    await init_db()

    if settings.reminders_enabled:
        app.state.reminders = build_reminder_scheduler(settings)
        app.state.reminders.start(rescan_hours=settings.reminder_rescan_hours)
    else:
        logger.info("Reminders disabled")

    logger.info(f"Backend ready at http://{settings.backend_host}:{settings.backend_port}")


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.reminders is not None:
        await app.state.reminders.shutdown()
        app.state.reminders = None
    await engine.dispose()


# Health check endpoint (minimal response to prevent information disclosure)
@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/metrics")
async def get_metrics():
    snapshot = metrics.get_snapshot()
    snapshot["pending_reminders"] = len(app.state.reminders.registry) if app.state.reminders else 0
    return snapshot


# Register routes
app.include_router(auth.router, prefix="/api/users", tags=["Users"])
app.include_router(applications.router, prefix="/api/applications", tags=["Applications"])
app.include_router(reminders.router, prefix="/api/reminders", tags=["Reminders"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.debug
    )
