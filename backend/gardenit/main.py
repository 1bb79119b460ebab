"""Gardenit - garden planning API and notification engine."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gardenit.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create tables and start the notification scheduler
    from gardenit.database import Base, engine, get_db_context
    from gardenit.services.notification_rules import get_built_in_rules
    from gardenit.services.scheduler import NotificationScheduler
    from gardenit.services.weather import OpenMeteoClient
    
    # Import all models so they're registered with Base
    from gardenit import models  # noqa: F401
    
    # Create tables
    Base.metadata.create_all(bind=engine)
    
    # Fail fast on a broken built-in rule catalog
    get_built_in_rules()
    
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = NotificationScheduler(
            session_factory=get_db_context,
            weather_client=OpenMeteoClient(),
            interval_seconds=settings.scheduler_interval_seconds,
        )
        scheduler.start()
    app.state.scheduler = scheduler
    
    yield
    # Shutdown: let the in-flight sweep finish
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    description="Plan your garden and get timely, weather-aware care notifications",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from gardenit.api import notification_rules, notifications  # noqa: E402

app.include_router(notification_rules.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
