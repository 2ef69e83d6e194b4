import logging

from fastapi import FastAPI

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .database import Base, SessionLocal, engine
from .error_handlers import register_exception_handlers
from .routers import users, rooms, bookings, payments, reports
from .seed import seed_sample_data
from .services.sessions import SessionManager

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL,
)
logger = logging.getLogger(__name__)

# -----------------------------------------
# Create DB tables
# -----------------------------------------
Base.metadata.create_all(bind=engine)

if settings.SEED_SAMPLE_DATA:
    with SessionLocal() as db:
        seed_sample_data(db)

# -----------------------------------------
# Rate Limiter
# -----------------------------------------
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description="Hotel management: accounts and sessions, rooms, bookings, payments and reports.",
)

app.state.limiter = limiter
app.state.sessions = SessionManager()
app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)

# -----------------------------------------
# Routers (normal + versioned /api/v1)
# -----------------------------------------
for module in (users, rooms, bookings, payments, reports):
    app.include_router(module.router)
    app.include_router(module.router, prefix="/api/v1")


# -----------------------------------------
# Health check endpoint
# -----------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}
