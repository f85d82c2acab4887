import logging

from fastapi import FastAPI, Request

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from .config import LOG_LEVEL, RATE_LIMIT_DEFAULT, RATE_LIMIT_ENABLED
from .database import Base, engine
from .routers import users, rooms, bookings, resources, notifications
from .error_handlers import error_response, register_exception_handlers

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# -----------------------------------------
# Create DB tables
# -----------------------------------------
Base.metadata.create_all(bind=engine)

# -----------------------------------------
# Rate Limiter
# -----------------------------------------
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=RATE_LIMIT_ENABLED,
)

app = FastAPI(
    title="Room Booking Administration",
    version="0.1.0",
    description="Rooms, bookings with conflict-checked approval, resources and notifications.",
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# -----------------------------------------
# Global exception handlers
# -----------------------------------------
register_exception_handlers(app)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return error_response(request, 429, "Rate limit exceeded. Please try again later.")


# -----------------------------------------
# Routers (normal + versioned /api/v1)
# -----------------------------------------
for module in (users, rooms, bookings, resources, notifications):
    app.include_router(module.router)
    app.include_router(module.router, prefix="/api/v1")


# -----------------------------------------
# Health check endpoint
# -----------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}
