# bed_booking/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bed_booking.config import ALLOWED_ORIGINS
from bed_booking.errors import BookingError
from bed_booking.logging_config import setup_logging
from bed_booking.middleware import RequestIDMiddleware
from bed_booking.routes.health import router as health_router
from bed_booking.routes.metrics import router as metrics_router
from bed_booking.routes.properties import router as properties_router
from bed_booking.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Bed Booking API",
    description="Bed-level lodging inventory, availability and reservations",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Map domain errors onto their HTTP status with a ``detail`` body."""
    logger.info(
        "request_refused",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(properties_router, tags=["Properties"])
app.include_router(reservations_router, prefix="/bookings", tags=["Bookings"])
