from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import uvicorn
import logging
from dotenv import load_dotenv

# Load environment variables from .env file FIRST, before any other imports
load_dotenv()

logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

from config import settings
from app.api.endpoints import auth, patients, measurements, appointments, verifications, functions
from app.core.error_handling import (
    AppException,
    app_exception_handler,
    general_exception_handler,
    validation_exception_handler,
)
from app.core.monitoring import init_sentry

logger = logging.getLogger(__name__)


def get_cors_origins():
    """Get CORS origins from settings plus local development hosts"""
    origins = [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    default_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite dev server
        "http://localhost:8080",
    ]
    return list(set(origins + default_origins))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info(f"{settings.APP_NAME} starting up ({settings.ENVIRONMENT})")
    if init_sentry():
        logger.info("Sentry monitoring initialized")

    yield

    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    description="Bite-force clinical tracking API",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    max_age=3600,
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

API_V1_PREFIX = settings.API_V1_PREFIX

app.include_router(auth.router, prefix=API_V1_PREFIX)
app.include_router(patients.router, prefix=API_V1_PREFIX)
app.include_router(measurements.router, prefix=API_V1_PREFIX)
app.include_router(appointments.router, prefix=API_V1_PREFIX)
app.include_router(appointments.therapy_router, prefix=API_V1_PREFIX)
app.include_router(verifications.router, prefix=API_V1_PREFIX)
# Account-deletion and OCR handlers are served outside /api/v1
app.include_router(functions.router)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/api/health")
async def health_check():
    """Detailed health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
