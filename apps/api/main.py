from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Load environment variables from .env file FIRST
load_dotenv()

from config import Settings
from database import create_db_and_tables
import models  # noqa: F401  registers tables with SQLModel
from routers import (
    auth,
    profiles,
    doctors,
    patients,
    admin,
    notifications,
    realtime,
    chat,
    assistant,
    storage,
    consultations,
    video,
)
from middleware.security_headers import SecurityHeadersMiddleware
from rate_limit import limiter
from services import ServiceContainer
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    app.state.services = ServiceContainer.from_settings(settings)
    logger.info("VirtualDoc API started")
    yield
    await app.state.services.aclose()


app = FastAPI(
    title="VirtualDoc API",
    description="Telemedicine backend: doctor directory, care requests, notifications and the Dr. Ava assistant",
    version="0.1.0",
    lifespan=lifespan
)

# Set up rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:8000",
    settings.frontend_url,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept", "Origin", "X-Operator-Key"],
)

app.add_middleware(SecurityHeadersMiddleware)

# Include routers
app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(doctors.router)
app.include_router(patients.router)
app.include_router(admin.router)
app.include_router(notifications.router)
app.include_router(realtime.router)
app.include_router(chat.router)
app.include_router(assistant.router)
app.include_router(storage.router)
app.include_router(consultations.router)
app.include_router(video.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to VirtualDoc API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
