import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv

from movetogether.database import Database
from movetogether.core import setup_scheduler, start_scheduler, stop_scheduler, get_scheduler_status
from movetogether.routes.competition_routes import router as competition_router
from movetogether.routes.invitation_routes import router as invitation_router
from movetogether.routes.payment_routes import router as payment_router
from movetogether.routes.profile_routes import router as profile_router

# Load environment variables
load_dotenv()

# Get environment variables
APP_NAME = os.getenv("APP_NAME", "MoveTogether")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "True").lower() == "true"

logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    await Database.connect_db()
    setup_scheduler()
    start_scheduler()

    yield
    # Shutdown
    stop_scheduler()
    await Database.close_db()


app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description="MoveTogether API for competitions, invitations and prize pools",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if DEBUG else [],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with /api prefix
app.include_router(competition_router, prefix="/api")
app.include_router(invitation_router, prefix="/api")
app.include_router(profile_router, prefix="/api")
app.include_router(payment_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {APP_NAME} API",
        "version": APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/scheduler/status")
async def scheduler_status():
    """Background job status"""
    return get_scheduler_status()
