"""L2 Scheme FastAPI Application.

Imports switch/OLT configuration and MAC table dumps and classifies each
MAC sighting as source (edge) or transit.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from l2scheme.api import devices, imports, macs, vlans
from l2scheme.core.config import get_settings
from l2scheme.db.database import init_db

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("L2 Scheme starting up...")
    logger.info(f"Database URL: {settings.database_url}")
    init_db()
    logger.info("Database tables created.")

    yield

    logger.info("L2 Scheme shutting down...")


app = FastAPI(
    title="L2 Scheme",
    description="L2 topology from switch/OLT configuration and MAC table dumps",
    version=VERSION,
    lifespan=lifespan,
)

# CORS - Allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": VERSION,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "L2 Scheme",
        "description": "L2 topology from switch/OLT configuration and MAC table dumps",
        "docs": "/docs",
    }


app.include_router(imports.router, prefix="/api/import", tags=["Import"])
app.include_router(devices.router, prefix="/api/devices", tags=["Devices"])
app.include_router(vlans.router, prefix="/api/vlans", tags=["VLANs"])
app.include_router(macs.router, prefix="/api/macs", tags=["MAC Addresses"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("l2scheme.main:app", host=settings.host, port=settings.port, reload=settings.debug)
