"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import places
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create app
app = FastAPI(
    title="LitPass Places API",
    description="Place search, search origin and map rendering for the LitPass app",
    version="0.1.0",
)

# CORS middleware for the app's web build
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(places.router, tags=["places"])


@app.on_event("shutdown")
async def shutdown_event():
    """Close the shared provider connection pool."""
    if places._session is not None:
        places._session.close()
        await places._session.client.aclose()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "LitPass Places API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "map_backend": settings.MAP_BACKEND}
