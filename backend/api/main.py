"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from api.routes import day_images, images, wikimedia
from db import init_db
from settings import settings

# Create app
app = FastAPI(
    title="Trip Images API",
    description="API for itinerary day images and cached place images",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files for cached place images
media_path = Path(settings.MEDIA_ROOT)
media_path.mkdir(parents=True, exist_ok=True)
app.mount("/media", StaticFiles(directory=str(media_path)), name="media")

# Include routers
app.include_router(day_images.router, prefix="/itineraries", tags=["day-images"])
app.include_router(images.router, prefix="/images", tags=["images"])
app.include_router(images.debug_router, prefix="/debug", tags=["debug"])
app.include_router(wikimedia.router, prefix="/api", tags=["wikimedia"])


@app.middleware("http")
async def media_cache_middleware(request: Request, call_next):
    """Add caching headers for cached place images and light ETag/Last-Modified.

    Stored images are overwritten in place when a place is re-cached, so the
    max-age is kept short and no `immutable` directive is sent.
    """
    response = await call_next(request)
    path = request.url.path
    if path.startswith("/media/") and response.status_code == 200:
        file_path = media_path.joinpath(path[len("/media/"):])
        try:
            stat = file_path.stat()
        except OSError:
            return response
        response.headers["Cache-Control"] = "public, max-age=3600"
        etag = f'W/"{stat.st_mtime:.0f}-{stat.st_size}"'
        response.headers.setdefault("ETag", etag)
    return response


@app.on_event("startup")
def startup_event():
    """Initialize database tables on startup."""
    init_db()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Trip Images API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
