"""
Socratic Tutor Backend - FastAPI Application

Entry point for the tutoring API. Business logic lives in the tutor and
curriculum services; this module only wires routers and background tasks.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from dependencies import get_session_reaper
from shared.api import health
from tutor.api import problems, sessions
from curriculum.api import routes as curriculum

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("main")

# Initialize FastAPI app
app = FastAPI(
    title="Socratic Tutor Backend",
    description="Socratic math tutoring dialogue and curriculum API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(problems.router)
app.include_router(sessions.router)
app.include_router(curriculum.router)


@app.on_event("startup")
async def startup_event():
    """Validate configuration and start sweeping idle sessions."""
    logger.info("Starting Socratic Tutor Backend...")
    validate_required_settings()
    get_session_reaper().start()
    logger.info("Application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    await get_session_reaper().stop()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development"
    )
