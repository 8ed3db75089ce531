from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from screening.routers import evaluate, evaluations, profiles, rubrics

# Import logging and middleware
from screening.utils.logging_config import configure_for_environment, get_logger
from screening.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
)
from screening.models.settings import load_settings
from screening.services.data_loader import load_profiles
from screening.services.evaluator import ProfileEvaluator
from screening.services.llm import CompletionClient
from screening.services.state import AppState
from screening.utils.exceptions import ConfigurationError

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    # Startup
    logger.info("Rubric Screening API starting up...")
    settings = load_settings()

    try:
        loaded = load_profiles(settings.processing.profiles_path, limit=settings.processing.profile_limit)
    except ConfigurationError as e:
        logger.warning(f"Profile loading had issues: {e.message}")
        logger.info("Application will continue without profiles - ad-hoc evaluation endpoints still work")
        loaded = []

    app.state.settings = settings
    app.state.screening = AppState(loaded)
    app.state.evaluator = ProfileEvaluator(CompletionClient(settings.llm), settings.llm, settings.processing)
    logger.info(f"Rubric Screening API startup completed ({len(loaded)} profiles, model {settings.llm.model_name})")

    yield

    # Shutdown
    logger.info("Rubric Screening API shutting down...")
    app.state.screening.stop_evaluation()
    logger.info("Rubric Screening API shutdown completed")


app = FastAPI(title="Rubric Screening API", version=API_VERSION, lifespan=lifespan)

# Middleware wraps in reverse order of registration; the exception handler sits
# closest to the routes so the outer layers always see a response
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=30.0)
app.add_middleware(RequestLoggingMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Rubric Screening API", "version": API_VERSION, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    """Health check endpoint - handles both GET and HEAD requests"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# Include routers
app.include_router(profiles.router, prefix="/api")
app.include_router(rubrics.router, prefix="/api")
app.include_router(evaluate.router, prefix="/api")
app.include_router(evaluations.router, prefix="/api")

logger.info("Rubric Screening API initialized successfully")
