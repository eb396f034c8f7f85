"""FastAPI application for the exam parser service."""

import importlib
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Union

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded  # type: ignore[import-not-found]

from exam_parser.config import get_settings
from exam_parser.logging_config import configure_logging
from exam_parser.middleware.logging import RequestLoggingMiddleware
from exam_parser.middleware.rate_limit import get_limiter, rate_limit_exceeded_handler
from exam_parser.routers import parsing
from exam_parser.services.gemini_client import is_gemini_configured

# Application metadata
VERSION = "1.0.0"
COMMIT_HASH = "development"

# Document decoders required by the heuristic path (module name -> service name)
DECODERS = {"pdfplumber": "pdf_decoder", "docx": "word_decoder"}

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and report the effective configuration."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting Exam Parser API v%s", VERSION)
    logger.info("Categorization model: %s", settings.categorization_model)
    logger.info("AI categorization enabled: %s", settings.enable_ai_categorization)
    if not is_gemini_configured():
        logger.warning("GEMINI_API_KEY not set; AI categorization will fall back to heuristics")

    yield

    logger.info("Shutting down Exam Parser API")


app = FastAPI(
    title="Exam Parser API",
    description="Extracts exam questions from PDF, Word and text documents into sections A, B and C",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Rate limiter on app state (required by slowapi)
app.state.limiter = get_limiter()
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Question-Count", "X-Section-Counts", "X-Processing-Method"],
)


@app.get("/health", response_model=None)
async def health_check() -> Union[Dict[str, Any], Response]:
    """
    Health check endpoint.

    Status Codes:
        200: Document decoders importable (Gemini is optional)
        503: A document decoder is missing
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    services: Dict[str, str] = {}
    overall_healthy = True

    for module_name, service in DECODERS.items():
        try:
            importlib.import_module(module_name)
            services[service] = "healthy"
        except Exception as e:
            services[service] = f"unhealthy: {str(e)}"
            overall_healthy = False

    # Missing key degrades categorization, it does not make the service unhealthy
    services["gemini_api"] = "configured" if is_gemini_configured() else "not configured"

    response_data: Dict[str, Any] = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "timestamp": timestamp,
        "services": services,
    }

    if not overall_healthy:
        return Response(
            content=json.dumps(response_data),
            status_code=503,
            media_type="application/json",
        )

    return response_data


@app.get("/version")
async def version_info() -> Dict[str, str]:
    return {
        "version": VERSION,
        "commit_hash": COMMIT_HASH,
    }


app.include_router(parsing.router)
