"""
FastAPI application for form field layout extraction.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
import logging

from field_layout.config import Config
from field_layout.models import HealthResponse, RateLimitStatus
from field_layout.routes import field_extraction
from field_layout.utils.rate_limiter import RateLimiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Form Field Layout API",
    description="API for locating fillable fields on scanned and typed forms",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize rate limiter (doesn't require API keys)
rate_limiter = RateLimiter(max_total_calls=Config.MAX_TOTAL_CALLS)
field_extraction.configure(rate_limiter)

app.include_router(field_extraction.router)


@app.on_event("startup")
async def startup_event():
    """Validate configuration on startup."""
    try:
        Config.validate()
        logger.info("Configuration validated successfully")
    except ValueError as e:
        # The layout endpoint works without credentials; extraction reports 503
        logger.warning(f"Configuration incomplete: {e}")


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint; also reports which collaborators are configured."""
    ocr_configured = bool(Config.AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT and Config.AZURE_DOCUMENT_INTELLIGENCE_KEY)
    return HealthResponse(
        status="healthy" if ocr_configured else "degraded",
        timestamp=datetime.now(),
        ocr_configured=ocr_configured,
        semantic_labeler_configured=bool(Config.SEMANTIC_LABELER_API_KEY),
        label_lexicons=Config.LABEL_LEXICONS
    )


@app.get("/api/rate-limit", response_model=RateLimitStatus)
async def get_rate_limit_status():
    """Get current rate limit status."""
    stats = rate_limiter.get_stats()
    return RateLimitStatus(
        total_calls=stats['total_calls'],
        max_calls=stats['max_calls'],
        remaining_calls=stats['remaining_calls'],
        calls_by_service=stats['calls_by_service']
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "field_layout.main:app",
        host=Config.API_HOST,
        port=Config.API_PORT,
        reload=True
    )
