"""
Kindergarten Assessment Reporting API

Main FastAPI application for kindergarten assessment reports and exports.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api import reports_router, assessments_router, ReportHTTPException, ErrorResponse

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --------------- Lifespan ---------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler – initialise DB on startup."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized.")
    yield


# --------------- FastAPI app ---------------

app = FastAPI(
    title="Kindergarten Assessment Reporting API",
    description="""
API for kindergarten assessment reports.

## Reports
- **Student**: one learner across all subjects, or one subject by date
- **Strand / Outcome**: a class against a strand or a single outcome
- **Class / School summaries**: distributions, scores and attention lists
- **Export**: any report as CSV or PDF

### Access Rules
- **Superusers / country admins**: every school
- **School admins**: their assigned schools
- **Teachers**: their schools, and only their own classes for class reports
- **Parents**: linked students only
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ReportHTTPException)
async def report_exception_handler(request: Request, exc: ReportHTTPException):
    """Return report failures with their kind and offending field."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors; never leak internals to the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="Internal server error", error_type="internal").model_dump(),
    )


# Include routers
app.include_router(reports_router)
app.include_router(assessments_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "status": "online",
        "service": settings.service_name,
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
