# errorlytic/main.py
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from .config import settings
from .database import get_db, init_db
from .logging_config import setup_logging
import logging
import os

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Errorlytic Diagnostic Quotation Service

    Turns vehicle diagnostic scan reports into priced repair quotations.

    ### Features:
    * **Report Parsing**: VCDS and generic OBD-II reports (txt, csv, xlsx, xml, pdf)
    * **Fault Classification**: Severity, category and baseline cost per fault code
    * **AI Enrichment**: Optional plain-language explanations (degrades gracefully)
    * **Repair Walkthroughs**: Ordered check -> replace -> retest procedures
    * **Quotations**: Parts + labor + markup + tax in KES, USD, UGX or TZS

    ### Workflow:
    1. Upload a diagnostic report
    2. Analyze it (parse, classify, enrich)
    3. Generate the repair walkthrough
    4. Generate, send and share the quotation

    ### Report Severity:
    * **critical**: At least one high-severity fault
    * **recommended**: Medium-severity faults only
    * **monitor**: Low-severity faults or no faults
    """,
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "uploads",
            "description": "Report uploads - Store reports and trigger analysis"
        },
        {
            "name": "analyses",
            "description": "Analyses - Classified fault codes, summary and AI enrichment"
        },
        {
            "name": "walkthroughs",
            "description": "Repair walkthroughs - Generate and edit repair procedures"
        },
        {
            "name": "quotations",
            "description": "Quotations - Pricing, lifecycle and public share links"
        },
        {
            "name": "pricing",
            "description": "Pricing helpers - Currency conversion and part catalog prices"
        },
        {
            "name": "system",
            "description": "System endpoints - Health checks and API information"
        }
    ]
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize logging, report storage and database"""
    # Setup logging first (creates log files)
    logger = setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Create report storage directory if not exists
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)
    logger.info(f"Report storage directory: {settings.STORAGE_DIR}")

    # Initialize database
    init_db()
    logger.info("Database initialized successfully")

    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set - AI enrichment disabled")

# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logging.getLogger(__name__).info("Shutting down Errorlytic...")

# Health check endpoint
@app.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    """
    System Health Check

    Returns the current system status, version information and whether the
    database answers. Status is "degraded" when it does not.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logging.getLogger(__name__).exception("Health check database probe failed")
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "ai_enabled": bool(settings.OPENAI_API_KEY)
    }

# Root endpoint
@app.get("/", tags=["system"])
async def root():
    """
    API Root Information

    Welcome endpoint with links to documentation and health check.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health"
    }

# Include API routers
from .api import uploads, analyses, walkthroughs, quotations, pricing

app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])
app.include_router(analyses.router, prefix="/api/analyses", tags=["analyses"])
app.include_router(walkthroughs.router, prefix="/api/walkthroughs", tags=["walkthroughs"])
app.include_router(quotations.router, prefix="/api/quotations", tags=["quotations"])
app.include_router(pricing.router, prefix="/api/pricing", tags=["pricing"])
