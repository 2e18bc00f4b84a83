"""
BranchBooks - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import close_db, init_db
from app.routers import compensation, employees, inventory_sub_units, payroll
from app.routers.debts import payables_router, receivables_router
from app.services.audit_service import get_audit_dispatcher
from app.utils.error_handling import ErrorTrackingMiddleware, setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Advance deduction policy: {settings.advance_deduction_policy}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development or settings.is_sqlite:
        await init_db()
        logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await get_audit_dispatcher().drain()
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Branch bookkeeping: payroll with advance deductions, payables and receivables",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ErrorTrackingMiddleware)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/v1")
async def api_root():
    """API v1 root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name} API v1",
        "endpoints": {
            "payroll": "/api/v1/payroll",
            "advances": "/api/v1/employees/{employee_id}/advances",
            "payables": "/api/v1/payables",
            "receivables": "/api/v1/receivables",
            "inventory_sub_units": "/api/v1/inventory-sub-units",
        }
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

app.include_router(payroll.router, prefix="/api/v1/payroll", tags=["Payroll"])
app.include_router(employees.router, prefix="/api/v1/employees", tags=["Employee Advances"])
app.include_router(compensation.router, prefix="/api/v1/employees", tags=["Bonuses & Salary Increases"])
app.include_router(payables_router, prefix="/api/v1/payables", tags=["Payables"])
app.include_router(receivables_router, prefix="/api/v1/receivables", tags=["Receivables"])
app.include_router(inventory_sub_units.router, prefix="/api/v1/inventory-sub-units", tags=["Inventory"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
