"""
Repayment API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .reports import router as reports_router
from ..config import get_config
from ..errors import LedgerInconsistency
from ..logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, config.log_format)

    app = FastAPI(
        title="Repayment Reconciliation API",
        description="Repayment plans, payment proofs and reconciliation for credit reports",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reports_router, prefix="/reports", tags=["Reports"])

    @app.exception_handler(LedgerInconsistency)
    async def ledger_inconsistency_handler(request: Request, exc: LedgerInconsistency):
        return JSONResponse(
            status_code=500,
            content={
                "error": "ledger_inconsistency",
                "detail": str(exc),
                "report_id": exc.report_id
            }
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "repayment_api",
            "version": "1.0.0"
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Repayment Reconciliation API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "reports": "/reports",
            }
        }

    return app
