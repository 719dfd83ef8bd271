"""
Shop Analytics - Main Application

Business analytics and reporting backend for a service-and-retail shop.
Turns service orders, sales, clients, inventory and payments into metrics
and the standard daily/weekly/monthly reports.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import os
import logging

load_dotenv()

from app.routers import analytics, reports
from app.scheduler import REPORTS_GENERATION_HOUR, REPORTS_SCHEDULE_ENABLED, start_scheduler, stop_scheduler
from app.analytics.periods import SHOP_TIMEZONE
from app.models.analytics_models import HealthResponse

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("Starting Shop Analytics...")
    start_scheduler()
    yield
    # Shutdown
    logger.info("Shutting down Shop Analytics...")
    stop_scheduler()


# Initialize FastAPI app
app = FastAPI(
    title="Shop Analytics",
    description="Business analytics and reporting for service orders, sales and inventory",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


@app.get("/")
def read_root():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Shop Analytics",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Detailed health check"""
    return HealthResponse(
        data_source_configured=bool(
            os.getenv("SUPABASE_URL") and (os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY"))
        ),
        schedule_enabled=REPORTS_SCHEDULE_ENABLED,
        generation_hour=REPORTS_GENERATION_HOUR,
        shop_timezone=SHOP_TIMEZONE
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
