"""
CLV Insights
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager

from clv_insights.config import get_settings
from clv_insights.utils.logger import log
from clv_insights import __version__

from clv_insights.api import analytics, health, report
from clv_insights.middleware.security_middleware import SecurityMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    if not settings.shopify_shop_url or not settings.shopify_access_token:
        log.warning("SHOPIFY_SHOP_URL / SHOPIFY_ACCESS_TOKEN not set; analytics and report requests will fail")

    from clv_insights.models.base import init_db
    init_db()
    log.info("Database initialized")

    yield

    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Customer lifetime value analytics for a Shopify store

    - Total and average CLV with the top 10 customers by spend
    - New customers acquired in a date window
    - Single-customer lookup with first-visit referral attribution
    - Filterable, sortable customer report with histograms and CSV export
    - Saved report presets
    """,
    lifespan=lifespan
)

# Security middleware (Basic Auth gate, X-Robots-Tag, Cache-Control)
app.add_middleware(SecurityMiddleware)

# Gzip compression (large customer reports)
from starlette.middleware.gzip import GZipMiddleware  # noqa: E402
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(analytics.router)
app.include_router(report.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


@app.get("/")
async def root():
    """API root - lists the available pages"""
    return {
        "name": settings.app_name,
        "version": __version__,
        "endpoints": {
            "analytics": "GET /analytics?start=&end=&customer_email=",
            "report": "GET /report (export=csv for a download)",
            "report_presets": "POST /report (intent=save|delete)",
            "health": "GET /health",
            "status": "GET /status",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clv_insights.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
