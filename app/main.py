"""
Main application entry point for Signal Radar.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .features.core.logging import setup_logging
from .features.core.database import engine, create_tables
from .features.core.config import get_settings
from .features.business_automations.sales_intelligence.routes import router as sales_intelligence_router
from .features.business_automations.sales_intelligence.utils.api_keys import PROVIDER_KEYS
from .middleware.request_id import RequestIDMiddleware
from .middleware.tenant import TenantMiddleware
from .middleware.request_logging import RequestLoggingMiddleware
from .middleware.security_headers import SecureHeadersMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application lifespan events."""
    logging.info("Starting Signal Radar")

    if settings.AUTO_CREATE_TABLES:
        await create_tables()

    for provider, (_, env_name) in PROVIDER_KEYS.items():
        if not getattr(settings, env_name, None):
            logging.info("%s not set in environment, tenants must store their own %s key", env_name, provider)

    logging.info("✅ Application startup completed")

    yield  # Application runs here

    logging.info("Shutting down Signal Radar")
    await engine.dispose()


app = FastAPI(
    title="Signal Radar",
    description="Sales intelligence API: press, Pappers and LinkedIn signals, enrichment and outreach.",
    lifespan=lifespan
)
setup_logging()

# Tenant middleware must run before request logging so context vars are populated
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TenantMiddleware)
app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGINS] if settings.CORS_ORIGINS != '*' else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Secure headers
app.add_middleware(SecureHeadersMiddleware)

# Business routes
app.include_router(sales_intelligence_router)


# Health check endpoints
@app.get("/health", tags=["infra"])
async def health():
    """Basic health check for load balancers."""
    from datetime import datetime, timezone
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/health/db", tags=["infra"])
async def db_health():
    """Database connectivity health check."""
    from sqlalchemy import text
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logging.exception("DB health check failed")
        return JSONResponse(status_code=500, content={"status": "error", "detail": str(e)})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# For direct execution
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
