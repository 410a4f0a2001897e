"""
OptiPlan API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(
        "OptiPlan API starting up",
        version=settings.app_version,
        optimizer_script=settings.optimizer_script,
    )
    yield
    logger.info("OptiPlan API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Changeover matrices and optimizer run orchestration for manufacturing scheduling",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import attributes, changeovers, optimizer, scenarios

app.include_router(attributes.router)
app.include_router(changeovers.router)
app.include_router(scenarios.router)
app.include_router(optimizer.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
