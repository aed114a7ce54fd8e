"""
RiseOra - FastAPI Application

Main entry point for the RiseOra dispute workflow backend.

Workflow:
- INVESTIGATION_REQUEST → PERSONAL_INFO_REMOVER → VALIDATION_OF_DEBT
  → FACTUAL_LETTER → TERMINATION_LETTER → AI_ESCALATION
- AI_ESCALATION opens only after the bureau VERIFIED the item or sent NO_RESPONSE
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import (
    auth_router, templates_router, disputes_router, notifications_router, scheduler_router,
)
from .database import init_db

DEFAULT_ALLOWED_ORIGINS = [
    "https://riseora.com",
    "https://www.riseora.com",
    "https://riseora-portal.vercel.app",
]


def get_allowed_origins() -> list:
    configured = os.getenv("RISEORA_ALLOWED_ORIGINS")
    if not configured:
        return DEFAULT_ALLOWED_ORIGINS
    return [origin.strip() for origin in configured.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="RiseOra",
    description="""
    RiseOra - Credit Dispute Workflow

    Guides a consumer through a fixed five-letter dispute sequence and tracks
    each dispute from draft to resolution.

    ## Surfaces
    1. **Template API** (API key): stage list, stage advance, letter preview
    2. **Dashboard API** (JWT): stored disputes, progress actions, letters, notifications
    3. **Internal API** (internal key): deadline reminder scan

    ## Key Rules
    - At most three disputes per bureau in any 30-day window
    - Stages advance one at a time, never skipped
    - Escalation only after VERIFIED or NO_RESPONSE
    """,
    version="2.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Internal-Key"],
)

# Include routers (templates before disputes: /disputes/templates vs /disputes/{dispute_id})
app.include_router(auth_router)
app.include_router(templates_router)
app.include_router(disputes_router)
app.include_router(notifications_router)
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "RiseOra",
        "version": "2.0.0",
        "description": "Credit Dispute Workflow",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "2.0.0"}


# For running with: python -m riseora.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
