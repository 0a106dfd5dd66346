# mlmd_viewer/main.py
"""
MLMD Viewer - Main Application

Read-only HTTP viewer over an ML-Metadata store, with provenance
graphs for artifacts and executions.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from . import __version__
from .settings import settings
from .logging import configure_logging, get_logger
from .db.engine import check_connection, get_schema_version
from .api import graph_router, entities_router, events_router, types_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Checks the metadata store on startup.
    """
    configure_logging()
    logger.info("viewer_starting", database_url=settings.mlmd_database_url)

    if not check_connection():
        logger.warning("metadata_store_unreachable")
    else:
        logger.info("metadata_store_connected", schema_version=get_schema_version())

    yield

    logger.info("viewer_stopping")


app = FastAPI(
    title="MLMD Viewer",
    description="""
    Read-only viewer for ML-Metadata stores.

    - Artifact, execution and context listings and detail views
    - Type browsing with declared property schemas
    - Event listing filtered by artifact or execution
    - Provenance graphs rendered with Graphviz (DOT text when unavailable)
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add basic security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Server"] = "MLMD Viewer"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.include_router(graph_router)
app.include_router(entities_router)
app.include_router(events_router)
app.include_router(types_router)


@app.get("/")
async def index():
    """Entry points of the viewer."""
    return {
        "service": "mlmd-viewer",
        "links": {
            "artifacts": "/artifacts/",
            "artifact_types": "/artifact_types/",
            "executions": "/executions/",
            "execution_types": "/execution_types/",
            "contexts": "/contexts/",
            "context_types": "/context_types/",
            "events": "/events/",
            "artifact_graph": "/artifacts/{id}/graph",
            "execution_graph": "/executions/{id}/graph",
        },
    }


@app.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "ok", "service": "mlmd-viewer"}


@app.get("/health/db")
def db_health_check():
    """Metadata store health check."""
    if check_connection():
        return {
            "status": "ok",
            "database": "connected",
            "schema_version": get_schema_version(),
        }
    raise HTTPException(status_code=503, detail="Metadata store connection failed")


def run():
    """Run the server (entry point for CLI)."""
    import uvicorn
    uvicorn.run(
        "mlmd_viewer.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
