"""
MedSight API Routes

Thin FastAPI surface over the analysis pipeline.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from medsight import __version__
from medsight.core.exceptions import RequestValidationError, RetrievalError, SynthesisError
from medsight.observability.metrics import get_registry
from medsight.orchestration.graph import AnalysisRunner, resolve_judge

logger = logging.getLogger(__name__)


# =============================================================================
# ROUTER
# =============================================================================

router = APIRouter(tags=["medsight"])


def get_runner(request: Request) -> AnalysisRunner:
    """Runner stored on the app, created on first use if none was injected."""
    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        runner = AnalysisRunner(judge=resolve_judge())
        request.app.state.runner = runner
    return runner


@router.post("/analyze")
async def analyze(
    body: Any = Body(...),
    runner: AnalysisRunner = Depends(get_runner),
) -> dict:
    """Run one analysis.

    Body: {query, mode, patient}. Keys are camelCase as in the response.

    Returns:
        AnalyzeResult as JSON
    """
    try:
        result = await runner.analyze(body)
    except RequestValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": e.message, "field": e.field},
        ) from e
    except RetrievalError as e:
        logger.error("Paper retrieval failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": f"Paper retrieval failed: {e.message}"},
        ) from e
    except SynthesisError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": e.message},
        ) from e

    return result.model_dump(by_alias=True, mode="json")


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Health status and version info
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "medsight",
    }


@router.get("/metrics")
async def metrics_snapshot() -> dict:
    """Current metric values, keyed by metric name."""
    return get_registry().get_all()


# =============================================================================
# APP FACTORY
# =============================================================================


def create_app(runner: AnalysisRunner | None = None):
    """Create FastAPI application.

    Args:
        runner: Pre-built runner (tests inject stub collaborators here).
            If None, one is built from configured providers on first request.

    Returns:
        Configured FastAPI app
    """
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    app = FastAPI(
        title="MedSight API",
        description="Safety-gated clinical evidence synthesis",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.state.runner = runner

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
