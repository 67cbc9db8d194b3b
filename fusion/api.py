"""
API Layer for Fusion Service

This module provides FastAPI endpoints for reading the fused emotion stream.
The running SamplingLoop is expected on app.state.sampling_loop.
"""

import os
import time
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from fusion.blendshape_scorer import score_blendshapes
from fusion.models import (
    BlendshapeScoreRequest,
    EmotionVector,
    FusionSnapshotResponse,
    ModalitySample,
    NoFaceResponse,
    NoResultResponse,
    SampleDemoRequest,
    TextUpdateRequest,
    TrendEntry,
)
from fusion.orchestrator import SamplingLoop

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fusion", tags=["fusion"])


def _get_loop(request: Request) -> SamplingLoop:
    loop = getattr(request.app.state, "sampling_loop", None)
    if loop is None:
        raise HTTPException(status_code=503, detail="Sampling loop is not initialized")
    return loop


def _snapshot(loop: SamplingLoop):
    if loop.latest_result is None:
        return JSONResponse(
            status_code=200,
            content=NoResultResponse().model_dump()
        )
    return FusionSnapshotResponse(
        timestamp=loop.latest_timestamp,
        result=loop.latest_result,
        alert=loop.latest_alert
    )


@router.get("/latest", response_model=FusionSnapshotResponse)
async def latest(request: Request):
    """
    Return the most recent fused result.

    Returns:
        FusionSnapshotResponse, or NoResultResponse while the window is empty
    """
    logger.debug("GET /fusion/latest")
    return _snapshot(_get_loop(request))


@router.get("/trend", response_model=List[TrendEntry])
async def trend(request: Request, window_sizes: Optional[List[int]] = Query(default=None)):
    """
    Fuse the current window at several window sizes (short/medium/long term).

    Args:
        window_sizes: Repeated query parameter; defaults to the configured sizes
    """
    loop = _get_loop(request)
    if window_sizes is not None and any(size < 1 for size in window_sizes):
        raise HTTPException(status_code=400, detail="window_sizes must all be >= 1")
    logger.info(f"GET /fusion/trend - sizes={window_sizes or loop.trend_window_sizes}")
    return loop.trend(window_sizes)


@router.post("/blendshapes", response_model=EmotionVector)
async def blendshapes(request: BlendshapeScoreRequest):
    """
    Score one face's blendshape categories as an emotion vector.

    A request with no categories means no face was detected; it is answered
    with a no_face status instead of a vector.
    """
    if not request.categories:
        logger.info("POST /fusion/blendshapes - no face in request")
        return JSONResponse(status_code=200, content=NoFaceResponse().model_dump())

    timestamp = request.timestamp if request.timestamp is not None else time.time()
    return score_blendshapes(request.categories, timestamp=timestamp)


@router.put("/text")
async def update_text(body: TextUpdateRequest, request: Request):
    """Set the text that the text producer analyses on the next tick."""
    text_client = getattr(request.app.state, "text_client", None)
    if text_client is None:
        raise HTTPException(status_code=503, detail="Text producer is not initialized")
    text_client.set_text(body.text)
    logger.info(f"PUT /fusion/text - updated text ({len(body.text)} characters)")
    return {"status": "updated"}


@router.post("/sample/demo", response_model=FusionSnapshotResponse)
async def sample_demo(body: SampleDemoRequest, request: Request):
    """
    Demo endpoint for testing and demonstrations (testing only).

    Pushes a complete sample directly into the window, bypassing producers.
    Only available when DEMO_MODE_ENABLED=true environment variable is set.
    """
    demo_mode_enabled = os.getenv("DEMO_MODE_ENABLED", "false").lower() == "true"
    if not demo_mode_enabled:
        logger.warning("Demo endpoint called but DEMO_MODE_ENABLED is not set to 'true'")
        raise HTTPException(
            status_code=403,
            detail="Demo mode not enabled. Set DEMO_MODE_ENABLED=true environment variable to enable."
        )

    loop = _get_loop(request)
    try:
        loop.submit_sample(ModalitySample(face=body.face, voice=body.voice, text=body.text))
    except ValueError as e:
        logger.error(f"POST /fusion/sample/demo - Validation error: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return _snapshot(loop)


@router.get("/health")
async def health(request: Request):
    """Health check endpoint for fusion service."""
    loop = getattr(request.app.state, "sampling_loop", None)
    if loop is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": "fusion", "error": "sampling loop not initialized"}
        )
    return {
        "status": "healthy",
        "service": "fusion",
        "running": loop.is_running,
        "window_length": len(loop.window),
        "window_capacity": loop.window.capacity,
        "ticks_dropped": loop.ticks_dropped
    }
