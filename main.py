"""
FastAPI Main Application

This script wires the fusion sampling loop to its producer clients and runs
the FastAPI server on port 8000.
"""

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
import uvicorn

from fusion import api as fusion_api
from fusion.config_loader import (
    DEFAULT_CONFIG,
    get_blendshape_coefficients,
    get_model_service_urls,
    load_config,
)
from fusion.model_clients import ModalityClientPool
from fusion.orchestrator import build_sampling_loop

# Load environment variables
load_dotenv()

# Setup logging with timestamps
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the producer clients and sampling loop once, dispose on shutdown."""
    config = load_config()

    # ConfigError from the getters propagates here and aborts startup
    async with ModalityClientPool(
        service_urls=get_model_service_urls(config),
        timeout=config.get("model_timeout_seconds", DEFAULT_CONFIG["model_timeout_seconds"]),
        coefficients=get_blendshape_coefficients(config)
    ) as pool:
        sampling_loop = build_sampling_loop(config, pool.producers())
        app.state.sampling_loop = sampling_loop
        app.state.text_client = pool.text

        await sampling_loop.start()
        logger.info("Fusion service started")
        try:
            yield
        finally:
            await sampling_loop.stop()
            app.state.sampling_loop = None
            app.state.text_client = None
            logger.info("Fusion service stopped")


# Create FastAPI app instance
app = FastAPI(
    title="Emotion Fusion API",
    description="Multi-modal emotion fusion service",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(fusion_api.router)


@app.get("/")
async def root():
    """Root endpoint."""
    logger.info("GET / - Root endpoint called")
    return {"message": "Emotion Fusion API is running"}


if __name__ == "__main__":
    # Run the server on PORT (default 8000)
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True
    )
