"""
Phishing Detector API - Main Application
==========================================
FastAPI service that classifies an email as a possible phishing attempt
by running a tool-calling conversation with an LLM.

Endpoints:
    GET  /           - Health check
    POST /api/phish  - Raw email text in the request body,
                       DetectionReport JSON out

Architecture:
    1. Reads the raw email body
    2. Runs PhishingDetector.detect() in the threadpool so concurrent
       requests do not block the event loop
    3. Returns the verdict plus every URL the model asked to check

Failures:
    Each DetectionError kind maps to its own status code and error code
    ({"error": ..., "detail": ...}) so schema drift, misbehaving models
    and provider outages are distinguishable by the caller.
"""

import logging
import traceback
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from phish_detector.core.detector import PhishingDetector
from phish_detector.core.errors import DetectionError
from phish_detector.core.factory import build_detector
from phish_detector.schemas import DetectionReport, ErrorResponse
from phish_detector.security import verify_api_key

# Configure logging for production visibility
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Phishing Detector API",
    description="LLM-powered phishing email classifier with URL checking",
    version="1.0.0"
)


# ---------- EXCEPTION HANDLERS ----------

@app.exception_handler(DetectionError)
async def detection_error_handler(request: Request, exc: DetectionError):
    """Map each detection failure kind to a distinct diagnostic."""
    logger.error(f"Detection failed ({exc.code}): {exc}")
    body = ErrorResponse(error=exc.code, detail=str(exc))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    logger.error(traceback.format_exc())
    body = ErrorResponse(error="internal_error", detail="Unexpected server error")
    return JSONResponse(status_code=500, content=body.model_dump())


# ---------- DEPENDENCIES ----------

@lru_cache(maxsize=1)
def get_detector() -> PhishingDetector:
    """Build the configured detector once per process."""
    return build_detector()


# ---------- HEALTH CHECK ----------

@app.get("/")
def health_check():
    return {"status": "running", "service": "Phishing Detector API"}


# ---------- DETECTION ENDPOINT ----------

@app.post(
    "/api/phish",
    response_model=DetectionReport,
    responses={
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def phish_endpoint(
    request: Request,
    api_key: str | None = Depends(verify_api_key),
    detector: PhishingDetector = Depends(get_detector),
):
    """
    Classify the email sent as the raw request body.

    Args:
        request: Incoming request; its body is the email text
        api_key: API key from header (validated by dependency)
        detector: Configured PhishingDetector

    Returns:
        DetectionReport with verdict, detected items and URL checks
    """
    email = (await request.body()).decode("utf-8", errors="replace")
    if not email.strip():
        raise HTTPException(status_code=400, detail="Request body must contain the email text")
    logger.info(f"Received email for analysis ({len(email)} chars)")

    return await run_in_threadpool(detector.detect, email)
