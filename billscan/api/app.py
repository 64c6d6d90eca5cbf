"""FastAPI application exposing the bill scanner over HTTP.

Provides endpoints for quality checks, quick and full scans, cancelling
the running scan, and health checks.
"""

import shutil
import time
import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from billscan import __version__
from billscan.errors import EngineError, InputError, ScanInProgressError
from billscan.ocr.bill_scanner import BillScanner, ScanMode
from billscan.utils.config import load_config
from billscan.utils.logger import get_logger

from .schemas import CancelResponse, HealthResponse, QualityResponse, ScanResponse

logger = get_logger(__name__)

app = FastAPI(
    title="Textile Bill Scanner API",
    description="Extract bill number, date, customer, GST and total from bill photos",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/tiff",
    "application/octet-stream",
}


@lru_cache(maxsize=1)
def _get_scanner() -> BillScanner:
    """Return the process-wide scanner so cancel requests reach the running scan."""
    return BillScanner(load_config())


async def _read_upload(file: UploadFile) -> bytes:
    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )
    return await file.read()


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        tesseract_available=shutil.which("tesseract") is not None,
    )


@app.post("/quality", response_model=QualityResponse)
async def check_quality(file: Annotated[UploadFile, File(...)]) -> QualityResponse:
    """Report whether an uploaded photo is likely to OCR well."""
    content = await _read_upload(file)
    try:
        report = _get_scanner().analyze_quality(content)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return QualityResponse(**report.to_dict())


@app.post("/scan", response_model=ScanResponse)
async def scan_bill(
    file: Annotated[UploadFile, File(...)],
    mode: Annotated[ScanMode, Query()] = ScanMode.QUICK,
    passes: Annotated[int | None, Query(ge=1)] = None,
) -> ScanResponse:
    """Scan an uploaded bill photo.

    Args:
        file: Uploaded image (PNG, JPEG or TIFF).
        mode: ``quick`` for one OCR pass, ``full`` for a merged multi-pass scan.
        passes: Pass count for a full scan.

    Returns:
        Extracted fields with per-field and overall confidence.
    """
    start_time = time.time()
    content = await _read_upload(file)
    scanner = _get_scanner()

    try:
        result = await run_in_threadpool(scanner.scan, content, mode, passes)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ScanInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except EngineError as exc:
        logger.error("Scan failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    payload = result.to_dict()
    return ScanResponse(
        success=not result.cancelled,
        scan_id=str(uuid.uuid4()),
        processing_time_ms=(time.time() - start_time) * 1000,
        **payload,
    )


@app.post("/scan/cancel", response_model=CancelResponse)
async def cancel_scan() -> CancelResponse:
    """Request cancellation of the scan currently running, if any."""
    scanner = _get_scanner()
    running = scanner.scanning
    scanner.cancel()
    return CancelResponse(cancel_requested=running)
