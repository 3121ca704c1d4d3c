"""FastAPI receipt brain service: field extraction from fuel and maintenance receipts.

Image requests go through the vision model pipeline; text requests use the
regex extractor only. Images are processed in memory and never logged.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from config import settings
from models import DocumentKind, ExtractionResponse, TextExtractionRequest
from pipeline import extract_text_only, run_pipeline
from vision_client import VisionClient, VisionClientConfigError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_vision_client: VisionClient | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the vision client on startup if configured."""
    global _vision_client

    try:
        _vision_client = VisionClient()
    except VisionClientConfigError as e:
        logger.warning("Vision model not configured (%s): image extraction disabled", e)
        _vision_client = None
    else:
        logger.info("Using vision model at %s", settings.VISION_SERVICE_URL)

    yield

    if _vision_client is not None:
        await _vision_client.aclose()
        _vision_client = None


app = FastAPI(title="Receipt Brain", version="1.0.0", lifespan=lifespan)


@app.post("/api/v1/extract", response_model=ExtractionResponse)
async def extract(
    file: UploadFile = File(...),
    kind: DocumentKind = Form(DocumentKind.MAINTENANCE),
    ocr_text: str | None = Form(None),
):
    """Extract receipt fields from a photo."""
    if _vision_client is None:
        return JSONResponse(
            status_code=503,
            content={"detail": "Image extraction is not available - no vision model configured"},
        )

    mime_type = file.content_type or ""
    if not mime_type.startswith("image/"):
        return JSONResponse(
            status_code=415,
            content={"detail": f"Unsupported file type: {mime_type or 'unknown'}"},
        )

    image_bytes = await file.read()
    if not image_bytes:
        return JSONResponse(
            status_code=400,
            content={"detail": "Empty file uploaded"},
        )

    # Log byte count only, never image content
    logger.info(
        "Processing extraction: kind=%s type=%s size=%d bytes",
        kind.value,
        mime_type,
        len(image_bytes),
    )

    return await run_pipeline(
        image_bytes,
        mime_type,
        kind,
        _vision_client,
        ocr_text=ocr_text,
        timeout=settings.VISION_CALL_TIMEOUT,
    )


@app.post("/api/v1/extract/text", response_model=ExtractionResponse)
async def extract_text(payload: TextExtractionRequest):
    """Extract receipt fields from text the caller already recognized."""
    logger.info("Processing text extraction: kind=%s chars=%d", payload.kind.value, len(payload.text))
    return extract_text_only(payload.text, payload.kind)


@app.get("/health")
async def health():
    """Return service status and vision model availability."""
    base = {
        "status": "healthy",
        "vision_available": _vision_client is not None,
    }

    if _vision_client is not None:
        base["vision_health"] = await _vision_client.health()

    return base


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
