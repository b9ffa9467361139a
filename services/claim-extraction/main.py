"""FastAPI claim extraction service.

Thin transport around ``DocumentProcessor``: the analyzer client is built
once at startup and injected; requests never share any other state.
PHI: document text and extracted values are never logged.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from analyzer_client import AnalyzerClient, AnalyzerError, AnalyzerUnavailable
from config import settings
from document_reader import DocumentReadError, resolve_under_root
from extraction import DocumentProcessor, InputError
from models import (
    CompletionRequest,
    CompletionResponse,
    ExtractionRequest,
    ProcessingResult,
    ProgressEvent,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_analyzer: AnalyzerClient | None = None
_processor: DocumentProcessor = DocumentProcessor()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the analyzer client on startup if configured."""
    global _analyzer, _processor

    if not settings.ANALYZER_URL:
        logger.info("Analyzer not configured (ANALYZER_URL is empty); pattern extraction only")
    else:
        logger.info("Using analyzer at %s (model=%s)", settings.ANALYZER_URL, settings.ANALYZER_MODEL)
        _analyzer = AnalyzerClient()

        # Startup probe is informational only; every request probes again
        if await _analyzer.probe():
            logger.info("Analyzer is reachable")
        else:
            logger.warning("Analyzer not reachable at startup; requests will fall back until it is")

    _processor = DocumentProcessor(analyzer=_analyzer)

    yield

    if _analyzer is not None:
        await _analyzer.close()


app = FastAPI(title="Claim Extraction Service", version="1.0.0", lifespan=lifespan)


def _log_progress(event: ProgressEvent):
    logger.debug("Progress: %s %d%%", event.step, event.progress)


@app.post("/api/v1/extract", response_model=ProcessingResult)
async def extract(request: ExtractionRequest):
    """Extract the seven claim fields from document text or a file under DOCUMENT_ROOT."""
    if request.file_path:
        try:
            resolved = resolve_under_root(request.file_path, settings.DOCUMENT_ROOT)
        except DocumentReadError as e:
            logger.warning("Rejected filePath request: %s", e)
            return JSONResponse(status_code=400, content={"detail": str(e)})
        request = request.model_copy(update={"file_path": resolved})

    try:
        return await _processor.process_document(request, _log_progress)
    except InputError as e:
        return JSONResponse(status_code=400, content={"detail": str(e)})


@app.post("/api/v1/complete", response_model=CompletionResponse)
async def complete(request: CompletionRequest):
    """Free-text answer from the analyzer (retried on transient failures)."""
    if _analyzer is None:
        return JSONResponse(
            status_code=503,
            content={"detail": "AI completion is not available - no analyzer configured"},
        )

    try:
        text = await _analyzer.complete(request.prompt, request.temperature, request.max_tokens)
    except AnalyzerUnavailable as e:
        return JSONResponse(status_code=503, content={"detail": str(e)})
    except AnalyzerError as e:
        return JSONResponse(status_code=502, content={"detail": str(e)})

    return CompletionResponse(text=text.strip(), model=_analyzer.model)


@app.get("/health")
async def health():
    """Return service status and analyzer reachability."""
    base = {
        "status": "healthy",
        "analyzer_configured": _analyzer is not None,
    }

    if _analyzer is not None:
        base["analyzer_reachable"] = await _analyzer.probe()

    return base


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
