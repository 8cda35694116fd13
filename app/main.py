"""
HTTP API for Expense Tracker

The browser front-end talks to this boundary. It only adapts HTTP to the
orchestrator flows; no business rules live here.

DESIGN PRINCIPLES:
1. Bad input is rejected with 400 before any model is called
2. Nothing is saved without an explicit confirm request
3. End users see generic, retry-friendly error messages
4. Details go to the structured log, not to the response

The lifespan is the composition root: it builds the components (unless a
test already placed them on ``app.state``) and awaits ``store.init()``.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from expense_tracker import __version__
from expense_tracker.audit import configure_logging
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.models.expense import (
    BatchConfirmation,
    CaptureSource,
    ExpenseRecord,
    ExpenseSummary,
    ParsedExpenseCandidate,
    SummaryPeriod,
)
from expense_tracker.orchestrator import (
    AppComponents,
    CandidateRejectedError,
    InputError,
    PartialBatchError,
    create_app_components,
)
from expense_tracker.services.storage import StorageError
from expense_tracker.services.transcription import TranscriptionError


logger = structlog.get_logger(__name__)

STORAGE_ERROR_MESSAGE = "Could not access your saved expenses. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().app.log_level)

    components: Optional[AppComponents] = getattr(app.state, "components", None)
    if components is None:
        components = create_app_components()
        app.state.components = components

    await components.store.init()

    settings = get_settings().app
    checks = validate_all_settings()
    if not checks["gemini"]:
        # Records and summaries still work; capture endpoints fall back or fail
        logger.warning("gemini_not_configured", error=checks.get("gemini_error"))
    logger.info(
        "app_started",
        version=__version__,
        environment=settings.app_environment,
        debug=settings.debug_mode,
    )

    yield

    close = getattr(components.store, "close", None)
    if close is not None:
        await close()
    logger.info("app_stopped")


app = FastAPI(
    title="Expense Tracker",
    description="Text, voice and receipt capture → confirmed expenses → summaries",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().app.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


# ── Request bodies ───────────────────────────────────────────────────────

class ConfirmExpenseRequest(ParsedExpenseCandidate):
    """A candidate as the user confirmed it (possibly edited)."""

    raw_input: Optional[str] = None
    source: Optional[CaptureSource] = None


class ConfirmBatchRequest(BaseModel):
    expenses: list[ParsedExpenseCandidate] = Field(default_factory=list)
    raw_input: Optional[str] = None
    source: Optional[CaptureSource] = CaptureSource.RECEIPT


# ── Error mapping ────────────────────────────────────────────────────────

@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(CandidateRejectedError)
async def candidate_rejected_handler(request: Request, exc: CandidateRejectedError):
    return JSONResponse(
        status_code=422,
        content={
            "error": str(exc),
            "issues": [
                issue.model_dump(mode="json") for issue in exc.validation.issues
            ],
        },
    )


@app.exception_handler(PartialBatchError)
async def partial_batch_handler(request: Request, exc: PartialBatchError):
    logger.error("batch_save_interrupted", saved=len(exc.saved), error=str(exc))
    return JSONResponse(
        status_code=503,
        content={
            "error": STORAGE_ERROR_MESSAGE,
            "saved": [record.model_dump(mode="json") for record in exc.saved],
        },
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    await request.app.state.components.audit_logger.log_error(
        error_type=type(exc).__name__,
        error_message=str(exc),
    )
    return JSONResponse(status_code=503, content={"error": STORAGE_ERROR_MESSAGE})


@app.exception_handler(TranscriptionError)
async def transcription_error_handler(request: Request, exc: TranscriptionError):
    return JSONResponse(status_code=502, content={"error": "Failed to transcribe audio"})


class UploadTooLargeError(Exception):
    """Uploaded file exceeds MAX_UPLOAD_SIZE_MB."""
    pass


@app.exception_handler(UploadTooLargeError)
async def upload_too_large_handler(request: Request, exc: UploadTooLargeError):
    limit = get_settings().app.max_upload_size_mb
    return JSONResponse(status_code=413, content={"error": f"File is larger than {limit} MB"})


async def _read_upload(
    upload: Optional[UploadFile],
    capture_mode: str,
    kind: str,
) -> tuple[bytes, str]:
    """Read an uploaded file, enforcing presence and the size limit."""
    if upload is None:
        raise InputError(capture_mode, f"No {kind} file provided")

    data = await upload.read()
    if len(data) > get_settings().app.max_upload_size_bytes:
        raise UploadTooLargeError()
    return data, upload.content_type or ""


# ── Capture ──────────────────────────────────────────────────────────────

@app.post("/api/parse-expense", response_model=ParsedExpenseCandidate)
async def parse_expense(
    request: Request,
    components: AppComponents = Depends(get_components),
):
    try:
        payload: Any = await request.json()
    except ValueError:
        raise InputError("text", "Invalid input provided")

    # Missing, non-string and blank input are rejected by the flow
    text = payload.get("input") if isinstance(payload, dict) else None
    return await components.capture_flow.capture_text(text)


@app.post("/api/parse-receipt")
async def parse_receipt(
    image: Optional[UploadFile] = File(default=None),
    components: AppComponents = Depends(get_components),
):
    data, content_type = await _read_upload(image, "receipt", "image")
    result = await components.capture_flow.capture_receipt(data, content_type)
    return {
        "expenses": [c.model_dump(mode="json") for c in result.candidates],
        "status": result.status.value,
    }


@app.post("/api/transcribe-audio")
async def transcribe_audio(
    audio: Optional[UploadFile] = File(default=None),
    components: AppComponents = Depends(get_components),
):
    data, content_type = await _read_upload(audio, "voice", "audio")
    text = await components.capture_flow.transcribe(data, content_type or "audio/webm")
    return {"text": text}


# ── Confirmation ─────────────────────────────────────────────────────────

@app.post("/api/expenses", status_code=201, response_model=ExpenseRecord)
async def confirm_expense(
    body: ConfirmExpenseRequest,
    components: AppComponents = Depends(get_components),
):
    candidate = ParsedExpenseCandidate(
        amount=body.amount,
        merchant=body.merchant,
        category=body.category,
        description=body.description,
    )
    return await components.capture_flow.confirm_and_save(
        candidate,
        raw_input=body.raw_input,
        source=body.source,
    )


@app.post("/api/expenses/batch", response_model=BatchConfirmation)
async def confirm_batch(
    body: ConfirmBatchRequest,
    components: AppComponents = Depends(get_components),
):
    return await components.capture_flow.confirm_batch(
        body.expenses,
        raw_input=body.raw_input,
        source=body.source,
    )


@app.get("/api/expenses", response_model=list[ExpenseRecord])
async def list_expenses(
    period: Optional[SummaryPeriod] = None,
    components: AppComponents = Depends(get_components),
):
    return await components.summary_flow.list_expenses(period)


@app.delete("/api/expenses/{expense_id}")
async def delete_expense(
    expense_id: str,
    components: AppComponents = Depends(get_components),
):
    deleted = await components.capture_flow.delete_expense(expense_id)
    return {"deleted": deleted}


# ── Summaries ────────────────────────────────────────────────────────────

@app.get("/api/summary", response_model=dict[str, ExpenseSummary])
async def get_summaries(components: AppComponents = Depends(get_components)):
    summaries = await components.summary_flow.get_all_summaries()
    return {period.value: summary for period, summary in summaries.items()}


@app.get("/api/summary/{period}", response_model=ExpenseSummary)
async def get_summary(
    period: SummaryPeriod,
    components: AppComponents = Depends(get_components),
):
    return await components.summary_flow.get_summary(period)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
