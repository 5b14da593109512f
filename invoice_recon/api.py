"""
FastAPI application for the Invoice Reconciliation Service.

Provides REST API endpoints for:
- Health check
- Verifying an uploaded invoice PDF against its stored order
- Listing paid orders awaiting invoice printing
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Header, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .audit import ActivityLogSink, JsonLinesActivitySink, LoggingActivitySink
from .config import (
    ALLOWED_CONTENT_TYPES,
    API_HOST,
    API_PORT,
    AUDIT_LOG_FILE,
    MAX_UPLOAD_SIZE_MB,
    ORDERS_FILE,
    logger,
)
from .errors import ReconciliationError, ValidationError
from .extractor import TextExtractor, create_text_extractor
from .reconciler import list_paid_not_printed, verify_invoice
from .repository import JsonOrderRepository, OrderRepository
from .schemas import PaidOrdersResult, ReconciliationResult


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="Invoice Reconciliation Service API",
    description="""
    Invoice Reconciliation Service API.

    Checks printed invoice PDFs against the orders stored by the
    point-of-sale system and reports every field that disagrees.

    ## Features

    - **Verify invoice**: Upload an invoice PDF and compare it with its order
    - **Paid, not printed**: List paid orders with their combined total
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Built once at import so a misconfigured backend stops the process at startup
text_extractor: TextExtractor = create_text_extractor()


# ============================================================================
# Dependencies
# ============================================================================

def get_text_extractor() -> TextExtractor:
    return text_extractor


@lru_cache(maxsize=1)
def get_order_repository() -> OrderRepository:
    """Order store read from ORDERS_FILE on first use."""
    return JsonOrderRepository(Path(ORDERS_FILE))


@lru_cache(maxsize=1)
def get_activity_log() -> ActivityLogSink:
    """Audit sink: a JSON-lines file when AUDIT_LOG_FILE is set, the log otherwise."""
    if AUDIT_LOG_FILE:
        return JsonLinesActivitySink(Path(AUDIT_LOG_FILE))
    return LoggingActivitySink()


# ============================================================================
# Upload Gate
# ============================================================================

def check_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """
    Reject uploads that are not PDFs or exceed the size limit.

    A file counts as a PDF if either its declared type or its extension says so.

    Raises:
        ValidationError: If the upload is not acceptable
    """
    is_pdf = content_type in ALLOWED_CONTENT_TYPES or (filename or "").lower().endswith(".pdf")
    if not is_pdf:
        raise ValidationError("Only PDF files are accepted")

    if size > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise ValidationError(f"File too large (max {MAX_UPLOAD_SIZE_MB}MB)")


def read_upload(file: Optional[UploadFile]) -> Optional[bytes]:
    """Read an uploaded file after passing it through the upload gate."""
    if file is None or not file.filename:
        return None
    content = file.file.read()
    check_upload(file.filename, file.content_type, len(content))
    return content


def server_error(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"message": message, "error": str(exc)},
    )


# ============================================================================
# Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and version information.
    """
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.post(
    "/orders/{order_id}/verify-invoice",
    response_model=ReconciliationResult,
    tags=["Reconciliation"],
    summary="Verify an invoice PDF against its order",
)
def verify_invoice_pdf(
    order_id: str,
    request: Request,
    file: Optional[UploadFile] = File(None, description="Invoice PDF to verify"),
    store_id_query: Optional[str] = Query(None, alias="storeId"),
    store_id_form: Optional[str] = Form(None, alias="storeId"),
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    user_agent: Optional[str] = Header(None),
    repository: OrderRepository = Depends(get_order_repository),
    extractor: TextExtractor = Depends(get_text_extractor),
    activity_log: ActivityLogSink = Depends(get_activity_log),
):
    """
    Compare an uploaded invoice PDF with the stored order.

    **Checks Applied (in order):**
    - Order ID printed on the invoice
    - Total amount (within 1)
    - Payment method
    - Customer name and phone
    - VAT marker

    **Limitations:**
    - Maximum file size: 10MB
    - Supported formats: PDF only (text-based, no OCR)
    """
    try:
        content = read_upload(file)
        return verify_invoice(
            order_id,
            store_id_query or store_id_form,
            content,
            repository=repository,
            extractor=extractor,
            activity_log=activity_log,
            actor=x_user_id,
            actor_name=x_user_name,
            ip=request.client.host if request.client else None,
            user_agent=user_agent,
        )
    except ReconciliationError:
        raise
    except Exception as e:
        logger.exception(f"Invoice verification failed for order {order_id}")
        return server_error("Server error while reconciling invoice", e)


@app.get(
    "/orders/paid-not-printed",
    response_model=PaidOrdersResult,
    tags=["Reconciliation"],
    summary="List paid orders for reconciliation",
)
def paid_not_printed(
    store_id: Optional[str] = Query(None, alias="storeId"),
    repository: OrderRepository = Depends(get_order_repository),
):
    """
    List a store's paid orders, most recently updated first, with a summary
    of how many there are and what they add up to.
    """
    try:
        return list_paid_not_printed(store_id, repository=repository)
    except ReconciliationError:
        raise
    except Exception as e:
        logger.exception(f"Listing paid orders failed for store {store_id}")
        return server_error("Server error while listing orders for reconciliation", e)


@app.get("/rules", tags=["System"])
def list_rules():
    """
    List the field rules applied when verifying an invoice, in order.
    """
    from .rules import FIELD_RULES, get_rule_descriptions

    return {
        "total_rules": len(FIELD_RULES),
        "rules": get_rule_descriptions(),
    }


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    """Map engine errors to responses; client errors keep their message."""
    if exc.status_code < 500:
        logger.info(f"{request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    logger.error(f"{request.url.path}: {exc.message}")
    return server_error("Server error while reconciling invoice", exc)


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return server_error("Internal server error", exc)


# ============================================================================
# Startup/Shutdown Events
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    logger.info(f"Invoice Reconciliation Service API starting on {API_HOST}:{API_PORT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Invoice Reconciliation Service API shutting down")


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
