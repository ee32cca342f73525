"""
Logging Utilities for the equity scoring pipeline

Structured logging helpers so every component reports operations, errors
and crawl progress with the same field names.
"""

from typing import Any, Dict, List, Optional, Tuple

from loguru import logger


def log_operation(
    operation_type: str,
    component: str,
    status: str,
    details: Optional[Dict[str, Any]] = None,
    **extra_fields
):
    """
    Log a pipeline operation with structured data.

    Args:
        operation_type: Type of operation (e.g., "fetch_snapshot", "save_score", "crawl")
        component: Component performing the operation
        status: Operation status ("started", "completed", "failed")
        details: Additional operation details
        **extra_fields: Additional fields to include in log
    """
    log_data = {
        "operation_type": operation_type,
        "component": component,
        "status": status,
    }

    if details:
        log_data["details"] = details

    log_data.update(extra_fields)
    bound = logger.bind(**log_data)

    if status == "failed":
        bound.error(f"❌ Operation {operation_type} FAILED in {component}")
    elif status == "started":
        bound.debug(f"▶️  Operation {operation_type} STARTED in {component}")
    else:
        bound.info(f"✅ Operation {operation_type} COMPLETED in {component}")


def log_error_with_context(
    error: Exception,
    context: str,
    component: str,
    additional_info: Optional[Dict[str, Any]] = None,
    with_traceback: bool = False,
    **extra_fields
):
    """
    Log an error with its context.

    Args:
        error: The exception that occurred
        context: Description of what was being done when the error occurred
        component: Component where the error occurred
        additional_info: Additional contextual information
        with_traceback: Log the active stack trace as well
        **extra_fields: Additional fields to include in log
    """
    log_data = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context,
        "component": component,
    }

    if additional_info:
        log_data["additional_info"] = additional_info

    log_data.update(extra_fields)
    message = f"❌ ERROR in {component}: {context} - {type(error).__name__}: {error}"

    if with_traceback:
        logger.bind(**log_data).opt(exception=error).error(message)
    else:
        logger.bind(**log_data).error(message)


def log_batch_progress(
    batch_number: int,
    total_batches: int,
    symbols: List[str],
    completed: int,
    failed: int,
    total: int,
):
    """Log the start of a crawl batch together with the running counters."""
    logger.bind(
        operation_type="crawl_batch",
        batch_number=batch_number,
        total_batches=total_batches,
        symbols=symbols,
        completed=completed,
        failed=failed,
        total=total,
    ).info(
        f"📦 Batch {batch_number}/{total_batches}: {', '.join(symbols)} "
        f"(completed={completed}, failed={failed}, total={total})"
    )


def log_run_summary(
    total: int,
    completed: int,
    failed: int,
    duration_seconds: float,
    success_rate: float,
    errors: List[Tuple[str, str]],
):
    """Log the end-of-run summary, listing each failed symbol."""
    logger.bind(
        operation_type="crawl_summary",
        total=total,
        completed=completed,
        failed=failed,
        duration_seconds=round(duration_seconds, 2),
        success_rate=round(success_rate, 2),
    ).info(
        f"🏁 Score run finished: {completed}/{total} scored, {failed} failed, "
        f"{success_rate:.1f}% success in {duration_seconds:.1f}s"
    )

    for symbol, error in errors:
        logger.warning(f"   ✗ {symbol}: {error}")
