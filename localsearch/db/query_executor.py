"""Store operation timing utilities.

Every Supabase round-trip of the store goes through ``timed_query`` so that
start, completion and failure are logged with the same fields.
"""

import time
from contextlib import contextmanager
from typing import Any, Generator

import logfire


@contextmanager
def timed_query(
    operation_name: str,
    **log_context: Any,
) -> Generator[dict[str, Any], None, None]:
    """
    Time and log one store operation.

    The yielded dict collects result context (row counts, ids) that is added to
    the completion log entry.

    Args:
        operation_name: Name of the store operation (e.g., "claim_next_queue_entry")
        **log_context: Context included in every log entry for the operation

    Example:
        with timed_query("list_documents", project_id=project_id) as result_context:
            result = client.table("documents").select("*").eq("project_id", project_id).execute()
            result_context["rows"] = len(result.data)
    """
    start_time = time.perf_counter()
    result_context: dict[str, Any] = {}

    logfire.debug(
        f"Starting {operation_name}",
        operation=operation_name,
        **log_context,
    )

    try:
        yield result_context
    except Exception as e:
        elapsed = time.perf_counter() - start_time
        logfire.error(
            f"{operation_name} failed",
            operation=operation_name,
            error=str(e),
            error_type=type(e).__name__,
            response_time_ms=elapsed * 1000,
            **log_context,
        )
        raise

    elapsed = time.perf_counter() - start_time
    logfire.info(
        f"{operation_name} completed",
        operation=operation_name,
        response_time_ms=elapsed * 1000,
        **log_context,
        **result_context,
    )
