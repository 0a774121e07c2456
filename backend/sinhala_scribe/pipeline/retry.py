"""Per-segment retry policy using tenacity."""
from typing import Callable, Optional

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_incrementing,
)

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import TranscriptionProviderError, TranscriptionTimeout

# Insufficient credit is deliberately absent: it ends the run, not the attempt
RETRYABLE_ERRORS = (TranscriptionTimeout, TranscriptionProviderError)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"Segment attempt {retry_state.attempt_number} failed: {retry_state.outcome.exception()}; "
        f"retrying in {retry_state.next_action.sleep:.1f}s"
    )


def segment_retrying(
        max_retries: int = settings.MAX_RETRIES,
        delay: float = settings.RETRY_DELAY,
        cancelled: Optional[Callable[[], bool]] = None,
) -> AsyncRetrying:
    """
    Retry controller for one segment: ``max_retries`` extra attempts with a
    linearly growing pause (``delay * attempt``), re-raising the last error.
    """
    stop = stop_after_attempt(max_retries + 1)
    if cancelled is not None:
        stop = stop_any(stop, lambda retry_state: cancelled())

    return AsyncRetrying(
        stop=stop,
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=_log_retry,
        reraise=True,
    )
