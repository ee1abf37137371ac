"""Bounded waiting on host state."""

from collections.abc import Callable

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)


def _log_attempt(state: RetryCallState) -> None:
    outcome = state.outcome
    reason = outcome.exception() if outcome is not None and outcome.failed else "not ready"
    logger.debug("Host not ready (attempt {}): {}", state.attempt_number, reason)


def wait_until_ready(probe: Callable[[], bool], attempts: int = 5, delay: float = 0.5) -> bool:
    """Call `probe` until it returns True; False once attempts run out.

    Exceptions from the probe count as "not ready" (a busy host refuses calls).
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay),
        retry=retry_if_result(lambda ready: not ready) | retry_if_exception_type(Exception),
        before_sleep=_log_attempt,
        retry_error_callback=lambda state: False,
    )
    return bool(retrying(probe))
