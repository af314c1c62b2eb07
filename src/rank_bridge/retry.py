# src/rank_bridge/retry.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from .error_handler import UpstreamError, classify_response, is_transient_response

lib_logger = logging.getLogger("rank_bridge")

WriteOperation = Callable[[], Awaitable[httpx.Response]]
FailureCallback = Callable[[int, httpx.Response], None]


def linear_backoff(base_delay: float, attempt: int) -> float:
    """Attempt n (1-based) waits base_delay * n."""
    return base_delay * attempt


@dataclass
class RetryPolicy:
    """
    Bounded retry settings for a remote write.

    `is_transient` decides whether a failed response may be retried and
    `backoff(base_delay, attempt)` gives the wait after a failed attempt.
    """

    max_attempts: int = 4
    base_delay: float = 0.25
    is_transient: Callable[[httpx.Response], bool] = is_transient_response
    backoff: Callable[[float, int], float] = linear_backoff

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def delay_for(self, attempt: int) -> float:
        return self.backoff(self.base_delay, attempt)


class RetryExecutor:
    """
    Runs a write operation under a RetryPolicy.

    `sleep` is injectable so callers and tests control how backoff waits;
    it defaults to asyncio.sleep, which only suspends the calling task.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(
        self,
        operation: WriteOperation,
        max_attempts: Optional[int] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> httpx.Response:
        """
        Calls `operation` until it returns a success response.

        Returns the successful response. Raises UpstreamError on a fatal
        response, on a transport failure, or once the attempts are exhausted.
        """
        attempts = max_attempts if max_attempts is not None else self.policy.max_attempts
        if attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {attempts}")
        last_response: Optional[httpx.Response] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await operation()
            except httpx.RequestError as e:
                lib_logger.warning(
                    f"Membership write failed without a response (Attempt {attempt}/{attempts}): {e}"
                )
                raise UpstreamError(str(e), attempts=attempt) from e

            if response.is_success:
                if attempt > 1:
                    lib_logger.info(f"Membership write succeeded on attempt {attempt}.")
                return response

            last_response = response
            if on_failure:
                on_failure(attempt, response)

            classified = classify_response(response)
            if not self.policy.is_transient(response):
                lib_logger.warning(
                    f"Membership write failed with {classified.error_type} "
                    f"(Status: {classified.status_code}). Not retrying."
                )
                raise UpstreamError(
                    classified.detail, status_code=response.status_code, attempts=attempt
                )

            if attempt >= attempts:
                break

            wait_time = self.policy.delay_for(attempt)
            lib_logger.warning(
                f"Membership write hit {classified.error_type} (Status: {classified.status_code}). "
                f"Retrying in {wait_time:.2f}s (Attempt {attempt}/{attempts})."
            )
            await self._sleep(wait_time)

        classified = classify_response(last_response)
        lib_logger.error(
            f"Membership write failed after {attempts} attempts. Last error: {classified}"
        )
        raise UpstreamError(
            classified.detail, status_code=last_response.status_code, attempts=attempts
        )
