"""Retry policy for failed upload attempts.

This module provides:
- RetryPolicy: Linear backoff decision (base delay x retry count)
- RetryDecision: Outcome of applying the policy to a failed job

With the defaults a job is attempted at most 4 times: the first attempt,
then retries after 5s, 10s and 15s. After that it stays failed until a
manual retry.
"""

from __future__ import annotations

from dataclasses import dataclass

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF = 5.0  # seconds, multiplied by the retry count


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a failed attempt.

    Attributes:
        retry: Whether the job should be retried automatically.
        retry_count: Retry count after the decision.
        delay: Seconds to wait before the job becomes eligible again.
    """

    retry: bool
    retry_count: int
    delay: float = 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """Linear backoff retry policy.

    Attributes:
        max_retries: Maximum number of automatic retries.
        backoff: Base delay in seconds.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff: float = DEFAULT_RETRY_BACKOFF

    def decide(self, retry_count: int) -> RetryDecision:
        """Decide what to do after a failed attempt.

        Args:
            retry_count: Retries already performed for the job.

        Returns:
            RetryDecision with the new retry count and delay.
        """
        if retry_count >= self.max_retries:
            return RetryDecision(retry=False, retry_count=retry_count)
        new_count = retry_count + 1
        return RetryDecision(retry=True, retry_count=new_count, delay=self.backoff * new_count)
