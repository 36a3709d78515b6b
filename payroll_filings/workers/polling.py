from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from payroll_filings.domain import CancellationToken
from payroll_filings.infrastructure.extraction import BackendUnavailable, ExtractionBackend, JobStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_FAILURES = 5


class JobPoller:
    """Polls a submitted automation job until every company reaches a terminal state."""

    def __init__(
        self,
        backend: ExtractionBackend,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_failures: int = DEFAULT_MAX_FAILURES,
    ) -> None:
        self._backend = backend
        self._interval = interval
        self._max_failures = max_failures

    async def subscribe(
        self,
        job_id: str,
        *,
        expected: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[JobStatus]:
        """Yield a snapshot per poll; returns after a terminal snapshot or on cancel."""

        failures = 0
        while cancel is None or not cancel.cancelled:
            try:
                status = await asyncio.to_thread(self._backend.poll_status, job_id)
            except BackendUnavailable:
                failures += 1
                logger.warning("polling job %s failed (%d/%d)", job_id, failures, self._max_failures, exc_info=True)
                if failures >= self._max_failures:
                    raise
            else:
                failures = 0
                yield status
                if status.is_terminal(expected):
                    logger.info("job %s finished: %d companies", job_id, status.completed_count)
                    return
            if cancel is not None and cancel.cancelled:
                break
            await asyncio.sleep(self._interval)
        logger.info("stopped polling job %s", job_id)

    async def wait(
        self,
        job_id: str,
        *,
        expected: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> JobStatus | None:
        last: JobStatus | None = None
        async for status in self.subscribe(job_id, expected=expected, cancel=cancel):
            last = status
        return last
