"""Dispatch worker: runs queued jobs through their registered handlers.

Loop:
  1. Wait for a free slot (at most worker_concurrency jobs in flight)
  2. claim_next(); sleep poll_interval_seconds when nothing is ready
  3. Run the job's handler with the job id bound as correlation id
  4. Handler returned  -> mark_completed
     Handler raised    -> mark_failed (queue re-runs it after backoff,
                          or dead-letters it once max_attempts is spent)

The worker never interprets handler results. Whether a notification was
delivered is recorded by the processor in the delivery ledger.
"""

from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from typing import Any

import structlog

from push_dispatch.application.ports.job_queue import JobQueueProtocol
from push_dispatch.config.dispatch_config import DispatchConfig
from push_dispatch.domain.models.dispatch_job import DispatchJob
from push_dispatch.infrastructure.observability import (
    correlation_scope,
    get_logger_for_service,
)

logger = structlog.get_logger()


@dataclass
class WorkerMetrics:
    """Counters tracked by the dispatch worker."""

    jobs_claimed: int = 0
    jobs_completed: int = 0
    jobs_failed: int = 0
    jobs_dead_lettered: int = 0
    idle_polls: int = 0


class DispatchWorker:
    """Claims jobs from a JobQueueProtocol and runs their handlers.

    Usage:
        worker = DispatchWorker(queue, config)
        processor.register(queue)
        await worker.run()
    """

    def __init__(
        self,
        job_queue: JobQueueProtocol,
        config: DispatchConfig | None = None,
    ) -> None:
        self._queue = job_queue
        self._config = config or DispatchConfig()
        self._running = False
        self._metrics = WorkerMetrics()
        self._in_flight: set[asyncio.Task[None]] = set()
        self._log = get_logger_for_service("DispatchWorker", component="worker")

    @property
    def running(self) -> bool:
        return self._running

    async def run_once(self) -> bool:
        """Claim and run at most one job inline.

        Returns:
            True if a job was claimed, False if nothing was ready.
        """
        job = await self._queue.claim_next()
        if job is None:
            self._metrics.idle_polls += 1
            return False
        self._metrics.jobs_claimed += 1
        await self._run_job(job)
        return True

    async def drain(self, max_jobs: int | None = None) -> int:
        """Run ready jobs inline until none is ready.

        Args:
            max_jobs: Optional upper bound on jobs to run.

        Returns:
            Number of jobs run.
        """
        count = 0
        while max_jobs is None or count < max_jobs:
            if not await self.run_once():
                break
            count += 1
        return count

    async def run(self) -> None:
        """Run the claim loop until stop() is called."""
        self._running = True
        slots = asyncio.Semaphore(self._config.worker_concurrency)
        self._log.info(
            "dispatch_worker_started",
            worker_concurrency=self._config.worker_concurrency,
            poll_interval_seconds=self._config.poll_interval_seconds,
        )

        try:
            while self._running:
                await slots.acquire()
                try:
                    job = await self._queue.claim_next()
                except Exception as e:
                    slots.release()
                    self._log.error("job_claim_failed", error=str(e))
                    await asyncio.sleep(self._config.poll_interval_seconds)
                    continue

                if job is None:
                    slots.release()
                    self._metrics.idle_polls += 1
                    await asyncio.sleep(self._config.poll_interval_seconds)
                    continue

                self._metrics.jobs_claimed += 1
                task = asyncio.create_task(self._run_job_in_slot(job, slots))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
        finally:
            self._running = False
            if self._in_flight:
                await asyncio.gather(*self._in_flight, return_exceptions=True)
            self._log.info("dispatch_worker_stopped", **self.get_metrics())

    def stop(self) -> None:
        """Signal the worker to stop after in-flight jobs finish."""
        self._log.info("dispatch_worker_stop_requested")
        self._running = False

    def get_metrics(self) -> dict[str, Any]:
        """Get worker counters for monitoring."""
        return {
            "jobs_claimed": self._metrics.jobs_claimed,
            "jobs_completed": self._metrics.jobs_completed,
            "jobs_failed": self._metrics.jobs_failed,
            "jobs_dead_lettered": self._metrics.jobs_dead_lettered,
            "idle_polls": self._metrics.idle_polls,
            "in_flight": len(self._in_flight),
            "running": self._running,
        }

    async def _run_job_in_slot(self, job: DispatchJob, slots: asyncio.Semaphore) -> None:
        try:
            await self._run_job(job)
        finally:
            slots.release()

    async def _run_job(self, job: DispatchJob) -> None:
        with correlation_scope(str(job.id)):
            log = self._log.bind(job_id=str(job.id), job_type=job.job_type)
            handler = self._queue.get_handler(job.job_type)
            if handler is None:
                await self._fail(job, f"No handler registered for job type {job.job_type}")
                return

            try:
                await handler(job)
            except Exception as e:
                log.warning(
                    "job_handler_failed",
                    attempt=job.attempts + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._fail(job, f"{type(e).__name__}: {e}")
                return

            await self._queue.mark_completed(job.id)
            self._metrics.jobs_completed += 1
            log.debug("job_completed")

    async def _fail(self, job: DispatchJob, reason: str) -> None:
        self._metrics.jobs_failed += 1
        dead_letter = await self._queue.mark_failed(job.id, reason)
        if dead_letter is not None:
            self._metrics.jobs_dead_lettered += 1


async def _run_from_env() -> None:
    from push_dispatch.bootstrap.dispatch import (
        get_dispatch_config,
        get_job_queue,
        get_notification_processor,
        shutdown_dispatch,
    )
    from push_dispatch.bootstrap.logging import configure_structlog

    configure_structlog()
    if os.environ.get("DATABASE_URL"):
        from push_dispatch.bootstrap.database import ensure_database_schema

        await ensure_database_schema()

    queue = get_job_queue()
    get_notification_processor().register(queue)
    worker = DispatchWorker(queue, get_dispatch_config())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    try:
        await worker.run()
    finally:
        await shutdown_dispatch()


def main() -> None:
    """Console entry point for the dispatch worker."""
    asyncio.run(_run_from_env())


if __name__ == "__main__":
    main()
