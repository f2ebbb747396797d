"""Temporal Worker entry point.

This worker polls the validation-queue for workflow and activity tasks.
"""
import asyncio
import logging
import signal
from concurrent.futures import ThreadPoolExecutor

from temporalio.client import Client
from temporalio.worker import Worker

from worker.activities import (
    abort_validation,
    begin_canonical_pass,
    complete_validation,
    llm_extract_draft,
    open_validation_job,
    request_canonical,
)
from worker.config import WorkerSettings
from worker.workflows import ValidationWorkflow

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("worker")

ACTIVITIES = [
    llm_extract_draft,
    open_validation_job,
    begin_canonical_pass,
    request_canonical,
    complete_validation,
    abort_validation,
]


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Install signal handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows
            signal.signal(sig, lambda *_: stop_event.set())


async def run_worker() -> None:
    """Run the Temporal worker."""
    settings = WorkerSettings()

    logger.info("Starting worker: %r", settings)
    if settings.cca_simulated:
        logger.warning("CCA_AGENT_URL not set: canonical readings will be simulated")

    client = await Client.connect(
        settings.TEMPORAL_ADDRESS,
        namespace=settings.TEMPORAL_NAMESPACE
    )

    # Sync activities run on this pool
    activity_executor = ThreadPoolExecutor(max_workers=settings.ACTIVITY_THREADS)

    worker = Worker(
        client,
        task_queue=settings.WORKER_TASK_QUEUE,
        workflows=[ValidationWorkflow],
        activities=ACTIVITIES,
        activity_executor=activity_executor,
    )

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    logger.info("Worker running, polling for tasks...")
    worker_task = asyncio.create_task(worker.run())

    await stop_event.wait()
    logger.info("Shutdown signal received, stopping worker...")

    worker_task.cancel()
    await asyncio.gather(worker_task, return_exceptions=True)
    activity_executor.shutdown(wait=True)
    logger.info("Worker stopped")


def main() -> None:
    """Main entry point."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
