"""
Campaign Worker
Background worker that executes queued campaign send jobs.

Run as separate process:
    python -m genie_gateway.workers.campaign_worker
"""
import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Optional, Set

from dotenv import load_dotenv
from supabase import Client, create_client

from genie_gateway.core.config import Settings, get_settings
from genie_gateway.core.logging_config import configure_logging
from genie_gateway.domain.models.campaign import JobStatus
from genie_gateway.services.campaign_service import CampaignService

load_dotenv()

logger = logging.getLogger(__name__)


class CampaignWorker:
    """
    Polls `campaign_jobs` for pending rows and runs each claimed job as its
    own task, so one tenant's slow campaign does not hold up another's.

    Architecture:
    - Runs as separate process from FastAPI
    - Shares only the database with the API
    - Per-tenant concurrency is capped inside CampaignService.run_job
    """

    MAX_CONSECUTIVE_ERRORS = 10

    def __init__(
        self,
        service: Optional[CampaignService] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.service = service
        self.running = False
        self._tasks: Set[asyncio.Task] = set()

        self._jobs_processed = 0
        self._jobs_failed = 0

    def initialize(self) -> None:
        """Create the Supabase client unless a service was injected."""
        if self.service is not None:
            return

        if not self.settings.supabase_url or not self.settings.supabase_service_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

        supabase: Client = create_client(self.settings.supabase_url, self.settings.supabase_service_key)
        self.service = CampaignService(supabase, settings=self.settings)
        logger.info("Campaign Worker initialized successfully")

    async def run(self) -> None:
        """Main loop: claim pending jobs until stopped."""
        self.initialize()
        self.running = True
        consecutive_errors = 0

        logger.info("Campaign Worker started - polling for jobs")

        while self.running:
            try:
                claimed = await self.poll_once()
                consecutive_errors = 0
                if not claimed:
                    await asyncio.sleep(self.settings.campaign_poll_interval_seconds)

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

                await asyncio.sleep(min(5 * consecutive_errors, 60))

        await self.shutdown()

    async def poll_once(self) -> bool:
        """Claim at most one pending job and start it. Returns True if a job was started."""
        job = await self.service.next_pending_job()
        if job is None:
            return False

        if not await self.service.claim_job(job):
            logger.debug(f"Job {job.id} claimed elsewhere")
            return True

        task = asyncio.create_task(self.process_job(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def process_job(self, job) -> None:
        logger.info(f"Processing job {job.id} for campaign {job.campaign_id}")
        try:
            result = await self.service.run_job(job)
            self._jobs_processed += 1
            if result.status == JobStatus.FAILED:
                self._jobs_failed += 1
        except Exception as e:
            self._jobs_failed += 1
            logger.error(f"Job {job.id} crashed: {e}", exc_info=True)
            job.status = JobStatus.FAILED
            job.last_error = str(e)
            await self.service.save_job(job, finished_at=datetime.now(timezone.utc).isoformat())

    async def shutdown(self) -> None:
        """Wait for in-flight jobs; progress is persisted per send so they can resume."""
        self.running = False
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} running job(s)")
            await asyncio.gather(*self._tasks, return_exceptions=True)

        logger.info(
            f"Campaign Worker stopped. Processed: {self._jobs_processed}, "
            f"Failed: {self._jobs_failed}"
        )

    def stop(self) -> None:
        logger.info("Stop requested")
        self.running = False


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)

    worker = CampaignWorker(settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
