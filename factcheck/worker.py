"""Background worker resuming submitted external jobs."""

import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from factcheck.config import settings
from factcheck.database import SessionLocal, engine
from factcheck.errors import FactCheckError, OrchestrationError, PollingCancelled
from factcheck.models.job import Job
from factcheck.services.external_api import ExternalApiClient
from factcheck.services.pipeline import STAGE_STEPS, VerificationPipeline
from factcheck.services.process_log import AuditLog
from factcheck.services.state_machine import TERMINAL_STATUSES, VerificationStateMachine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


class Worker:
    """Background worker for processing queued pipeline stages."""

    def __init__(
        self,
        client: Optional[ExternalApiClient] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        pipeline_factory: Optional[Callable[[Session], VerificationPipeline]] = None,
    ):
        """Initialize worker."""
        self.client = client or ExternalApiClient()
        self.session_factory = session_factory
        self.pipeline_factory = pipeline_factory or (lambda db: VerificationPipeline(db, client=self.client))
        self.poll_interval = settings.WORKER_POLL_INTERVAL
        self.max_retries = settings.MAX_JOB_RETRIES

    def wait_for_database(self, max_wait: int = 60) -> bool:
        """Block until the jobs table exists or max_wait seconds pass."""
        waited = 0
        while waited < max_wait:
            if inspect(engine).has_table("jobs"):
                logger.info("Database is ready, starting worker loop")
                return True
            logger.info(f"Waiting for migrations to complete... ({waited}s)")
            time.sleep(2)
            waited += 2

        logger.error(f"Database not ready after {max_wait} seconds, starting anyway...")
        return False

    def purge_process_logs(self) -> None:
        db = self.session_factory()
        try:
            AuditLog(db).purge_older_than(settings.PROCESS_LOG_RETENTION_DAYS)
        except Exception as e:
            logger.error(f"Process log purge failed: {e}", exc_info=True)
        finally:
            db.close()

    def run(self, stop_event: Optional[threading.Event] = None):
        """Main worker loop.

        Args:
            stop_event: Optional threading.Event to signal worker to stop; also
                cancels any polling in progress
        """
        logger.info("Worker started - waiting for database to be ready...")
        self.wait_for_database()
        self.purge_process_logs()

        while True:
            if stop_event and stop_event.is_set():
                logger.info("Worker stop signal received")
                break

            try:
                db = self.session_factory()
                job = self.get_next_job(db)

                if job:
                    self.process_job(job, db, stop_event=stop_event)
                else:
                    db.close()
                    if stop_event:
                        stop_event.wait(self.poll_interval)
                    else:
                        time.sleep(self.poll_interval)

            except KeyboardInterrupt:
                logger.info("Worker shutting down")
                break
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)
                time.sleep(self.poll_interval)

    def get_next_job(self, db: Session) -> Optional[Job]:
        """Get next queued job."""
        return (
            db.query(Job)
            .filter(Job.status == "queued")
            .order_by(Job.created_at)
            .with_for_update(skip_locked=True)
            .first()
        )

    def process_job(self, job: Job, db: Session, stop_event: Optional[threading.Event] = None):
        """Process a single job."""
        logger.info(f"Processing job {job.job_id} (stage: {job.stage})")

        job.status = "running"
        db.commit()

        job_id = job.job_id
        verification_id = job.verification_id
        stage = job.stage
        external_job_id = (job.payload or {}).get("external_job_id")

        try:
            pipeline = self.pipeline_factory(db)
            pipeline.run_stage(stage, verification_id, external_job_id, stop_event=stop_event)

            job = db.get(Job, job_id)
            job.status = "done"
            db.commit()
            logger.info(f"Job {job_id} completed successfully")

        except PollingCancelled as e:
            # Resume on next start; the verification is left as it was
            db.rollback()
            job = db.get(Job, job_id)
            job.status = "queued"
            db.commit()
            logger.info(f"Job {job_id} requeued: {e}")

        except OrchestrationError as e:
            # Already audited and the verification already forced to error
            db.rollback()
            job = db.get(Job, job_id)
            job.status = "failed"
            job.last_error = str(e)
            db.commit()
            logger.error(f"Job {job_id} failed: {e}")

        except FactCheckError as e:
            # Core rule violations are not retried; the verification stays as stored
            db.rollback()
            job = db.get(Job, job_id)
            job.status = "failed"
            job.last_error = str(e)
            db.commit()
            logger.error(f"Job {job_id} rejected: {e.code} {e}")

        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            db.rollback()

            job = db.get(Job, job_id)
            job.retries = (job.retries or 0) + 1
            job.last_error = str(e)

            if job.retries >= self.max_retries:
                job.status = "failed"
                db.commit()
                state = VerificationStateMachine(db)
                if state.get(verification_id).status not in TERMINAL_STATUSES:
                    state.force_error(verification_id, e, step=STAGE_STEPS.get(stage, stage))
                logger.error(f"Job {job_id} failed after {job.retries} retries")
            else:
                job.status = "queued"
                db.commit()
                logger.warning(f"Job {job_id} retry {job.retries}/{self.max_retries}")

        finally:
            db.close()


def worker_loop(stop_event=None):
    """Run worker loop (for use as background thread).

    Args:
        stop_event: Optional threading.Event to signal worker to stop
    """
    worker = Worker()
    worker.run(stop_event=stop_event)


def main():
    """Entry point for standalone worker."""
    worker = Worker()
    worker.run()


if __name__ == "__main__":
    main()
