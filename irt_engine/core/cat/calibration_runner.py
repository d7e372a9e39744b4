"""
Background thread calibration job runner.

Runs scale-wide batch calibrations in daemon threads, one at a time.

Key design:
- Uses threading.Thread (daemon=True) to run calibration in background
- Instance lock prevents concurrent calibration runs
- In-memory dict tracks job state; each job has a completion Event for wait()
- _current_running_job_id tracks if a job is active (cleared in finally block)
- The job id is set in calibration_job_id_context inside the thread so every
  log line of the run carries it
"""
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from irt_engine.core.cat.batch_calibration import CalibrationBatchSummary
from irt_engine.core.cat.service import IRTService
from irt_engine.core.datetime_utils import utc_now
from irt_engine.core.logging_config import calibration_job_id_context

logger = logging.getLogger(__name__)


@dataclass
class CalibrationJobState:
    """State for a single calibration job."""

    job_id: str
    scale_id: str
    status: str  # "running" | "completed" | "failed"
    started_at: datetime
    completed_at: Optional[datetime] = None
    result: Optional[CalibrationBatchSummary] = None
    error_message: Optional[str] = None
    done: threading.Event = field(default_factory=threading.Event, repr=False)


class CalibrationRunner:
    """
    Runner for scale-wide calibration jobs.

    Only one calibration can run at a time, so no item is ever calibrated by
    two jobs concurrently.
    """

    def __init__(self, service: IRTService):
        """Initialize the calibration runner."""
        self.service = service
        self._lock = threading.Lock()
        self._jobs: Dict[str, CalibrationJobState] = {}
        self._current_running_job_id: Optional[str] = None

    def start_job(
        self,
        scale_id: str,
        min_attempts: Optional[int] = None,
    ) -> CalibrationJobState:
        """
        Start a new calibration job in a background thread.

        Args:
            scale_id: Scale whose active items are calibrated.
            min_attempts: Minimum recorded attempts per item (None = the
                calibrator's own minimum).

        Returns:
            CalibrationJobState with job_id and initial status

        Raises:
            RuntimeError: If a job is already running
        """
        with self._lock:
            if self._current_running_job_id is not None:
                current_job = self._jobs.get(self._current_running_job_id)
                if current_job and current_job.status == "running":
                    raise RuntimeError(
                        f"Calibration job already running: {self._current_running_job_id}"
                    )

            started_at = utc_now()
            job_id = (
                f"irt_calibration_{started_at.strftime('%Y%m%d%H%M%S')}_"
                f"{secrets.token_hex(4)}"
            )

            job = CalibrationJobState(
                job_id=job_id,
                scale_id=scale_id,
                status="running",
                started_at=started_at,
            )
            self._jobs[job_id] = job
            self._current_running_job_id = job_id

        thread = threading.Thread(
            target=self._run_calibration_thread,
            args=(job_id, scale_id, min_attempts),
            name=f"calibration-{job_id}",
            daemon=True,
        )
        thread.start()

        logger.info(f"Started calibration job: {job_id}")
        return job

    def _run_calibration_thread(
        self,
        job_id: str,
        scale_id: str,
        min_attempts: Optional[int],
    ) -> None:
        """Run calibration in a background thread."""
        token = calibration_job_id_context.set(job_id)
        try:
            logger.info(
                f"Calibration job {job_id} started in thread: "
                f"scale_id={scale_id}, min_attempts={min_attempts}"
            )

            summary = self.service.calibrate_scale(scale_id, min_attempts=min_attempts)

            with self._lock:
                job = self._jobs.get(job_id)
                if job:
                    job.status = "completed"
                    job.completed_at = utc_now()
                    job.result = summary

            logger.info(
                f"Calibration job {job_id} completed: "
                f"{summary['calibrated']} calibrated, {summary['skipped']} skipped, "
                f"{summary['failed']} failed"
            )

        except Exception as e:
            # Per-item failures are absorbed by the batch; this is a store or
            # configuration failure for the whole scale
            logger.exception(f"Calibration job {job_id} failed with unexpected error")
            with self._lock:
                job = self._jobs.get(job_id)
                if job:
                    job.status = "failed"
                    job.completed_at = utc_now()
                    job.error_message = f"Unexpected error: {str(e)}"

        finally:
            calibration_job_id_context.reset(token)
            with self._lock:
                if self._current_running_job_id == job_id:
                    self._current_running_job_id = None
                job = self._jobs.get(job_id)
            if job:
                job.done.set()

    def get_job(self, job_id: str) -> Optional[CalibrationJobState]:
        """
        Get the state of a calibration job.

        Args:
            job_id: Job identifier

        Returns:
            CalibrationJobState if found, None otherwise
        """
        with self._lock:
            return self._jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """
        Block until a job finishes.

        Returns:
            True if the job finished, False on timeout.

        Raises:
            KeyError: If the job id is unknown.
        """
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        return job.done.wait(timeout)
