import logging
import threading
from typing import Dict, Optional

from .errors import JobStateError
from .models import ALLOWED_TRANSITIONS, Job, JobState, _utcnow

logger = logging.getLogger(__name__)


class JobStore:
    """
    In-memory job records keyed by id.

    Writers serialize on a lock and replace the whole record; readers just
    look the id up and get an immutable snapshot, no lock involved.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, job_id: str) -> Job:
        job = Job(id=job_id)
        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"Job id already in use: {job_id}")
            self._jobs[job_id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    # --- single-field mutators ---

    def set_state(self, job_id: str, state: JobState) -> Optional[Job]:
        return self._update(job_id, state=state)

    def set_message(self, job_id: str, message: str) -> Optional[Job]:
        return self._update(job_id, message=message)

    def set_progress(self, job_id: str, percent: int) -> Optional[Job]:
        return self._update(job_id, progress_percent=max(0, min(100, int(percent))))

    def set_output(self, job_id: str, output_path: str) -> Optional[Job]:
        # an output path only exists on completed jobs, so recording it is the completion
        return self.complete(job_id, output_path)

    # --- terminal transitions ---

    def complete(self, job_id: str, output_path: str, message: str = "Completed") -> Optional[Job]:
        if not output_path:
            raise ValueError("A completed job needs an output path")
        return self._update(
            job_id,
            state=JobState.completed,
            progress_percent=100,
            output_path=str(output_path),
            message=message,
        )

    def fail(self, job_id: str, message: str) -> Optional[Job]:
        return self._update(job_id, state=JobState.failed, message=message, output_path=None)

    def _update(self, job_id: str, **fields) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if job.state.terminal:
                logger.debug("[%s] ignoring update on %s job: %s", job_id, job.state.value, fields)
                return job

            new_state = fields.get("state")
            if new_state is not None:
                new_state = JobState(new_state)
                if new_state not in ALLOWED_TRANSITIONS[job.state]:
                    raise JobStateError(f"Job {job_id} cannot move from {job.state.value} to {new_state.value}")
                fields["state"] = new_state
                if new_state is not JobState.completed:
                    fields["output_path"] = None
            elif fields.get("output_path"):
                # output_path only ever appears together with COMPLETED
                raise JobStateError(f"Job {job_id} is {job.state.value}; output is set on completion")

            fields["updated_at"] = _utcnow()
            job = job.model_copy(update=fields)
            self._jobs[job_id] = job
            return job
