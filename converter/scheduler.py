import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from .store import JobStore

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Fixed-size worker pool. One job's whole pipeline runs on a single worker;
    the pool size caps how many external tools run at once.
    """

    def __init__(self, store: JobStore, max_workers: int = 3):
        self.store = store
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="converter")

    def submit(self, job_id: str, fn: Callable, *args, **kwargs) -> Future:
        logger.debug("[%s] queued %s", job_id, getattr(fn, "__name__", fn))
        return self._executor.submit(self._run_guarded, job_id, fn, args, kwargs)

    def _run_guarded(self, job_id, fn, args, kwargs) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            # pipelines handle their own failures; this keeps a stray one inside the job
            logger.exception("❌ [%s] unhandled error in worker", job_id)
            self.store.fail(job_id, f"Conversion failed: {e}")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
