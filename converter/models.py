from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    queued = "QUEUED"
    running = "RUNNING"
    completed = "COMPLETED"
    failed = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (JobState.completed, JobState.failed)


# Forward-only lifecycle; RUNNING -> RUNNING is a no-op re-entry from the transcode stage
ALLOWED_TRANSITIONS = {
    JobState.queued: {JobState.running, JobState.failed},
    JobState.running: {JobState.running, JobState.completed, JobState.failed},
    JobState.completed: set(),
    JobState.failed: set(),
}


class Job(BaseModel):
    """Status snapshot of one conversion. Instances are immutable; the store swaps in new ones."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    state: JobState = JobState.queued
    message: str = "Queued"
    progress_percent: int = 0
    output_path: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
