from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any
from uuid import UUID

from invoice_notifier.domain.states import JobState

@dataclass(frozen=True)
class JobHandle:
    """Returned by enqueue; the job is persisted but not yet processed."""
    id: UUID
    name: str
    kind: str

    def to_response(self) -> dict[str, Any]:
        return {"ok": True, "jobId": str(self.id), "jobName": self.name, "jobType": self.kind}

@dataclass
class JobSnapshot:
    id: UUID
    name: str
    kind: str
    state: JobState
    progress: int
    data: dict[str, Any]

    returnvalue: Optional[dict[str, Any]] = None
    failed_reason: Optional[str] = None
    attempts: int = 0

    created_at: Optional[datetime] = None
    processed_on: Optional[datetime] = None
    finished_on: Optional[datetime] = None

    logs: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return {
            "jobId": str(self.id),
            "jobName": self.name,
            "state": str(self.state),
            "progress": self.progress,
            "data": self.data,
            "returnvalue": self.returnvalue,
            "failedReason": self.failed_reason,
            "processedOn": _epoch_ms(self.processed_on),
            "finishedOn": _epoch_ms(self.finished_on),
            "logs": list(self.logs),
        }

@dataclass(frozen=True)
class ClaimedJob:
    """A job held by a worker under a lease."""
    id: UUID
    name: str
    kind: str
    data: dict[str, Any]
    lease_token: UUID
    expires_at: datetime
    attempts: int

def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    return int(value.timestamp() * 1000) if value else None
