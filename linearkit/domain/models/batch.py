"""Domain models for batch execution."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .common import BatchID


@dataclass
class BatchProgress:
    """Live counters for one batch call.

    Mutated in place while the batch runs so callers can poll it.
    Once `in_progress` is False, `completed == successful + failed`.
    """
    batch_id: BatchID
    total: int
    completed: int = 0
    successful: int = 0
    failed: int = 0
    in_progress: bool = True

    def record(self, success: bool) -> None:
        if success:
            self.successful += 1
        else:
            self.failed += 1
        self.completed += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "completed": self.completed,
            "successful": self.successful,
            "failed": self.failed,
            "in_progress": self.in_progress,
        }


@dataclass
class ItemResult:
    """Outcome of one item in a batch."""
    index: int
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class BatchResult:
    """Aggregated outcome of a whole batch, results in input order."""
    batch_id: BatchID
    total: int
    successful: int
    failed: int
    results: List[ItemResult] = field(default_factory=list)
