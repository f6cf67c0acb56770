"""Batch execution engine with partial-failure semantics.

Drives the ResilientQueryExecutor for many related mutations, either one
at a time or in fixed-size chunks whose items run concurrently. Per-item
failures are either captured into the result list or abort the whole
batch, depending on `continue_on_error`.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from typing import (
    Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar,
)

from linearkit.core import queries
from linearkit.domain.events.api_events import BatchCompleted, DomainEvent, EventSink
from linearkit.domain.models.batch import BatchProgress, BatchResult, ItemResult
from linearkit.domain.models.common import BatchID
from linearkit.domain.models.graphql import GraphQLRequest
from linearkit.infrastructure.resilience.query_executor import ResilientQueryExecutor

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
MAX_TRACKED_BATCHES = 100

T = TypeVar("T")
ItemOperation = Callable[[T], Awaitable[Any]]
ProgressCallback = Callable[[BatchProgress], None]


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class BatchExecutor:
    """Runs N operations sequentially or in bounded concurrent chunks."""

    def __init__(
        self,
        executor: ResilientQueryExecutor,
        batch_size: int = DEFAULT_BATCH_SIZE,
        event_sink: EventSink = _log_event,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.executor = executor
        self.batch_size = batch_size
        self._dispatch = event_sink
        self._batches: "OrderedDict[BatchID, BatchProgress]" = OrderedDict()

    # --- Progress tracking ---

    def get_progress(self, batch_id: str) -> Optional[BatchProgress]:
        """Live progress of a running batch, or the final counters of a recent one."""
        return self._batches.get(BatchID(batch_id))

    def _track(self, progress: BatchProgress) -> None:
        self._batches[progress.batch_id] = progress
        # Forget the oldest finished batches beyond the cap
        while len(self._batches) > MAX_TRACKED_BATCHES:
            finished = next((k for k, p in self._batches.items() if not p.in_progress), None)
            if finished is None:
                break
            del self._batches[finished]

    # --- Execution ---

    async def run(
        self,
        items: Iterable[T],
        operation: ItemOperation,
        parallel: bool = False,
        continue_on_error: bool = True,
        batch_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Applies `operation` to every item.

        Args:
            items: The batch inputs.
            operation: Coroutine function called once per item.
            parallel: Run chunks of `batch_size` items concurrently.
            continue_on_error: Capture failures instead of aborting.
            batch_id: Id under which progress can be polled; generated if None.
            on_progress: Called after every progress update.

        Returns:
            BatchResult with one ItemResult per item, in input order.

        Raises:
            Exception: With `continue_on_error=False`, the first failure
                (in input order) is re-raised and the batch stops.
        """
        item_list = list(items)
        progress = BatchProgress(batch_id=BatchID(batch_id or f"batch-{uuid.uuid4().hex[:12]}"), total=len(item_list))
        self._track(progress)
        mode = "parallel" if parallel else "sequential"
        logger.info(f"Batch {progress.batch_id} started: {len(item_list)} items ({mode})")

        try:
            if parallel:
                results = await self._run_chunked(item_list, operation, progress, continue_on_error, on_progress)
            else:
                results = await self._run_sequential(item_list, operation, progress, continue_on_error, on_progress)
        except Exception as e:
            progress.in_progress = False
            self._notify(progress, on_progress)
            logger.error(f"Batch {progress.batch_id} aborted after {progress.completed}/{progress.total} items: {e}")
            self._dispatch(BatchCompleted(
                batch_id=progress.batch_id, total=progress.total,
                successful=progress.successful, failed=progress.failed, aborted=True,
            ))
            raise

        progress.in_progress = False
        self._notify(progress, on_progress)
        logger.info(f"Batch {progress.batch_id} completed: {progress.successful}/{progress.total} successful")
        self._dispatch(BatchCompleted(
            batch_id=progress.batch_id, total=progress.total,
            successful=progress.successful, failed=progress.failed,
        ))
        return BatchResult(
            batch_id=progress.batch_id,
            total=progress.total,
            successful=progress.successful,
            failed=progress.failed,
            results=results,
        )

    @staticmethod
    def _notify(progress: BatchProgress, on_progress: Optional[ProgressCallback]) -> None:
        if on_progress is not None:
            on_progress(progress)

    async def _settle(
        self,
        index: int,
        item: Any,
        operation: ItemOperation,
        progress: BatchProgress,
        on_progress: Optional[ProgressCallback],
    ) -> Tuple[ItemResult, Optional[Exception]]:
        try:
            data = await operation(item)
        except Exception as e:
            logger.warning(f"Batch {progress.batch_id} item {index} failed: {e}")
            progress.record(False)
            self._notify(progress, on_progress)
            return ItemResult(index=index, success=False, error=str(e), error_type=type(e).__name__), e

        progress.record(True)
        self._notify(progress, on_progress)
        return ItemResult(index=index, success=True, data=data), None

    async def _run_sequential(
        self,
        items: Sequence[Any],
        operation: ItemOperation,
        progress: BatchProgress,
        continue_on_error: bool,
        on_progress: Optional[ProgressCallback],
    ) -> List[ItemResult]:
        results: List[ItemResult] = []
        for index, item in enumerate(items):
            result, error = await self._settle(index, item, operation, progress, on_progress)
            if error is not None and not continue_on_error:
                raise error
            results.append(result)
        return results

    async def _run_chunked(
        self,
        items: Sequence[Any],
        operation: ItemOperation,
        progress: BatchProgress,
        continue_on_error: bool,
        on_progress: Optional[ProgressCallback],
    ) -> List[ItemResult]:
        results: List[ItemResult] = []
        for start in range(0, len(items), self.batch_size):
            chunk = items[start:start + self.batch_size]
            logger.debug(f"Batch {progress.batch_id}: chunk {start // self.batch_size + 1} ({len(chunk)} items)")
            # gather returns in submission order, so results keep input order
            settled = await asyncio.gather(*(
                self._settle(start + offset, item, operation, progress, on_progress)
                for offset, item in enumerate(chunk)
            ))
            if not continue_on_error:
                first_error = next((error for _, error in settled if error is not None), None)
                if first_error is not None:
                    raise first_error
            results.extend(result for result, _ in settled)
        return results

    # --- Issue mutations ---

    async def batch_update(
        self, updates: Sequence[Dict[str, Any]], parallel: bool = False, continue_on_error: bool = True, **kwargs: Any
    ) -> BatchResult:
        """Updates many issues. Each item is `{'issue_id': ..., 'update': {...}}`."""
        async def update_one(item: Dict[str, Any]) -> Any:
            return await self.executor.mutate(GraphQLRequest(
                query=queries.UPDATE_ISSUE,
                variables={"id": item["issue_id"], "update": item["update"]},
            ))
        return await self.run(updates, update_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)

    async def bulk_create(
        self, inputs: Sequence[Dict[str, Any]], parallel: bool = False, continue_on_error: bool = True, **kwargs: Any
    ) -> BatchResult:
        """Creates one issue per input dict."""
        async def create_one(item: Dict[str, Any]) -> Any:
            return await self.executor.mutate(GraphQLRequest(query=queries.CREATE_ISSUE, variables={"input": item}))
        return await self.run(inputs, create_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)

    async def bulk_delete(
        self, issue_ids: Sequence[str], parallel: bool = False, continue_on_error: bool = True, **kwargs: Any
    ) -> BatchResult:
        async def delete_one(issue_id: str) -> Any:
            return await self.executor.mutate(GraphQLRequest(query=queries.DELETE_ISSUE, variables={"id": issue_id}))
        return await self.run(issue_ids, delete_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)

    async def batch_transition(
        self,
        transitions: Sequence[Dict[str, Any]],
        comment: Optional[str] = None,
        parallel: bool = False,
        continue_on_error: bool = True,
        **kwargs: Any,
    ) -> BatchResult:
        """Moves issues to new states; `{'issue_id', 'state_id'}` per item.

        When `comment` is given it is posted on each issue after its
        transition succeeds, as part of the same item.
        """
        async def transition_one(item: Dict[str, Any]) -> Any:
            result = await self.executor.mutate(GraphQLRequest(
                query=queries.TRANSITION_ISSUE,
                variables={"id": item["issue_id"], "stateId": item["state_id"]},
            ))
            if comment:
                await self.executor.mutate(GraphQLRequest(
                    query=queries.CREATE_COMMENT,
                    variables={"issueId": item["issue_id"], "body": comment},
                ))
            return result
        return await self.run(transitions, transition_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)

    async def batch_assign(
        self, assignments: Sequence[Dict[str, Any]], parallel: bool = False, continue_on_error: bool = True, **kwargs: Any
    ) -> BatchResult:
        """Assigns issues; `{'issue_id', 'assignee_id'}` per item."""
        async def assign_one(item: Dict[str, Any]) -> Any:
            return await self.executor.mutate(GraphQLRequest(
                query=queries.ASSIGN_ISSUE,
                variables={"id": item["issue_id"], "assigneeId": item["assignee_id"]},
            ))
        return await self.run(assignments, assign_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)

    async def batch_add_labels(
        self,
        issue_ids: Sequence[str],
        label_ids: Sequence[str],
        parallel: bool = False,
        continue_on_error: bool = True,
        **kwargs: Any,
    ) -> BatchResult:
        async def label_one(issue_id: str) -> Any:
            return await self.executor.mutate(GraphQLRequest(
                query=queries.ADD_LABELS,
                variables={"id": issue_id, "labelIds": list(label_ids)},
            ))
        return await self.run(issue_ids, label_one, parallel=parallel, continue_on_error=continue_on_error, **kwargs)
