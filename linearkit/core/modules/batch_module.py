"""Batch capability: exposes the BatchExecutor's bulk operations by name."""

from typing import Optional

from linearkit.core.batch_executor import BatchExecutor
from linearkit.core.modules.base_module import BaseModule, ModuleContext
from linearkit.domain.errors import ConfigError
from linearkit.domain.models.batch import BatchProgress


class BatchModule(BaseModule):

    def __init__(self, context: ModuleContext):
        super().__init__("batch", context)
        if context.batch_executor is None:
            raise ConfigError("The batch module requires a BatchExecutor in its context")
        self.batch: BatchExecutor = context.batch_executor

    def setup_operations(self) -> None:
        self.register_operation("batch_update", "Update many issues", self.batch.batch_update,
                                ["updates", "parallel", "continue_on_error"])
        self.register_operation("bulk_create", "Create many issues", self.batch.bulk_create,
                                ["inputs", "parallel", "continue_on_error"])
        self.register_operation("bulk_delete", "Delete many issues", self.batch.bulk_delete,
                                ["issue_ids", "parallel", "continue_on_error"])
        self.register_operation("batch_transition", "Change state of many issues", self.batch.batch_transition,
                                ["transitions", "comment", "parallel", "continue_on_error"])
        self.register_operation("batch_assign", "Assign many issues", self.batch.batch_assign,
                                ["assignments", "parallel", "continue_on_error"])
        self.register_operation("batch_add_labels", "Label many issues", self.batch.batch_add_labels,
                                ["issue_ids", "label_ids", "parallel", "continue_on_error"])
        self.register_operation("get_batch_progress", "Progress of a batch by id", self.get_batch_progress,
                                ["batch_id"])

    async def get_batch_progress(self, batch_id: str) -> Optional[BatchProgress]:
        return self.batch.get_progress(batch_id)
