"""Interface for components that track call outcomes."""

import abc

from linearkit.domain.models.common import OperationName


class OperationRecorder(abc.ABC):
    """Receives one record per completed call."""

    @abc.abstractmethod
    def record_operation(self, name: OperationName, success: bool, duration_ms: float) -> None:
        pass
