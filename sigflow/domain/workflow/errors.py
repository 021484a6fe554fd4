"""
Domain-specific errors for the workflow bounded context.

All errors raised from the domain layer must be defined here.
These are mapped to HTTP responses at the interface layer.
No framework imports allowed.
"""


class WorkflowDomainError(Exception):
    """Base error for all workflow domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class UnknownComponentTypeError(WorkflowDomainError):
    """Raised when a component type is not present in the registry."""

    def __init__(self, component_type: str) -> None:
        super().__init__(f"Unknown component type: {component_type}")
        self.component_type = component_type


class InvalidConnectionError(WorkflowDomainError):
    """Raised when a candidate edge is rejected by the connection rules."""

    def __init__(self, source: str, target: str, reason: str) -> None:
        super().__init__(
            f"Invalid connection {source} -> {target}: {reason}"
        )
        self.source = source
        self.target = target
        self.reason = reason


class InvalidNodeConfigError(WorkflowDomainError):
    """Raised when a node configuration fails validation."""

    def __init__(self, component_type: str, reason: str) -> None:
        super().__init__(
            f"Invalid configuration for {component_type}: {reason}"
        )
        self.component_type = component_type
        self.reason = reason


class NodeNotFoundError(WorkflowDomainError):
    """Raised when a node id is not part of the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class NodeExecutionError(WorkflowDomainError):
    """Raised when an external node service call fails.

    Captured per node by the execution engine and turned into
    run-level state. Never propagated out of a run.
    """

    def __init__(self, node_id: str, reason: str) -> None:
        super().__init__(f"Node {node_id} failed: {reason}")
        self.node_id = node_id
        self.reason = reason


class WorkflowNotFoundError(WorkflowDomainError):
    """Raised when a workflow cannot be found."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class RunNotFoundError(WorkflowDomainError):
    """Raised when a workflow run cannot be found."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Workflow run not found: {run_id}")
        self.run_id = run_id


class PersistenceError(WorkflowDomainError):
    """Raised when saving or loading a workflow or run fails."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Persistence failure during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class InvalidWorkflowDocumentError(WorkflowDomainError):
    """Raised when a persisted workflow document is malformed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid workflow document: {reason}")
        self.reason = reason


class RunQueueUnavailableError(WorkflowDomainError):
    """Raised when runs are requested before the run queue is started."""

    def __init__(self) -> None:
        super().__init__("Run queue is not available")


class EmptyWorkflowError(WorkflowDomainError):
    """Raised when a graph is submitted for execution without any node."""

    def __init__(self) -> None:
        super().__init__("Invalid workflow: no nodes provided")
