"""
Use cases: Create, read, update and delete workflows.

Input: SaveWorkflowCommand, workflow ids
Output: Workflow entities
Side effects: Writes to the workflow store.
Failure cases: WorkflowNotFoundError, UnknownComponentTypeError,
    InvalidNodeConfigError, InvalidConnectionError,
    InvalidWorkflowDocumentError, PersistenceError.
"""

import logging

from sigflow.application.workflow.dtos import SaveWorkflowCommand
from sigflow.domain.workflow.entities import Workflow
from sigflow.domain.workflow.graph import workflow_from_document
from sigflow.domain.workflow.ports import WorkflowRepository
from sigflow.domain.workflow.validator import check_port_arity

logger = logging.getLogger(__name__)


class ListWorkflowsUseCase:
    def __init__(self, workflow_repository: WorkflowRepository) -> None:
        self._workflows = workflow_repository

    def execute(self) -> list[Workflow]:
        return self._workflows.list_workflows()


class GetWorkflowUseCase:
    def __init__(self, workflow_repository: WorkflowRepository) -> None:
        self._workflows = workflow_repository

    def execute(self, workflow_id: str) -> Workflow:
        return self._workflows.get_workflow(workflow_id)


class SaveWorkflowUseCase:
    """Validates a graph document and persists it as a workflow.

    The whole document is rebuilt through the domain model first, so an
    unknown node type or an invalid configuration aborts the save
    before anything is written.
    With ``enforce_arity`` set, a SINGLE port carrying more than one
    edge also aborts the save.
    """

    def __init__(
        self, workflow_repository: WorkflowRepository, enforce_arity: bool = False
    ) -> None:
        self._workflows = workflow_repository
        self._enforce_arity = enforce_arity

    def execute(self, command: SaveWorkflowCommand) -> Workflow:
        """Run the save use case.

        Args:
            command: Name, description and graph document to store.

        Returns:
            The stored workflow.

        Raises:
            WorkflowNotFoundError: If overwriting an id that does not exist.
            UnknownComponentTypeError: If a node type is not registered.
            InvalidNodeConfigError: If a node configuration is invalid.
            InvalidConnectionError: If the document holds illegal edges.
        """
        created_at = None
        if command.workflow_id:
            created_at = self._workflows.get_workflow(command.workflow_id).created_at

        workflow = workflow_from_document(
            workflow_id=command.workflow_id or "",
            name=command.name,
            document=command.document,
            description=command.description,
            created_at=created_at,
        )
        if self._enforce_arity:
            check_port_arity(workflow)
        logger.info(
            "Saving workflow %s with %d nodes.",
            command.workflow_id or "<new>",
            len(workflow.nodes),
        )
        return self._workflows.save_workflow(workflow)


class DeleteWorkflowUseCase:
    def __init__(self, workflow_repository: WorkflowRepository) -> None:
        self._workflows = workflow_repository

    def execute(self, workflow_id: str) -> None:
        self._workflows.delete_workflow(workflow_id)
