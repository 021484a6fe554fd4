"""
Centralized error handlers for FastAPI.

Maps workflow domain errors to HTTP responses.
No stack traces or internal details are exposed to clients.
All error responses use the ErrorResponse schema.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sigflow.domain.workflow.errors import (
    EmptyWorkflowError,
    InvalidConnectionError,
    InvalidNodeConfigError,
    InvalidWorkflowDocumentError,
    NodeNotFoundError,
    PersistenceError,
    RunNotFoundError,
    RunQueueUnavailableError,
    UnknownComponentTypeError,
    WorkflowDomainError,
    WorkflowNotFoundError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_404 = 404
HTTP_422 = 422
HTTP_500 = 500
HTTP_503 = 503


def _error_response(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(WorkflowNotFoundError)
    async def handle_workflow_not_found(
        _request: Request, exc: WorkflowNotFoundError
    ) -> JSONResponse:
        logger.warning("Workflow not found: %s", exc.workflow_id)
        return _error_response(HTTP_404, "Workflow not found")

    @app.exception_handler(RunNotFoundError)
    async def handle_run_not_found(
        _request: Request, exc: RunNotFoundError
    ) -> JSONResponse:
        logger.warning("Workflow run not found: %s", exc.run_id)
        return _error_response(HTTP_404, "Workflow run not found")

    @app.exception_handler(NodeNotFoundError)
    async def handle_node_not_found(
        _request: Request, exc: NodeNotFoundError
    ) -> JSONResponse:
        logger.warning("Node not found: %s", exc.node_id)
        return _error_response(HTTP_404, "Node not found")

    @app.exception_handler(UnknownComponentTypeError)
    async def handle_unknown_component(
        _request: Request, exc: UnknownComponentTypeError
    ) -> JSONResponse:
        """Handle node types missing from the component registry."""
        logger.warning("Unknown component type: %s", exc.component_type)
        return _error_response(
            HTTP_422, "Unknown component type", exc.component_type
        )

    @app.exception_handler(InvalidNodeConfigError)
    async def handle_invalid_config(
        _request: Request, exc: InvalidNodeConfigError
    ) -> JSONResponse:
        logger.warning("Invalid node configuration for %s", exc.component_type)
        return _error_response(HTTP_422, "Invalid node configuration", exc.message)

    @app.exception_handler(InvalidConnectionError)
    async def handle_invalid_connection(
        _request: Request, exc: InvalidConnectionError
    ) -> JSONResponse:
        logger.warning("Rejected connection: %s", exc.reason)
        return _error_response(HTTP_422, "Invalid connection", exc.message)

    @app.exception_handler(InvalidWorkflowDocumentError)
    async def handle_invalid_document(
        _request: Request, exc: InvalidWorkflowDocumentError
    ) -> JSONResponse:
        logger.warning("Invalid workflow document: %s", exc.reason)
        return _error_response(HTTP_422, "Invalid workflow document", exc.reason)

    @app.exception_handler(EmptyWorkflowError)
    async def handle_empty_workflow(
        _request: Request, exc: EmptyWorkflowError
    ) -> JSONResponse:
        logger.warning("Rejected execution of an empty workflow.")
        return _error_response(HTTP_400, exc.message)

    @app.exception_handler(PersistenceError)
    async def handle_persistence(
        _request: Request, exc: PersistenceError
    ) -> JSONResponse:
        """Handle store failures. Never retried automatically."""
        logger.error("Persistence failure during %s", exc.operation)
        return _error_response(HTTP_503, "Workflow store unavailable")

    @app.exception_handler(RunQueueUnavailableError)
    async def handle_run_queue_unavailable(
        _request: Request, exc: RunQueueUnavailableError
    ) -> JSONResponse:
        logger.error("Run requested while the run queue is down.")
        return _error_response(HTTP_503, "Run queue unavailable")

    @app.exception_handler(WorkflowDomainError)
    async def handle_workflow_domain(
        _request: Request, exc: WorkflowDomainError
    ) -> JSONResponse:
        """Catch-all for unhandled workflow domain errors."""
        logger.error("Unhandled workflow domain error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
