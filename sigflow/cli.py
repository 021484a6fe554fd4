"""
CLI entry point for SigFlow.

Usage:
    # Serve the HTTP API
    python -m sigflow.cli serve --port 8000

    # Create the workflow tables
    python -m sigflow.cli init-db

    # List component types by palette category
    python -m sigflow.cli components

    # Print the execution order of a saved workflow document
    python -m sigflow.cli order workflow.json

    # Execute a workflow document once against the simulated services
    python -m sigflow.cli run workflow.json --seed 7
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from sigflow.core.config import settings
from sigflow.shared.logging import configure_logging

logger = logging.getLogger(__name__)


def _load_document(path: str) -> dict:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Cannot read workflow document %s: %s", path, exc)
        sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI application with uvicorn."""
    import uvicorn

    logger.info("Starting SigFlow API at http://%s:%d", args.host, args.port)
    uvicorn.run("sigflow.main:app", host=args.host, port=args.port, reload=False)


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the workflow and run tables in the configured database."""
    from sigflow.domain.workflow.errors import PersistenceError
    from sigflow.infrastructure.workflow.database import create_db_engine, init_schema

    engine = create_db_engine(settings.get_database_url())
    try:
        init_schema(engine)
    except PersistenceError as exc:
        logger.error("Could not create schema: %s", exc.reason)
        sys.exit(1)
    finally:
        engine.dispose()


def cmd_components(args: argparse.Namespace) -> None:
    """Print every component type grouped by category."""
    from sigflow.domain.workflow.registry import CATEGORY_INFO, components_by_category

    for category, schemas in components_by_category().items():
        name, _ = CATEGORY_INFO[category]
        print(f"{name}:")
        for schema in schemas:
            print(f"  {schema.type:<26} {schema.name}")


def cmd_order(args: argparse.Namespace) -> None:
    """Print the order in which a workflow's nodes would execute."""
    from sigflow.domain.workflow.errors import WorkflowDomainError
    from sigflow.domain.workflow.graph import workflow_from_document
    from sigflow.domain.workflow.ordering import OrderingStrategy, execution_order

    document = _load_document(args.path)
    try:
        workflow = workflow_from_document(args.path, Path(args.path).stem, document)
    except WorkflowDomainError as exc:
        logger.error("Invalid workflow: %s", exc.message)
        sys.exit(1)

    for position, node in enumerate(
        execution_order(workflow, OrderingStrategy(args.ordering)), start=1
    ):
        print(f"{position:>3}. {node.id} ({node.type})")


def cmd_run(args: argparse.Namespace) -> None:
    """Execute a workflow document once and print node outcomes."""
    from sigflow.domain.workflow.engine import ExecutionEngine
    from sigflow.domain.workflow.entities import RunState
    from sigflow.domain.workflow.errors import WorkflowDomainError
    from sigflow.domain.workflow.graph import workflow_from_document
    from sigflow.domain.workflow.ordering import OrderingStrategy
    from sigflow.infrastructure.workflow.memory_run_repository import (
        InMemoryRunRepository,
    )
    from sigflow.infrastructure.workflow.node_services import build_simulated_services

    document = _load_document(args.path)
    try:
        workflow = workflow_from_document(args.path, Path(args.path).stem, document)
    except WorkflowDomainError as exc:
        logger.error("Invalid workflow: %s", exc.message)
        sys.exit(1)

    runs = InMemoryRunRepository()
    execution = ExecutionEngine(
        services=build_simulated_services(seed=args.seed),
        run_repository=runs,
        ordering=OrderingStrategy(args.ordering),
        base_capital=args.capital,
    )
    run = runs.create_run(workflow.id, {"capital": args.capital})
    asyncio.run(execution.execute(workflow, run))

    for node in workflow.nodes:
        state = run.node_states[node.id]
        print(f"{node.id:<24} {state.status.value:<8} {state.error or ''}")
    print(
        f"Run {run.state.value}: profit {run.profit.amount:.2f} "
        f"({run.profit.percentage:.2f}%)"
    )
    if run.state is RunState.FAILED:
        sys.exit(2)


def main() -> None:
    parser = argparse.ArgumentParser(description="SigFlow trading workflow CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument(
        "--port", type=int, default=8000, help="Port (default 8000)"
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Init DB
    init_parser = subparsers.add_parser("init-db", help="Create the workflow tables")
    init_parser.set_defaults(func=cmd_init_db)

    # Components
    components_parser = subparsers.add_parser(
        "components", help="List component types"
    )
    components_parser.set_defaults(func=cmd_components)

    # Order
    order_parser = subparsers.add_parser(
        "order", help="Print the execution order of a workflow document"
    )
    order_parser.add_argument("path", help="Path to a workflow JSON document")
    order_parser.add_argument(
        "--ordering", choices=["topological", "category"],
        default=settings.execution_ordering,
        help="Ordering strategy (default from EXECUTION_ORDERING)",
    )
    order_parser.set_defaults(func=cmd_order)

    # Run
    run_parser = subparsers.add_parser(
        "run", help="Execute a workflow document against simulated services"
    )
    run_parser.add_argument("path", help="Path to a workflow JSON document")
    run_parser.add_argument(
        "--seed", type=int, default=settings.simulation_seed,
        help="Random seed for the simulated services",
    )
    run_parser.add_argument(
        "--capital", type=float, default=settings.run_base_capital,
        help="Capital the profit percentage is computed against",
    )
    run_parser.add_argument(
        "--ordering", choices=["topological", "category"],
        default=settings.execution_ordering,
    )
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args()
    configure_logging(level=settings.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
