"""
Adapter: Workflow repository.

Implements the WorkflowRepository port.
Stores each workflow graph as one JSON document in t_workflow.
Deletes are soft: rows are flagged with del_flag and hidden from reads.
"""

import logging
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from sigflow.domain.workflow.entities import Workflow, utc_now
from sigflow.domain.workflow.errors import WorkflowNotFoundError
from sigflow.domain.workflow.graph import workflow_from_document, workflow_to_document
from sigflow.domain.workflow.ports import WorkflowRepository
from sigflow.infrastructure.workflow.database import (
    as_utc,
    persistence_guard,
    workflow_table,
)

logger = logging.getLogger(__name__)


class WorkflowRepositoryAdapter(WorkflowRepository):
    """Reads and writes workflows with SQLAlchemy.

    Implements the WorkflowRepository port defined in the domain layer.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @staticmethod
    def _to_entity(row) -> Workflow:
        return workflow_from_document(
            workflow_id=row.id,
            name=row.name,
            document=row.flow_json or {},
            description=row.description,
            created_at=as_utc(row.create_at),
            updated_at=as_utc(row.update_at),
        )

    def list_workflows(self) -> list[Workflow]:
        """Return all live workflows, most recently updated first."""
        query = (
            select(workflow_table)
            .where(workflow_table.c.del_flag.is_(False))
            .order_by(workflow_table.c.update_at.desc())
        )
        with persistence_guard("list_workflows"):
            with self._engine.connect() as conn:
                rows = conn.execute(query).fetchall()

        workflows = [self._to_entity(row) for row in rows]
        logger.debug("Fetched %d workflows.", len(workflows))
        return workflows

    def get_workflow(self, workflow_id: str) -> Workflow:
        query = select(workflow_table).where(
            workflow_table.c.id == workflow_id,
            workflow_table.c.del_flag.is_(False),
        )
        with persistence_guard("get_workflow"):
            with self._engine.connect() as conn:
                row = conn.execute(query).first()

        if row is None:
            raise WorkflowNotFoundError(workflow_id)
        return self._to_entity(row)

    def save_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a new workflow or overwrite an existing one.

        A workflow without an id is assigned a fresh UUID. Saving over a
        soft-deleted id revives the row.

        Args:
            workflow: The workflow to persist.

        Returns:
            The workflow as stored.
        """
        if not workflow.id:
            workflow.id = str(uuid4())
        now = utc_now()
        document = workflow_to_document(workflow)

        with persistence_guard("save_workflow"):
            with self._engine.begin() as conn:
                exists = conn.execute(
                    select(workflow_table.c.id).where(workflow_table.c.id == workflow.id)
                ).first()
                if exists is None:
                    conn.execute(
                        insert(workflow_table).values(
                            id=workflow.id,
                            name=workflow.name,
                            description=workflow.description,
                            flow_json=document,
                            create_at=workflow.created_at or now,
                            update_at=now,
                            del_flag=False,
                        )
                    )
                else:
                    conn.execute(
                        update(workflow_table)
                        .where(workflow_table.c.id == workflow.id)
                        .values(
                            name=workflow.name,
                            description=workflow.description,
                            flow_json=document,
                            update_at=now,
                            del_flag=False,
                        )
                    )

        logger.info(
            "Saved workflow %s (%d nodes, %d connections).",
            workflow.id, len(workflow.nodes), len(workflow.connections),
        )
        return self.get_workflow(workflow.id)

    def delete_workflow(self, workflow_id: str) -> None:
        statement = (
            update(workflow_table)
            .where(
                workflow_table.c.id == workflow_id,
                workflow_table.c.del_flag.is_(False),
            )
            .values(del_flag=True, update_at=utc_now())
        )
        with persistence_guard("delete_workflow"):
            with self._engine.begin() as conn:
                rowcount = conn.execute(statement).rowcount

        if rowcount == 0:
            raise WorkflowNotFoundError(workflow_id)
        logger.info("Deleted workflow %s.", workflow_id)
