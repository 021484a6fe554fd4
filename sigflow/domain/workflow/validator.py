"""
Connection validator for the workflow bounded context.

Decides whether a candidate edge is legal. The target's
``input_connectables`` is authoritative: an edge A -> B is allowed
when A's type is listed as an input of B's type. The BIDIRECTIONAL
policy additionally requires B's type among A's ``output_connectables``.

Pure functions. No IO, no side effects.
"""

from enum import Enum

from sigflow.domain.workflow.entities import Workflow
from sigflow.domain.workflow.errors import InvalidConnectionError
from sigflow.domain.workflow.registry import PortMode, get_schema


class ConnectionPolicy(Enum):
    """Which schema lists decide type compatibility."""

    TARGET_AUTHORITATIVE = "target"
    BIDIRECTIONAL = "bidirectional"


def can_connect(
    source_type: str,
    target_type: str,
    policy: ConnectionPolicy = ConnectionPolicy.TARGET_AUTHORITATIVE,
) -> bool:
    """Return whether a node of source_type may feed a node of target_type.

    Raises:
        UnknownComponentTypeError: If either type is not registered.
    """
    source_schema = get_schema(source_type)
    target_schema = get_schema(target_type)
    allowed = source_type in target_schema.input_connectables
    if policy is ConnectionPolicy.BIDIRECTIONAL:
        allowed = allowed and target_type in source_schema.output_connectables
    return allowed


def validate_connection(
    workflow: Workflow,
    source_id: str,
    target_id: str,
    policy: ConnectionPolicy = ConnectionPolicy.TARGET_AUTHORITATIVE,
    enforce_arity: bool = False,
) -> None:
    """Check a candidate edge against the structural and type rules.

    Args:
        workflow: The graph the edge would be added to.
        source_id: Id of the node the edge leaves.
        target_id: Id of the node the edge enters.
        policy: Compatibility rule to apply.
        enforce_arity: Reject edges that would give a SINGLE port
            more than one connection.

    Raises:
        InvalidConnectionError: If any rule rejects the edge.
    """
    if source_id == target_id:
        raise InvalidConnectionError(source_id, target_id, "self connection")

    source = workflow.find_node(source_id)
    target = workflow.find_node(target_id)
    if source is None or target is None:
        raise InvalidConnectionError(source_id, target_id, "missing endpoint")

    for connection in workflow.connections:
        if connection.source == source_id and connection.target == target_id:
            raise InvalidConnectionError(source_id, target_id, "duplicate connection")

    if not can_connect(source.type, target.type, policy):
        raise InvalidConnectionError(
            source_id,
            target_id,
            f"{source.type} cannot feed {target.type}",
        )

    if enforce_arity:
        source_schema = get_schema(source.type)
        target_schema = get_schema(target.type)
        if source_schema.output_mode is PortMode.SINGLE and any(
            c.source == source_id for c in workflow.connections
        ):
            raise InvalidConnectionError(source_id, target_id, "output port in use")
        if target_schema.input_mode is PortMode.SINGLE and any(
            c.target == target_id for c in workflow.connections
        ):
            raise InvalidConnectionError(source_id, target_id, "input port in use")


def is_valid_connection(
    workflow: Workflow,
    source_id: str,
    target_id: str,
    policy: ConnectionPolicy = ConnectionPolicy.TARGET_AUTHORITATIVE,
    enforce_arity: bool = False,
) -> bool:
    try:
        validate_connection(workflow, source_id, target_id, policy, enforce_arity)
    except InvalidConnectionError:
        return False
    return True


def check_port_arity(workflow: Workflow) -> None:
    """Check that no SINGLE port of a stored graph carries more than one edge.

    Raises:
        InvalidConnectionError: On the first edge that overloads a port.
    """
    outgoing: set[str] = set()
    incoming: set[str] = set()
    for connection in workflow.connections:
        source = workflow.find_node(connection.source)
        target = workflow.find_node(connection.target)
        if source is None or target is None:
            raise InvalidConnectionError(
                connection.source, connection.target, "missing endpoint"
            )
        if get_schema(source.type).output_mode is PortMode.SINGLE:
            if connection.source in outgoing:
                raise InvalidConnectionError(
                    connection.source, connection.target, "output port in use"
                )
            outgoing.add(connection.source)
        if get_schema(target.type).input_mode is PortMode.SINGLE:
            if connection.target in incoming:
                raise InvalidConnectionError(
                    connection.source, connection.target, "input port in use"
                )
            incoming.add(connection.target)
