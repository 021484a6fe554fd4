"""
Use cases: Component palette and connection checks.

Input: CheckConnectionQuery
Output: list[ComponentCategoryInfo], CheckConnectionResult
Side effects: None.
Failure cases: UnknownComponentTypeError.
"""

from sigflow.application.workflow.dtos import (
    CheckConnectionQuery,
    CheckConnectionResult,
    ComponentCategoryInfo,
    ComponentInfo,
)
from sigflow.domain.workflow.registry import (
    CATEGORY_INFO,
    ComponentSchema,
    components_by_category,
)
from sigflow.domain.workflow.validator import ConnectionPolicy, can_connect


def _component_info(schema: ComponentSchema) -> ComponentInfo:
    return ComponentInfo(
        type=schema.type,
        name=schema.name,
        description=schema.description,
        input_mode=schema.input_mode.value,
        output_mode=schema.output_mode.value,
        input_connectables=sorted(schema.input_connectables),
        output_connectables=sorted(schema.output_connectables),
        default_config=dict(schema.default_config),
    )


class GetComponentPaletteUseCase:
    """Lists every component type grouped by palette category."""

    def execute(self) -> list[ComponentCategoryInfo]:
        palette = []
        for category, schemas in components_by_category().items():
            name, description = CATEGORY_INFO[category]
            palette.append(
                ComponentCategoryInfo(
                    id=category.value,
                    name=name,
                    description=description,
                    components=[_component_info(s) for s in schemas],
                )
            )
        return palette


class CheckConnectionUseCase:
    """Answers whether one component type may feed another."""

    def __init__(
        self, policy: ConnectionPolicy = ConnectionPolicy.TARGET_AUTHORITATIVE
    ) -> None:
        self._policy = policy

    def execute(self, query: CheckConnectionQuery) -> CheckConnectionResult:
        """Run the connection check.

        Raises:
            UnknownComponentTypeError: If either type is not registered.
        """
        return CheckConnectionResult(
            source_type=query.source_type,
            target_type=query.target_type,
            allowed=can_connect(query.source_type, query.target_type, self._policy),
        )
