"""Operation Registry for the gateway.

Holds the tool and resource catalogues. Operations are registered by the
provider modules at startup; the registry is then frozen and only read.
"""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import (
    Executor,
    OperationDefinition,
    OperationKind,
    ProviderFamily,
    ToolParameter,
)
from shared.schema import create_tool_schema

logger = get_logger(__name__)


class OperationRegistry:
    """
    Central registry for tools and resources.

    Responsibilities:
    - Register operations from provider modules
    - Look operations up by name within a catalogue
    - List operations in registration order

    Registering a name that already exists in the same catalogue replaces
    the previous definition in place (last registration wins) and logs a
    warning.
    """

    def __init__(self) -> None:
        self._catalogues: dict[OperationKind, dict[str, OperationDefinition]] = {
            OperationKind.TOOL: {},
            OperationKind.RESOURCE: {},
        }
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True
        logger.info(
            "Operation registry frozen",
            tools=len(self._catalogues[OperationKind.TOOL]),
            resources=len(self._catalogues[OperationKind.RESOURCE]),
        )

    def register(self, definition: OperationDefinition) -> None:
        """
        Register an operation in the catalogue of its kind.

        Args:
            definition: Operation definition to register

        Raises:
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{definition.name}': registry is frozen"
            )

        catalogue = self._catalogues[definition.kind]
        if definition.name in catalogue:
            logger.warning(
                "Operation overwritten",
                operation=definition.name,
                kind=definition.kind.value,
            )

        other = (
            OperationKind.RESOURCE
            if definition.kind == OperationKind.TOOL
            else OperationKind.TOOL
        )
        if definition.name in self._catalogues[other]:
            logger.warning(
                "Operation name used by both catalogues",
                operation=definition.name,
            )

        catalogue[definition.name] = definition

        logger.debug(
            "Operation registered",
            operation=definition.name,
            kind=definition.kind.value,
            family=definition.family.value,
        )

    def register_tool(
        self,
        name: str,
        description: str,
        family: ProviderFamily,
        parameters: list[ToolParameter],
        executor: Executor,
    ) -> OperationDefinition:
        """Build a tool definition from parameter declarations and register it."""
        definition = OperationDefinition(
            name=name,
            description=description,
            kind=OperationKind.TOOL,
            family=family,
            input_schema=create_tool_schema(parameters),
            executor=executor,
        )
        self.register(definition)
        return definition

    def register_resource(
        self,
        name: str,
        description: str,
        family: ProviderFamily,
        parameters: list[ToolParameter],
        executor: Executor,
        mime_type: str = "application/json",
    ) -> OperationDefinition:
        """Build a resource definition and register it."""
        definition = OperationDefinition(
            name=name,
            description=description,
            kind=OperationKind.RESOURCE,
            family=family,
            input_schema=create_tool_schema(parameters),
            mime_type=mime_type,
            executor=executor,
        )
        self.register(definition)
        return definition

    def get(
        self,
        name: str,
        kind: OperationKind = OperationKind.TOOL
    ) -> Optional[OperationDefinition]:
        """
        Get an operation by name.

        Returns:
            OperationDefinition if found, None otherwise
        """
        return self._catalogues[kind].get(name)

    def list_operations(self, kind: Optional[OperationKind] = None) -> list[OperationDefinition]:
        """List operations in registration order, optionally for one catalogue."""
        if kind is not None:
            return list(self._catalogues[kind].values())
        return [
            *self._catalogues[OperationKind.TOOL].values(),
            *self._catalogues[OperationKind.RESOURCE].values(),
        ]

    def list_tools(self) -> list[OperationDefinition]:
        return self.list_operations(OperationKind.TOOL)

    def list_resources(self) -> list[OperationDefinition]:
        return self.list_operations(OperationKind.RESOURCE)

    def list_families(self) -> list[str]:
        """List the provider families that have at least one operation."""
        return sorted({op.family.value for op in self.list_operations()})

    def get_operation_count(self) -> dict[str, int]:
        """Get count of operations per family."""
        counts: dict[str, int] = {}
        for op in self.list_operations():
            counts[op.family.value] = counts.get(op.family.value, 0) + 1
        return counts

    def describe_tools(self) -> list[dict[str, Any]]:
        """Tool listing in wire form."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
            }
            for tool in self.list_tools()
        ]

    def describe_resources(self, scheme: str) -> list[dict[str, Any]]:
        """Resource listing in wire form, addressed as ``<scheme>:///<name>``."""
        return [
            {
                "uri": f"{scheme}:///{resource.name}",
                "name": resource.name,
                "description": resource.description,
                "mimeType": resource.mime_type,
            }
            for resource in self.list_resources()
        ]
