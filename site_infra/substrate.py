"""
The provisioning substrate the graph is declared against.

Anything that can ``declare`` a resource and hand back a stable identifier,
and ``export`` a string for other stacks, will do. ``InMemorySubstrate`` keeps
everything in dictionaries and is used for dry runs and tests, the cdk backed
one lives in ``cdk_substrate``.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol, Tuple

import structlog

from .errors import SubstrateError

logger = structlog.get_logger(__name__)


class Substrate(Protocol):
    def declare(self, kind: str, name: str, params: Mapping[str, Any]) -> str:
        ...

    def export(self, name: str, value: str) -> None:
        ...


@dataclass(frozen=True)
class Declaration:
    kind: str
    name: str
    params: Mapping[str, Any]
    identifier: str


class InMemorySubstrate:
    """
    deterministic substrate: identifiers depend on kind and name only, so they
    stay stable when a resource is re-declared with new params (an update)
    """

    def __init__(self, partition: str = "mem") -> None:
        self.partition = partition
        self.resources: Dict[str, Declaration] = {}
        self.history: List[Declaration] = []
        self.exports: Dict[str, str] = {}

    def identifier_for(self, kind: str, name: str) -> str:
        return f"{self.partition}:{kind}/{name}"

    def declare(self, kind: str, name: str, params: Mapping[str, Any]) -> str:
        existing = self.resources.get(name)
        if existing is not None and existing.kind != kind:
            raise SubstrateError(f"name {name} is already taken by a {existing.kind}", kind=kind, name=name)

        declaration = Declaration(kind, name, dict(params), self.identifier_for(kind, name))
        if existing is None or existing.params != declaration.params:
            logger.debug("resource_recorded", kind=kind, name=name, update=existing is not None)
            self.resources[name] = declaration
        self.history.append(declaration)
        return declaration.identifier

    def export(self, name: str, value: str) -> None:
        if not isinstance(value, str):
            raise SubstrateError(f"export {name} must be a string", name=name)
        self.exports[name] = value

    def declared(self, kind: str) -> Tuple[Declaration, ...]:
        return tuple(d for d in self.resources.values() if d.kind == kind)
