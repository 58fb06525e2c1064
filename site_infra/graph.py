"""
Dependency ordered resource graph.

Nodes are declared one at a time against a provisioning substrate. Params may
only point at earlier nodes, through ``NodeRef``, so every identifier a node
needs already exists when it is declared.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, Mapping, Tuple

import structlog

from .errors import DependencyOrderError, SiteBuildError, SubstrateError

if TYPE_CHECKING:
    from .substrate import Substrate

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NodeRef:
    """
    points at the output of a node declared earlier in the same build
    """
    name: str


@dataclass(frozen=True)
class ResourceNode:
    kind: str
    name: str
    params: Mapping[str, Any]
    identifier: str
    order: int

    @property
    def ref(self) -> NodeRef:
        return NodeRef(self.name)


class BuildState(Enum):
    NOT_STARTED = "NotStarted"
    CERTIFICATE_DECLARED = "CertificateDeclared"
    IDENTITY_DECLARED = "IdentityDeclared"
    FUNCTION_DECLARED = "FunctionDeclared"
    VERSION_DERIVED = "VersionDerived"
    STORAGE_DECLARED = "StorageDeclared"
    DISTRIBUTION_DECLARED = "DistributionDeclared"
    EXPORTED = "Exported"
    DONE = "Done"


BUILD_SEQUENCE = tuple(BuildState)


def iter_refs(value: Any) -> Iterator[str]:
    """
    yields the names of every node referenced anywhere inside a params value
    """
    if isinstance(value, NodeRef):
        yield value.name
    elif hasattr(value, "node_refs"):
        yield from value.node_refs()
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from iter_refs(item)


def check_order(nodes: Iterable[ResourceNode]) -> None:
    """
    static check over a build trace: no node may reference a node declared after it
    """
    declared: Dict[str, int] = {}
    for node in nodes:
        for ref in iter_refs(node.params):
            if ref not in declared or declared[ref] >= node.order:
                raise DependencyOrderError(f"{node.name} references {ref} before it is declared",
                                           details={"node": node.name, "ref": ref})
        declared[node.name] = node.order


class ResourceGraph:
    """
    one build pass worth of declared nodes, never shared between builds
    """

    def __init__(self, substrate: "Substrate") -> None:
        self.substrate = substrate
        self._nodes: Dict[str, ResourceNode] = {}
        self._state = BuildState.NOT_STARTED

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def trace(self) -> Tuple[ResourceNode, ...]:
        return tuple(self._nodes.values())

    def advance(self, state: BuildState) -> None:
        position = BUILD_SEQUENCE.index(self._state)
        if position + 1 >= len(BUILD_SEQUENCE) or BUILD_SEQUENCE[position + 1] is not state:
            raise DependencyOrderError(f"cannot move from {self._state.value} to {state.value}",
                                       details={"from": self._state.value, "to": state.value})
        logger.debug("build_state_changed", previous=self._state.value, state=state.value)
        self._state = state

    def declare(self, kind: str, name: str, params: Mapping[str, Any]) -> ResourceNode:
        if name in self._nodes:
            raise DependencyOrderError(f"{name} is already declared", details={"node": name})
        for ref in iter_refs(params):
            if ref not in self._nodes:
                raise DependencyOrderError(f"{name} references {ref} before it is declared",
                                           details={"node": name, "ref": ref})

        try:
            identifier = self.substrate.declare(kind, name, params)
        except SiteBuildError:
            raise
        except Exception as exc:
            raise SubstrateError(str(exc), kind=kind, name=name) from exc
        if not isinstance(identifier, str) or not identifier:
            raise SubstrateError(f"substrate returned no identifier for {kind} {name}", kind=kind, name=name)

        node = ResourceNode(kind=kind, name=name, params=MappingProxyType(dict(params)),
                            identifier=identifier, order=len(self._nodes))
        self._nodes[name] = node
        logger.info("node_declared", kind=kind, name=name, order=node.order)
        return node
