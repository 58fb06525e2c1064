"""
Errors raised while building the global site graph.

Every error aborts the build; nothing is retried and no partial graph is returned.
"""
from typing import Any, Mapping, Optional


class SiteBuildError(Exception):
    """
    base class for all build errors
    """

    def __init__(self, message: str, *, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class ConfigurationError(SiteBuildError):
    """
    missing or invalid input: bad context block, unreadable artifact, malformed domain
    """


class RoutingConflictError(ConfigurationError):
    """
    the routing rules do not have exactly one default or their patterns overlap
    """


class DependencyOrderError(SiteBuildError):
    """
    a node references something that was not declared before it
    """


class SubstrateError(SiteBuildError):
    """
    the provisioning backend rejected a declaration or an export
    """

    def __init__(self, message: str, *, kind: Optional[str] = None, name: Optional[str] = None,
                 details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, details=details)
        self.kind = kind
        self.name = name
