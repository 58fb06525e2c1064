"""
Routing rules for the distribution.

The default rule sends everything to the content bucket through the edge
function, other rules carve out path prefixes for secondary origins. Patterns
follow cloudfront path pattern syntax (``*`` and ``?``) and the most specific
matching rule wins.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple, Union

from .errors import RoutingConflictError
from .graph import NodeRef
from .versioning import VersionedReference

CATCH_ALL = "*"
ORIGIN_REQUEST = "origin-request"


class OriginKind(str, Enum):
    STATIC = "static"
    API = "api"


class AllowedMethods(str, Enum):
    GET_HEAD = "GET_HEAD"
    ALL = "ALL"


@dataclass(frozen=True)
class RoutingRule:
    pattern: str
    origin: OriginKind
    target: Union[NodeRef, str]
    is_default: bool = False
    edge_hook: Optional[VersionedReference] = None
    event_type: Optional[str] = None
    allowed_methods: AllowedMethods = AllowedMethods.GET_HEAD

    @property
    def literal_prefix(self) -> str:
        return literal_prefix(self.pattern)

    def matches(self, path: str) -> bool:
        return self.is_default or pattern_regex(self.pattern).fullmatch(path.lstrip("/")) is not None

    def node_refs(self) -> Tuple[str, ...]:
        refs = []
        if isinstance(self.target, NodeRef):
            refs.append(self.target.name)
        if self.edge_hook is not None:
            refs.extend(self.edge_hook.node_refs())
        return tuple(refs)


def literal_prefix(pattern: str) -> str:
    """
    returns the part of the pattern before its first wildcard
    """
    pattern = pattern.lstrip("/")
    cut = [i for i in (pattern.find("*"), pattern.find("?")) if i >= 0]
    return pattern[:min(cut)] if cut else pattern


def pattern_regex(pattern: str) -> "re.Pattern[str]":
    """
    compiles a cloudfront path pattern, where only * and ? are wildcards
    """
    escaped = re.escape(pattern.lstrip("/"))
    return re.compile(escaped.replace(r"\*", ".*").replace(r"\?", "."), re.DOTALL)


def _overlaps(a: str, b: str) -> bool:
    return a.startswith(b) or b.startswith(a)


def check_patterns(patterns: Iterable[str], reserved_prefixes: Iterable[str] = ()) -> None:
    """
    raises RoutingConflictError when non-default patterns could dispatch the same path
    ambiguously, or shadow one of the reserved static asset prefixes
    """
    seen = []
    reserved = [p.lstrip("/") for p in reserved_prefixes]
    for pattern in patterns:
        prefix = literal_prefix(pattern)
        if not pattern.lstrip("/").strip("*?"):
            raise RoutingConflictError(
                f"pattern {pattern!r} is all wildcards and competes with the default rule",
                details={"pattern": pattern})
        # a pattern starting with a wildcard has no literal prefix, so it overlaps everything
        for other in seen:
            if _overlaps(prefix, literal_prefix(other)):
                raise RoutingConflictError(f"patterns {other!r} and {pattern!r} overlap",
                                           details={"patterns": [other, pattern]})
        for asset_prefix in reserved:
            if _overlaps(prefix, asset_prefix):
                raise RoutingConflictError(
                    f"pattern {pattern!r} collides with reserved prefix {asset_prefix!r}",
                    details={"pattern": pattern, "reserved": asset_prefix})
        seen.append(pattern)


def validate_rules(rules: Sequence[RoutingRule], reserved_prefixes: Iterable[str] = ()) -> None:
    defaults = [r for r in rules if r.is_default]
    if len(defaults) != 1:
        raise RoutingConflictError(f"expected exactly one default rule, found {len(defaults)}",
                                   details={"defaults": [r.pattern for r in defaults]})
    if defaults[0].pattern != CATCH_ALL:
        raise RoutingConflictError(f"default rule must use {CATCH_ALL!r}, not {defaults[0].pattern!r}")
    check_patterns([r.pattern for r in rules if not r.is_default], reserved_prefixes)


def match_rule(rules: Sequence[RoutingRule], path: str) -> RoutingRule:
    """
    picks the rule a request path dispatches to: the matching rule with the
    longest literal prefix, falling back to the default rule
    """
    candidates = [r for r in rules if not r.is_default and r.matches(path)]
    if candidates:
        return max(candidates, key=lambda r: len(r.literal_prefix))
    for rule in rules:
        if rule.is_default:
            return rule
    raise RoutingConflictError("no default rule to fall back to")
