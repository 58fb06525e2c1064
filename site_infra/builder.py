"""
Builds the global site graph in one linear pass:

certificate -> execution role -> edge function -> content version -> bucket -> distribution -> exports

Each declare step takes the nodes it depends on as arguments, so a step
cannot run before the nodes it needs exist.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

import structlog

from .config import SiteConfig
from .errors import SiteBuildError
from .exports import collect_exports, publish
from .graph import BuildState, ResourceGraph, ResourceNode, check_order
from .routing import CATCH_ALL, ORIGIN_REQUEST, AllowedMethods, OriginKind, RoutingRule, \
    check_patterns, validate_rules
from .substrate import Substrate
from .versioning import DeployableArtifact, VersionedReference, read_artifact

logger = structlog.get_logger(__name__)

CERTIFICATE = "certificate"
EXECUTION_ROLE = "execution-role"
FUNCTION = "function"
FUNCTION_VERSION = "function-version"
BUCKET = "bucket"
DISTRIBUTION = "distribution"


@dataclass(frozen=True)
class BuildResult:
    certificate_id: str
    role_id: str
    function_id: str
    version: VersionedReference
    bucket_id: str
    distribution_id: str
    rules: Tuple[RoutingRule, ...]
    nodes: Tuple[ResourceNode, ...]
    exports: Mapping[str, str]
    state: BuildState


def declare_certificate(graph: ResourceGraph, config: SiteConfig) -> ResourceNode:
    node = graph.declare(CERTIFICATE, f"{config.project_name}-cert", {
        "domain_name": config.public_domain,
        "validation": "DNS",
    })
    graph.advance(BuildState.CERTIFICATE_DECLARED)
    return node


def declare_execution_identity(graph: ResourceGraph, config: SiteConfig) -> ResourceNode:
    node = graph.declare(EXECUTION_ROLE, f"{config.project_name}-edge-role", {
        "trusted_principals": tuple(config.trusted_principals),
        "managed_policies": tuple(config.managed_policies),
    })
    graph.advance(BuildState.IDENTITY_DECLARED)
    return node


def declare_function(graph: ResourceGraph, config: SiteConfig, role: ResourceNode) -> ResourceNode:
    node = graph.declare(FUNCTION, f"{config.project_name}-edge-fn", {
        "artifact_path": config.artifact_path,
        "handler": config.handler,
        "runtime": config.runtime,
        "timeout_seconds": config.timeout_seconds,
        "role": role.ref,
    })
    graph.advance(BuildState.FUNCTION_DECLARED)
    return node


def declare_version(graph: ResourceGraph, function: ResourceNode,
                    artifact: DeployableArtifact) -> VersionedReference:
    """
    publishes a version named after the content tag: unchanged code declares the
    same node again, changed code declares a new one
    """
    tag = artifact.version_tag
    node = graph.declare(FUNCTION_VERSION, tag, {"function": function.ref, "tag": tag})
    version = VersionedReference(node=node.name, function_id=function.identifier, tag=tag,
                                 version_id=node.identifier)
    graph.advance(BuildState.VERSION_DERIVED)
    return version


def declare_storage(graph: ResourceGraph, config: SiteConfig) -> ResourceNode:
    node = graph.declare(BUCKET, f"{config.project_name}-site-bucket", {
        "bucket_name": config.bucket_name,
        "index_document": config.index_document,
        "error_document": config.error_document,
        "public_read_access": False,
        "removal_policy": "destroy" if config.destroy_on_teardown else "retain",
    })
    graph.advance(BuildState.STORAGE_DECLARED)
    return node


def routing_rules(config: SiteConfig, bucket: ResourceNode, version: VersionedReference) -> Tuple[RoutingRule, ...]:
    return (
        RoutingRule(pattern=CATCH_ALL, origin=OriginKind.STATIC, target=bucket.ref, is_default=True,
                    edge_hook=version, event_type=ORIGIN_REQUEST),
        RoutingRule(pattern=config.api_path_pattern, origin=OriginKind.API, target=config.api_domain,
                    allowed_methods=AllowedMethods.ALL),
    )


def declare_distribution(graph: ResourceGraph, config: SiteConfig, certificate: ResourceNode,
                         rules: Tuple[RoutingRule, ...]) -> ResourceNode:
    validate_rules(rules, config.reserved_path_prefixes)
    node = graph.declare(DISTRIBUTION, f"{config.project_name}-distribution", {
        "certificate": certificate.ref,
        "domain_names": (config.public_domain,),
        "default_root_object": config.index_document,
        "rules": rules,
    })
    graph.advance(BuildState.DISTRIBUTION_DECLARED)
    return node


def build_graph(config: SiteConfig, substrate: Substrate) -> BuildResult:
    """
    runs the whole build against the substrate; any error aborts it and is re-raised as is
    """
    graph = ResourceGraph(substrate)
    log = logger.bind(project=config.project_name)
    try:
        # everything that can be checked up front fails before the first declaration
        artifact = read_artifact(f"{config.project_name}-edge-fn", config.artifact_path)
        check_patterns([config.api_path_pattern], config.reserved_path_prefixes)

        certificate = declare_certificate(graph, config)
        role = declare_execution_identity(graph, config)
        function = declare_function(graph, config, role)
        version = declare_version(graph, function, artifact)
        bucket = declare_storage(graph, config)
        rules = routing_rules(config, bucket, version)
        distribution = declare_distribution(graph, config, certificate, rules)

        check_order(graph.trace)
        exported = collect_exports(certificate, function, version, bucket, distribution)
        publish(substrate, exported)
        graph.advance(BuildState.EXPORTED)
        graph.advance(BuildState.DONE)
    except SiteBuildError as exc:
        log.error("build_failed", state=graph.state.value, error_type=type(exc).__name__, error=exc.message)
        raise

    log.info("build_completed", nodes=len(graph.trace), tag=version.tag)
    return BuildResult(
        certificate_id=certificate.identifier,
        role_id=role.identifier,
        function_id=function.identifier,
        version=version,
        bucket_id=bucket.identifier,
        distribution_id=distribution.identifier,
        rules=rules,
        nodes=graph.trace,
        exports=MappingProxyType({e.name: e.value for e in exported}),
        state=graph.state,
    )
