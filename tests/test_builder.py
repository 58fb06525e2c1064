"""Tests for the single pass build of the global site graph."""
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest

from site_infra.builder import BUCKET, CERTIFICATE, DISTRIBUTION, EXECUTION_ROLE, FUNCTION, FUNCTION_VERSION, \
    build_graph
from site_infra.config import SiteConfig
from site_infra.errors import ConfigurationError, RoutingConflictError, SubstrateError
from site_infra.exports import VERSIONED_FUNCTION_EXPORT
from site_infra.graph import BuildState, NodeRef, check_order, iter_refs
from site_infra.routing import OriginKind, match_rule
from site_infra.substrate import InMemorySubstrate
from site_infra.versioning import derive_version_tag


class QuotaSubstrate(InMemorySubstrate):
    def declare(self, kind: str, name: str, params: Mapping[str, Any]) -> str:
        if kind == BUCKET:
            raise RuntimeError("TooManyBuckets: you have attempted to create more buckets than allowed")
        return super().declare(kind, name, params)


class TestBuildGraph:
    def test_declares_in_dependency_order(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)

        assert [n.kind for n in result.nodes] == [
            CERTIFICATE, EXECUTION_ROLE, FUNCTION, FUNCTION_VERSION, BUCKET, DISTRIBUTION]
        assert result.state is BuildState.DONE
        check_order(result.nodes)

    def test_every_reference_points_backwards(self, site_config: SiteConfig,
                                              substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)
        position = {n.name: n.order for n in result.nodes}
        for node in result.nodes:
            for ref in iter_refs(node.params):
                assert position[ref] < node.order

    def test_threads_identifiers_forward(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)
        nodes = {n.kind: n for n in result.nodes}

        assert nodes[FUNCTION].params["role"] == NodeRef("ammobin-edge-role")
        assert nodes[FUNCTION_VERSION].params["function"] == NodeRef("ammobin-edge-fn")
        assert nodes[DISTRIBUTION].params["certificate"] == NodeRef("ammobin-cert")
        assert result.version.function_id == result.function_id == nodes[FUNCTION].identifier

    def test_bucket_is_private_and_destroyed(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        bucket = next(n for n in build_graph(site_config, substrate).nodes if n.kind == BUCKET)
        assert bucket.params["public_read_access"] is False
        assert bucket.params["removal_policy"] == "destroy"
        assert bucket.params["error_document"] == "200.html"

    def test_retain_when_not_destroying(self, make_config: Callable[..., SiteConfig],
                                        substrate: InMemorySubstrate) -> None:
        result = build_graph(make_config(destroy_on_teardown=False), substrate)
        bucket = next(n for n in result.nodes if n.kind == BUCKET)
        assert bucket.params["removal_policy"] == "retain"

    def test_routing(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)

        assert sum(r.is_default for r in result.rules) == 1
        default = match_rule(result.rules, "/guns/rifles")
        assert default.target == NodeRef("ammobin-site-bucket")
        assert default.edge_hook == result.version
        assert default.event_type == "origin-request"

        api = match_rule(result.rules, "/api/graphql")
        assert api.origin is OriginKind.API
        assert api.target == "api.ammobin.ca"
        assert not api.is_default

    def test_exports(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)

        assert substrate.exports == dict(result.exports)
        assert result.exports["mainCert"] == result.certificate_id
        assert result.exports["edgeFunctionArn"] == result.function_id
        assert result.exports["Bucket"] == result.bucket_id
        assert result.exports["DistributionId"] == result.distribution_id
        assert result.exports["edgeFunctionVersionArn"] == result.version.version_id

    def test_composite_export_matches_this_build(self, site_config: SiteConfig, artifact_dir: Path,
                                                 substrate: InMemorySubstrate) -> None:
        result = build_graph(site_config, substrate)
        function_id, tag = result.exports[VERSIONED_FUNCTION_EXPORT].rsplit(":", 1)

        assert function_id == result.function_id
        assert tag == derive_version_tag(b"index.js\0v1\0")

    def test_rebuild_is_idempotent(self, site_config: SiteConfig, substrate: InMemorySubstrate) -> None:
        first = build_graph(site_config, substrate)
        second = build_graph(site_config, substrate)

        assert [(n.kind, n.name, dict(n.params)) for n in first.nodes] == \
               [(n.kind, n.name, dict(n.params)) for n in second.nodes]
        assert dict(first.exports) == dict(second.exports)
        assert len(substrate.resources) == 6

    def test_content_change_mints_new_version(self, site_config: SiteConfig, artifact_dir: Path,
                                              substrate: InMemorySubstrate) -> None:
        first = build_graph(site_config, substrate)
        (artifact_dir / "index.js").write_text("v2")
        second = build_graph(site_config, substrate)

        assert second.version.tag != first.version.tag
        assert second.exports[VERSIONED_FUNCTION_EXPORT] == f"{second.function_id}:{second.version.tag}"
        assert second.exports[VERSIONED_FUNCTION_EXPORT] != first.exports[VERSIONED_FUNCTION_EXPORT]
        assert second.certificate_id == first.certificate_id
        assert second.bucket_id == first.bucket_id
        assert second.role_id == first.role_id
        assert second.function_id == first.function_id
        # the previous version stays published for in-flight associations
        assert len(substrate.declared(FUNCTION_VERSION)) == 2
        assert first.version.tag in substrate.resources

    def test_each_build_gets_its_own_graph(self, site_config: SiteConfig) -> None:
        first = build_graph(site_config, InMemorySubstrate())
        second = build_graph(site_config, InMemorySubstrate())
        assert [(n.name, n.identifier, dict(n.params)) for n in first.nodes] == \
               [(n.name, n.identifier, dict(n.params)) for n in second.nodes]
        assert first.nodes is not second.nodes


class TestBuildFailures:
    def test_unreadable_artifact_fails_before_declaring(self, make_config: Callable[..., SiteConfig],
                                                        tmp_path: Path, substrate: InMemorySubstrate) -> None:
        config = make_config(artifact_path=str(tmp_path / "missing"))
        with pytest.raises(ConfigurationError):
            build_graph(config, substrate)
        assert substrate.history == []
        assert substrate.exports == {}

    def test_empty_artifact_fails_before_declaring(self, make_config: Callable[..., SiteConfig],
                                                   tmp_path: Path, substrate: InMemorySubstrate) -> None:
        handler = tmp_path / "handler.js"
        handler.write_bytes(b"")
        with pytest.raises(ConfigurationError, match="artifact is empty"):
            build_graph(make_config(artifact_path=str(handler)), substrate)
        assert substrate.history == []

    def test_route_collision_fails_before_declaring(self, make_config: Callable[..., SiteConfig],
                                                    substrate: InMemorySubstrate) -> None:
        config = make_config(api_path_pattern="_nuxt/api/*")
        with pytest.raises(RoutingConflictError):
            build_graph(config, substrate)
        assert substrate.history == []

    def test_substrate_rejection_aborts_the_build(self, site_config: SiteConfig) -> None:
        substrate = QuotaSubstrate()
        with pytest.raises(SubstrateError, match="TooManyBuckets") as exc_info:
            build_graph(site_config, substrate)

        assert exc_info.value.kind == BUCKET
        assert substrate.exports == {}
        assert not substrate.declared(DISTRIBUTION)
