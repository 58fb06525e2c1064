"""Shared fixtures: a site context block pointing at a throwaway edge artifact."""
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

from site_infra.config import SiteConfig
from site_infra.substrate import InMemorySubstrate


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    root = tmp_path / "edge-lambdas"
    root.mkdir()
    (root / "index.js").write_text("v1")
    return root


@pytest.fixture
def site_context(artifact_dir: Path) -> Dict[str, Any]:
    return {
        "project_name": "Ammobin",
        "public_domain": "ammobin.ca",
        "api_domain": "api.ammobin.ca",
        "artifact_path": str(artifact_dir),
        "bucket_name": "ammobin-aws-site",
    }


@pytest.fixture
def make_config(site_context: Dict[str, Any]) -> Callable[..., SiteConfig]:
    def factory(**overrides: Any) -> SiteConfig:
        return SiteConfig.from_context({**site_context, **overrides}, "global_site")

    return factory


@pytest.fixture
def site_config(make_config: Callable[..., SiteConfig]) -> SiteConfig:
    return make_config()


@pytest.fixture
def substrate() -> InMemorySubstrate:
    return InMemorySubstrate()
