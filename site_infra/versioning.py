"""
Content addressed versions for the edge function.

A new lambda version is only published when the code changes, so the
distribution keeps pointing at the old version until a new tag shows up.
"""
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import structlog

from .errors import ConfigurationError

logger = structlog.get_logger(__name__)

# version construct ids have to start with a letter
TAG_PREFIX = "V"
VERSIONED_DELIMITER = ":"


def derive_version_tag(content: bytes) -> str:
    return TAG_PREFIX + hashlib.sha256(content).hexdigest()


@dataclass(frozen=True)
class DeployableArtifact:
    name: str
    path: str
    content: bytes

    @property
    def version_tag(self) -> str:
        return derive_version_tag(self.content)


@dataclass(frozen=True)
class VersionedReference:
    """
    a function identifier pinned to the tag of the code it was published from
    """
    node: str
    function_id: str
    tag: str
    version_id: str

    @property
    def qualified(self) -> str:
        return join_versioned(self.function_id, self.tag)

    def node_refs(self) -> Tuple[str, ...]:
        return (self.node,)


def join_versioned(function_id: str, tag: str) -> str:
    return f"{function_id}{VERSIONED_DELIMITER}{tag}"


def _directory_content(root: Path) -> bytes:
    files = sorted((p for p in root.rglob("*") if p.is_file()), key=lambda p: p.relative_to(root).as_posix())
    if not files:
        raise ConfigurationError(f"artifact directory is empty: {root}", details={"path": str(root)})
    chunks = []
    for file in files:
        chunks.append(file.relative_to(root).as_posix().encode("utf-8") + b"\0")
        chunks.append(file.read_bytes() + b"\0")
    return b"".join(chunks)


def read_artifact(name: str, path: Union[str, Path]) -> DeployableArtifact:
    """
    reads the artifact bytes from a file, or every file below a directory in path order
    """
    location = Path(path)
    try:
        if location.is_dir():
            content = _directory_content(location)
        elif location.is_file():
            content = location.read_bytes()
        else:
            raise ConfigurationError(f"artifact not found: {location}", details={"path": str(location)})
    except OSError as exc:
        raise ConfigurationError(f"cannot read artifact {location}: {exc}",
                                 details={"path": str(location)}) from exc
    if not content:
        raise ConfigurationError(f"artifact is empty: {location}", details={"path": str(location)})

    artifact = DeployableArtifact(name=name, path=str(location), content=content)
    logger.info("version_derived", artifact=name, path=str(location), tag=artifact.version_tag)
    return artifact
