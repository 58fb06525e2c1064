"""
Values published for the companion stacks in other regions.

Those stacks cannot reference our constructs directly, so they read these
outputs instead. The versioned function export is what lets another region
attach the current edge function version.
"""
from dataclasses import dataclass
from typing import Tuple

import structlog

from .errors import ConfigurationError, DependencyOrderError, SiteBuildError, SubstrateError
from .graph import ResourceNode
from .substrate import Substrate
from .versioning import VersionedReference, join_versioned

logger = structlog.get_logger(__name__)

CERTIFICATE_EXPORT = "mainCert"
FUNCTION_EXPORT = "edgeFunctionArn"
BUCKET_EXPORT = "Bucket"
DISTRIBUTION_EXPORT = "DistributionId"
VERSIONED_FUNCTION_EXPORT = "edgeFunctionArnWithVersion"
VERSION_EXPORT = "edgeFunctionVersionArn"


@dataclass(frozen=True)
class ExportedValue:
    name: str
    value: str


def collect_exports(certificate: ResourceNode, function: ResourceNode, version: VersionedReference,
                    bucket: ResourceNode, distribution: ResourceNode) -> Tuple[ExportedValue, ...]:
    """
    returns the fixed set of exports, with the composite value taken from a single versioned reference
    """
    if version.function_id != function.identifier:
        raise DependencyOrderError(f"version {version.tag} does not belong to {function.name}",
                                   details={"function": function.identifier, "version": version.function_id})

    return (
        ExportedValue(CERTIFICATE_EXPORT, certificate.identifier),
        ExportedValue(FUNCTION_EXPORT, function.identifier),
        ExportedValue(BUCKET_EXPORT, bucket.identifier),
        ExportedValue(DISTRIBUTION_EXPORT, distribution.identifier),
        ExportedValue(VERSIONED_FUNCTION_EXPORT, join_versioned(version.function_id, version.tag)),
        ExportedValue(VERSION_EXPORT, version.version_id),
    )


def publish(substrate: Substrate, values: Tuple[ExportedValue, ...]) -> None:
    for exported in values:
        if not isinstance(exported.value, str):
            raise ConfigurationError(f"export {exported.name} is not a string",
                                     details={"export": exported.name})
        try:
            substrate.export(exported.name, exported.value)
        except SiteBuildError:
            raise
        except Exception as exc:
            raise SubstrateError(str(exc), kind="export", name=exported.name) from exc
        logger.info("value_exported", name=exported.name)
