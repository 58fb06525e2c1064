"""
Build-time configuration for the global site stack.

The values live in a named block of the cdk.json context, e.g.::

    "global_site": {
        "project_name": "ammobin",
        "public_domain": "ammobin.ca",
        "api_domain": "api.ammobin.ca",
        "artifact_path": "dist/edge-lambdas",
        "bucket_name": "ammobin-aws-site"
    }
"""
import re
from typing import Any, List, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = structlog.get_logger(__name__)

DOMAIN_LABEL = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")

LAMBDA_PRINCIPAL = "lambda.amazonaws.com"
EDGE_LAMBDA_PRINCIPAL = "edgelambda.amazonaws.com"
LOG_WRITE_POLICY = "service-role/AWSLambdaBasicExecutionRole"


def is_domain_name(value: str) -> bool:
    if not value or len(value) > 253 or "." not in value:
        return False
    return all(DOMAIN_LABEL.match(label) for label in value.split("."))


class SiteConfig(BaseModel):
    """
    constant inputs of one build pass
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    project_name: str = Field(..., min_length=1)
    public_domain: str
    api_domain: str
    artifact_path: str = Field(..., min_length=1)
    handler: str = "index.handler"
    runtime: str = "nodejs20.x"
    # origin-request triggers are capped at 30 seconds
    timeout_seconds: int = Field(3, ge=1, le=30)
    bucket_name: str
    index_document: str = "index.html"
    error_document: str = "200.html"
    destroy_on_teardown: bool = True
    api_path_pattern: str = "api/*"
    reserved_path_prefixes: List[str] = Field(default_factory=lambda: ["_nuxt/"])
    trusted_principals: List[str] = Field(
        default_factory=lambda: [LAMBDA_PRINCIPAL, EDGE_LAMBDA_PRINCIPAL])
    managed_policies: List[str] = Field(default_factory=lambda: [LOG_WRITE_POLICY])

    @field_validator("project_name")
    @classmethod
    def lower_prefix(cls, v: str) -> str:
        return v.lower()

    @field_validator("public_domain", "api_domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        v = v.strip().lower()
        if not is_domain_name(v):
            raise ValueError(f"malformed domain name: {v!r}")
        return v

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        if not BUCKET_NAME.match(v) or ".." in v:
            raise ValueError(f"invalid bucket name: {v!r}")
        return v

    @field_validator("trusted_principals", "managed_policies")
    @classmethod
    def not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one entry is required")
        return v

    @field_validator("managed_policies")
    @classmethod
    def keeps_log_write(cls, v: List[str]) -> List[str]:
        # the edge function must always be able to write its logs
        if LOG_WRITE_POLICY not in v:
            raise ValueError(f"{LOG_WRITE_POLICY} must be attached")
        return v

    @field_validator("api_path_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        v = v.lstrip("/")
        if not v or v == "*":
            raise ValueError("api path pattern must be narrower than the catch-all")
        return v

    @classmethod
    def from_context(cls, context: Optional[Mapping[str, Any]], block: str) -> "SiteConfig":
        """
        builds the config from a cdk.json context block, raising ConfigurationError on bad input
        """
        if context is None:
            raise ConfigurationError(f"missing context block: {block}", details={"block": block})
        if not isinstance(context, Mapping):
            raise ConfigurationError(f"context block {block} must be an object, not {type(context).__name__}",
                                     details={"block": block})
        try:
            config = cls.model_validate(dict(context))
        except ValidationError as exc:
            errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
            raise ConfigurationError(f"invalid site configuration in {block}: {'; '.join(errors)}",
                                     details={"block": block, "errors": errors}) from exc

        logger.info("config_loaded", block=block, project=config.project_name,
                    public_domain=config.public_domain, api_domain=config.api_domain)
        return config
