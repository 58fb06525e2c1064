from typing import Any, Callable, Dict, Mapping

import structlog
from aws_cdk import CfnOutput, Duration, RemovalPolicy, Stack
from aws_cdk.aws_certificatemanager import Certificate, CertificateValidation
from aws_cdk.aws_cloudfront import AllowedMethods, BehaviorOptions, CachePolicy, Distribution, EdgeLambda, \
    HttpVersion, LambdaEdgeEventType, OriginAccessIdentity, OriginRequestPolicy, PriceClass, \
    SecurityPolicyProtocol, ViewerProtocolPolicy
from aws_cdk.aws_cloudfront_origins import HttpOrigin, S3BucketOrigin
from aws_cdk.aws_iam import CompositePrincipal, ManagedPolicy, Role, ServicePrincipal
from aws_cdk.aws_lambda import Alias, Code, Function, Runtime, RuntimeFamily, Version
from aws_cdk.aws_s3 import BlockPublicAccess, Bucket, BucketEncryption

from .errors import SubstrateError
from .graph import NodeRef
from .routing import ORIGIN_REQUEST, AllowedMethods as RuleMethods, OriginKind, RoutingRule

RUNTIME_FAMILIES = {
    "nodejs": RuntimeFamily.NODEJS,
    "python": RuntimeFamily.PYTHON,
}

EVENT_TYPES = {
    ORIGIN_REQUEST: LambdaEdgeEventType.ORIGIN_REQUEST,
    "origin-response": LambdaEdgeEventType.ORIGIN_RESPONSE,
    "viewer-request": LambdaEdgeEventType.VIEWER_REQUEST,
    "viewer-response": LambdaEdgeEventType.VIEWER_RESPONSE,
}

logger = structlog.get_logger(__name__)


def runtime_for(name: str) -> Runtime:
    family = next((f for prefix, f in RUNTIME_FAMILIES.items() if name.startswith(prefix)), RuntimeFamily.OTHER)
    return Runtime(name, family)


class CdkSubstrate:
    """
    declares the graph nodes as cdk constructs inside a stack, exports become stack outputs
    """

    def __init__(self, stack: Stack) -> None:
        self.stack = stack
        self.constructs: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[str, Mapping[str, Any]], str]] = {
            "certificate": self.create_certificate,
            "execution-role": self.create_execution_role,
            "function": self.create_function,
            "function-version": self.create_version,
            "bucket": self.create_bucket,
            "distribution": self.create_distribution,
        }

    def declare(self, kind: str, name: str, params: Mapping[str, Any]) -> str:
        factory = self._factories.get(kind)
        if factory is None:
            raise SubstrateError(f"unsupported resource kind: {kind}", kind=kind, name=name)
        identifier = factory(name, params)
        logger.debug("construct_declared", kind=kind, name=name)
        return identifier

    def export(self, name: str, value: str) -> None:
        CfnOutput(self.stack, name, value=value)

    def resolve(self, ref: NodeRef) -> Any:
        try:
            return self.constructs[ref.name]
        except KeyError:
            raise SubstrateError(f"no construct declared for {ref.name}", name=ref.name) from None

    def create_certificate(self, name: str, params: Mapping[str, Any]) -> str:
        self.constructs[name] = Certificate(
            self.stack, name,
            domain_name=params["domain_name"],
            validation=CertificateValidation.from_dns()
        )
        return self.constructs[name].certificate_arn

    def create_execution_role(self, name: str, params: Mapping[str, Any]) -> str:
        self.constructs[name] = Role(
            self.stack, name,
            assumed_by=CompositePrincipal(
                *[ServicePrincipal(principal) for principal in params["trusted_principals"]]
            ),
            managed_policies=[
                ManagedPolicy.from_aws_managed_policy_name(policy) for policy in params["managed_policies"]
            ]
        )
        return self.constructs[name].role_arn

    def create_function(self, name: str, params: Mapping[str, Any]) -> str:
        self.constructs[name] = Function(
            self.stack, name,
            description="Edge function rerouting origin requests for the single page app",
            runtime=runtime_for(params["runtime"]),
            handler=params["handler"],
            code=Code.from_asset(params["artifact_path"]),
            timeout=Duration.seconds(params["timeout_seconds"]),
            role=self.resolve(params["role"])
        )
        return self.constructs[name].function_arn

    def create_version(self, name: str, params: Mapping[str, Any]) -> str:
        version = Version(
            self.stack, name,
            lambda_=self.resolve(params["function"]),
            removal_policy=RemovalPolicy.RETAIN
        )
        # an alias named after the tag makes "<function arn>:<tag>" a valid qualified arn
        Alias(self.stack, f"{name}-alias", alias_name=params["tag"], version=version)
        self.constructs[name] = version
        return version.function_arn

    def create_bucket(self, name: str, params: Mapping[str, Any]) -> str:
        destroy = params["removal_policy"] == "destroy"
        self.constructs[name] = Bucket(
            self.stack, name,
            bucket_name=params["bucket_name"],
            website_index_document=params["index_document"],
            website_error_document=params["error_document"],
            public_read_access=params["public_read_access"],
            block_public_access=BlockPublicAccess.BLOCK_ALL,
            encryption=BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            removal_policy=RemovalPolicy.DESTROY if destroy else RemovalPolicy.RETAIN,
            auto_delete_objects=destroy
        )
        return self.constructs[name].bucket_name

    def create_distribution(self, name: str, params: Mapping[str, Any]) -> str:
        rules = params["rules"]
        default = next(rule for rule in rules if rule.is_default)
        self.constructs[name] = Distribution(
            self.stack, name,
            enabled=True,
            comment=name,
            http_version=HttpVersion.HTTP2,
            default_root_object=params["default_root_object"],
            price_class=PriceClass.PRICE_CLASS_100,
            domain_names=list(params["domain_names"]),
            minimum_protocol_version=SecurityPolicyProtocol.TLS_V1_2_2021,
            certificate=self.resolve(params["certificate"]),
            default_behavior=self.behavior_for(name, default),
            additional_behaviors={
                rule.pattern: self.behavior_for(name, rule) for rule in rules if not rule.is_default
            }
        )
        return self.constructs[name].distribution_id

    def behavior_for(self, name: str, rule: RoutingRule) -> BehaviorOptions:
        if rule.origin is OriginKind.STATIC:
            origin = S3BucketOrigin.with_origin_access_identity(
                self.resolve(rule.target),
                origin_access_identity=self.origin_access_identity(name)
            )
        else:
            origin = HttpOrigin(rule.target)

        edge_lambdas = None
        if rule.edge_hook is not None:
            edge_lambdas = [EdgeLambda(
                event_type=EVENT_TYPES[rule.event_type or ORIGIN_REQUEST],
                function_version=self.resolve(NodeRef(rule.edge_hook.node))
            )]

        if rule.allowed_methods is RuleMethods.ALL:
            return BehaviorOptions(
                origin=origin,
                allowed_methods=AllowedMethods.ALLOW_ALL,
                viewer_protocol_policy=ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                cache_policy=CachePolicy.CACHING_DISABLED,
                origin_request_policy=OriginRequestPolicy.ALL_VIEWER_EXCEPT_HOST_HEADER,
                edge_lambdas=edge_lambdas
            )
        return BehaviorOptions(
            origin=origin,
            allowed_methods=AllowedMethods.ALLOW_GET_HEAD,
            viewer_protocol_policy=ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            compress=True,
            edge_lambdas=edge_lambdas
        )

    def origin_access_identity(self, name: str) -> OriginAccessIdentity:
        key = f"{name}-oai"
        if key not in self.constructs:
            self.constructs[key] = OriginAccessIdentity(
                self.stack, key,
                comment="Cloudfront access to S3"
            )
        return self.constructs[key]
