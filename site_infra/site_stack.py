from aws_cdk import Stack
from constructs import Construct

from .builder import BuildResult, build_graph
from .cdk_substrate import CdkSubstrate
from .config import SiteConfig


class GlobalSiteStack(Stack):
    """
    certificate, edge function, content bucket and distribution for the site;
    outputs feed the stacks deployed in other regions
    """

    def __init__(self, scope: Construct, construct_id: str, context: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config: SiteConfig = SiteConfig.from_context(self.node.try_get_context(context), context)
        self.substrate = CdkSubstrate(self)
        self.result: BuildResult = build_graph(self.config, self.substrate)
