#!/usr/bin/env python3
import os

from aws_cdk import App, Environment

from site_infra.logs import configure_logging
from site_infra.site_stack import GlobalSiteStack

configure_logging(os.environ.get("SITE_LOG_LEVEL", "INFO"))

app = App()

# lambda@edge functions and cloudfront certificates have to live in us-east-1
GlobalSiteStack(app, "globalsite", "global_site", env=Environment(region="us-east-1"))

app.synth()
