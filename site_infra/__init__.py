from .builder import BuildResult, build_graph
from .config import SiteConfig
from .errors import ConfigurationError, DependencyOrderError, RoutingConflictError, SiteBuildError, \
    SubstrateError
from .substrate import InMemorySubstrate, Substrate
