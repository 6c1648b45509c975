"""
fontplan - Build planning for large font families

Expands a compact axis-based configuration (weights x widths x slopes) into
named font targets, plans TTC collections, and builds everything through an
incremental, journal-backed task graph.
"""

__version__ = "0.4.0"

from .api import PlanSet, build, clean, load_plans
from .build.recipes import BuildRecipes
from .config import BuildEnvironment, ConfigLoader, RawConfig
from .core.axes import AxisResolver, WidthGradeCache, make_suffix
from .core.collect import CollectionPlanner
from .core.metadata import MetadataResolver
from .core.models import (
    BuildPlan,
    CollectionPlan,
    ExpandedPlans,
    FontMetadata,
    SuffixMappingEntry,
)
from .core.plans import PlanExpander
from .errors import BuildFailure, ConfigError, CycleError, ExternalToolFailure, FontPlanError
from .graph import BuildGraph, Journal

# Public API
__all__ = [
    # Version
    "__version__",
    # Configuration
    "BuildEnvironment",
    "ConfigLoader",
    "RawConfig",
    # Planning
    "AxisResolver",
    "WidthGradeCache",
    "make_suffix",
    "PlanExpander",
    "MetadataResolver",
    "CollectionPlanner",
    # Models
    "BuildPlan",
    "ExpandedPlans",
    "SuffixMappingEntry",
    "FontMetadata",
    "CollectionPlan",
    # Graph
    "BuildGraph",
    "Journal",
    "BuildRecipes",
    # Errors
    "FontPlanError",
    "ConfigError",
    "ExternalToolFailure",
    "CycleError",
    "BuildFailure",
    # High-level API functions
    "PlanSet",
    "load_plans",
    "build",
    "clean",
]
