"""
fontplan Public API

High-level functions for using the planner from other tools without going
through the command line.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .build.recipes import BuildRecipes
from .config import BuildEnvironment, ConfigLoader, RawConfig
from .core.axes import AxisResolver
from .core.collect import CollectionPlanner
from .core.metadata import MetadataResolver
from .core.models import CollectionPlan, ExpandedPlans, FontMetadata
from .core.plans import PlanExpander


class PlanSet:
    """Configuration resolved into targets, metadata and collections"""

    def __init__(self, config: RawConfig, version: str = "0.0.0", strict: bool = False):
        self.config = config
        self.version = version
        self.resolver = AxisResolver()
        self.defaults = config.default_axes()
        self.expanded: ExpandedPlans = PlanExpander(self.resolver, strict=strict).expand(
            config.build_plans, self.defaults
        )
        self._metadata = MetadataResolver(
            self.expanded, self.resolver, version, config.has_private
        )
        self._collections: Optional[CollectionPlan] = None

    @property
    def targets(self) -> Dict[str, List[str]]:
        return {prefix: list(entry.target_names) for prefix, entry in self.expanded.targets.items()}

    def metadata(self, target_name: str) -> FontMetadata:
        return self._metadata.resolve(target_name)

    def standard_suffixes(self):
        d = self.defaults
        return self.resolver.suffix_mapping(d.weights, d.slopes, d.widths)

    @property
    def collections(self) -> CollectionPlan:
        if self._collections is None:
            planner = CollectionPlanner(self.expanded, self.config.has_private)
            self._collections = planner.plan(
                self.config.collect_plans, self.standard_suffixes(), self.config.collect_settings()
            )
        return self._collections


def load_plans(
    config_path: Union[str, Path],
    private_path: Optional[Union[str, Path]] = None,
    version: str = "0.0.0",
    strict: bool = False,
) -> PlanSet:
    """
    Load a build-plans file and resolve it.

    Args:
        config_path: Path to build-plans.toml (or .yaml / .json)
        private_path: Optional private overlay merged over buildPlans and buildOptions
        version: Version string written into font metadata
        strict: Treat target name collisions between plans as errors

    Returns:
        PlanSet

    Example:
        import fontplan

        plans = fontplan.load_plans("build-plans.toml", "private-build-plans.toml")
        for prefix, names in plans.targets.items():
            print(prefix, names)
        print(plans.metadata("sans-bold").to_dict())
    """
    config = ConfigLoader(Path(config_path), Path(private_path) if private_path else None).load()
    return PlanSet(config, version=version, strict=strict)


def build(targets: List[str], env: Optional[BuildEnvironment] = None) -> List[Any]:
    """
    Build command-line style targets such as 'contents::sans' or 'all:ttc'.

    Raises:
        ConfigError: If the configuration cannot be resolved
        BuildFailure: If any target failed
    """
    recipes = BuildRecipes(env or BuildEnvironment())
    refs = [recipes.graph.resolve(spec) for spec in targets]
    return recipes.graph.run(refs)


def clean(env: Optional[BuildEnvironment] = None) -> None:
    """Remove build outputs, distribution directories, archives and the journal"""
    BuildRecipes(env or BuildEnvironment()).clean()
