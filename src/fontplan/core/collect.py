"""
Collection planning for fontplan

A collection merges several build plans into TTC containers. Containers are
built in two tiers:

- intermediate ("glyf") containers, one per collection and width, bundling
  the raw fonts of every source plan that share outlines
- top-level containers, which concatenate intermediate containers according
  to the collection's distinguish flags

The order of every composition list is the order fonts appear inside the
container, so it follows collect.from x suffix mapping and is never sorted.
"""

from typing import Any, Dict, Iterable, List, Optional

from ..errors import ConfigError
from .axes import make_file_name, make_suffix
from .metadata import missing_plan_hint
from .models import (
    SLOPE_NORMAL,
    WEIGHT_NORMAL,
    WIDTH_NORMAL,
    CollectConfig,
    CollectionPlan,
    ComponentRef,
    ExpandedPlans,
    SuffixMappingEntry,
)


def parse_collect_config(raw: Optional[Dict[str, Any]]) -> CollectConfig:
    raw = raw or {}
    return CollectConfig(
        distinguish_weights=bool(raw.get("distinguishWeights", False)),
        distinguish_widths=bool(raw.get("distinguishWidths", False)),
        distinguish_slope=bool(raw.get("distinguishSlope", False)),
    )


def container_name(config: CollectConfig, prefix: str, weight: str, width: str, slope: str) -> str:
    """Name of the container that a (weight, width, slope) font lands in"""
    suffix = make_suffix(
        weight if config.distinguish_weights else WEIGHT_NORMAL,
        width if config.distinguish_widths else WIDTH_NORMAL,
        slope if config.distinguish_slope else SLOPE_NORMAL,
    )
    return f"{prefix}-{suffix}"


def _unique(items: Iterable) -> List:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


class CollectionPlanner:
    """Computes container compositions from the collectPlans table"""

    def __init__(self, expanded: ExpandedPlans, has_private: bool = True):
        self.expanded = expanded
        self.has_private = has_private

    def _targets_of(self, prefix: str) -> List[str]:
        if prefix not in self.expanded.targets:
            raise ConfigError(
                f"Build plan for '{prefix}' not found." + missing_plan_hint(self.has_private)
            )
        return self.expanded.fonts_of(prefix)

    def plan(
        self,
        raw_collect_plans: Optional[Dict[str, Any]],
        suffix_mapping: Dict[str, SuffixMappingEntry],
        collect_config: CollectConfig,
    ) -> CollectionPlan:
        """Build the composition tree of every collection.

        Args:
            raw_collect_plans: collectPlans table (collection prefix -> {from: [...]})
            suffix_mapping: Suffix mapping of the global axes
            collect_config: Distinguish flags shared by all collections

        Returns:
            CollectionPlan with deduplicated, insertion-ordered compositions

        Raises:
            ConfigError: If a collection draws from an unknown build plan
        """
        result = CollectionPlan()
        glyf_config = CollectConfig(
            distinguish_weights=collect_config.distinguish_weights,
            distinguish_widths=True,
            distinguish_slope=collect_config.distinguish_slope,
        )

        for collect_prefix, collect in (raw_collect_plans or {}).items():
            sources = (collect or {}).get("from") or []
            if not sources:
                continue

            contents: List[str] = []
            for prefix in sources:
                produced = set(self._targets_of(prefix))
                for suffix, sfi in suffix_mapping.items():
                    ttf_name = make_file_name(prefix, suffix)
                    if ttf_name not in produced:
                        continue
                    ttc_name = container_name(
                        collect_config, collect_prefix, sfi.weight, sfi.width, sfi.slope
                    )
                    glyf_name = container_name(
                        glyf_config, collect_prefix, sfi.weight, sfi.width, sfi.slope
                    )
                    result.glyf_ttc_composition.setdefault(glyf_name, []).append(
                        ComponentRef(prefix, ttf_name)
                    )
                    result.ttc_composition.setdefault(ttc_name, []).append(glyf_name)
                    contents.append(ttc_name)

            result.ttc_contents[collect_prefix] = _unique(contents)
            result.group_decomposition[collect_prefix] = list(sources)

        for name, parts in result.glyf_ttc_composition.items():
            result.glyf_ttc_composition[name] = _unique(parts)
        for name, parts in result.ttc_composition.items():
            result.ttc_composition[name] = _unique(parts)
        return result


def release_packages(collection: CollectionPlan, expanded: ExpandedPlans) -> Dict[str, Any]:
    """Per-collection summary used to write release notes"""
    groups = {}
    for key, sources in collection.group_decomposition.items():
        prime = expanded.plan_of(sources[0])
        sub_groups = {}
        for prefix in sources:
            bp = expanded.plan_of(prefix)
            sub_groups[prefix] = {
                "family": bp.family,
                "desc": bp.desc,
                "spacing": bp.spacing or "type",
            }
        groups[key] = {
            "subGroups": sub_groups,
            "slab": prime.serifs == "slab",
            "quasiProportional": prime.quasi_proportional_diversity > 0,
        }
    return groups


def snapshot_config(expanded: ExpandedPlans) -> List[Dict[str, Any]]:
    """Sample-image tasks for every plan that declares a snapshot family"""
    tasks = []
    for prefix, entry in expanded.targets.items():
        bp = entry.plan
        if not bp.snapshot_family:
            continue
        tasks.append({
            "el": "#packaging-sampler",
            "applyClass": bp.snapshot_family,
            "applyFeature": bp.snapshot_feature,
            "name": prefix,
        })
    return tasks
