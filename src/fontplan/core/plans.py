"""
Build plan expansion for fontplan

Each entry of the buildPlans table becomes a BuildPlan (axes inherited from
the global defaults when absent) and is expanded into concrete target names.
A reverse index maps every target name back to its plan prefix and suffix.
"""

from typing import Any, Dict, Optional

from ..errors import ConfigError
from ..utils.logging import FontPlanLogger
from .axes import AxisResolver, make_file_name, parse_slopes, parse_weights, parse_widths
from .models import AxisSet, BuildPlan, ExpandedPlans, PlanTargets, TargetRef


class PlanExpander:
    """Expands raw build plans into target names"""

    def __init__(self, resolver: AxisResolver, strict: bool = False):
        self.resolver = resolver
        self.strict = strict

    def build_plan(self, prefix: str, raw: Dict[str, Any], defaults: AxisSet) -> BuildPlan:
        """Validate one raw plan and fill in inherited axes.

        Raises:
            ConfigError: If the plan has no family name
        """
        bp = dict(raw)
        if not bp.get("family"):
            raise ConfigError(f"Build plan for {prefix} does not have a family name. Exit.")

        if not bp.get("slopes") and bp.get("slants"):
            FontPlanLogger.warning(
                f'Build plan for {prefix} uses legacy "slants" to define slopes. '
                f'Use "slopes" instead.'
            )
            bp["slopes"] = bp["slants"]

        weights = parse_weights(bp["weights"]) if bp.get("weights") else defaults.weights
        slopes = parse_slopes(bp["slopes"]) if bp.get("slopes") else defaults.slopes
        widths = parse_widths(bp["widths"]) if bp.get("widths") else defaults.widths

        exclude_chars = bp.get("exclude-chars")
        return BuildPlan(
            prefix=prefix,
            family=bp["family"],
            weights=weights,
            slopes=slopes,
            widths=widths,
            restricted_weights=tuple(bp["weights"]) if bp.get("weights") else None,
            restricted_slopes=tuple(bp["slopes"]) if bp.get("slopes") else None,
            desc=bp.get("desc"),
            serifs=bp.get("serifs"),
            spacing=bp.get("spacing"),
            no_cv_ss=bool(bp.get("no-cv-ss", False)),
            no_ligation=bool(bp.get("no-ligation", False)),
            ligations=bp.get("ligations"),
            variants=bp.get("variants"),
            deriving_variants=bp.get("derivingVariants"),
            quasi_proportional_diversity=bp.get("quasiProportionalDiversity") or 0,
            hint_params=tuple(bp.get("hintParams") or ()),
            compatibility_ligatures=bp.get("compatibility-ligatures"),
            metric_override=bp.get("metric-override"),
            excluded_char_ranges=exclude_chars.get("ranges") if isinstance(exclude_chars, dict) else None,
            snapshot_family=bp.get("snapshotFamily"),
            snapshot_feature=bp.get("snapshotFeature"),
        )

    def expand(self, raw_plans: Dict[str, Dict[str, Any]], defaults: AxisSet) -> ExpandedPlans:
        """Expand every plan into its target names.

        Args:
            raw_plans: The merged buildPlans table (prefix -> raw plan)
            defaults: Global axes used by plans without their own

        Returns:
            ExpandedPlans with per-plan targets and the reverse index
        """
        result = ExpandedPlans()
        for prefix, raw in (raw_plans or {}).items():
            plan = self.build_plan(prefix, raw, defaults)
            entry = PlanTargets(plan)

            mapping = self.resolver.suffix_mapping(plan.weights, plan.slopes, plan.widths)
            for suffix, sfi in mapping.items():
                if plan.restricted_weights is not None and sfi.weight not in plan.restricted_weights:
                    continue
                if plan.restricted_slopes is not None and sfi.slope not in plan.restricted_slopes:
                    continue
                file_name = make_file_name(prefix, suffix)
                entry.target_names.append(file_name)
                self._index(result, file_name, TargetRef(prefix, suffix))

            result.targets[prefix] = entry
        return result

    def _index(self, result: ExpandedPlans, file_name: str, ref: TargetRef) -> None:
        previous = result.index.get(file_name)
        if previous is not None and previous.prefix != ref.prefix:
            if self.strict:
                raise ConfigError(
                    f"Target '{file_name}' is produced by both '{previous.prefix}' "
                    f"and '{ref.prefix}'."
                )
            FontPlanLogger.warning(
                f"Target '{file_name}' of build plan '{previous.prefix}' is overridden "
                f"by build plan '{ref.prefix}'."
            )
            result.collisions.append((file_name, previous.prefix, ref.prefix))
        result.index[file_name] = ref


def export_plans(raw_collect_plans: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Every plan prefix that takes part in a collection, mapped to itself"""
    result = {}
    for collect in (raw_collect_plans or {}).values():
        for source in (collect or {}).get("from") or []:
            result[source] = source
    return result
