"""
Per-font metadata resolution

Reconstructs the parameter record for a single target name from the expanded
plans. This is the record handed to the glyph generator.
"""

from ..errors import ConfigError
from .axes import AxisResolver
from .models import ExpandedPlans, FontMetadata

PRIVATE_BUILD_PLANS = "private-build-plans.toml"


def missing_plan_hint(has_private: bool) -> str:
    if not has_private:
        return (
            "\n        -- Possible reason: Config file "
            f"'{PRIVATE_BUILD_PLANS}' does not exist."
        )
    return ""


class MetadataResolver:
    """Resolves FontMetadata for target names of one build"""

    def __init__(
        self,
        expanded: ExpandedPlans,
        resolver: AxisResolver,
        version: str,
        has_private: bool = True,
    ):
        self.expanded = expanded
        self.resolver = resolver
        self.version = version
        self.has_private = has_private

    def not_found(self, name: str) -> ConfigError:
        return ConfigError(f"Build plan for '{name}' not found." + missing_plan_hint(self.has_private))

    def resolve(self, target_name: str) -> FontMetadata:
        """Build the metadata record of one target.

        Raises:
            ConfigError: If no plan produces target_name
        """
        ref = self.expanded.index.get(target_name)
        if ref is None:
            raise self.not_found(target_name)
        bp = self.expanded.plan_of(ref.prefix)
        if bp is None:
            raise self.not_found(target_name)

        sfi = self.resolver.suffix_mapping(bp.weights, bp.slopes, bp.widths)[ref.suffix]

        return FontMetadata(
            name=target_name,
            variants=bp.variants,
            deriving_variants=bp.deriving_variants,
            no_cv_ss=bp.no_cv_ss,
            no_ligation=bp.no_ligation,
            ligations=bp.ligations,
            serifs=bp.serifs,
            spacing=bp.spacing,
            shape_weight=sfi.shape_weight,
            shape_slope=sfi.slope,
            shape_width=sfi.shape_width,
            quasi_proportional_diversity=bp.quasi_proportional_diversity,
            family=bp.family,
            version=self.version,
            menu_width=sfi.menu_width,
            menu_slope=sfi.menu_slope,
            menu_weight=sfi.menu_weight,
            css_weight=sfi.css_weight,
            css_stretch=sfi.css_stretch,
            css_style=sfi.css_style,
            hint_params=list(bp.hint_params),
            compatibility_ligatures=bp.compatibility_ligatures,
            metric_override=bp.metric_override,
            excluded_char_ranges=bp.excluded_char_ranges,
        )
