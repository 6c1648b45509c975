"""
Data models for fontplan

This module contains the dataclasses describing axes, build plans, resolved
targets, per-font metadata and collection plans.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

WIDTH_NORMAL = "normal"
WEIGHT_NORMAL = "regular"
SLOPE_NORMAL = "upright"
DEFAULT_SUBFAMILY = "regular"


@dataclass(frozen=True)
class WeightEntry:
    """A named weight with its shape, CSS and menu values"""
    name: str
    shape: Any
    css: Any
    menu: Any


@dataclass(frozen=True)
class WidthEntry:
    """A named width; css is the font-stretch keyword"""
    name: str
    shape: Any
    css: Optional[str]
    menu: Any


@dataclass(frozen=True)
class SlopeEntry:
    """A named slope; value is both the CSS style and the menu slope"""
    name: str
    value: Optional[str]


WeightTable = Dict[str, WeightEntry]
SlopeTable = Dict[str, SlopeEntry]
WidthTable = Dict[str, WidthEntry]


@dataclass(frozen=True)
class AxisSet:
    """Global default axes, used by plans that don't define their own"""
    weights: WeightTable = field(default_factory=dict)
    slopes: SlopeTable = field(default_factory=dict)
    widths: WidthTable = field(default_factory=dict)


@dataclass(frozen=True)
class SuffixMappingEntry:
    """Resolved values for one (weight, width, slope) combination"""
    weight: str
    shape_weight: float
    css_weight: float
    menu_weight: float
    width: str
    shape_width: float
    css_stretch: str
    menu_width: int
    slope: str
    css_style: str
    menu_slope: str


@dataclass(frozen=True)
class BuildPlan:
    """A single entry of the buildPlans table after axis inheritance"""
    prefix: str
    family: str
    weights: WeightTable
    slopes: SlopeTable
    widths: WidthTable
    # Axes the plan declared itself; None means inherited from the defaults
    restricted_weights: Optional[Tuple[str, ...]] = None
    restricted_slopes: Optional[Tuple[str, ...]] = None
    desc: Optional[str] = None
    serifs: Optional[str] = None
    spacing: Optional[str] = None
    no_cv_ss: bool = False
    no_ligation: bool = False
    ligations: Any = None
    variants: Any = None
    deriving_variants: Any = None
    quasi_proportional_diversity: float = 0
    hint_params: Tuple[str, ...] = ()
    compatibility_ligatures: Any = None
    metric_override: Any = None
    excluded_char_ranges: Any = None
    snapshot_family: Optional[str] = None
    snapshot_feature: Optional[str] = None


@dataclass(frozen=True)
class TargetRef:
    """Reverse index entry: which plan and suffix produced a target name"""
    prefix: str
    suffix: str


@dataclass
class PlanTargets:
    plan: BuildPlan
    target_names: List[str] = field(default_factory=list)


@dataclass
class ExpandedPlans:
    """Output of the plan expander"""
    targets: Dict[str, PlanTargets] = field(default_factory=dict)
    index: Dict[str, TargetRef] = field(default_factory=dict)
    # (target name, overwritten prefix, winning prefix)
    collisions: List[Tuple[str, str, str]] = field(default_factory=list)

    def plan_of(self, prefix: str) -> Optional[BuildPlan]:
        entry = self.targets.get(prefix)
        return entry.plan if entry else None

    def fonts_of(self, prefix: str) -> List[str]:
        entry = self.targets.get(prefix)
        return list(entry.target_names) if entry else []


@dataclass(frozen=True)
class FontMetadata:
    """Everything the glyph generator needs to build one font file"""
    name: str
    variants: Any
    deriving_variants: Any
    no_cv_ss: bool
    no_ligation: bool
    ligations: Any
    serifs: Optional[str]
    spacing: Optional[str]
    shape_weight: float
    shape_slope: str
    shape_width: float
    quasi_proportional_diversity: float
    family: str
    version: str
    menu_width: int
    menu_slope: str
    menu_weight: float
    css_weight: float
    css_stretch: str
    css_style: str
    hint_params: List[str]
    compatibility_ligatures: Any
    metric_override: Any
    excluded_char_ranges: Any

    def to_dict(self) -> Dict[str, Any]:
        """Flat record in the layout expected by the generator"""
        return {
            "name": self.name,
            "variants": self.variants,
            "derivingVariants": self.deriving_variants,
            "featureControl": {
                "noCvSs": self.no_cv_ss,
                "noLigation": self.no_ligation,
            },
            "ligations": self.ligations,
            "shape": {
                "serifs": self.serifs,
                "spacing": self.spacing,
                "weight": self.shape_weight,
                "slope": self.shape_slope,
                "width": self.shape_width,
                "quasiProportionalDiversity": self.quasi_proportional_diversity,
            },
            "menu": {
                "family": self.family,
                "version": self.version,
                "width": self.menu_width,
                "slope": self.menu_slope,
                "weight": self.menu_weight,
            },
            "css": {
                "weight": self.css_weight,
                "stretch": self.css_stretch,
                "style": self.css_style,
            },
            "hintParams": list(self.hint_params),
            "compatibilityLigatures": self.compatibility_ligatures,
            "metricOverride": self.metric_override,
            "excludedCharRanges": self.excluded_char_ranges,
        }


@dataclass(frozen=True)
class CollectConfig:
    """Which axes a collection keeps apart in its container names"""
    distinguish_weights: bool = False
    distinguish_widths: bool = False
    distinguish_slope: bool = False


@dataclass(frozen=True)
class ComponentRef:
    """One raw font feeding an intermediate container"""
    group: str
    file: str


@dataclass
class CollectionPlan:
    """Composition of merged containers for every collection"""
    group_decomposition: Dict[str, List[str]] = field(default_factory=dict)
    ttc_contents: Dict[str, List[str]] = field(default_factory=dict)
    ttc_composition: Dict[str, List[str]] = field(default_factory=dict)
    glyf_ttc_composition: Dict[str, List[ComponentRef]] = field(default_factory=dict)
