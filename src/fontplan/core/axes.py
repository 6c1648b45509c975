"""
Axis resolution for fontplan

Turns weight / slope / width tables into the suffix mapping: one entry per
(weight, slope, width) combination carrying the validated shape, CSS and menu
values. Numeric values are checked by small validator objects; the shape
width validator also converts legacy width grades (3..9) into unit widths.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import ConfigError
from ..utils.logging import FontPlanLogger
from .models import (
    DEFAULT_SUBFAMILY,
    SLOPE_NORMAL,
    WEIGHT_NORMAL,
    WIDTH_NORMAL,
    SlopeEntry,
    SlopeTable,
    SuffixMappingEntry,
    WeightEntry,
    WeightTable,
    WidthEntry,
    WidthTable,
)

RECOMMENDED_WEIGHTS = {
    "thin": 100,
    "extralight": 200,
    "light": 300,
    "regular": 400,
    "book": 450,
    "medium": 500,
    "semibold": 600,
    "bold": 700,
    "extrabold": 800,
    "heavy": 900,
}


def make_suffix(weight: str, width: str, slope: str, fallback: str = DEFAULT_SUBFAMILY) -> str:
    """Build the file name suffix, leaving out every axis at its normal value"""
    suffix = (
        ("" if width == WIDTH_NORMAL else width)
        + ("" if weight == WEIGHT_NORMAL else weight)
        + ("" if slope == SLOPE_NORMAL else slope)
    )
    return suffix or fallback


def make_file_name(prefix: str, suffix: str) -> str:
    return f"{prefix}-{suffix}"


def legacy_width_grade(grade: float) -> int:
    """Unit width of a legacy width grade (5 is the normal width, 500 units)"""
    return round(500 * math.pow(math.sqrt(576 / 500), grade - 5))


@dataclass
class ValidationResult:
    """Outcome of validating one numeric configuration value"""
    key: str
    value: Any
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class NumberValidator:
    """Range check with an optional fixup applied before checking"""
    check: Callable[[float], bool]
    fixup: Optional[Callable[[Any], Any]] = None


class WidthGradeCache:
    """Remembers legacy width grade conversions so each one is reported once"""

    def __init__(self):
        self._memory: Dict[Any, int] = {}

    def __contains__(self, grade) -> bool:
        return grade in self._memory

    def __len__(self) -> int:
        return len(self._memory)

    def fix(self, value: Any) -> Any:
        if not _is_number(value) or not (3 <= value <= 9):
            return value
        if value in self._memory:
            return self._memory[value]
        corrected = legacy_width_grade(value)
        FontPlanLogger.warning(
            f"The build plan is using legacy width grade {value}. "
            f"Converting to unit width {corrected}."
        )
        self._memory[value] = corrected
        return corrected


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_number(key: str, value: Any, validator: NumberValidator) -> ValidationResult:
    """Apply the validator's fixup and range check without raising"""
    if validator.fixup is not None:
        value = validator.fixup(value)
    if not _is_number(value) or not math.isfinite(value) or not validator.check(value):
        return ValidationResult(key, value, f"{key} = {value} is not a valid number.")
    return ValidationResult(key, value)


SHAPE_WEIGHT = NumberValidator(check=lambda x: 100 <= x <= 900)
CSS_WEIGHT = NumberValidator(check=lambda x: 0 < x < 1000)
MENU_WEIGHT = CSS_WEIGHT
MENU_WIDTH = NumberValidator(check=lambda x: 1 <= x <= 9 and x % 1 == 0)


def _require_table(name: str, raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ConfigError(f"Axis table '{name}' must be a table, got {type(raw).__name__}.")
    return raw


def parse_weights(raw: Any) -> WeightTable:
    table = {}
    for name, entry in _require_table("weights", raw).items():
        entry = _require_table(f"weights.{name}", entry)
        table[name] = WeightEntry(name, entry.get("shape"), entry.get("css"), entry.get("menu"))
    return table


def parse_widths(raw: Any) -> WidthTable:
    table = {}
    for name, entry in _require_table("widths", raw).items():
        entry = _require_table(f"widths.{name}", entry)
        table[name] = WidthEntry(name, entry.get("shape"), entry.get("css"), entry.get("menu"))
    return table


def parse_slopes(raw: Any) -> SlopeTable:
    table = {}
    for name, value in _require_table("slopes", raw).items():
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"Slope '{name}' must map to a style string, got {value!r}.")
        table[name] = SlopeEntry(name, value)
    return table


class AxisResolver:
    """Builds suffix mappings from axis tables.

    One resolver is created per build run; it owns the width grade cache and
    memoizes mappings by the identity of the tables it was given.
    """

    def __init__(self, width_cache: Optional[WidthGradeCache] = None):
        self.width_cache = width_cache if width_cache is not None else WidthGradeCache()
        self.shape_width = NumberValidator(
            check=lambda x: 433 <= x <= 665, fixup=self.width_cache.fix
        )
        self._memo: List[Tuple[WeightTable, SlopeTable, WidthTable, Dict]] = []

    def _number(self, key: str, value: Any, validator: NumberValidator) -> Any:
        result = validate_number(key, value, validator)
        if not result.ok:
            raise ConfigError(result.error)
        return result.value

    @staticmethod
    def check_recommended_weight(name: str, value: Any, label: str) -> bool:
        """Warn when a well-known weight name carries an unusual value"""
        recommended = RECOMMENDED_WEIGHTS.get(name)
        if recommended is not None and recommended != value:
            FontPlanLogger.warning(
                f"{label} weight settings of {name} ( = {value}) doesn't match "
                f"the recommended value ( = {recommended})."
            )
            return False
        return True

    def suffix_mapping(
        self, weights: WeightTable, slopes: SlopeTable, widths: WidthTable
    ) -> Dict[str, SuffixMappingEntry]:
        """Resolve every weight x slope x width combination.

        Args:
            weights: Weight table
            slopes: Slope table
            widths: Width table

        Returns:
            Ordered mapping suffix -> SuffixMappingEntry (weights outer,
            slopes middle, widths inner)

        Raises:
            ConfigError: If any numeric value fails validation
        """
        for w, s, wd, cached in self._memo:
            if w is weights and s is slopes and wd is widths:
                return dict(cached)

        mapping: Dict[str, SuffixMappingEntry] = {}
        for weight in weights.values():
            self.check_recommended_weight(weight.name, weight.menu, "Menu")
            self.check_recommended_weight(weight.name, weight.css, "CSS")
            for slope in slopes.values():
                for width in widths.values():
                    suffix = make_suffix(weight.name, width.name, slope.name)
                    mapping[suffix] = self.mapping_entry(weight, slope, width)

        self._memo.append((weights, slopes, widths, mapping))
        return dict(mapping)

    def mapping_entry(
        self, weight: WeightEntry, slope: SlopeEntry, width: WidthEntry
    ) -> SuffixMappingEntry:
        return SuffixMappingEntry(
            weight=weight.name,
            shape_weight=self._number(f"Shape weight of {weight.name}", weight.shape, SHAPE_WEIGHT),
            css_weight=self._number(f"CSS weight of {weight.name}", weight.css, CSS_WEIGHT),
            menu_weight=self._number(f"Menu weight of {weight.name}", weight.menu, MENU_WEIGHT),
            width=width.name,
            shape_width=self._number(f"Shape width of {width.name}", width.shape, self.shape_width),
            css_stretch=width.css or width.name,
            menu_width=int(self._number(f"Menu width of {width.name}", width.menu, MENU_WIDTH)),
            slope=slope.name,
            css_style=slope.value or slope.name,
            menu_slope=slope.value or slope.name,
        )
