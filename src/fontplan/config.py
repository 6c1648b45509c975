"""Configuration loading for fontplan"""

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .core.axes import parse_slopes, parse_weights, parse_widths
from .core.collect import parse_collect_config
from .core.metadata import PRIVATE_BUILD_PLANS
from .core.models import AxisSet, CollectConfig
from .errors import ConfigError
from .utils.logging import FontPlanLogger

BUILD_PLANS = "build-plans.toml"

# Tables of the private file that are merged over the base file
OVERLAY_TABLES = ("buildPlans", "buildOptions")


@dataclass
class RawConfig:
    """Merged base and private configuration"""
    build_plans: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    build_options: Dict[str, Any] = field(default_factory=dict)
    weights: Dict[str, Any] = field(default_factory=dict)
    slopes: Dict[str, Any] = field(default_factory=dict)
    widths: Dict[str, Any] = field(default_factory=dict)
    collect_plans: Dict[str, Any] = field(default_factory=dict)
    collect_config: Dict[str, Any] = field(default_factory=dict)
    has_private: bool = False

    def default_axes(self) -> AxisSet:
        return AxisSet(
            weights=parse_weights(self.weights),
            slopes=parse_slopes(self.slopes),
            widths=parse_widths(self.widths),
        )

    def collect_settings(self) -> CollectConfig:
        return parse_collect_config(self.collect_config)


@dataclass
class BuildEnvironment:
    """Paths and tool settings used by the build recipes"""
    root: Path = field(default_factory=Path.cwd)
    config_file: str = BUILD_PLANS
    private_config_file: str = PRIVATE_BUILD_PLANS
    version_file: str = "VERSION"
    build_dir: str = ".build"
    dist_dir: str = "dist"
    archive_dir: str = "release-archives"
    jobs: Optional[int] = None
    generator: List[str] = field(default_factory=lambda: ["node", "font-src/index.mjs"])
    hinter: List[str] = field(default_factory=lambda: ["ttfautohint"])
    ttx: str = "ttx"
    archiver: List[str] = field(default_factory=lambda: ["7z", "a", "-tzip", "-r", "-mx=9"])

    @property
    def journal_path(self) -> Path:
        return self.root / self.build_dir / ".fontplan-journal.json"

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)


class ConfigLoader:
    """Loads build-plans.toml and merges private-build-plans.toml over it"""

    def __init__(self, base_path: Path, private_path: Optional[Path] = None):
        self.base_path = Path(base_path)
        self.private_path = Path(private_path) if private_path else None

    @staticmethod
    def _load_file(filepath: Path) -> Dict[str, Any]:
        """Load TOML, YAML or JSON based on extension.

        Raises:
            ConfigError: If the file is missing or has a syntax error
        """
        try:
            if filepath.suffix in (".yaml", ".yml"):
                with open(filepath, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            elif filepath.suffix == ".json":
                with open(filepath, encoding="utf-8") as f:
                    data = json.load(f)
            else:
                with open(filepath, "rb") as f:
                    data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file {filepath}: {e}", str(filepath)) from e
        except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(
                f"Failed to parse configuration file {filepath}.\n"
                f"Please validate whether there's syntax error.\n"
                f"{e}",
                str(filepath),
            ) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {filepath} must contain a table.", str(filepath))
        return data

    @staticmethod
    def _table(data: Dict[str, Any], name: str, filepath: Path) -> Dict[str, Any]:
        value = data.get(name) or {}
        if not isinstance(value, dict):
            raise ConfigError(
                f"'{name}' in configuration file {filepath} must be a table.", str(filepath)
            )
        return value

    def load(self) -> RawConfig:
        base = self._load_file(self.base_path)
        tables = {name: dict(self._table(base, name, self.base_path)) for name in OVERLAY_TABLES}

        has_private = bool(self.private_path and self.private_path.exists())
        if has_private:
            private = self._load_file(self.private_path)
            for name in OVERLAY_TABLES:
                tables[name].update(self._table(private, name, self.private_path))
            FontPlanLogger.debug(
                f"Merged {len(private.get('buildPlans') or {})} private build plan(s) "
                f"from {self.private_path}"
            )

        return RawConfig(
            build_plans=tables["buildPlans"],
            build_options=tables["buildOptions"],
            weights=base.get("weights") or {},
            slopes=base.get("slopes") or {},
            widths=base.get("widths") or {},
            collect_plans=base.get("collectPlans") or {},
            collect_config=base.get("collectConfig") or {},
            has_private=has_private,
        )


def load_config(env: BuildEnvironment) -> RawConfig:
    return ConfigLoader(env.path(env.config_file), env.path(env.private_config_file)).load()
