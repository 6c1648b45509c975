"""Tests for configuration loading"""

import json

import pytest
import yaml

from fontplan.config import BuildEnvironment, ConfigLoader, load_config
from fontplan.errors import ConfigError

PRIVATE_TOML = """
[buildPlans.mono]
family = "Mono"
spacing = "fixed"

[buildPlans.sans]
family = "Private Sans"

[buildOptions]
optimizeWithTtx = true

[weights.thin]
shape = 100
menu = 100
css = 100
"""


class TestConfigLoader:
    def test_load_base(self, project):
        config = ConfigLoader(project / "build-plans.toml").load()
        assert list(config.build_plans) == ["sans", "slab"]
        assert config.build_options == {"optimizeWithTtx": False}
        assert list(config.weights) == ["regular", "bold"]
        assert config.collect_plans == {"pkg": {"from": ["sans", "slab"]}}
        assert config.has_private is False

    def test_missing_private_file_is_not_an_error(self, project):
        config = ConfigLoader(project / "build-plans.toml", project / "private-build-plans.toml").load()
        assert config.has_private is False

    def test_private_overlay(self, project):
        (project / "private-build-plans.toml").write_text(PRIVATE_TOML, encoding="utf-8")
        config = ConfigLoader(project / "build-plans.toml", project / "private-build-plans.toml").load()
        assert config.has_private is True
        assert list(config.build_plans) == ["sans", "slab", "mono"]
        assert config.build_plans["sans"] == {"family": "Private Sans"}
        assert config.build_options["optimizeWithTtx"] is True

    def test_private_file_only_overlays_plans_and_options(self, project):
        (project / "private-build-plans.toml").write_text(PRIVATE_TOML, encoding="utf-8")
        config = ConfigLoader(project / "build-plans.toml", project / "private-build-plans.toml").load()
        assert "thin" not in config.weights

    def test_private_plans_must_be_a_table(self, project):
        private = project / "private-build-plans.toml"
        private.write_text('buildPlans = "mono"\n', encoding="utf-8")
        with pytest.raises(ConfigError, match="'buildPlans' in configuration file") as exc_info:
            ConfigLoader(project / "build-plans.toml", private).load()
        assert exc_info.value.path == str(private)

    def test_base_options_must_be_a_table(self, tmp_path):
        path = tmp_path / "build-plans.toml"
        path.write_text("buildOptions = [1, 2]\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="'buildOptions' in configuration file"):
            ConfigLoader(path).load()

    def test_syntax_error(self, tmp_path):
        path = tmp_path / "build-plans.toml"
        path.write_text("[buildPlans.sans\nfamily = ", encoding="utf-8")
        with pytest.raises(ConfigError, match="Failed to parse configuration file") as exc_info:
            ConfigLoader(path).load()
        assert exc_info.value.path == str(path)

    def test_missing_base_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read configuration file"):
            ConfigLoader(tmp_path / "build-plans.toml").load()

    def test_yaml(self, tmp_path):
        path = tmp_path / "build-plans.yaml"
        path.write_text(yaml.safe_dump({"buildPlans": {"sans": {"family": "Sans"}}}), encoding="utf-8")
        assert ConfigLoader(path).load().build_plans == {"sans": {"family": "Sans"}}

    def test_json(self, tmp_path):
        path = tmp_path / "build-plans.json"
        path.write_text(json.dumps({"buildPlans": {"sans": {"family": "Sans"}}}), encoding="utf-8")
        assert ConfigLoader(path).load().build_plans == {"sans": {"family": "Sans"}}

    def test_non_table_content(self, tmp_path):
        path = tmp_path / "build-plans.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a table"):
            ConfigLoader(path).load()


class TestRawConfig:
    def test_default_axes(self, project):
        axes = ConfigLoader(project / "build-plans.toml").load().default_axes()
        assert axes.weights["bold"].shape == 700
        assert axes.slopes["italic"].value == "italic"
        assert axes.widths["extended"].css == "expanded"

    def test_collect_settings(self, project):
        settings = ConfigLoader(project / "build-plans.toml").load().collect_settings()
        assert settings.distinguish_weights is True
        assert settings.distinguish_slope is True
        assert settings.distinguish_widths is False


class TestBuildEnvironment:
    def test_paths(self, project):
        env = BuildEnvironment(root=project)
        assert env.journal_path == project / ".build" / ".fontplan-journal.json"
        assert env.path("dist", "sans") == project / "dist" / "sans"

    def test_load_config(self, project):
        assert "sans" in load_config(BuildEnvironment(root=project)).build_plans
