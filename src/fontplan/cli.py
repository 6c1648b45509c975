#!/usr/bin/env python3
"""
fontplan CLI
Command-line interface for building font targets from build-plans.toml
"""

import argparse
import logging
import traceback
from pathlib import Path

from .api import PlanSet
from .build.recipes import BuildRecipes
from .config import BUILD_PLANS, PRIVATE_BUILD_PLANS, BuildEnvironment, ConfigLoader
from .errors import FontPlanError
from .utils.logging import FontPlanLogger


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fontplan",
        description="Incremental font family builder.\n"
        "Targets use the form 'kind::argument', e.g. 'contents::sans', 'super-ttc::sans',\n"
        "or a plain name such as 'all:ttc' or 'release'. Special targets: 'clean', 'plan'.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("targets", nargs="*", default=["release"], help="Targets to build")
    parser.add_argument("--root", default=".", help="Project root (default: current directory)")
    parser.add_argument("--config", default=BUILD_PLANS, help=f"Build plans file (default: {BUILD_PLANS})")
    parser.add_argument(
        "--private-config",
        default=PRIVATE_BUILD_PLANS,
        help=f"Private overlay file (default: {PRIVATE_BUILD_PLANS})",
    )
    parser.add_argument("-j", "--jobs", type=int, default=None, help="Maximum concurrent tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def print_plan(env: BuildEnvironment) -> None:
    config = ConfigLoader(env.path(env.config_file), env.path(env.private_config_file)).load()
    plans = PlanSet(config)
    for prefix, names in plans.targets.items():
        print(f"{prefix} ({plans.expanded.plan_of(prefix).family}): {len(names)} font(s)")
        for name in names:
            print(f"    {name}")
    for collection, containers in plans.collections.ttc_contents.items():
        print(f"{collection}: {', '.join(containers)}")


def main(argv=None):
    """Build the requested targets"""
    args = make_parser().parse_args(argv)

    env = BuildEnvironment(
        root=Path(args.root).resolve(),
        config_file=args.config,
        private_config_file=args.private_config,
        jobs=args.jobs,
    )
    FontPlanLogger.setup_logger(
        str(env.path(env.build_dir)), logging.DEBUG if args.verbose else logging.INFO
    )

    try:
        if args.targets == ["plan"]:
            print_plan(env)
            return 0

        recipes = BuildRecipes(env)
        if "clean" in args.targets:
            FontPlanLogger.cleanup()
            recipes.clean()
            targets = [t for t in args.targets if t != "clean"]
            if not targets:
                return 0
            FontPlanLogger.setup_logger(str(env.path(env.build_dir)))
        else:
            targets = args.targets

        refs = [recipes.graph.resolve(spec) for spec in targets]
        recipes.graph.run(refs)
        FontPlanLogger.success(f"Built {', '.join(targets)}")

    except FontPlanError as e:
        lines = [line for line in str(e).split("\n") if line.strip()]
        FontPlanLogger.error(f"Build failed: {lines[0] if lines else e}")
        for line in lines[1:]:
            FontPlanLogger.error(f"  {line}")
        FontPlanLogger.debug("Full traceback:")
        FontPlanLogger.debug(traceback.format_exc())
        return 1
    finally:
        log_path = FontPlanLogger.get_log_file_path()
        if log_path:
            print(f"\nLog file: {log_path}")
        FontPlanLogger.cleanup()

    return 0


if __name__ == "__main__":
    exit(main())
