"""
Build recipes

Registers every rule of the font build on an explicit BuildGraph: metadata
nodes derived from the configuration, per-font file nodes, group tasks, TTC
collections, archives and release manifests.

Output layout:

    .build/ttf/<group>/<font>.ttf                       optimized TTF
    dist/<group>/{ttf,ttf-unhinted,woff2}/<font>.*      distributed fonts
    dist/<group>/<group>.css                            web font stylesheet
    .build/glyf-ttc/<collection>/<name>.ttc             intermediate containers
    .build/ttc-collect/<collection>/ttc/<name>.ttc      top-level containers
    dist/.super-ttc/<collection>.ttc                    whole collection
    release-archives/*.zip                              archives
"""

import asyncio
import json
import shutil
from pathlib import Path
from typing import List, Optional

from ..config import BuildEnvironment, RawConfig, load_config
from ..core.axes import AxisResolver
from ..core.collect import CollectionPlanner, release_packages, snapshot_config
from ..core.metadata import MetadataResolver, missing_plan_hint
from ..core.models import AxisSet, CollectionPlan, ExpandedPlans, FontMetadata
from ..core.plans import PlanExpander, export_plans
from ..errors import ConfigError
from ..graph import BuildGraph, Target
from ..utils.logging import FontPlanLogger
from .tools import bundle_ttc, compress_webfont
from .webfont import WEBFONT_FORMATS, make_webfont_css


class BuildRecipes:
    """All rules of one build invocation.

    A new instance (and with it a new AxisResolver) is created for every
    invocation, so warnings and caches never leak between runs.
    """

    def __init__(self, env: BuildEnvironment, graph: Optional[BuildGraph] = None):
        self.env = env
        self.graph = graph or BuildGraph(env.journal_path, jobs=env.jobs)
        self.resolver = AxisResolver()
        self._register_metadata()
        self._register_fonts()
        self._register_collections()
        self._register_archives()
        self._register_release()

    # ------------------------------------------------------------------
    # paths

    def build_path(self, *parts: str) -> Path:
        return self.env.path(self.env.build_dir, *parts)

    def dist_path(self, *parts: str) -> Path:
        return self.env.path(self.env.dist_dir, *parts)

    def archive_path(self, *parts: str) -> Path:
        return self.env.path(self.env.archive_dir, *parts)

    # ------------------------------------------------------------------
    # oracles and metadata

    def _register_metadata(self):
        g = self.graph
        env = self.env

        async def version(t: Target) -> str:
            await t.need(g.source_file(str(env.path(env.version_file))))
            return env.path(env.version_file).read_text(encoding="utf-8").strip()

        async def has_ttx(t: Target) -> bool:
            return shutil.which(env.ttx) is not None

        async def files_under(t: Target, pattern: str) -> List[str]:
            return sorted(str(p) for p in env.root.glob(pattern) if p.is_file())

        async def raw_plans(t: Target) -> RawConfig:
            await t.need(
                g.source_file(str(env.path(env.config_file))),
                g.optional_source_file(str(env.path(env.private_config_file))),
            )
            return load_config(env)

        async def parameters(t: Target) -> List[str]:
            [rp] = await t.need(self.raw_plans)
            patterns = rp.build_options.get("trackedSources") or ["params/*.toml"]
            lists = await t.need([self.files_under(p) for p in patterns])
            files = [f for listed in lists for f in listed]
            await t.need([g.source_file(f) for f in files])
            return files

        async def optimize_with_ttx(t: Target) -> bool:
            available, rp = await t.need(self.has_ttx, self.raw_plans)
            return available and bool(rp.build_options.get("optimizeWithTtx"))

        async def optimize_with_filter(t: Target) -> Optional[str]:
            [rp] = await t.need(self.raw_plans)
            return rp.build_options.get("optimizeWithFilter") or None

        async def generator(t: Target) -> List[str]:
            [rp] = await t.need(self.raw_plans)
            return list(rp.build_options.get("generator") or env.generator)

        async def default_axes(t: Target) -> AxisSet:
            [rp] = await t.need(self.raw_plans)
            return rp.default_axes()

        async def build_plans(t: Target) -> ExpandedPlans:
            rp, axes = await t.need(self.raw_plans, self.default_axes)
            return PlanExpander(self.resolver).expand(rp.build_plans, axes)

        async def build_plan_of(t: Target, gid: str):
            rp, expanded = await t.need(self.raw_plans, self.build_plans)
            plan = expanded.plan_of(gid)
            if plan is None:
                raise ConfigError(f"Build plan for '{gid}' not found." + missing_plan_hint(rp.has_private))
            return plan

        async def group_fonts_of(t: Target, gid: str) -> List[str]:
            await t.need(self.build_plan_of(gid))
            [expanded] = await t.need(self.build_plans)
            return expanded.fonts_of(gid)

        async def font_info_of(t: Target, file_name: str) -> FontMetadata:
            rp, expanded, ver = await t.need(self.raw_plans, self.build_plans, self.version)
            return MetadataResolver(expanded, self.resolver, ver, rp.has_private).resolve(file_name)

        async def standard_suffixes(t: Target):
            [axes] = await t.need(self.default_axes)
            return self.resolver.suffix_mapping(axes.weights, axes.slopes, axes.widths)

        async def collect_plans(t: Target) -> CollectionPlan:
            rp, expanded, suffixes = await t.need(
                self.raw_plans, self.build_plans, self.standard_suffixes
            )
            planner = CollectionPlanner(expanded, rp.has_private)
            return planner.plan(rp.collect_plans, suffixes, rp.collect_settings())

        async def exported_plans(t: Target):
            [rp] = await t.need(self.raw_plans)
            return export_plans(rp.collect_plans)

        self.version = g.oracle("oracle:version", version)
        self.has_ttx = g.oracle("oracle:has-ttx", has_ttx)
        self.files_under = g.oracle("oracle:files-under", files_under)
        self.raw_plans = g.computed("metadata:raw-plans", raw_plans)
        self.parameters = g.computed("meta:parameters", parameters)
        self.optimize_with_ttx = g.computed("metadata:optimize-with-ttx", optimize_with_ttx)
        self.optimize_with_filter = g.computed("metadata:optimize-with-filter", optimize_with_filter)
        self.generator = g.computed("metadata:generator", generator)
        self.default_axes = g.computed("metadata:default-axes", default_axes)
        self.build_plans = g.computed("metadata:build-plans", build_plans)
        self.build_plan_of = g.computed("metadata:build-plan-of", build_plan_of)
        self.group_fonts_of = g.computed("metadata:group-fonts-of", group_fonts_of)
        self.font_info_of = g.computed("metadata:font-info-of", font_info_of)
        self.standard_suffixes = g.computed("metadata:standard-suffixes", standard_suffixes)
        self.collect_plans = g.computed("metadata:collect-plans", collect_plans)
        self.export_plans = g.computed("metadata:export-plans", exported_plans)

    # ------------------------------------------------------------------
    # per-font files and group tasks

    def _register_fonts(self):
        g = self.graph
        env = self.env

        async def raw_ttf(t: Target, out: Path, gr: str, fn: str):
            fi, command = await t.need(self.font_info_of(fn), self.generator)
            await t.need(self.parameters)
            metadata_path = out.parent / f"{fn}.json"
            metadata_path.write_text(json.dumps(fi.to_dict(), indent=2), encoding="utf-8")
            await t.run(
                command,
                "--output", out,
                "--charmap", out.parent / f"{fn}.charmap",
                "--metadata", metadata_path,
                cwd=env.root,
            )

        async def ttf(t: Target, out: Path, gr: str, fn: str):
            use_filter, use_ttx = await t.need(self.optimize_with_filter, self.optimize_with_ttx)
            await t.need(self.font_info_of(fn), self.version, self.parameters, self.generator)
            [raw] = await t.order(self.raw_ttf(gr, fn))
            if use_filter:
                await t.run(use_filter.split(), raw, out)
                await t.actions.rm(raw)
            elif use_ttx:
                ttx_path = out.parent / f"{out.stem}.temp.ttx"
                await t.run(env.ttx, "-q", "-o", ttx_path, raw)
                await t.actions.rm(raw)
                await t.run(env.ttx, "-q", "-o", out, ttx_path)
                await t.actions.rm(ttx_path)
            else:
                await t.actions.mv(raw, out)

        async def dist_unhinted_ttf(t: Target, out: Path, gr: str, fn: str):
            [src] = await t.need(self.ttf(gr, fn))
            await t.actions.cp(src, out)

        async def dist_hinted_ttf(t: Target, out: Path, gr: str, fn: str):
            [fi] = await t.need(self.font_info_of(fn))
            [src] = await t.need(self.ttf(gr, fn))
            await t.run(env.hinter, fi.hint_params, src, out)

        async def dist_woff2(t: Target, out: Path, gr: str, fn: str):
            [src] = await t.need(self.dist_hinted_ttf(gr, fn))
            await asyncio.to_thread(compress_webfont, src, out, "woff2")

        async def webfont_css(t: Target, out: Path, gid: str):
            # does not depend on the font files themselves
            plan, fonts = await t.need(self.build_plan_of(gid), self.group_fonts_of(gid))
            infos = await t.need([self.font_info_of(fn) for fn in fonts])
            out.write_text(make_webfont_css(plan.family, infos, WEBFONT_FORMATS), encoding="utf-8")

        def group_task(rule_of):
            async def recipe(t: Target, gid: str):
                [fonts] = await t.need(self.group_fonts_of(gid))
                await t.need([rule_of(gid, fn) for fn in fonts])
            return recipe

        async def group_fonts(t: Target, gid: str):
            await t.need(self.group_ttfs(gid), self.group_unhinted_ttfs(gid), self.group_woff2s(gid))

        async def group_contents(t: Target, gid: str) -> str:
            await t.need(self.group_fonts(gid), self.webfont_css(gid))
            return gid

        self.raw_ttf = g.file(
            "raw-ttf", lambda gr, fn: self.build_path("ttf", gr, f"{fn}.raw.ttf"), raw_ttf
        )
        self.ttf = g.file("build-ttf", lambda gr, fn: self.build_path("ttf", gr, f"{fn}.ttf"), ttf)
        self.dist_unhinted_ttf = g.file(
            "dist-ttf-unhinted",
            lambda gr, fn: self.dist_path(gr, "ttf-unhinted", f"{fn}.ttf"),
            dist_unhinted_ttf,
        )
        self.dist_hinted_ttf = g.file(
            "dist-ttf", lambda gr, fn: self.dist_path(gr, "ttf", f"{fn}.ttf"), dist_hinted_ttf
        )
        self.dist_woff2 = g.file(
            "dist-woff2", lambda gr, fn: self.dist_path(gr, "woff2", f"{fn}.woff2"), dist_woff2
        )
        self.webfont_css = g.file("webfont-css", lambda gid: self.dist_path(gid, f"{gid}.css"), webfont_css)
        self.group_ttfs = g.task("ttf", group_task(self.dist_hinted_ttf))
        self.group_unhinted_ttfs = g.task("ttf-unhinted", group_task(self.dist_unhinted_ttf))
        self.group_woff2s = g.task("woff2", group_task(self.dist_woff2))
        self.group_fonts = g.task("fonts", group_fonts)
        self.group_contents = g.task("contents", group_contents)

    # ------------------------------------------------------------------
    # TTC collections

    def _register_collections(self):
        g = self.graph
        env = self.env

        def composition(table: dict, name: str, what: str) -> list:
            if name not in table:
                raise ConfigError(f"No {what} named '{name}' in the collection plans.")
            return table[name]

        async def glyf_ttc(t: Target, out: Path, gr: str, f: str):
            [cp] = await t.need(self.collect_plans)
            parts = composition(cp.glyf_ttc_composition, f, "intermediate container")
            inputs = await t.need([self.ttf(part.group, part.file) for part in parts])
            unhinted = out.parent / f"{out.stem}.unhinted.ttc"
            await asyncio.to_thread(bundle_ttc, inputs, unhinted)
            await t.run(env.hinter, unhinted, out)
            await t.actions.rm(unhinted)

        async def export_ttc(t: Target, out: Path, gr: str, f: str):
            [cp] = await t.need(self.collect_plans)
            parts = composition(cp.ttc_composition, f, "container")
            inputs = await t.need([self.glyf_ttc(gr, pt) for pt in parts])
            await asyncio.to_thread(bundle_ttc, inputs, out)

        async def super_ttc(t: Target, out: Path, gr: str):
            [cp] = await t.need(self.collect_plans)
            parts = composition(cp.ttc_contents, gr, "collection")
            inputs = await t.need([self.export_ttc(gr, pt) for pt in parts])
            await asyncio.to_thread(bundle_ttc, inputs, out)

        async def specific_super_ttc(t: Target, gr: str):
            await t.need(self.super_ttc(gr))

        self.glyf_ttc = g.file(
            "glyf-ttc", lambda gr, f: self.build_path("glyf-ttc", gr, f"{f}.ttc"), glyf_ttc
        )
        self.export_ttc = g.file(
            "export-ttc",
            lambda gr, f: self.build_path("ttc-collect", gr, "ttc", f"{f}.ttc"),
            export_ttc,
        )
        self.super_ttc = g.file(
            "export-super-ttc", lambda gr: self.dist_path(".super-ttc", f"{gr}.ttc"), super_ttc
        )
        self.specific_super_ttc = g.task("super-ttc", specific_super_ttc)

    # ------------------------------------------------------------------
    # archives

    async def _archive(self, t: Target, out: Path, directory: Path, *files: str):
        await t.actions.rm(out)
        await t.run(self.env.archiver, out.resolve(), *(files or ("./",)), cwd=directory)

    def _register_archives(self):
        g = self.graph

        async def collection_archive_file(t: Target, out: Path, gr: str, version: str):
            [cp] = await t.need(self.collect_plans)
            sources = cp.group_decomposition.get(gr)
            if sources is None:
                raise ConfigError(f"Collection '{gr}' not found.")
            await t.need([self.group_contents(s) for s in sources])
            await t.need([self.export_ttc(gr, pt) for pt in cp.ttc_contents[gr]])
            await t.actions.rm(out)
            for source in sources:
                await t.run(self.env.archiver, out.resolve(), "./", cwd=self.dist_path(source))
            await t.run(self.env.archiver, out.resolve(), "./", cwd=self.build_path("ttc-collect", gr))

        async def ttc_only_archive_file(t: Target, out: Path, gr: str, version: str):
            [cp] = await t.need(self.collect_plans)
            parts = cp.ttc_contents.get(gr)
            if parts is None:
                raise ConfigError(f"Collection '{gr}' not found.")
            await t.need([self.export_ttc(gr, pt) for pt in parts])
            await self._archive(t, out, self.build_path("ttc-collect", gr, "ttc"))

        def group_archive_file(subdir: Optional[str], *files: str):
            async def recipe(t: Target, out: Path, gid: str, version: str):
                [exported] = await t.need(self.export_plans)
                if gid not in exported:
                    raise ConfigError(f"Build plan '{gid}' is not part of any collection.")
                [group] = await t.need(self.group_contents(exported[gid]))
                directory = self.dist_path(group, subdir) if subdir else self.dist_path(group)
                await self._archive(t, out, directory, *files)
            return recipe

        async def collection_archive(t: Target, cid: str):
            [version] = await t.need(self.version)
            await t.need(self.collection_archive_file(cid, version))

        async def ttc_only_collection_archive(t: Target, cid: str):
            [version] = await t.need(self.version)
            await t.need(self.ttc_only_archive_file(cid, version))

        async def group_archive(t: Target, gid: str):
            [version] = await t.need(self.version)
            await t.need(
                self.group_ttf_archive_file(gid, version),
                self.group_unhinted_archive_file(gid, version),
                self.group_web_archive_file(gid, version),
            )

        async def all_ttf(t: Target):
            [exported] = await t.need(self.export_plans)
            await t.need([self.group_archive(gid) for gid in exported])

        async def all_pkg(t: Target):
            [cp] = await t.need(self.collect_plans)
            await t.need([self.collection_archive(cid) for cid in cp.group_decomposition])

        async def all_ttc(t: Target):
            [cp] = await t.need(self.collect_plans)
            await t.need([self.ttc_only_collection_archive(cid) for cid in cp.group_decomposition])

        self.collection_archive_file = g.file(
            "collection-archive-file",
            lambda gr, version: self.archive_path(f"pkg-{gr}-{version}.zip"),
            collection_archive_file,
        )
        self.ttc_only_archive_file = g.file(
            "ttc-only-collection-archive-file",
            lambda gr, version: self.archive_path(f"ttc-{gr}-{version}.zip"),
            ttc_only_archive_file,
        )
        self.group_ttf_archive_file = g.file(
            "group-ttf-archive-file",
            lambda gid, version: self.archive_path(f"ttf-{gid}-{version}.zip"),
            group_archive_file("ttf", "*.ttf"),
        )
        self.group_unhinted_archive_file = g.file(
            "group-ttf-unhinted-archive-file",
            lambda gid, version: self.archive_path(f"ttf-unhinted-{gid}-{version}.zip"),
            group_archive_file("ttf-unhinted", "*.ttf"),
        )
        self.group_web_archive_file = g.file(
            "group-web-archive-file",
            lambda gid, version: self.archive_path(f"webfont-{gid}-{version}.zip"),
            group_archive_file(None, "*.css", "ttf", "woff2"),
        )
        self.collection_archive = g.task("collection-archive", collection_archive)
        self.ttc_only_collection_archive = g.task(
            "ttc-only-collection-archive", ttc_only_collection_archive
        )
        self.group_archive = g.task("archive", group_archive)
        self.all_ttf_archives = g.task("all:ttf", all_ttf)
        self.all_collection_archives = g.task("all:pkg", all_pkg)
        self.all_ttc_archives = g.task("all:ttc", all_ttc)

    # ------------------------------------------------------------------
    # release manifests

    def _register_release(self):
        g = self.graph

        async def release_packages_file(t: Target, out: Path):
            cp, expanded = await t.need(self.collect_plans, self.build_plans)
            groups = release_packages(cp, expanded)
            out.write_text(json.dumps(groups, indent=2), encoding="utf-8")

        async def snapshot_tasks_file(t: Target, out: Path):
            [expanded] = await t.need(self.build_plans)
            out.write_text(json.dumps(snapshot_config(expanded), indent=2), encoding="utf-8")

        async def release(t: Target):
            await t.need(self.all_ttf_archives, self.all_ttc_archives)
            await t.need(self.release_packages_file, self.snapshot_tasks_file)

        self.release_packages_file = g.file(
            "release-packages", lambda: self.build_path("release-packages.json"), release_packages_file
        )
        self.snapshot_tasks_file = g.file(
            "snapshot-tasks",
            lambda: self.build_path("snapshot", "packaging-tasks.json"),
            snapshot_tasks_file,
        )
        self.release = g.phony("release", release)

    # ------------------------------------------------------------------

    def clean(self) -> None:
        """Remove every generated directory and the journal"""
        for directory in (self.env.build_dir, self.env.dist_dir, self.env.archive_dir):
            path = self.env.path(directory)
            if path.exists():
                shutil.rmtree(path)
                FontPlanLogger.info(f"Removed {path}")
        self.graph.delete_journal()
