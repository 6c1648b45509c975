"""Tests for the build graph and journal"""

import asyncio
import json
import sys
from collections import Counter

import pytest

from fontplan.errors import BuildFailure, ConfigError, CycleError, ExternalToolFailure, FontPlanError
from fontplan.graph import BuildGraph, Journal
from fontplan.graph.actions import flatten_args
from fontplan.graph.journal import file_signature, fingerprint


@pytest.fixture
def calls():
    return Counter()


@pytest.fixture
def journal_path(tmp_path):
    return tmp_path / ".build" / "journal.json"


class TestNodeRef:
    def test_key_without_args(self):
        graph = BuildGraph()
        rule = graph.task("release-packages", None)
        assert rule().key == "release-packages"

    def test_key_with_args(self):
        graph = BuildGraph()
        rule = graph.task("contents", None)
        assert rule("sans", 1).key == 'contents::["sans", 1]'

    def test_equal_refs_share_key(self):
        graph = BuildGraph()
        rule = graph.task("contents", None)
        assert rule("sans") == rule("sans")

    def test_duplicate_rule_name(self):
        graph = BuildGraph()
        graph.task("contents", None)
        with pytest.raises(ValueError):
            graph.phony("contents", None)

    def test_resolve(self):
        graph = BuildGraph()
        contents = graph.task("contents", None)
        release = graph.phony("release", None)
        assert graph.resolve("contents::sans") == contents("sans")
        assert graph.resolve("release") == release()

    def test_resolve_unknown(self):
        with pytest.raises(ConfigError, match="Unknown target 'nope'"):
            BuildGraph().resolve("nope::sans")


class TestEvaluation:
    def test_single_flight(self, calls):
        graph = BuildGraph()

        async def leaf(target):
            calls["leaf"] += 1
            await asyncio.sleep(0.01)
            return 42

        leaf_rule = graph.computed("leaf", leaf)

        async def middle(target, n):
            (value,) = await target.need(leaf_rule)
            return value + n

        middle_rule = graph.computed("middle", middle)

        async def top(target):
            return await target.need(middle_rule(1), middle_rule(2), leaf_rule)

        top_rule = graph.phony("top", top)
        assert graph.run(top_rule) == [[43, 44, 42]]
        assert calls["leaf"] == 1

    def test_need_flattens_lists(self):
        graph = BuildGraph()

        async def echo(target, value):
            return value

        echo_rule = graph.computed("echo", echo)

        async def top(target):
            return await target.need([echo_rule("a"), [echo_rule("b")]], echo_rule("c"))

        assert graph.run(graph.phony("top", top)) == [["a", "b", "c"]]

    def test_failure_lets_siblings_finish(self, calls):
        graph = BuildGraph()

        async def broken(target):
            raise ExternalToolFailure(["ttfautohint"], 1, "bad font")

        async def slow(target):
            await asyncio.sleep(0.05)
            calls["slow"] += 1
            return "done"

        broken_rule = graph.task("broken", broken)
        slow_rule = graph.task("slow", slow)

        async def top(target):
            await target.need(broken_rule, slow_rule)
            calls["top"] += 1

        top_rule = graph.phony("top", top)
        with pytest.raises(BuildFailure) as exc_info:
            graph.run(top_rule)

        assert calls["slow"] == 1
        assert calls["top"] == 0
        assert isinstance(exc_info.value.failures["top"], ExternalToolFailure)

    def test_failure_is_scoped_to_dependers(self):
        graph = BuildGraph()

        async def broken(target):
            raise ExternalToolFailure(["7z"], 2)

        async def fine(target):
            return "ok"

        with pytest.raises(BuildFailure) as exc_info:
            graph.run(graph.task("broken", broken), graph.task("fine", fine))
        assert list(exc_info.value.failures) == ["broken"]

    def test_config_error_aborts_run(self, calls):
        graph = BuildGraph()

        async def bad_config(target):
            raise ConfigError("Build plan for 'mono' not found.")

        async def later(target):
            calls["later"] += 1

        bad_rule = graph.computed("bad", bad_config)
        later_rule = graph.task("later", later)

        async def top(target):
            try:
                await target.need(bad_rule)
            finally:
                await target.need(later_rule)

        with pytest.raises(ConfigError, match="mono"):
            graph.run(graph.phony("top", top))
        assert calls["later"] == 0

    def test_cycle(self):
        graph = BuildGraph()
        rules = {}

        async def ping(target):
            await target.need(rules["pong"])

        async def pong(target):
            await target.need(rules["ping"])

        rules["ping"] = graph.task("ping", ping)
        rules["pong"] = graph.task("pong", pong)

        with pytest.raises(BuildFailure) as exc_info:
            graph.run(rules["ping"])
        error = exc_info.value.failures["ping"]
        assert isinstance(error, CycleError)
        assert error.chain == ["ping", "pong", "ping"]

    def test_cycle_between_siblings(self):
        graph = BuildGraph()
        rules = {}

        async def left(target):
            await target.need(rules["right"])

        async def right(target):
            await target.need(rules["left"])

        async def top(target):
            await target.need(rules["left"], rules["right"])

        rules["left"] = graph.task("left", left)
        rules["right"] = graph.task("right", right)
        top_rule = graph.phony("top", top)

        async def run_with_timeout():
            return await asyncio.wait_for(graph.run_async(top_rule), timeout=10)

        with pytest.raises(BuildFailure) as exc_info:
            asyncio.run(run_with_timeout())
        error = exc_info.value.failures["top"]
        assert isinstance(error, CycleError)
        assert error.chain[0] == error.chain[-1]
        assert set(error.chain) == {"left", "right"}

    def test_file_rule_must_produce_output(self, tmp_path):
        graph = BuildGraph()

        async def forgetful(target, path, name):
            pass

        rule = graph.file("forgetful", lambda name: tmp_path / "out" / f"{name}.txt", forgetful)
        with pytest.raises(BuildFailure) as exc_info:
            graph.run(rule("a"))
        assert isinstance(exc_info.value.failures['forgetful::["a"]'], FontPlanError)
        # parent directory is prepared for the recipe
        assert (tmp_path / "out").is_dir()

    def test_file_rule_value_is_path(self, tmp_path):
        graph = BuildGraph()

        async def write(target, path, name):
            path.write_text(name, encoding="utf-8")

        rule = graph.file("write", lambda name: tmp_path / f"{name}.txt", write)
        assert graph.run(rule("a")) == [tmp_path / "a.txt"]

    def test_missing_source_file(self, tmp_path):
        graph = BuildGraph()

        async def top(target):
            await target.need(graph.source_file(str(tmp_path / "missing.toml")))

        with pytest.raises(BuildFailure):
            graph.run(graph.phony("top", top))

    def test_optional_source_file(self, tmp_path):
        graph = BuildGraph()
        assert graph.run(graph.optional_source_file(str(tmp_path / "missing.toml"))) == [None]


def make_incremental_graph(journal_path, source, output_dir, calls):
    """A task reading a source file and a file rule built from it"""
    graph = BuildGraph(journal_path)

    async def content(target):
        calls["content"] += 1
        await target.need(graph.source_file(str(source)))
        return source.read_text(encoding="utf-8").upper()

    content_rule = graph.task("content", content)

    async def output(target, path, name):
        calls["output"] += 1
        (text,) = await target.need(content_rule)
        path.write_text(f"{name}: {text}", encoding="utf-8")

    output_rule = graph.file("output", lambda name: output_dir / f"{name}.txt", output)
    return graph, content_rule, output_rule


class TestIncremental:
    @pytest.fixture
    def source(self, tmp_path):
        path = tmp_path / "source.txt"
        path.write_text("hello", encoding="utf-8")
        return path

    def test_unchanged_run_is_skipped(self, journal_path, source, tmp_path, calls):
        for _ in range(2):
            graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
            graph.run(output_rule("a"))
        assert calls == Counter(content=1, output=1)
        assert (tmp_path / "out" / "a.txt").read_text(encoding="utf-8") == "a: HELLO"

    def test_task_value_is_restored(self, journal_path, source, tmp_path, calls):
        graph, content_rule, _ = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        assert graph.run(content_rule) == ["HELLO"]
        assert graph.run(content_rule) == ["HELLO"]
        assert calls["content"] == 1

    def test_changed_source_rebuilds(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        source.write_text("changed", encoding="utf-8")
        graph.run(output_rule("a"))
        assert calls == Counter(content=2, output=2)
        assert (tmp_path / "out" / "a.txt").read_text(encoding="utf-8") == "a: CHANGED"

    def test_deleted_output_rebuilds_only_the_file(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        (tmp_path / "out" / "a.txt").unlink()
        graph.run(output_rule("a"))
        assert calls == Counter(content=1, output=2)

    def test_edited_output_rebuilds(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        (tmp_path / "out" / "a.txt").write_text("tampered with", encoding="utf-8")
        graph.run(output_rule("a"))
        assert calls["output"] == 2

    def test_arguments_are_separate_nodes(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        graph.run(output_rule("a"), output_rule("b"))
        assert calls == Counter(content=1, output=2)

    def test_journal_is_written(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        data = json.loads(journal_path.read_text(encoding="utf-8"))
        assert set(data["nodes"]) == {"content", 'output::["a"]'}
        record = data["nodes"]['output::["a"]']
        assert record["deps"][0]["rule"] == "content"
        assert record["volatile"] is False

    def test_deleted_journal_rebuilds(self, journal_path, source, tmp_path, calls):
        graph, _, output_rule = make_incremental_graph(journal_path, source, tmp_path / "out", calls)
        graph.run(output_rule("a"))
        graph.delete_journal()
        assert not journal_path.exists()
        graph.run(output_rule("a"))
        assert calls == Counter(content=2, output=2)

    def test_order_only_dependency_does_not_rebuild(self, journal_path, source, tmp_path, calls):
        graph, content_rule, _ = make_incremental_graph(journal_path, source, tmp_path / "out", calls)

        async def stamp(target, path):
            calls["stamp"] += 1
            await target.order(content_rule)
            path.write_text("stamp", encoding="utf-8")

        stamp_rule = graph.file("stamp", lambda: tmp_path / "stamp.txt", stamp)
        graph.run(stamp_rule, content_rule)
        source.write_text("changed", encoding="utf-8")
        graph.run(stamp_rule, content_rule)
        assert calls["content"] == 2
        assert calls["stamp"] == 1

    def test_volatile_task_always_runs(self, journal_path, calls):
        graph = BuildGraph(journal_path)

        async def version(target):
            calls["version"] += 1
            target.volatile()
            return "1.2.3"

        rule = graph.task("version", version)
        graph.run(rule)
        graph.run(rule)
        assert calls["version"] == 2

    def test_failed_node_record_is_dropped(self, journal_path, tmp_path, calls):
        source = tmp_path / "source.txt"
        source.write_text("ok", encoding="utf-8")
        graph = BuildGraph(journal_path)

        async def check(target):
            await target.need(graph.source_file(str(source)))
            if source.read_text(encoding="utf-8") != "ok":
                raise ExternalToolFailure(["check"], 1)
            return True

        rule = graph.task("check", check)
        graph.run(rule)
        assert graph.journal.get("check") is not None
        source.write_text("broken", encoding="utf-8")
        with pytest.raises(BuildFailure):
            graph.run(rule)
        assert graph.journal.get("check") is None


class TestJournal:
    def test_fingerprint_ignores_key_order(self):
        assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})
        assert fingerprint({"a": 1}) != fingerprint({"a": 2})

    def test_fingerprint_rejects_unknown_types(self):
        with pytest.raises(TypeError):
            fingerprint(object())

    def test_file_signature(self, tmp_path):
        path = tmp_path / "font.ttf"
        assert file_signature(path) is None
        path.write_bytes(b"\x00\x01\x00\x00")
        signature = file_signature(path)
        assert signature["size"] == 4
        assert file_signature(path, signature) == signature

    def test_unreadable_journal_is_ignored(self, journal_path):
        journal_path.parent.mkdir(parents=True)
        journal_path.write_text("{ not json", encoding="utf-8")
        assert Journal(journal_path).load().records == {}

    def test_other_version_is_ignored(self, journal_path):
        journal_path.parent.mkdir(parents=True)
        journal_path.write_text(json.dumps({"version": 0, "nodes": {"a": {}}}), encoding="utf-8")
        assert Journal(journal_path).load().records == {}

    def test_save_and_load(self, journal_path):
        journal = Journal(journal_path)
        journal.put("a", {"signature": "x"})
        journal.save()
        assert Journal(journal_path).load().get("a") == {"signature": "x"}


class TestActions:
    def test_flatten_args(self):
        assert flatten_args(["ttx", ["-o", "out.ttx"], None, 1]) == ["ttx", "-o", "out.ttx", "1"]

    def test_run_collects_output(self):
        graph = BuildGraph()

        async def hello(target):
            return await target.run(sys.executable, "-c", "print('hello')")

        assert graph.run(graph.phony("hello", hello))[0].strip() == "hello"

    def test_non_zero_exit(self):
        graph = BuildGraph()

        async def failing(target):
            await target.run(sys.executable, "-c", "import sys; sys.exit(3)")

        with pytest.raises(BuildFailure) as exc_info:
            graph.run(graph.phony("failing", failing))
        error = exc_info.value.failures["failing"]
        assert isinstance(error, ExternalToolFailure)
        assert error.returncode == 3

    def test_missing_tool(self):
        graph = BuildGraph()

        async def missing(target):
            await target.run("fontplan-no-such-tool")

        with pytest.raises(BuildFailure) as exc_info:
            graph.run(graph.phony("missing", missing))
        assert exc_info.value.failures["missing"].returncode == 127
