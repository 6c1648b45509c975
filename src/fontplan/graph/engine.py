"""
Lazy, memoized build graph

Rules are registered on a BuildGraph. Calling a rule with arguments gives a
NodeRef; recipes receive a Target through which they request other nodes.
Within one run every node is evaluated at most once (single flight); task and
file nodes are additionally recorded in the journal so that a later run can
skip them when nothing they depend on has changed.

Rule types:

- oracle / computed: evaluated every run, never persisted. Their signature is
  a fingerprint of the returned value.
- task: persisted; skipped when up to date. Returns a JSON-compatible value.
- file: persisted; produces exactly one file whose path is a function of the
  arguments. Signature is the content digest of that file.
- phony: always runs, never persisted.
"""

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from ..errors import BuildFailure, ConfigError, CycleError, FontPlanError
from ..utils.logging import FontPlanLogger
from .actions import Actions
from .journal import Journal, file_signature, fingerprint

Recipe = Callable[..., Awaitable[Any]]


class RuleType(Enum):
    ORACLE = "oracle"
    COMPUTED = "computed"
    TASK = "task"
    FILE = "file"
    PHONY = "phony"


PERSISTED = (RuleType.TASK, RuleType.FILE)


class NodeState(Enum):
    UNEVALUATED = "unevaluated"
    EVALUATING = "evaluating"
    SETTLED = "settled"
    FAILED = "failed"


class Rule:
    """A named family of nodes sharing one recipe"""

    def __init__(
        self,
        name: str,
        rule_type: RuleType,
        recipe: Recipe,
        path_of: Optional[Callable[..., Union[str, Path]]] = None,
    ):
        self.name = name
        self.type = rule_type
        self.recipe = recipe
        self.path_of = path_of

    def __call__(self, *args) -> "NodeRef":
        return NodeRef(self, tuple(args))

    def __repr__(self):
        return f"<Rule {self.type.value} {self.name}>"

    @property
    def persisted(self) -> bool:
        return self.type in PERSISTED


@dataclass(frozen=True)
class NodeRef:
    """A rule applied to an argument tuple"""
    rule: Rule
    args: Tuple = ()

    @property
    def key(self) -> str:
        if not self.args:
            return self.rule.name
        return f"{self.rule.name}::{json.dumps(list(self.args), ensure_ascii=False)}"

    def __str__(self):
        return self.key


@dataclass
class Node:
    ref: NodeRef
    state: NodeState = NodeState.UNEVALUATED
    task: Optional[asyncio.Future] = None
    value: Any = None
    signature: Optional[str] = None
    output: Optional[Dict[str, Any]] = None
    rebuilt: bool = False
    volatile: bool = False
    deps: List[Tuple[NodeRef, bool]] = field(default_factory=list)
    error: Optional[BaseException] = None


Requestable = Union[Rule, NodeRef, Iterable]


def _flatten_refs(items: Iterable[Requestable]) -> List[NodeRef]:
    refs = []
    for item in items:
        if isinstance(item, NodeRef):
            refs.append(item)
        elif isinstance(item, Rule):
            refs.append(item())
        elif isinstance(item, (list, tuple)):
            refs.extend(_flatten_refs(item))
        else:
            raise TypeError(f"Cannot request {item!r}")
    return refs


def _jsonable(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


class Target:
    """Handle given to a recipe while its node is evaluating"""

    def __init__(self, session: "BuildSession", node: Node, chain: Tuple[str, ...]):
        self._session = session
        self._node = node
        self._chain = chain

    @property
    def key(self) -> str:
        return self._node.ref.key

    @property
    def actions(self) -> Actions:
        return self._session.actions

    async def need(self, *items: Requestable) -> List[Any]:
        """Evaluate nodes and depend on their values.

        If any of them is rebuilt or changes, this node is rebuilt next time.
        The first failure is raised.
        """
        return await self._request(_flatten_refs(items), strong=True)

    async def order(self, *items: Requestable) -> List[Any]:
        """Evaluate nodes without making this node's freshness depend on them"""
        return await self._request(_flatten_refs(items), strong=False)

    def volatile(self) -> None:
        """Never consider this node up to date in a later run"""
        self._node.volatile = True

    async def run(self, *args, cwd=None) -> str:
        return await self._session.actions.run(*args, cwd=cwd)

    async def _request(self, refs: List[NodeRef], strong: bool) -> List[Any]:
        for ref in refs:
            self._node.deps.append((ref, strong))
        if not refs:
            return []
        return await self._session.wait(self.key, refs, self._chain)


class BuildSession:
    """State of one graph run"""

    def __init__(self, graph: "BuildGraph"):
        self.graph = graph
        self.journal = graph.journal
        self.actions = Actions(graph.jobs)
        self.nodes: Dict[str, Node] = {}
        self.abort_error: Optional[ConfigError] = None
        # node key -> keys of the in-flight nodes it is currently awaiting
        self.waiting_on: Dict[str, Set[str]] = {}

    def request(self, ref: NodeRef, chain: Tuple[str, ...]) -> asyncio.Future:
        key = ref.key
        if key in chain:
            raise CycleError(list(chain) + [key])
        node = self.nodes.get(key)
        if node is None:
            node = self.nodes[key] = Node(ref)
        if node.task is None:
            node.state = NodeState.EVALUATING
            node.task = asyncio.ensure_future(self._evaluate(node, chain + (key,)))
        return node.task

    def _waiting_path(self, start: str, goal: str) -> Optional[List[str]]:
        """Keys from start to goal along waiting edges, or None"""
        stack = [[start]]
        seen = set()
        while stack:
            path = stack.pop()
            key = path[-1]
            if key == goal:
                return path
            if key in seen:
                continue
            seen.add(key)
            for next_key in self.waiting_on.get(key, ()):
                stack.append(path + [next_key])
        return None

    async def wait(self, waiter: str, refs: List[NodeRef], chain: Tuple[str, ...]) -> List[Any]:
        """Request refs on behalf of `waiter` and await their values.

        Raises:
            CycleError: If an in-flight ref is itself (transitively) waiting on `waiter`
        """
        futures = [self.request(ref, chain) for ref in refs]
        edges = self.waiting_on.setdefault(waiter, set())
        added = {ref.key for ref in refs} - edges
        edges.update(added)
        try:
            for ref, future in zip(refs, futures):
                if future.done():
                    continue
                path = self._waiting_path(ref.key, waiter)
                if path is not None:
                    raise CycleError([waiter] + path)
            return list(await asyncio.gather(*futures))
        finally:
            edges.difference_update(added)

    async def _evaluate(self, node: Node, chain: Tuple[str, ...]) -> Any:
        ref = node.ref
        rule = ref.rule
        try:
            if self.abort_error is not None:
                raise self.abort_error

            if rule.persisted:
                record = self.journal.get(ref.key)
                if await self._up_to_date(node, record, chain):
                    node.value = self._restore(node, record)
                    node.signature = record["signature"]
                    node.output = record.get("output")
                    node.state = NodeState.SETTLED
                    return node.value

            target = Target(self, node, chain)
            if rule.type is RuleType.FILE:
                path = Path(rule.path_of(*ref.args))
                path.parent.mkdir(parents=True, exist_ok=True)
                await rule.recipe(target, path, *ref.args)
                node.output = file_signature(path)
                if node.output is None:
                    raise FontPlanError(f"Rule {ref.key} did not produce {path}")
                node.value = path
                node.signature = node.output["sha256"]
            else:
                node.value = await rule.recipe(target, *ref.args)
                node.signature = _signature_of(node.value)

            node.rebuilt = rule.persisted
            node.state = NodeState.SETTLED
            if rule.persisted:
                FontPlanLogger.debug(f"Built {ref.key}")
            return node.value
        except BaseException as e:
            node.state = NodeState.FAILED
            node.error = e
            if isinstance(e, ConfigError) and self.abort_error is None:
                self.abort_error = e
            raise

    def _restore(self, node: Node, record: Dict[str, Any]) -> Any:
        if node.ref.rule.type is RuleType.FILE:
            return Path(node.ref.rule.path_of(*node.ref.args))
        return record.get("value")

    async def _up_to_date(self, node: Node, record: Optional[Dict[str, Any]], chain) -> bool:
        if record is None or record.get("volatile") or not record.get("restorable", True):
            return False

        rule = node.ref.rule
        if rule.type is RuleType.FILE:
            path = Path(rule.path_of(*node.ref.args))
            current = file_signature(path, record.get("output"))
            if current is None or current["sha256"] != record.get("signature"):
                return False

        for dep in record.get("deps", []):
            dep_rule = self.graph.rules.get(dep["rule"])
            if dep_rule is None:
                return False
            dep_ref = dep_rule(*dep["args"])
            try:
                await self.wait(node.ref.key, [dep_ref], chain)
            except Exception:
                # the recipe requests it again and reports the failure
                return False
            dep_node = self.nodes[dep_ref.key]
            if dep_node.rebuilt or dep_node.signature is None or dep_node.signature != dep["signature"]:
                return False

        node.deps = [
            (self.graph.rules[dep["rule"]](*dep["args"]), True) for dep in record.get("deps", [])
        ]
        return True

    def _record(self, node: Node) -> Dict[str, Any]:
        deps = []
        seen = set()
        for ref, strong in node.deps:
            if not strong or ref.key in seen:
                continue
            seen.add(ref.key)
            dep_node = self.nodes.get(ref.key)
            deps.append({
                "rule": ref.rule.name,
                "args": list(ref.args),
                "signature": dep_node.signature if dep_node else None,
            })
        record = {
            "signature": node.signature,
            "volatile": node.volatile,
            "deps": deps,
        }
        if node.ref.rule.type is RuleType.FILE:
            record["output"] = node.output
        else:
            record["restorable"] = _jsonable(node.value)
            record["value"] = node.value if record["restorable"] else None
        return record

    async def drain(self) -> None:
        """Wait for every started node, including orphaned siblings of failures"""
        while True:
            pending = [n.task for n in self.nodes.values() if n.task is not None and not n.task.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def finish(self) -> None:
        for key, node in self.nodes.items():
            if node.task is not None and node.task.done() and not node.task.cancelled():
                # mark exceptions as retrieved; failures are reported by the run
                node.task.exception()
            if not node.ref.rule.persisted:
                continue
            if node.state is NodeState.SETTLED and node.rebuilt:
                self.journal.put(key, self._record(node))
            elif node.state is NodeState.FAILED:
                self.journal.discard(key)
        self.journal.save()


def _signature_of(value: Any) -> Optional[str]:
    try:
        return fingerprint(value)
    except (TypeError, ValueError):
        return None


class BuildGraph:
    """Registry of rules plus the journal shared by successive runs"""

    def __init__(self, journal_path: Optional[Union[str, Path]] = None, jobs: Optional[int] = None):
        self.rules: Dict[str, Rule] = {}
        self.journal = Journal(Path(journal_path) if journal_path else None)
        self.jobs = jobs
        self.source_file = self.oracle("source-file", self._source_file)
        self.optional_source_file = self.oracle("optional-source-file", self._optional_source_file)

    def _register(self, rule: Rule) -> Rule:
        if rule.name in self.rules:
            raise ValueError(f"Rule '{rule.name}' is already defined")
        self.rules[rule.name] = rule
        return rule

    def oracle(self, name: str, recipe: Recipe) -> Rule:
        return self._register(Rule(name, RuleType.ORACLE, recipe))

    def computed(self, name: str, recipe: Recipe) -> Rule:
        return self._register(Rule(name, RuleType.COMPUTED, recipe))

    def task(self, name: str, recipe: Recipe) -> Rule:
        return self._register(Rule(name, RuleType.TASK, recipe))

    def file(self, name: str, path_of: Callable[..., Union[str, Path]], recipe: Recipe) -> Rule:
        return self._register(Rule(name, RuleType.FILE, recipe, path_of))

    def phony(self, name: str, recipe: Recipe) -> Rule:
        return self._register(Rule(name, RuleType.PHONY, recipe))

    @staticmethod
    async def _source_file(target: Target, path: str) -> str:
        signature = file_signature(Path(path))
        if signature is None:
            raise FontPlanError(f"Source file {path} does not exist")
        return signature["sha256"]

    @staticmethod
    async def _optional_source_file(target: Target, path: str) -> Optional[str]:
        signature = file_signature(Path(path))
        return signature["sha256"] if signature else None

    def resolve(self, spec: str) -> NodeRef:
        """Turn a command-line target like 'contents::sans' into a NodeRef"""
        name, sep, arg = spec.partition("::")
        rule = self.rules.get(name)
        if rule is None:
            raise ConfigError(f"Unknown target '{name}'")
        return rule(arg) if sep else rule()

    async def run_async(self, *items: Requestable) -> List[Any]:
        """Evaluate the requested nodes and persist the journal.

        Raises:
            ConfigError: If the configuration could not be resolved
            BuildFailure: If any requested node failed
        """
        refs = _flatten_refs(items)
        self.journal.load()
        session = BuildSession(self)
        results: List[Any] = []
        try:
            futures = [session.request(ref, ()) for ref in refs]
            results = list(await asyncio.gather(*futures, return_exceptions=True))
            await session.drain()
        finally:
            session.finish()

        failures = {ref.key: r for ref, r in zip(refs, results) if isinstance(r, BaseException)}
        if session.abort_error is not None:
            raise session.abort_error
        for error in failures.values():
            if not isinstance(error, Exception):
                raise error
        if failures:
            raise BuildFailure(failures)
        return results

    def run(self, *items: Requestable) -> List[Any]:
        return asyncio.run(self.run_async(*items))

    def delete_journal(self) -> None:
        self.journal.delete()
