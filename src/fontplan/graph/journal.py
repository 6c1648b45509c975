"""
Build journal

The journal is a JSON file recording, for every persisted node, the signature
of its result and the signatures of the dependencies it needed. It is read
once when a run starts and written once when the run ends.
"""

import dataclasses
import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Optional

from ..utils.logging import FontPlanLogger

JOURNAL_VERSION = 1


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Cannot fingerprint {type(value).__name__}")


def fingerprint(value: Any) -> str:
    """Stable digest of a computed value"""
    text = json.dumps(value, default=_encode, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def file_signature(path: Path, previous: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """Content signature of a file, or None when it does not exist.

    The digest of `previous` is reused when size and mtime are unchanged.
    """
    try:
        stat = path.stat()
    except FileNotFoundError:
        return None
    if path.is_dir():
        return {"mtime_ns": stat.st_mtime_ns, "size": 0, "sha256": "dir"}
    if (
        previous
        and previous.get("mtime_ns") == stat.st_mtime_ns
        and previous.get("size") == stat.st_size
    ):
        return dict(previous)

    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return {"mtime_ns": stat.st_mtime_ns, "size": stat.st_size, "sha256": digest.hexdigest()}


class Journal:
    """Persistent per-node records"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self.records: Dict[str, Dict[str, Any]] = {}

    def load(self) -> "Journal":
        self.records = {}
        if not self.path or not self.path.exists():
            return self
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            FontPlanLogger.warning(f"Ignoring unreadable build journal {self.path}: {e}")
            return self
        if isinstance(data, dict) and data.get("version") == JOURNAL_VERSION:
            self.records = data.get("nodes") or {}
        else:
            FontPlanLogger.info("Build journal format changed, rebuilding everything")
        return self

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"version": JOURNAL_VERSION, "nodes": self.records}, f, indent=1)
        tmp.replace(self.path)

    def delete(self) -> None:
        self.records = {}
        if self.path and self.path.exists():
            self.path.unlink()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self.records.get(key)

    def put(self, key: str, record: Dict[str, Any]) -> None:
        self.records[key] = record

    def discard(self, key: str) -> None:
        self.records.pop(key, None)
