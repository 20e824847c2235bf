"""Locale context lookup for translation prompts."""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from .tree import FILE_CONTEXT_KEY, decode_json


class LocaleContextType(Enum):
    """How much context the project file carries.

    ``file`` holds one context string per source file. ``deep`` also holds a
    context string per key path inside JSON files, plus a file-level
    ``$fileContext`` fallback.
    """

    FILE = "file"
    DEEP = "deep"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LocaleContextType":
        normalized = (value or cls.FILE.value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown locale context type '{value}'.")


def normalise_file_key(file_path: str | pathlib.PurePath) -> str:
    return pathlib.PurePath(str(file_path)).as_posix()


@dataclass
class LocaleContext:
    """Context strings keyed by relative file path."""

    entries: Dict[str, Any] = field(default_factory=dict)
    context_type: LocaleContextType = LocaleContextType.FILE

    def _string(self, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    def for_file(self, file_path: str | pathlib.PurePath) -> str:
        """File-level context: the entry itself, or its ``$fileContext`` key."""

        key = normalise_file_key(file_path)
        entry = self.entries.get(key)
        if isinstance(entry, dict):
            return self._string(entry.get(FILE_CONTEXT_KEY))
        if entry is not None:
            return self._string(entry)
        return self._string(self.entries.get(f"{key}/{FILE_CONTEXT_KEY}"))

    def lookup(self, file_path: str | pathlib.PurePath, key_path: str) -> str:
        """Exact context for a dotted key path inside a file, or ``""``."""

        key = normalise_file_key(file_path)
        entry = self.entries.get(key)
        if isinstance(entry, dict) and key_path in entry:
            return self._string(entry[key_path])
        return self._string(self.entries.get(f"{key}/{key_path}"))

    def resolver_for(self, file_path: str | pathlib.PurePath) -> Callable[[str], str]:
        """Build the per-leaf resolver used by the tree translator.

        The exact key path wins, then the file-level context, then nothing.
        """

        def resolve(key_path: str) -> str:
            if self.context_type is LocaleContextType.DEEP and key_path:
                exact = self.lookup(file_path, key_path)
                if exact:
                    return exact
            return self.for_file(file_path)

        return resolve


def flatten_keys(value: Any, prefix: str = "") -> Iterable[str]:
    """Yield the dotted path of every leaf in a JSON value."""

    if isinstance(value, dict):
        items = value.items()
    elif isinstance(value, list):
        items = enumerate(value)
    else:
        yield prefix
        return
    for key, child in items:
        path = f"{prefix}.{key}" if prefix else str(key)
        yield from flatten_keys(child, path)


def matches_file_types(path: pathlib.PurePath, file_types: Iterable[str]) -> bool:
    return any(path.name.endswith(file_type) for file_type in file_types)


def build_context_skeleton(
    source: pathlib.Path,
    file_types: Iterable[str],
    context_type: LocaleContextType,
) -> Dict[str, Any]:
    """Create an empty context entry for every translatable file under ``source``."""

    file_types = list(file_types)
    skeleton: Dict[str, Any] = {}
    for path in sorted(source.rglob("*")):
        if not path.is_file() or not matches_file_types(path, file_types):
            continue
        key = path.relative_to(source).as_posix()
        if context_type is LocaleContextType.DEEP and path.suffix.lower() == ".json":
            content = decode_json(path.read_text(encoding="utf-8"))
            entry: Dict[str, str] = {leaf: "" for leaf in flatten_keys(content) if leaf}
            entry[FILE_CONTEXT_KEY] = ""
            skeleton[key] = entry
        else:
            skeleton[key] = ""
    return skeleton
