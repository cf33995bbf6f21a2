"""Record value trees and the paths that address nodes inside them.

A record value is plain decoded JSON. A path is a list of mapping keys (str)
and list indices (int); the empty path addresses the record root. Paths can
also be written in dotted form, e.g. ``properties.title[0]``.
"""

import copy
from typing import Any, Mapping, Sequence, Union

import parsy as P

from .errors import NotionSyncError

JsonValue = Union[str, int, float, bool, None, list["JsonValue"], dict[str, "JsonValue"]]
PathKey = Union[str, int]
Path = list[PathKey]


class PathError(NotionSyncError, ValueError):
    """A path string is malformed or a path does not resolve inside a value."""


# =============================================================================
# Path Notation
# =============================================================================

_key = P.regex(r'[A-Za-z0-9_\-]+')
_index = (P.string('[') >> P.regex(r'\d+').map(int) << P.string(']'))
_segment = (P.string('.') >> _key) | _index
_path_parser = P.seq(_key | _index, _segment.many()).combine(
    lambda head, tail: [head, *tail]
)


def parse_path(text: str) -> Path:
    """Parse dotted path notation into a list of keys and indices.

    Examples:
        ``""`` -> ``[]``
        ``"pages"`` -> ``["pages"]``
        ``"properties.title[0]"`` -> ``["properties", "title", 0]``

    Raises:
        PathError: If the text is not valid path notation.
    """
    text = text.strip()
    if not text:
        return []
    try:
        return _path_parser.parse(text)
    except P.ParseError as e:
        raise PathError(f"Invalid path {text!r}: {e}") from e


def normalize_path(path: "str | Sequence[PathKey] | None") -> Path:
    """Accept a path as dotted text, a sequence of keys, or None (root)."""
    if path is None:
        return []
    if isinstance(path, str):
        return parse_path(path)
    result: Path = []
    for key in path:
        if isinstance(key, bool) or not isinstance(key, (str, int)):
            raise PathError(f"Path keys must be str or int, got {key!r}")
        result.append(key)
    return result


def format_path(path: Sequence[PathKey]) -> str:
    """Render a path back into dotted notation."""
    parts: list[str] = []
    for key in path:
        if isinstance(key, int):
            parts.append(f"[{key}]")
        elif parts:
            parts.append(f".{key}")
        else:
            parts.append(key)
    return "".join(parts)


# =============================================================================
# Tree Access
# =============================================================================


def _step(node: Any, key: PathKey, path: Sequence[PathKey]) -> Any:
    if isinstance(key, int):
        if not isinstance(node, list) or not -len(node) <= key < len(node):
            raise PathError(f"Index {key} does not resolve at {format_path(path)!r}")
        return node[key]
    if not isinstance(node, dict) or key not in node:
        raise PathError(f"Key {key!r} does not resolve at {format_path(path)!r}")
    return node[key]


def get_path(value: JsonValue, path: "str | Sequence[PathKey] | None", default: Any = None) -> Any:
    """Return the node at path, or default if any step is missing."""
    node: Any = value
    for key in normalize_path(path):
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return default
            node = node[key]
        else:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
    return node


def _container_for(root: Any, path: Path, create: bool) -> Any:
    """Walk to the parent of the last path key, creating mappings if asked."""
    node = root
    for i, key in enumerate(path[:-1]):
        if create and isinstance(key, str) and isinstance(node, dict) and key not in node:
            node[key] = {}
        node = _step(node, key, path[: i + 1])
    return node


def replace_at(value: JsonValue, path: "str | Sequence[PathKey] | None", new: JsonValue) -> JsonValue:
    """Return a copy of value with the node at path replaced by new.

    Missing intermediate mapping keys are created. An empty path replaces
    the whole value.
    """
    keys = normalize_path(path)
    if not keys:
        return copy.deepcopy(new)
    root = copy.deepcopy(value) if value is not None else {}
    parent = _container_for(root, keys, create=True)
    last = keys[-1]
    if isinstance(last, int):
        _step(parent, last, keys)
        parent[last] = copy.deepcopy(new)
    elif isinstance(parent, dict):
        parent[last] = copy.deepcopy(new)
    else:
        raise PathError(f"Cannot set key {last!r} on a non-mapping at {format_path(keys)!r}")
    return root


def merge_at(value: JsonValue, path: "str | Sequence[PathKey] | None", partial: Mapping[str, JsonValue]) -> JsonValue:
    """Return a copy of value with partial shallow-merged into the node at path.

    Keys in partial overwrite, keys absent from partial are preserved. A
    missing target node is created as an empty mapping first.
    """
    if not isinstance(partial, Mapping):
        raise PathError(f"update expects a mapping, got {type(partial).__name__}")
    keys = normalize_path(path)
    current = get_path(value, keys)
    if current is None:
        current = {}
    if not isinstance(current, dict):
        raise PathError(f"Cannot merge into a non-mapping at {format_path(keys)!r}")
    merged = {**current, **copy.deepcopy(dict(partial))}
    return replace_at(value, keys, merged)


def insert_into_list(
    value: JsonValue,
    path: "str | Sequence[PathKey] | None",
    item: JsonValue,
    anchor: Any = None,
    before: bool = False,
) -> JsonValue:
    """Return a copy of value with item inserted into the list at path.

    With an anchor present in the list, item goes directly before or after
    it. With no anchor, or an anchor not found in the list, item is appended
    at the tail. A missing list is created.
    """
    keys = normalize_path(path)
    current = get_path(value, keys)
    if current is None:
        current = []
    if not isinstance(current, list):
        raise PathError(f"Cannot insert into a non-list at {format_path(keys)!r}")
    items = list(current)
    if anchor is not None and anchor in items:
        position = items.index(anchor)
        items.insert(position if before else position + 1, item)
    else:
        items.append(item)
    return replace_at(value, keys, items)
