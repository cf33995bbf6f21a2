"""Builders for v3 transaction operations.

Everything here is pure: no network, no shared state. Each builder returns
one Operation or a list of them, ready to be batched by the transaction
builder.
"""

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from .tables import Table
from .values import (
    JsonValue,
    Path,
    PathError,
    PathKey,
    insert_into_list,
    merge_at,
    normalize_path,
    replace_at,
)


class Command(str, Enum):
    """Mutation commands understood by saveTransactions."""
    SET = "set"                  # Replace node at path
    UPDATE = "update"            # Shallow-merge mapping into node at path
    LIST_BEFORE = "listBefore"   # Insert id into list, before anchor
    LIST_AFTER = "listAfter"     # Insert id into list, after anchor


@dataclass
class Operation:
    """One path-addressed mutation against a single record.

    Not hashable: args is an arbitrary JSON tree.
    """
    table: Table
    id: str
    path: Path = field(default_factory=list)
    command: Command = Command.SET
    args: Any = None

    def to_dict(self) -> dict:
        """Wire form sent inside a transaction."""
        return {
            "table": self.table.value,
            "id": self.id,
            "path": list(self.path),
            "command": self.command.value,
            "args": copy.deepcopy(self.args),
        }


def now_ms() -> int:
    """Current Unix time in milliseconds, the unit Notion uses for timestamps."""
    return int(time.time() * 1000)


class OperationFactory:
    """Builds operations targeting records of one table."""

    def __init__(self, table: Table):
        self.table = table

    def __repr__(self) -> str:
        return f"OperationFactory({self.table.value})"

    def _op(self, record_id: str, path: "str | Sequence[PathKey] | None", command: Command, args: Any) -> Operation:
        if not record_id:
            raise ValueError("Operation target id must be non-empty")
        return Operation(
            table=self.table,
            id=record_id,
            path=normalize_path(path),
            command=command,
            args=copy.deepcopy(args),
        )

    def set(self, record_id: str, path: "str | Sequence[PathKey] | None", value: JsonValue) -> Operation:
        """Replace the node at path. With an empty path this creates the record."""
        return self._op(record_id, path, Command.SET, value)

    def update(self, record_id: str, path: "str | Sequence[PathKey] | None", partial: Mapping[str, JsonValue]) -> Operation:
        """Shallow-merge partial into the node at path."""
        if not isinstance(partial, Mapping):
            raise TypeError(f"update expects a mapping, got {type(partial).__name__}")
        return self._op(record_id, path, Command.UPDATE, dict(partial))

    def list_before(self, record_id: str, path: "str | Sequence[PathKey] | None", args: Mapping[str, str]) -> Operation:
        """Insert ``args["id"]`` into the list at path, before ``args.get("before")``."""
        return self._op(record_id, path, Command.LIST_BEFORE, _list_args(args, "before"))

    def list_after(self, record_id: str, path: "str | Sequence[PathKey] | None", args: Mapping[str, str]) -> Operation:
        """Insert ``args["id"]`` into the list at path, after ``args.get("after")``."""
        return self._op(record_id, path, Command.LIST_AFTER, _list_args(args, "after"))


def _list_args(args: Mapping[str, str], anchor_key: str) -> dict:
    if "id" not in args or not args["id"]:
        raise ValueError("List insert requires an 'id'")
    result = {"id": args["id"]}
    if args.get(anchor_key):
        result[anchor_key] = args[anchor_key]
    return result


block_ops = OperationFactory(Table.BLOCK)
collection_ops = OperationFactory(Table.COLLECTION)
collection_view_ops = OperationFactory(Table.COLLECTION_VIEW)
space_ops = OperationFactory(Table.SPACE)
space_view_ops = OperationFactory(Table.SPACE_VIEW)
notion_user_ops = OperationFactory(Table.NOTION_USER)
user_root_ops = OperationFactory(Table.USER_ROOT)
user_settings_ops = OperationFactory(Table.USER_SETTINGS)


# =============================================================================
# Metadata Stamps
# =============================================================================


def last_edit_operations(
    record_id: str,
    user_id: str,
    timestamp: Optional[int] = None,
    table: Table = Table.BLOCK,
) -> list[Operation]:
    """Stamp last_edited_time / last_edited_by on a record.

    Args:
        record_id: Record being edited.
        user_id: notion_user id the edit is attributed to.
        timestamp: Unix milliseconds; defaults to now.
        table: Table of the record (blocks by default).
    """
    ops = OperationFactory(table)
    stamp = now_ms() if timestamp is None else timestamp
    return [
        ops.set(record_id, ["last_edited_time"], stamp),
        ops.set(record_id, ["last_edited_by_table"], "notion_user"),
        ops.set(record_id, ["last_edited_by_id"], user_id),
    ]


def create_operations(
    record_id: str,
    user_id: str,
    timestamp: Optional[int] = None,
    table: Table = Table.BLOCK,
) -> list[Operation]:
    """Stamp created_time / created_by on a record."""
    ops = OperationFactory(table)
    stamp = now_ms() if timestamp is None else timestamp
    return [
        ops.set(record_id, ["created_time"], stamp),
        ops.set(record_id, ["created_by_table"], "notion_user"),
        ops.set(record_id, ["created_by_id"], user_id),
    ]


# =============================================================================
# Composite Intents
# =============================================================================


def create_page_operations(
    page_id: str,
    space_id: str,
    user_id: str,
    properties: Optional[Mapping[str, JsonValue]] = None,
    format: Optional[Mapping[str, JsonValue]] = None,
    timestamp: Optional[int] = None,
) -> list[Operation]:
    """Operations that create a top-level page in a space.

    Order matters: the record must exist before it is updated, and the
    permission/parent updates must precede the list insert and the stamps
    that reference them.

    Returns:
        set, update(permissions), update(parent + content), space pages
        insert, last-edit stamps, create stamps.
    """
    stamp = now_ms() if timestamp is None else timestamp
    return [
        block_ops.set(page_id, [], {"type": "page", "id": page_id, "version": 1}),
        block_ops.update(page_id, [], {
            "permissions": [{"type": "space_permission", "role": "editor"}],
        }),
        block_ops.update(page_id, [], {
            "parent_id": space_id,
            "parent_table": "space",
            "alive": True,
            "properties": dict(properties or {}),
            "format": dict(format or {}),
        }),
        space_ops.list_before(space_id, ["pages"], {"id": page_id}),
        *last_edit_operations(page_id, user_id, timestamp=stamp),
        *create_operations(page_id, user_id, timestamp=stamp),
    ]


# =============================================================================
# Local Application
# =============================================================================


def apply_operation(value: JsonValue, op: Operation) -> JsonValue:
    """Return the value a record would hold after op, without touching value.

    Mirrors the store's semantics closely enough to predict results locally.
    List inserts with no anchor, or an anchor missing from the list, append
    at the tail.

    Raises:
        PathError: If the path does not resolve to a node of the right kind.
    """
    if op.command is Command.SET:
        return replace_at(value, op.path, op.args)
    if op.command is Command.UPDATE:
        return merge_at(value, op.path, op.args)
    if op.command is Command.LIST_BEFORE:
        return insert_into_list(value, op.path, op.args["id"], anchor=op.args.get("before"), before=True)
    if op.command is Command.LIST_AFTER:
        return insert_into_list(value, op.path, op.args["id"], anchor=op.args.get("after"))
    raise PathError(f"Unsupported command: {op.command}")


def apply_operations(records: dict[tuple[Table, str], JsonValue], ops: Sequence[Operation]) -> dict[tuple[Table, str], JsonValue]:
    """Apply ops in order to a (table, id) -> value mapping, returning a new mapping."""
    result = dict(records)
    for op in ops:
        key = (op.table, op.id)
        result[key] = apply_operation(result.get(key), op)
    return result
