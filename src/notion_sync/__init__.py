"""Record cache and transaction builder for Notion's v3 API."""

from .cache import RecordCache, RecordMap
from .client import SyncClient
from .errors import NotionSyncError, SessionContextError
from .operations import (
    Command,
    Operation,
    OperationFactory,
    apply_operation,
    apply_operations,
    block_ops,
    collection_ops,
    collection_view_ops,
    create_operations,
    create_page_operations,
    last_edit_operations,
    notion_user_ops,
    space_ops,
    space_view_ops,
    user_root_ops,
    user_settings_ops,
)
from .session import SessionContext
from .store import HttpRecordStore, RecordStore
from .tables import Table
from .transactions import Transaction, TransactionBuilder, TransactionRequest, build_transaction
from .values import JsonValue, Path, PathError, get_path, parse_path

__all__ = [
    "Command",
    "HttpRecordStore",
    "JsonValue",
    "NotionSyncError",
    "Operation",
    "OperationFactory",
    "Path",
    "PathError",
    "RecordCache",
    "RecordMap",
    "RecordStore",
    "SessionContext",
    "SessionContextError",
    "SyncClient",
    "Table",
    "Transaction",
    "TransactionBuilder",
    "TransactionRequest",
    "apply_operation",
    "apply_operations",
    "block_ops",
    "build_transaction",
    "collection_ops",
    "collection_view_ops",
    "create_operations",
    "create_page_operations",
    "get_path",
    "last_edit_operations",
    "notion_user_ops",
    "parse_path",
    "space_ops",
    "space_view_ops",
    "user_root_ops",
    "user_settings_ops",
]
