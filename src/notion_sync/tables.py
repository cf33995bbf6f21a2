"""Record tables known to the Notion v3 API."""

from enum import Enum
from typing import Optional


class Table(str, Enum):
    """Closed set of record tables mirrored by the cache."""
    BLOCK = "block"
    COLLECTION = "collection"
    SPACE = "space"
    COLLECTION_VIEW = "collection_view"
    NOTION_USER = "notion_user"
    SPACE_VIEW = "space_view"
    USER_ROOT = "user_root"
    USER_SETTINGS = "user_settings"


def lookup_table(name: "str | Table") -> Optional[Table]:
    """Resolve a table name from a response, or None if it is not one we track."""
    if isinstance(name, Table):
        return name
    try:
        return Table(name)
    except ValueError:
        return None
