"""Read/write orchestration between the record store and the local cache.

Reads fetch a record map, merge it into the cache, then answer from it.
Writes build operations, wrap them in a transaction scoped to the session's
(shard, space), submit, and re-read the written record so the cache holds
the store's resulting value.
"""

import asyncio
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from .cache import RecordCache
from .errors import SessionContextError
from .operations import Operation, create_page_operations
from .session import SessionContext
from .store import HttpRecordStore, RecordStore, record_request
from .tables import Table
from .transactions import TransactionBuilder, TransactionRequest
from .values import JsonValue

logger = logging.getLogger("notion-sync")

Predicate = Callable[[Any, int], Union[bool, Awaitable[bool], None]]


async def _matches(predicate: Predicate, value: Any, index: int) -> bool:
    result = predicate(value, index)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


def _is_page(value: Any) -> bool:
    return isinstance(value, dict) and value.get("type") == "page"


class SyncClient:
    """Owns one session context, one record cache and one record store."""

    def __init__(
        self,
        context: SessionContext,
        store: Optional[RecordStore] = None,
        cache: Optional[RecordCache] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.context = context
        self.store: RecordStore = store if store is not None else HttpRecordStore(context.token)
        self.cache = cache if cache is not None else RecordCache()
        self._id_factory = id_factory

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _pace(self) -> None:
        if self.context.interval > 0:
            await asyncio.sleep(self.context.interval)

    async def get_block(self, block_id: str, refresh: bool = False) -> Optional[JsonValue]:
        """Return a block's value, fetching it with its backlinks on a cache miss.

        Args:
            block_id: Block to read.
            refresh: Skip the cache and always fetch.

        Returns:
            The block value, or None if the store did not return it.
        """
        if not refresh:
            cached = self.cache.get(Table.BLOCK, block_id)
            if cached is not None:
                return cached

        response = await self.store.get_backlinks_for_block(block_id)
        self.cache.merge(response.get("recordMap"))
        await self._pace()

        value = _record_value(response, Table.BLOCK, block_id)
        if value is None:
            logger.warning(f"No block with the id {block_id} exists")
        return value

    async def get_page(self, page_id: str, refresh: bool = False) -> Optional[JsonValue]:
        """Like get_block, but only answers with blocks of type page."""
        value = await self.get_block(page_id, refresh=refresh)
        if value is not None and not _is_page(value):
            kind = value.get("type") if isinstance(value, dict) else type(value).__name__
            logger.warning(f"Block {page_id} is a {kind}, not a page")
            return None
        return value

    async def get_record(self, table: Table, record_id: str, refresh: bool = False) -> Optional[JsonValue]:
        """Return any record by table and id via syncRecordValues."""
        if not refresh:
            cached = self.cache.get(table, record_id)
            if cached is not None:
                return cached

        values = await self.sync_records([(table, record_id)])
        return values[0] if values else None

    async def sync_records(self, keys: Sequence[tuple[Table, str]]) -> list[JsonValue]:
        """Fetch many records in one syncRecordValues call and cache them.

        Args:
            keys: (table, record id) pairs, always fetched at their latest version.

        Returns:
            Values of the records the store returned, in request order.
            Missing ones are logged and left out.
        """
        if not keys:
            return []
        response = await self.store.sync_record_values(
            [record_request(table, record_id) for table, record_id in keys]
        )
        self.cache.merge(response.get("recordMap"))

        found = []
        for table, record_id in keys:
            value = _record_value(response, table, record_id)
            if value is None:
                logger.warning(f"No {table.value} with the id {record_id} exists")
            else:
                found.append(value)
        return found

    async def get_collection(self, collection_id: str) -> Optional[JsonValue]:
        """Fetch a collection and the block that hosts it.

        Both end up in the cache; the collection value is returned.
        """
        collection = await self.get_record(Table.COLLECTION, collection_id, refresh=True)
        if collection is None:
            return None
        parent_id = collection.get("parent_id") if isinstance(collection, dict) else None
        if parent_id:
            await self.get_record(Table.BLOCK, parent_id, refresh=True)
        return collection

    async def find_records(
        self,
        table: Table,
        predicate: Predicate,
        where: Optional[Callable[[Any], bool]] = None,
    ) -> list[JsonValue]:
        """Records of a table matching predicate, cache first.

        The predicate is called as ``predicate(value, index)`` and may be a
        coroutine function. If nothing cached matches, the user's full
        content is loaded once, merged, and the predicate is evaluated again
        over the merged records.

        Args:
            table: Table to search.
            predicate: Match function.
            where: Optional cheap pre-filter applied before predicate
                (e.g. "is a page").
        """
        matches = await self._filter(self.cache.records(table), predicate, where)
        if matches:
            return matches

        logger.info(f"No cached {table.value} matched, loading user content")
        response = await self.store.load_user_content()
        record_map = response.get("recordMap") or {}
        self.cache.merge(record_map)

        fetched = [
            entry["value"]
            for entry in (record_map.get(table.value) or {}).values()
            if isinstance(entry, Mapping) and "value" in entry
        ]
        return await self._filter(fetched, predicate, where)

    async def find_pages(self, predicate: Predicate) -> list[JsonValue]:
        """Pages matching predicate; see find_records."""
        return await self.find_records(Table.BLOCK, predicate, where=_is_page)

    @staticmethod
    async def _filter(values: list, predicate: Predicate, where: Optional[Callable[[Any], bool]]) -> list:
        candidates = [v for v in values if where is None or where(v)]
        return [v for i, v in enumerate(candidates) if await _matches(predicate, v, i)]

    # -------------------------------------------------------------------------
    # Session context
    # -------------------------------------------------------------------------

    async def set_space(self, predicate: Optional[Callable[[Any], bool]] = None) -> JsonValue:
        """Load user content and make one of its spaces the active write scope.

        The first space matching predicate is chosen, falling back to the
        first space when nothing matches (or no predicate is given).

        Raises:
            SessionContextError: If the user has no spaces at all.
        """
        response = await self.store.load_user_content()
        record_map = response.get("recordMap") or {}
        self.cache.merge(record_map)

        spaces = [
            entry["value"]
            for entry in (record_map.get(Table.SPACE.value) or {}).values()
            if isinstance(entry, Mapping) and "value" in entry
        ]
        if not spaces:
            raise SessionContextError(["space_id"], "No spaces available for this user")

        target = spaces[0]
        if predicate is not None:
            target = next((space for space in spaces if predicate(space)), spaces[0])

        self.context.space_id = target.get("id")
        self.context.shard_id = target.get("shard_id")
        permissions = target.get("permissions") or []
        if permissions and permissions[0].get("user_id"):
            self.context.user_id = permissions[0]["user_id"]
        if not self.context.user_id:
            logger.warning("Space selected but no user id is known; call set_root_user before writing")
        logger.info(f"Active space: {target.get('name', self.context.space_id)} (shard {self.context.shard_id})")
        return target

    async def set_root_user(self) -> str:
        """Load user content and take the user id from its user_root record."""
        response = await self.store.load_user_content()
        record_map = response.get("recordMap") or {}
        self.cache.merge(record_map)

        roots = [
            entry["value"]
            for entry in (record_map.get(Table.USER_ROOT.value) or {}).values()
            if isinstance(entry, Mapping) and "value" in entry
        ]
        if not roots:
            raise SessionContextError(["user_id"], "No user_root record in user content")
        self.context.user_id = roots[0]["id"]
        return self.context.user_id

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def transaction_builder(self) -> TransactionBuilder:
        """Builder bound to the session's scope; raises if the scope is incomplete."""
        self.context.require_write_scope()
        return TransactionBuilder(self.context.shard_id, self.context.space_id, id_factory=self._id_factory)

    async def submit(self, batches: Sequence[Sequence[Operation]]) -> TransactionRequest:
        """Submit operation batches as one saveTransactions request.

        Raises:
            SessionContextError: If user, space or shard is unset.
        """
        request = self.transaction_builder().build(batches)
        logger.info(
            f"Submitting {len(request.transactions)} transaction(s), "
            f"{len(request.operations)} operation(s)"
        )
        await self.store.save_transactions(request)
        return request

    async def create_page(
        self,
        properties: Optional[Mapping[str, JsonValue]] = None,
        format: Optional[Mapping[str, JsonValue]] = None,
        page_id: Optional[str] = None,
    ) -> Optional[JsonValue]:
        """Create a top-level page in the active space and return its stored value."""
        self.context.require_write_scope()
        page_id = page_id or self._id_factory()
        ops = create_page_operations(
            page_id,
            self.context.space_id,
            self.context.user_id,
            properties=properties,
            format=format,
        )
        await self.submit([ops])
        return await self.get_block(page_id, refresh=True)

    async def aclose(self) -> None:
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()


def _record_value(response: Mapping, table: Table, record_id: str) -> Optional[JsonValue]:
    entry = ((response.get("recordMap") or {}).get(table.value) or {}).get(record_id)
    if not isinstance(entry, Mapping):
        return None
    return entry.get("value")
