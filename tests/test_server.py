"""Tests for the MCP tool layer."""

import asyncio
import json

import pytest
from notion_sync import server
from notion_sync.client import SyncClient
from notion_sync.session import SessionContext
from notion_sync.tables import Table

from test_client import USER_CONTENT, FakeStore, _page

PAGE_ID = "12345678-1234-1234-1234-123456789abc"


@pytest.fixture
def fake_client(monkeypatch):
    store = FakeStore(
        records={
            (Table.BLOCK, PAGE_ID): _page(PAGE_ID, "Hello"),
            (Table.SPACE, "space-1"): {"id": "space-1", "pages": []},
        },
        user_content=USER_CONTENT,
    )
    client = SyncClient(SessionContext(token="t", interval=0), store=store)
    monkeypatch.setattr(server, "_sync_client", client)
    return client


class TestResolveRef:
    """Tests for resolve_ref."""

    def test_dashed_uuid(self):
        assert server.resolve_ref(PAGE_ID) == PAGE_ID

    def test_undashed_uppercase_uuid(self):
        assert server.resolve_ref("12345678123412341234123456789ABC") == PAGE_ID

    def test_notion_url(self):
        url = "https://www.notion.so/workspace/Page-Title-12345678123412341234123456789abc"
        assert server.resolve_ref(url) == PAGE_ID

    def test_unresolvable(self):
        assert server.resolve_ref("https://google.com/page") is None
        assert server.resolve_ref("abc") is None


class TestNormalizeUuid:
    def test_rejects_invalid_length(self):
        with pytest.raises(ValueError):
            server.normalize_uuid("1234567")

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError):
            server.normalize_uuid("z" * 32)


class TestPageTitle:
    def test_joins_chunks(self):
        page = {"properties": {"title": [["Hello "], ["World", [["b"]]]]}}
        assert server.page_title(page) == "Hello World"

    def test_plain_strings(self):
        assert server.page_title({"properties": {"title": ["Hello"]}}) == "Hello"

    def test_missing_title(self):
        assert server.page_title({"type": "page"}) == ""


class TestTools:
    """Tests for the tool functions with a fake client."""

    def test_read_block(self, fake_client):
        result = asyncio.run(server.notion_sync_read(PAGE_ID))
        assert json.loads(result)["id"] == PAGE_ID

    def test_read_path(self, fake_client):
        result = asyncio.run(server.notion_sync_read(PAGE_ID, path="properties.title[0][0]"))
        assert json.loads(result) == "Hello"

    def test_read_bad_path(self, fake_client):
        result = asyncio.run(server.notion_sync_read(PAGE_ID, path="properties..title"))
        assert result.startswith("error: BAD_PATH")

    def test_read_path_missing_from_record(self, fake_client):
        result = asyncio.run(server.notion_sync_read(PAGE_ID, path="format.page_icon"))
        assert result.startswith("error: BAD_PATH")
        assert "format.page_icon" in result

    def test_read_path_to_null_node(self, fake_client):
        fake_client.cache.merge({"block": {PAGE_ID: {"value": {"id": PAGE_ID, "copied_from": None}}}})
        result = asyncio.run(server.notion_sync_read(PAGE_ID, path="copied_from"))
        assert json.loads(result) is None

    def test_read_unknown_ref(self, fake_client):
        assert asyncio.run(server.notion_sync_read("nope")).startswith("error: UNKNOWN_ID")

    def test_read_unknown_table(self, fake_client):
        assert asyncio.run(server.notion_sync_read(PAGE_ID, table="discussion")).startswith("error: UNKNOWN_TABLE")

    def test_read_missing_record(self, fake_client):
        missing = "abcdefab-1234-1234-1234-123456789abc"
        assert asyncio.run(server.notion_sync_read(missing)).startswith("error: REF_GONE")

    def test_find_pages(self, fake_client):
        result = asyncio.run(server.notion_sync_find_pages("bet"))
        assert result == "p2 Beta"

    def test_find_pages_none(self, fake_client):
        assert asyncio.run(server.notion_sync_find_pages("zzz")) == "no pages found"

    def test_create_page_establishes_scope(self, fake_client):
        result = asyncio.run(server.notion_sync_create_page("New page", icon="🚀"))

        assert result.startswith("created ")
        page_id = result.split()[1]
        assert fake_client.context.space_id == "space-1"
        assert fake_client.context.user_id == "user-1"
        page = fake_client.cache.get(Table.BLOCK, page_id)
        assert page["properties"] == {"title": [["New page"]]}
        assert page["format"] == {"page_icon": "🚀"}

    def test_create_page_with_full_scope_skips_scope_lookup(self, fake_client):
        fake_client.context.user_id = "user-9"
        fake_client.context.space_id = "space-1"
        fake_client.context.shard_id = 7

        result = asyncio.run(server.notion_sync_create_page("Scoped"))

        assert result.startswith("created ")
        assert fake_client.store.count("loadUserContent") == 0
        assert fake_client.context.user_id == "user-9"

    def test_create_page_without_spaces(self, monkeypatch):
        client = SyncClient(SessionContext(token="t", interval=0), store=FakeStore(user_content={}))
        monkeypatch.setattr(server, "_sync_client", client)
        assert asyncio.run(server.notion_sync_create_page("x")).startswith("error: NO_SCOPE")

    def test_status(self, fake_client):
        status = server.notion_sync_status()
        assert "space: -" in status
        assert "cached records: 0" in status

    def test_no_client(self, monkeypatch):
        monkeypatch.setattr(server, "_sync_client", None)
        with pytest.raises(RuntimeError):
            server.notion_sync_status()
