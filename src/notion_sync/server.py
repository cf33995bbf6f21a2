"""MCP server exposing the sync client.

Tools:
- notion_sync_read: Read a cached or fetched record as JSON
- notion_sync_find_pages: Find pages by title, cache first
- notion_sync_create_page: Create a page in the active space
- notion_sync_status: Show the active session scope

Token: Passed via --token-file <path> CLI argument at startup.
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from .client import SyncClient
from .errors import SessionContextError
from .session import DEFAULT_INTERVAL, SessionContext
from .tables import Table
from .values import PathError, get_path

logger = logging.getLogger("notion-sync")

# =============================================================================
# ID Parsing
# =============================================================================

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$',
    re.IGNORECASE
)
NOTION_URL_PATTERN = re.compile(
    r'https?://(?:www\.)?notion\.(?:so|site)/(?:[^/]+/)?([^?#]+)',
    re.IGNORECASE
)


def normalize_uuid(uuid_str: str) -> str:
    """Normalize a UUID to standard format with dashes.

    Raises:
        ValueError: If input is not a valid UUID (wrong length or invalid chars).
    """
    clean = uuid_str.replace('-', '').lower()
    if len(clean) != 32:
        raise ValueError(f"Invalid UUID length: {uuid_str}")
    if not all(c in '0123456789abcdef' for c in clean):
        raise ValueError(f"Invalid UUID characters: {uuid_str}")
    return f"{clean[:8]}-{clean[8:12]}-{clean[12:16]}-{clean[16:20]}-{clean[20:]}"


def resolve_ref(ref: str) -> Optional[str]:
    """Turn a UUID (dashed or not) or a Notion URL into a record id."""
    ref = ref.strip()
    if UUID_PATTERN.match(ref):
        return normalize_uuid(ref)
    match = NOTION_URL_PATTERN.match(ref)
    if not match:
        return None
    uuid_match = re.search(r'([0-9a-f]{32}|[0-9a-f-]{36})$', match.group(1), re.IGNORECASE)
    if uuid_match:
        return normalize_uuid(uuid_match.group(1))
    return None


def page_title(page: dict) -> str:
    """Plain text of a page's title property (``[["Hello"], ...]`` chunks)."""
    chunks = get_path(page, ["properties", "title"], default=[]) or []
    parts = []
    for chunk in chunks:
        if isinstance(chunk, list) and chunk:
            parts.append(str(chunk[0]))
        elif isinstance(chunk, str):
            parts.append(chunk)
    return "".join(parts)


# =============================================================================
# Error Messages
# =============================================================================


def _error(code: str, message: str, hint: str | None = None, ref: str | None = None) -> str:
    """Format error with optional hint."""
    parts = [f"error: {code} - {message}"]
    if ref:
        parts.append(f"ref: {ref}")
    if hint:
        parts.append(f"hint: {hint}")
    return "\n".join(parts)


HINTS = {
    "unknown_id": "Provide a full Notion UUID or a notion.so URL.",
    "not_found": "The record may be deleted, in trash, or not visible to this user.",
    "no_scope": "Start the server with --space, or make sure the token's user has a space.",
    "bad_path": "Paths look like properties.title[0] or format.page_icon.",
    "invalid_token": "token_v2 is invalid or expired. Copy a fresh one from the browser cookies.",
}


# =============================================================================
# Client Management
# =============================================================================

_sync_client: Optional[SyncClient] = None
_MISSING = object()


def _get_client() -> SyncClient:
    """Get the sync client (created in main from --token-file)."""
    if _sync_client is None:
        raise RuntimeError(
            "No Notion token. Pass --token-file <path> on the command line."
        )
    return _sync_client


async def _ensure_scope(client: SyncClient) -> None:
    if client.context.has_write_scope:
        return
    if not client.context.space_id:
        await client.set_space()
    if not client.context.user_id:
        await client.set_root_user()


def _http_error(e: httpx.HTTPStatusError) -> str:
    if e.response is not None and e.response.status_code == 401:
        return _error("INVALID_TOKEN", "Token is invalid or expired", hint=HINTS["invalid_token"])
    status = e.response.status_code if e.response is not None else "?"
    return _error("HTTP_ERROR", f"HTTP {status}")


# =============================================================================
# MCP Server
# =============================================================================

mcp = FastMCP("notion-sync", host="127.0.0.1", port=2052)


@mcp.tool()
async def notion_sync_read(ref: str, path: str = "", table: str = "block") -> str:
    """Read one record as JSON, from the cache when possible.

    Args:
        ref: Full UUID or Notion URL.
        path: Optional dotted path into the record, e.g. "properties.title".
        table: Record table (default "block").

    Returns:
        JSON text of the record (or of the node at path), or an error message.
    """
    record_id = resolve_ref(ref)
    if record_id is None:
        return _error("UNKNOWN_ID", "Could not resolve reference", hint=HINTS["unknown_id"], ref=ref)
    try:
        target = Table(table)
    except ValueError:
        return _error("UNKNOWN_TABLE", f"No table named {table!r}")

    client = _get_client()
    try:
        if target is Table.BLOCK:
            value = await client.get_block(record_id)
        else:
            value = await client.get_record(target, record_id)
    except httpx.HTTPStatusError as e:
        return _http_error(e)

    if value is None:
        return _error("REF_GONE", "Record not found", hint=HINTS["not_found"], ref=ref)
    if path:
        try:
            node = get_path(value, path, default=_MISSING)
        except PathError as e:
            return _error("BAD_PATH", str(e), hint=HINTS["bad_path"])
        if node is _MISSING:
            return _error("BAD_PATH", f"Path {path!r} does not exist in the record", hint=HINTS["bad_path"], ref=ref)
        value = node
    return json.dumps(value, indent=2, ensure_ascii=False)


@mcp.tool()
async def notion_sync_find_pages(title_contains: str) -> str:
    """Find pages whose title contains the given text (case-insensitive).

    Searches the cache first and loads the user's content only on a miss.

    Returns:
        One line per page: ``<id> <title>``.
    """
    needle = title_contains.lower()
    client = _get_client()
    try:
        pages = await client.find_pages(lambda page, index: needle in page_title(page).lower())
    except httpx.HTTPStatusError as e:
        return _http_error(e)
    if not pages:
        return "no pages found"
    return "\n".join(f"{page['id']} {page_title(page)}" for page in pages)


@mcp.tool()
async def notion_sync_create_page(title: str, icon: str = "") -> str:
    """Create a top-level page in the active space.

    Args:
        title: Page title.
        icon: Optional emoji icon.

    Returns:
        ``created <id>`` or an error message.
    """
    client = _get_client()
    try:
        await _ensure_scope(client)
        fmt = {"page_icon": icon} if icon else {}
        page = await client.create_page(properties={"title": [[title]]}, format=fmt)
    except SessionContextError as e:
        return _error("NO_SCOPE", str(e), hint=HINTS["no_scope"])
    except httpx.HTTPStatusError as e:
        return _http_error(e)
    if page is None:
        return _error("REF_GONE", "Page was submitted but could not be read back", hint=HINTS["not_found"])
    return f"created {page['id']}"


@mcp.tool()
def notion_sync_status() -> str:
    """Show the active user, space and shard, and how many records are cached."""
    client = _get_client()
    ctx = client.context
    return (
        f"user: {ctx.user_id or '-'}\n"
        f"space: {ctx.space_id or '-'}\n"
        f"shard: {ctx.shard_id or '-'}\n"
        f"cached records: {len(client.cache)}"
    )


async def _select_space(client: SyncClient, wanted: str) -> None:
    """Select the startup space, then drop the HTTP client bound to this loop."""
    try:
        await client.set_space(
            lambda space: space.get("id") == wanted or space.get("name") == wanted
        )
    finally:
        await client.aclose()


# =============================================================================
# HTTP Endpoints (/health)
# =============================================================================

async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint for easy testing."""
    token_loaded = _sync_client is not None
    scope = None
    if token_loaded:
        scope = {
            "space_id": _sync_client.context.space_id,
            "shard_id": _sync_client.context.shard_id,
            "user_id": _sync_client.context.user_id,
        }
    return JSONResponse({
        "status": "ok",
        "token_loaded": token_loaded,
        "scope": scope,
    })


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Run the notion-sync MCP server.

    Usage:
        notion-sync --token-file ~/.notion_token          # stdio mode
        notion-sync --token-file ~/.notion_token --http   # HTTP on localhost:2052
    """
    import argparse

    parser = argparse.ArgumentParser(description="notion-sync MCP server")
    parser.add_argument(
        "--token-file",
        required=True,
        help="Path to file containing the token_v2 cookie value"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL,
        help="Seconds to wait after each single-record read (default 1.0)"
    )
    parser.add_argument(
        "--space",
        default=None,
        help="Space id or name to select at startup"
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Run as HTTP server on localhost:2052 instead of stdio"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    global _sync_client
    token_path = Path(args.token_file).expanduser()
    if not token_path.exists():
        logger.error(f"Token file not found: {token_path}")
        raise SystemExit(1)
    token = token_path.read_text().strip()
    if not token:
        logger.error("Token file is empty")
        raise SystemExit(1)
    logger.info(f"Notion token loaded from {token_path}")

    _sync_client = SyncClient(SessionContext(token=token, interval=args.interval))

    if args.space:
        asyncio.run(_select_space(_sync_client, args.space))

    if args.http:
        import uvicorn

        app = mcp.streamable_http_app()
        app.add_route("/health", health_endpoint, methods=["GET"])

        logger.info("Starting notion-sync MCP server on http://127.0.0.1:2052")
        uvicorn.run(app, host="127.0.0.1", port=2052, log_level="warning")
    else:
        mcp.run()


if __name__ == "__main__":
    main()
