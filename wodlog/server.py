"""MCP server: wodlog.preview_import, wodlog.confirm_import, wodlog.search_catalog, and read-only resources."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from pathlib import Path

from fastmcp import FastMCP

from .errors import WodlogError
from .ingest import confirm_import_impl, preview_import_impl
from .models import ImportInput, SearchCatalogInput
from .storage import Storage

# Default DB next to server (or use WODLOG_DB_PATH)
_db_path = os.environ.get("WODLOG_DB_PATH", str(Path(__file__).parent.parent / "wodlog.db"))
_log_level = os.environ.get("WODLOG_LOG_LEVEL", "INFO").upper()
# Same cap as the upload limit of the web app's import endpoint
MAX_IMPORT_BYTES = int(os.environ.get("WODLOG_MAX_IMPORT_BYTES", str(10 << 20)))

_storage = Storage(_db_path)

logger = logging.getLogger(__name__)

mcp = FastMCP(name="wodlog")


def _error(message: str) -> dict:
    return {"status": "error", "message": message}


def _read_content(inp: ImportInput) -> bytes:
    if inp.content_encoding == "base64":
        try:
            raw = base64.b64decode(inp.content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise WodlogError(f"content is not valid base64: {e}") from e
    else:
        raw = inp.content.encode("utf-8")
    if len(raw) > MAX_IMPORT_BYTES:
        raise WodlogError(f"import exceeds {MAX_IMPORT_BYTES} bytes")
    return raw


@mcp.tool(name="wodlog.preview_import")
def wodlog_preview_import(payload: dict) -> dict:
    """
    Preview a Wodify performance export (CSV) without writing anything.
    Payload: { user_id, content, content_encoding: "text" | "base64" }.
    Returns row counts, row errors, a per-date summary and the movements/WODs that would be created.
    """
    inp = ImportInput.model_validate(payload)
    try:
        preview = preview_import_impl(_read_content(inp), inp.user_id, catalog=_storage)
    except WodlogError as e:
        return _error(f"Failed to preview import: {e}")
    return {"status": "ok", **preview.model_dump()}


@mcp.tool(name="wodlog.confirm_import")
def wodlog_confirm_import(payload: dict) -> dict:
    """
    Import a Wodify performance export: one workout per date, movements/WODs created as needed.
    Same payload as wodlog.preview_import. On failure, workouts for earlier dates remain imported
    and are counted in `partial_result`.
    """
    inp = ImportInput.model_validate(payload)
    try:
        result = confirm_import_impl(_read_content(inp), inp.user_id, catalog=_storage)
    except WodlogError as e:
        out = _error(f"Failed to import: {e}")
        partial = getattr(e, "result", None)
        if partial is not None:
            out["partial_result"] = partial.model_dump()
        return out
    return {"status": "ok", **result.model_dump()}


@mcp.tool(name="wodlog.search_catalog")
def wodlog_search_catalog(payload: dict) -> dict:
    """Search movements or WODs by name (substring, case-insensitive). Payload: { query, kind, limit }."""
    inp = SearchCatalogInput.model_validate(payload)
    limit = max(0, min(inp.limit if inp.limit is not None else 20, 100))
    if inp.kind == "wod":
        hits = [w.model_dump() for w in _storage.search_wods(inp.query, limit)]
    else:
        hits = [m.model_dump() for m in _storage.search_movements(inp.query, limit)]
    return {"query": inp.query, "kind": inp.kind, "count": len(hits), "results": hits}


@mcp.resource("user://{user_id}/workouts", mime_type="application/json")
def resource_user_workouts(user_id: str) -> str:
    """Read-only: a user's workouts with their movement and WOD performances."""
    try:
        uid = int(user_id)
    except ValueError:
        return json.dumps({"error": "invalid user_id", "user_id": user_id})
    return json.dumps(_storage.get_workouts_for_user(uid), indent=2)


def run() -> None:
    """Run the MCP server with stdio transport (default)."""
    logging.basicConfig(level=_log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    mcp.run()
