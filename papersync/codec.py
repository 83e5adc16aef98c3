"""Deserialization boundary for service responses.

The service is loose about types: booleans arrive as ``true``, ``1`` or
``"1"``, deletion lists arrive as arrays or as comma-joined strings, and
numbers are sometimes quoted. Every such coercion lives here, one function
per field shape, so the rest of the package only sees normalized values.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

from .models import Article, Highlight, SyncStatus, now_ts

# Average adult reading speed used for the reading time estimate
WORDS_PER_MINUTE = 230

_TRUE_STRINGS = {"1", "true", "yes"}


@dataclass
class ListResponse:
    """Normalized payload of the bookmark list endpoint."""

    articles: list[Article] = field(default_factory=list)
    highlights: list[Highlight] = field(default_factory=list)
    delete_ids: list[int] = field(default_factory=list)


def parse_bool(value: Any) -> bool:
    """Normalize a JSON boolean, ``1``/``0`` or ``"1"``/``"0"`` to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def parse_int(value: Any, default: int = 0) -> int:
    """Coerce an int, float or numeric string to int."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return default
    return default


def parse_optional_id(value: Any) -> int | None:
    """Coerce a remote identifier; missing, zero or garbage become None."""
    result = parse_int(value, default=0)
    return result if result > 0 else None


def parse_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def parse_text(value: Any) -> str | None:
    """Return a string field, keeping JSON null as None."""
    if value is None:
        return None
    return str(value)


def parse_delete_ids(value: Any) -> list[int]:
    """Parse ``delete_ids`` from an array, a comma-joined string or a scalar.

    Empty entries and non-numeric garbage are dropped.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        items = [value]

    ids = []
    for item in items:
        bookmark_id = parse_optional_id(item)
        if bookmark_id is not None:
            ids.append(bookmark_id)
    return ids


def estimate_reading_time(word_count: int) -> int:
    """Estimated reading time in whole minutes (0 when unknown)."""
    if word_count <= 0:
        return 0
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def parse_article(item: dict) -> Article:
    """Build an Article from a ``type: bookmark`` object."""
    current_time = now_ts()
    time_added = parse_int(item.get("time")) or current_time
    word_count = parse_int(item.get("word_count"))
    reading_time = parse_int(item.get("reading_time")) or estimate_reading_time(word_count)

    return Article(
        bookmark_id=parse_int(item.get("bookmark_id")),
        title=parse_text(item.get("title")) or "Untitled",
        url=parse_text(item.get("url")) or "",
        progress=min(max(parse_float(item.get("progress")), 0.0), 1.0),
        starred=parse_bool(item.get("starred")),
        is_archived=item.get("type") == "archive",
        time_added=time_added,
        time_updated=parse_int(item.get("progress_timestamp")) or time_added,
        time_synced=current_time,
        sync_status=SyncStatus.SYNCED,
        word_count=word_count,
        reading_time=reading_time,
    )


def parse_highlight(item: dict, bookmark_id: int | None = None) -> Highlight:
    """Build a synced Highlight from a server highlight object."""
    current_time = now_ts()
    if bookmark_id is None:
        bookmark_id = parse_int(item.get("bookmark_id"))
    return Highlight(
        bookmark_id=bookmark_id,
        highlight_id=parse_optional_id(item.get("highlight_id")),
        text=parse_text(item.get("text")) or "",
        note=parse_text(item.get("note")),
        position=parse_int(item.get("position")),
        time_created=parse_int(item.get("time")) or current_time,
        time_updated=current_time,
        sync_status=SyncStatus.SYNCED,
    )


def decode_json(body: str | bytes) -> Any:
    """Decode a JSON body, raising ValueError with a short excerpt on failure."""
    try:
        return json.loads(body)
    except (TypeError, json.JSONDecodeError) as e:
        excerpt = body[:200] if body else ""
        raise ValueError(f"Malformed JSON response: {excerpt!r}") from e


def parse_list_response(body: str | bytes) -> ListResponse:
    """Parse the bookmark list endpoint.

    Accepts the type-tagged array (``bookmark``, ``highlight``, ``meta``,
    ``user``) and the object form with ``bookmarks``/``highlights``/
    ``delete_ids`` keys.
    """
    data = decode_json(body)
    result = ListResponse()

    if isinstance(data, dict):
        result.articles = [parse_article(b) for b in data.get("bookmarks") or []]
        result.highlights = [parse_highlight(h) for h in data.get("highlights") or []]
        result.delete_ids = parse_delete_ids(data.get("delete_ids"))
    elif isinstance(data, list):
        for item in data:
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            if item_type == "bookmark":
                result.articles.append(parse_article(item))
            elif item_type == "highlight":
                result.highlights.append(parse_highlight(item))
            elif item_type == "meta":
                result.delete_ids.extend(parse_delete_ids(item.get("delete_ids")))
            # user objects carry nothing we mirror
    else:
        raise ValueError(f"Unexpected list response type: {type(data).__name__}")

    result.articles = [a for a in result.articles if a.bookmark_id > 0]
    result.highlights = [h for h in result.highlights if h.bookmark_id > 0]
    return result


def parse_highlights_response(body: str | bytes, bookmark_id: int) -> list[Highlight]:
    """Parse the per-article highlight list."""
    data = decode_json(body)
    if isinstance(data, dict):
        data = data.get("highlights") or []
    if not isinstance(data, list):
        raise ValueError(f"Unexpected highlights response type: {type(data).__name__}")
    return [
        parse_highlight(item, bookmark_id)
        for item in data
        if isinstance(item, dict) and item.get("type", "highlight") == "highlight"
    ]


def parse_created_highlight_id(body: str | bytes) -> int | None:
    """Extract the server-assigned id from a highlight create response."""
    data = decode_json(body)
    if isinstance(data, list):
        data = next(
            (item for item in data if isinstance(item, dict) and item.get("type") == "highlight"),
            data[0] if data and isinstance(data[0], dict) else {},
        )
    if not isinstance(data, dict):
        return None
    return parse_optional_id(data.get("highlight_id"))


def parse_token_response(body: str | bytes) -> dict[str, str]:
    """Parse a ``key=value&...`` token response body."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return dict(parse_qsl(body.strip(), keep_blank_values=False))


def parse_error_message(body: str | bytes | None) -> str | None:
    """Return the ``message`` of a ``type: error`` object, if the body has one."""
    if not body:
        return None
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None

    items = data if isinstance(data, list) else [data]
    for item in items:
        if isinstance(item, dict) and item.get("type") == "error":
            message = item.get("message")
            if message:
                return str(message)
    return None
