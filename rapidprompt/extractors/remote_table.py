# rapidprompt/extractors/remote_table.py
"""
Remote extraction: the source text is POSTed as {"data": ...} to an HTTP endpoint
and the JSON reply is flattened into an ApiTable (sorted column union, string cells).
"""
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from ..core.errors import SourceUnavailable, ValidationFailed
from ..core.file_reader import ascii_only
from ..core.models import ApiTable

PREFERRED_ARRAY_KEYS = ("items", "rows", "data", "result", "notes", "records")
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; rapidprompt)"
BROWSER_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def is_url(source: str) -> bool:
    lowered = source.strip().lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def json_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _objects_in(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [x for x in value if isinstance(x, dict)]


def find_array_of_objects(payload: Any) -> Optional[List[Dict[str, Any]]]:
    """First array of objects: top level, then the usual wrapper keys, then any key."""
    objs = _objects_in(payload)
    if objs:
        return objs
    if isinstance(payload, dict):
        for key in PREFERRED_ARRAY_KEYS:
            objs = _objects_in(payload.get(key))
            if objs:
                return objs
        for value in payload.values():
            objs = _objects_in(value)
            if objs:
                return objs
    return None


def normalize_table(payload: Any) -> ApiTable:
    objs = find_array_of_objects(payload)
    if objs is None:
        raise ValidationFailed("No array of objects in API response")
    columns = sorted({k for o in objs for k in o.keys()})
    rows = [{c: json_to_string(o.get(c)) for c in columns} for o in objs]
    return ApiTable(columns=columns, rows=rows)


async def _download(session: aiohttp.ClientSession, url: str) -> str:
    headers = {"Accept": BROWSER_ACCEPT, "Accept-Language": "en-US,en;q=0.9"}
    async with session.get(url, headers=headers, max_redirects=10) as response:
        if response.status < 200 or response.status >= 300:
            raise SourceUnavailable(f"GET {url} returned {response.status}")
        return ascii_only(await response.read())


def _read_local(path: str) -> str:
    try:
        return Path(path).read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise SourceUnavailable(f"Could not read {path}: {e}") from e


async def fetch_remote_table_async(endpoint: str,
                                   source: str,
                                   timeout_seconds: float = 60.0,
                                   user_agent: str = DEFAULT_USER_AGENT) -> ApiTable:
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    try:
        async with aiohttp.ClientSession(timeout=timeout, headers={"User-Agent": user_agent}) as session:
            text = await _download(session, source) if is_url(source) else _read_local(source)
            logger.info(f"POST {endpoint} ({len(text)} chars from {source})")
            async with session.post(endpoint, json={"data": text}) as response:
                if response.status < 200 or response.status >= 300:
                    raise SourceUnavailable(f"API error {response.status} from {endpoint}")
                try:
                    payload = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                    raise ValidationFailed(f"API response from {endpoint} is not JSON: {e}") from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise SourceUnavailable(f"Request to {endpoint} failed: {e}") from e
    table = normalize_table(payload)
    logger.info(f"API returned {len(table.rows)} rows, {len(table.columns)} columns.")
    return table


def fetch_remote_table(endpoint: str, source: str, timeout_seconds: float = 60.0,
                       user_agent: str = DEFAULT_USER_AGENT) -> ApiTable:
    """Blocking wrapper; call from a worker thread, never from a running event loop."""
    return asyncio.run(fetch_remote_table_async(endpoint, source, timeout_seconds, user_agent))
