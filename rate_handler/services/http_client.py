from __future__ import annotations

"""Lightweight async HTTP helper with retry.

Focus: GET JSON with limited retries and a hard per-request timeout. Every
transport failure, timeout, HTTP status >= 400 and JSON decode error is
reported as HttpError so callers only have one exception to catch.
"""
import asyncio
from typing import Any, Dict, Mapping, Optional

import httpx


class HttpError(Exception):
    pass


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 5.0,
    retries: int = 0,
    backoff: float = 0.25,
) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            resp = await client.get(url, headers=headers, timeout=timeout)
            if resp.status_code >= 400:
                raise HttpError(f"HTTP {resp.status_code} for {url}")
            data = resp.json()
            if not isinstance(data, dict):
                raise HttpError(f"Expected JSON object from {url}")
            return data
        except httpx.TimeoutException as e:
            last_err = HttpError(f"Request timeout after {timeout} seconds")
            last_err.__cause__ = e
        except (httpx.HTTPError, HttpError, ValueError) as e:  # ValueError for JSON decode
            last_err = e
        if attempt == retries:
            break
        await asyncio.sleep(backoff * (2**attempt))
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")
