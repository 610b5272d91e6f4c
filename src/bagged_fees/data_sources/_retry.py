"""
Shared async HTTP helpers with pacing and bounded retries.

Used by every data-source client (Bags, Bagscreener, CoinGecko, Jupiter,
Solana RPC).  Failures never raise: the helpers log and return ``None``
so callers decide how to degrade.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)


def _parse_retry_after(resp: httpx.Response, default: float) -> float:
    """Extract wait time from a ``Retry-After`` header, or use *default*.

    Only the integer-seconds form is handled.
    """
    raw = resp.headers.get("retry-after")
    if raw is not None:
        try:
            return max(float(raw), 0.5)
        except (ValueError, TypeError):
            pass
    return default


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: Optional[dict[str, Any]],
    json_payload: Any,
    limiter: Optional[TokenBucket],
) -> httpx.Response:
    if limiter is not None:
        await limiter.acquire()
    if method == "POST":
        return await client.post(url, json=json_payload, params=params)
    return await client.get(url, params=params)


async def async_http_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    max_retries: int = 2,
    backoff_base: float = 1.0,
    limiter: Optional[TokenBucket] = None,
    label: str = "HTTP",
) -> Optional[Any]:
    """GET *url* and return parsed JSON, or ``None`` once attempts run out.

    429 honours ``Retry-After``; 403 / 404 are final.
    """
    for attempt in range(max_retries):
        try:
            resp = await _send(
                client, "GET", url, params=params, json_payload=None, limiter=limiter
            )
            if resp.status_code == 429:
                if attempt < max_retries - 1:
                    wait = _parse_retry_after(resp, backoff_base * (2 ** attempt))
                    logger.warning("%s rate-limited, retry in %.1fs", label, wait)
                    await asyncio.sleep(wait)
                    continue
                logger.warning("%s rate-limited, giving up on %s", label, url)
                return None
            if resp.status_code in (403, 404):
                logger.warning("%s %s for %s", label, resp.status_code, url)
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s HTTP %s for %s", label, exc.response.status_code, url)
        except httpx.RequestError as exc:
            logger.warning("%s request failed: %s – %s", label, url, exc)
        except ValueError:
            logger.warning("%s returned a non-JSON body for %s", label, url)
            return None
        if attempt < max_retries - 1:
            await asyncio.sleep(backoff_base * (2 ** attempt))
    return None


async def async_http_post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    json_payload: Any,
    max_retries: int = 1,
    backoff_base: float = 1.5,
    limiter: Optional[TokenBucket] = None,
    label: str = "RPC",
) -> Optional[Any]:
    """POST a JSON-RPC *payload* and return its ``result`` member.

    Returns ``None`` when attempts run out, on 403, or when the body
    carries a JSON-RPC ``error``.
    """
    for attempt in range(max_retries):
        try:
            resp = await _send(
                client, "POST", url, params=None, json_payload=json_payload, limiter=limiter
            )
            if resp.status_code == 429:
                if attempt < max_retries - 1:
                    wait = _parse_retry_after(resp, backoff_base * (2 ** attempt))
                    logger.warning("%s rate-limited, retry in %.1fs", label, wait)
                    await asyncio.sleep(wait)
                    continue
                logger.warning("%s rate-limited, giving up", label)
                return None
            if resp.status_code == 403:
                logger.warning("%s 403 for %s – endpoint may block this method", label, url)
                return None
            resp.raise_for_status()
            body = resp.json()
            if not isinstance(body, dict):
                logger.warning("%s malformed body: %r", label, body)
                return None
            if "error" in body:
                logger.warning("%s error: %s", label, body["error"])
                return None
            return body.get("result")
        except httpx.HTTPStatusError as exc:
            logger.warning("%s HTTP %s", label, exc.response.status_code)
        except httpx.RequestError as exc:
            logger.warning("%s request failed: %s", label, exc)
        except ValueError:
            logger.warning("%s returned a non-JSON body", label)
            return None
        if attempt < max_retries - 1:
            await asyncio.sleep(backoff_base * (2 ** attempt))
    return None
