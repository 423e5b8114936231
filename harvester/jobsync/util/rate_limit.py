from __future__ import annotations
"""Simple per-host rate limiting helper with backoff & jitter.

Usage:
    from harvester.jobsync.util.rate_limit import polite_get
    resp = polite_get("https://www.arbeitnow.com/api/job-board-api", client=client)

 - Enforces minimum interval between calls per host (default 0.75s)
 - Adds small random jitter (0-120ms) to avoid lockstep patterns
 - Exponential backoff for HTTP 429, transient 5xx codes and transport errors

Shared across source worker threads; the per-host timestamp map is lock protected.
"""
import time
import random
import threading
from typing import Optional, Dict, Iterable
from urllib.parse import urlparse
import httpx

_LOCK = threading.Lock()
_LAST_CALL: Dict[str, float] = {}


def _host(url: str) -> str:
    return urlparse(url).netloc.lower()


def _sleep_needed(host: str, min_interval: float) -> float:
    now = time.time()
    last = _LAST_CALL.get(host, 0.0)
    remaining = min_interval - (now - last)
    return remaining if remaining > 0 else 0.0


def polite_get(url: str, *, min_interval: float = 0.75, timeout: float = 20.0, max_retries: int = 2, backoff_factor: float = 1.8, retry_status: Iterable[int] = (429, 502, 503, 504), client: Optional[httpx.Client] = None, **kwargs) -> httpx.Response:
    host = _host(url)
    attempt = 0
    close_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout)
    try:
        while True:
            with _LOCK:
                sleep_for = _sleep_needed(host, min_interval)
            if sleep_for > 0:
                time.sleep(sleep_for + random.uniform(0, 0.12))
            try:
                resp = client.get(url, timeout=timeout, **kwargs)
            except httpx.RequestError:
                if attempt >= max_retries:
                    raise
                time.sleep((backoff_factor ** attempt) * 0.5)
                attempt += 1
                continue
            finally:
                with _LOCK:
                    _LAST_CALL[host] = time.time()
            if resp.status_code in retry_status and attempt < max_retries:
                time.sleep((backoff_factor ** attempt) * 0.75)
                attempt += 1
                continue
            return resp
    finally:
        if close_client:
            client.close()
