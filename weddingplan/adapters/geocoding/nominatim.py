"""
OpenStreetMap Nominatim geocoding adapter (free, no API key).

GET https://nominatim.openstreetmap.org/search?q=...&format=json&limit=1

Nominatim allows at most one request per second, so every outbound call goes
through a process-wide limiter keyed on the last request time. The limiter is
per process only; several workers sharing one IP can still exceed the policy.

Falls back to stub mode when GEOCODER_STUB env var is set.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from weddingplan.config import settings

logger = logging.getLogger(__name__)

GEOCODER_STUB_ENABLED_KEY = "GEOCODER_STUB"

MIN_REQUEST_INTERVAL = settings.geocoder_min_interval_ms / 1000.0

# Indirection so tests can drive the limiter with a fake clock
_clock = time.monotonic
_sleep = asyncio.sleep

_last_request_at: Optional[float] = None
_rate_lock = asyncio.Lock()


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    display_name: str


async def _wait_for_rate_limit() -> None:
    """Block until MIN_REQUEST_INTERVAL has passed since the previous request, then claim the slot."""
    global _last_request_at
    async with _rate_lock:
        if _last_request_at is not None:
            elapsed = _clock() - _last_request_at
            if elapsed < MIN_REQUEST_INTERVAL:
                await _sleep(MIN_REQUEST_INTERVAL - elapsed)
        _last_request_at = _clock()


def reset_rate_limit() -> None:
    global _last_request_at
    _last_request_at = None


def _stub_result(address: str) -> GeocodeResult:
    digest = hashlib.sha256(address.encode("utf-8")).digest()
    # Somewhere inside the continental US
    lat = 30.0 + digest[0] / 255 * 15.0
    lng = -120.0 + digest[1] / 255 * 45.0
    return GeocodeResult(lat=round(lat, 5), lng=round(lng, 5), display_name=f"{address} (stub)")


async def _search(client: httpx.AsyncClient, address: str) -> Optional[GeocodeResult]:
    resp = await client.get(
        settings.geocoder_url,
        params={
            "q": address,
            "format": "json",
            "limit": 1,
            "countrycodes": settings.geocoder_country_codes,
        },
        headers={"User-Agent": settings.geocoder_user_agent},
    )

    if not resp.is_success:
        logger.error("geocode: request failed status=%d", resp.status_code)
        return None

    data = resp.json()
    if not data:
        logger.info("geocode: no results for address=%r", address)
        return None

    first = data[0]
    return GeocodeResult(
        lat=float(first["lat"]),
        lng=float(first["lon"]),
        display_name=first.get("display_name", ""),
    )


async def geocode_address(
    address: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[GeocodeResult]:
    """
    Resolve one address to coordinates.

    Returns None for a blank address or on any failure (HTTP error, empty
    result, malformed payload, network error). No retries.
    """
    if not address or not address.strip():
        return None
    address = address.strip()

    if os.getenv(GEOCODER_STUB_ENABLED_KEY):
        return _stub_result(address)

    await _wait_for_rate_limit()

    try:
        if client is not None:
            return await _search(client, address)
        async with httpx.AsyncClient(timeout=10.0) as own_client:
            return await _search(own_client, address)
    except httpx.HTTPError as e:
        logger.error("geocode: http error for address=%r: %s", address, e)
        return None
    except (ValueError, KeyError, TypeError, IndexError) as e:
        logger.error("geocode: bad payload for address=%r: %s", address, e)
        return None


async def geocode_addresses(
    items: Iterable[tuple[str, str]],
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, GeocodeResult]:
    """Geocode (id, address) pairs one after another. Failed lookups are left out."""
    results: dict[str, GeocodeResult] = {}
    for item_id, address in items:
        result = await geocode_address(address, client=client)
        if result is not None:
            results[item_id] = result
    return results
