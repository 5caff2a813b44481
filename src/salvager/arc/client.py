"""async http client for the arctracker.io item catalog."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from salvager.arc.models import Item, normalize_rarity

logger = logging.getLogger(__name__)


class ArcApiError(Exception):
    """error from the arctracker api."""

    def __init__(self, code: str, message: str, status: int) -> None:
        """Initialize api error.

        Args:
            code: error code from api response
            message: error message from api response
            status: http status code
        """
        self.code = code
        self.message = message
        self.status = status
        super().__init__(f"[{status}] {code}: {message}")


def _english(value: Any, default: str = "") -> str:
    """Pick the english text out of a localized field.

    the api sends {"en": ..., "de": ...}; older dumps send a plain string.
    """
    if isinstance(value, dict):
        return value.get("en", default)
    if isinstance(value, str):
        return value
    return default


def _split_categories(found_in: str | None) -> tuple[str, ...]:
    """Split a comma-separated "found in" field into category names."""
    if not found_in:
        return ()
    return tuple(cat.strip() for cat in found_in.split(",") if cat.strip())


def parse_item(item_data: dict[str, Any]) -> Item:
    """Map one camelCase api item onto the catalog Item.

    upgraded weapon tiers carry their recipe under upgradeCost instead of
    recipe.

    Args:
        item_data: single entry from the /api/items "items" list

    Returns:
        parsed Item
    """
    recipe = item_data.get("recipe") or item_data.get("upgradeCost") or {}
    return Item(
        id=item_data["id"],
        name=_english(item_data.get("name"), item_data["id"]),
        description=_english(item_data.get("description")),
        type=item_data.get("type", ""),
        rarity=normalize_rarity(item_data.get("rarity")),
        value=item_data.get("value") or 0,
        weight_kg=item_data.get("weightKg") or 0.0,
        stack_size=item_data.get("stackSize") or None,
        is_craftable=bool(recipe),
        categories=_split_categories(item_data.get("foundIn")),
        recipe=dict(recipe),
        salvages_into=dict(item_data.get("salvagesInto") or {}),
        recycles_into=dict(item_data.get("recyclesInto") or {}),
    )


class ArcClient:
    """async client for the public arctracker.io item catalog.

    caches the catalog in-memory after the first fetch.
    """

    BASE_URL = "https://arctracker.io"
    HTTP_OK = 200

    def __init__(self, app_key: str = "") -> None:
        """Initialize the arc api client.

        Args:
            app_key: application key from arctracker developer dashboard
        """
        self._app_key = app_key
        self._session: aiohttp.ClientSession | None = None
        self._item_cache: dict[str, Item] | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session.

        Returns:
            active aiohttp client session
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _request(self, method: str, path: str) -> dict:
        """Make http request to arctracker api.

        Args:
            method: http method (GET, POST, etc)
            path: api path (e.g. /api/items)

        Returns:
            parsed json response

        Raises:
            ArcApiError: on non-200 responses with api error envelope
        """
        session = await self._get_session()
        url = f"{self.BASE_URL}{path}"

        headers = {}
        if self._app_key:
            headers["X-App-Key"] = self._app_key

        async with session.request(method, url, headers=headers) as response:
            data = await response.json()

            if response.status != self.HTTP_OK:
                # parse error envelope: {"error": {"code": "...", "message": "..."}}
                error = data.get("error", {})
                code = error.get("code", "UNKNOWN")
                message = error.get("message", "Unknown error")
                raise ArcApiError(code, message, response.status)

            return data

    async def fetch_items(self) -> dict[str, Item]:
        """Fetch all game items from public endpoint.

        items are cached in-memory after first fetch.

        Returns:
            dictionary mapping item_id -> Item
        """
        if self._item_cache is not None:
            return self._item_cache

        data = await self._request("GET", "/api/items")

        items: dict[str, Item] = {}
        for item_data in data["items"]:
            item = parse_item(item_data)
            items[item.id] = item

        logger.info("loaded %d catalog items", len(items))
        self._item_cache = items
        return items

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> ArcClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()
