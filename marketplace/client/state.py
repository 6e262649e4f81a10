"""
Client-side listing state.

Holds the last applied listing page, the viewer's favorite ids, and per-key
loading/error flags. Mutations settle to a consistent state whether or not the
network call succeeds:

    cache = ListingCache(MarketplaceClient(base_url, token=token))
    await cache.load_listings({"category": "vehicles", "sort": "price-asc"})
    await cache.toggle_favorite(listing_id)
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from marketplace.client.api import ApiResult, MarketplaceClient

log = logging.getLogger(__name__)

LISTINGS = "listings"
FAVORITES = "favorites"
CREATE = "create"


class ListingCache:
    def __init__(self, client: MarketplaceClient):
        self.client = client
        self.listings: list[dict[str, Any]] = []
        self.pagination: dict[str, int] | None = None
        self.params: dict[str, Any] = {}
        self.favorites: set[str] = set()
        self.loading: dict[str, bool] = {}
        self.errors: dict[str, str | None] = {}
        self._seq = 0

    def is_loading(self, key: str) -> bool:
        return self.loading.get(key, False)

    def _fail(self, key: str, result: ApiResult) -> None:
        self.errors[key] = result.message or "Request failed"
        log.info("%s failed: %s", key, self.errors[key])

    async def _guarded(self, key: str, call: Callable[[], Awaitable[ApiResult]]) -> ApiResult:
        # one in-flight request per key; a second caller is refused without a request
        if self.is_loading(key):
            return ApiResult.refused(f"{key} already in progress")
        self.loading[key] = True
        self.errors[key] = None
        try:
            return await call()
        finally:
            self.loading[key] = False

    async def load_listings(self, params: Mapping[str, Any] | None = None) -> ApiResult:
        """
        Fetch a listing page. Each call takes the next sequence number; a response
        is applied only if no newer load has started since.
        """
        self._seq += 1
        seq = self._seq
        self.params = dict(params or {})
        self.loading[LISTINGS] = True
        try:
            result = await self.client.list_listings(self.params)
        finally:
            if seq == self._seq:
                self.loading[LISTINGS] = False

        if seq != self._seq:
            log.debug("dropping stale listings response seq=%s latest=%s", seq, self._seq)
            return result
        if result.ok:
            self.listings = list(result.data.get("listings") or [])
            self.pagination = result.data.get("pagination")
            self.errors[LISTINGS] = None
        else:
            self._fail(LISTINGS, result)
        return result

    async def load_favorites(self, *, limit: int = 50) -> ApiResult:
        async def call() -> ApiResult:
            ids: set[str] = set()
            page = 1
            while True:
                result = await self.client.list_favorites(page=page, limit=limit)
                if not result.ok:
                    return result
                ids.update(f["listing"]["id"] for f in result.data.get("favorites") or [])
                pages = (result.data.get("pagination") or {}).get("pages", 0)
                if page >= pages:
                    self.favorites = ids
                    return result
                page += 1

        result = await self._guarded(FAVORITES, call)
        if not result.ok and not result.rejected:
            self._fail(FAVORITES, result)
        return result

    async def create_listing(self, payload: Mapping[str, Any]) -> ApiResult:
        result = await self._guarded(CREATE, lambda: self.client.create_listing(payload))
        if result.ok:
            listing = result.data["listing"]
            if not any(item["id"] == listing["id"] for item in self.listings):
                self.listings.insert(0, listing)
                self._adjust_total(+1)
        elif not result.rejected:
            self._fail(CREATE, result)
        return result

    async def update_listing(self, listing_id: str, changes: Mapping[str, Any]) -> ApiResult:
        key = f"update:{listing_id}"
        result = await self._guarded(key, lambda: self.client.update_listing(listing_id, changes))
        if result.ok:
            listing = result.data["listing"]
            self.listings = [listing if item["id"] == listing_id else item for item in self.listings]
        elif not result.rejected:
            self._fail(key, result)
        return result

    async def remove_listing(self, listing_id: str) -> ApiResult:
        """
        Remove locally first; put the listing back where it was if the server refuses.
        A page loaded while the delete was pending already reflects the server, so
        nothing is restored over it.
        """
        key = f"delete:{listing_id}"
        if self.is_loading(key):
            return ApiResult.refused(f"{key} already in progress")

        seq = self._seq
        index = next((i for i, item in enumerate(self.listings) if item["id"] == listing_id), None)
        removed = self.listings.pop(index) if index is not None else None
        if removed is not None:
            self._adjust_total(-1)

        result = await self._guarded(key, lambda: self.client.delete_listing(listing_id))
        if result.ok:
            self.favorites.discard(listing_id)
            return result

        restore = removed is not None and seq == self._seq
        if restore and not any(item["id"] == listing_id for item in self.listings):
            self.listings.insert(min(index, len(self.listings)), removed)
            self._adjust_total(+1)
        self._fail(key, result)
        return result

    async def toggle_favorite(self, listing_id: str) -> ApiResult:
        """Flip membership immediately; flip back if the server call fails."""
        key = f"favorite:{listing_id}"
        if self.is_loading(key):
            return ApiResult.refused(f"{key} already in progress")

        was_favorite = listing_id in self.favorites
        if was_favorite:
            self.favorites.discard(listing_id)
            call = lambda: self.client.remove_favorite(listing_id)  # noqa: E731
        else:
            self.favorites.add(listing_id)
            call = lambda: self.client.add_favorite(listing_id)  # noqa: E731

        result = await self._guarded(key, call)
        if result.ok:
            return result

        # 409 on add / 404 on remove: the server already agrees with the new state
        if (not was_favorite and result.status_code == 409) or (was_favorite and result.status_code == 404):
            return result

        if was_favorite:
            self.favorites.add(listing_id)
        else:
            self.favorites.discard(listing_id)
        self._fail(key, result)
        return result

    def _adjust_total(self, delta: int) -> None:
        if not self.pagination:
            return
        total = max(0, self.pagination.get("total", 0) + delta)
        limit = self.pagination.get("limit") or 1
        self.pagination = {**self.pagination, "total": total, "pages": -(-total // limit) if total else 0}
