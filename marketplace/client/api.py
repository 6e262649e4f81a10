from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


@dataclass(frozen=True)
class ApiResult:
    ok: bool
    status_code: int | None
    data: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    rejected: bool = False

    @classmethod
    def refused(cls, message: str) -> "ApiResult":
        """A call refused locally, before any request was sent."""
        return cls(ok=False, status_code=None, message=message, rejected=True)


def _is_json_response(resp: httpx.Response) -> bool:
    ct = (resp.headers.get("content-type") or "").lower()
    return "application/json" in ct or ct.endswith("+json")


class MarketplaceClient:
    """
    Thin async wrapper over the marketplace HTTP API.

    - One AsyncClient instance (connection pooling); pass `transport` to run
      against an in-process app.
    - Never raises on HTTP status or network failure; every call returns an
      ApiResult.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def request(
        self,
        method: HttpMethod,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        files: Any = None,
    ) -> ApiResult:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None and v != ""}

        try:
            resp = await self._client.request(
                method, path, headers=headers, params=clean_params, json=json_body, files=files
            )
        except httpx.TimeoutException as e:
            return ApiResult(ok=False, status_code=None, message=f"timeout: {e}")
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return ApiResult(ok=False, status_code=None, message=f"request error: {e}")

        data: dict[str, Any] = {}
        if _is_json_response(resp):
            try:
                parsed = resp.json()
            except ValueError:
                parsed = {}
            data = parsed if isinstance(parsed, dict) else {"data": parsed}

        ok = 200 <= resp.status_code < 300
        message = data.get("message") if isinstance(data.get("message"), str) else None
        if not ok and message is None:
            message = f"HTTP {resp.status_code}"
        return ApiResult(
            ok=ok,
            status_code=resp.status_code,
            data=data,
            message=message,
            errors=list(data.get("errors") or []) if not ok else [],
        )

    # auth / users
    async def register(self, *, name: str, email: str, password: str) -> ApiResult:
        result = await self.request("POST", "/api/auth/register", json_body={"name": name, "email": email, "password": password})
        if result.ok:
            self.token = result.data.get("token")
        return result

    async def login(self, *, email: str, password: str) -> ApiResult:
        result = await self.request("POST", "/api/auth/login", json_body={"email": email, "password": password})
        if result.ok:
            self.token = result.data.get("token")
        return result

    async def me(self) -> ApiResult:
        return await self.request("GET", "/api/auth/me")

    async def get_user(self, user_id: str) -> ApiResult:
        return await self.request("GET", f"/api/users/{user_id}")

    async def update_profile(self, changes: Mapping[str, Any]) -> ApiResult:
        return await self.request("PUT", "/api/users/profile", json_body=dict(changes))

    async def update_password(self, *, current_password: str, new_password: str) -> ApiResult:
        return await self.request(
            "PUT",
            "/api/users/password",
            json_body={"current_password": current_password, "new_password": new_password},
        )

    # listings
    async def list_listings(self, params: Mapping[str, Any] | None = None) -> ApiResult:
        return await self.request("GET", "/api/listings", params=params)

    async def featured_listings(self, limit: int = 8) -> ApiResult:
        return await self.request("GET", "/api/listings/featured", params={"limit": limit})

    async def recent_listings(self, limit: int = 8) -> ApiResult:
        return await self.request("GET", "/api/listings/recent", params={"limit": limit})

    async def user_listings(self, user_id: str, params: Mapping[str, Any] | None = None) -> ApiResult:
        return await self.request("GET", f"/api/listings/user/{user_id}", params=params)

    async def get_listing(self, id_or_slug: str) -> ApiResult:
        return await self.request("GET", f"/api/listings/{id_or_slug}")

    async def create_listing(self, payload: Mapping[str, Any]) -> ApiResult:
        return await self.request("POST", "/api/listings", json_body=dict(payload))

    async def update_listing(self, listing_id: str, changes: Mapping[str, Any]) -> ApiResult:
        return await self.request("PUT", f"/api/listings/{listing_id}", json_body=dict(changes))

    async def delete_listing(self, listing_id: str) -> ApiResult:
        return await self.request("DELETE", f"/api/listings/{listing_id}")

    async def mark_sold(self, listing_id: str) -> ApiResult:
        return await self.request("PUT", f"/api/listings/{listing_id}/sold")

    # categories
    async def list_categories(self, *, parent_only: bool = False) -> ApiResult:
        return await self.request("GET", "/api/categories", params={"parentOnly": "true" if parent_only else None})

    async def get_category(self, id_or_slug: str) -> ApiResult:
        return await self.request("GET", f"/api/categories/{id_or_slug}")

    async def category_fields(self, id_or_slug: str) -> ApiResult:
        return await self.request("GET", f"/api/categories/{id_or_slug}/fields")

    # favorites
    async def list_favorites(self, *, page: int = 1, limit: int = 10) -> ApiResult:
        return await self.request("GET", "/api/favorites", params={"page": page, "limit": limit})

    async def add_favorite(self, listing_id: str) -> ApiResult:
        return await self.request("POST", "/api/favorites", json_body={"listing_id": listing_id})

    async def remove_favorite(self, listing_id: str) -> ApiResult:
        return await self.request("DELETE", f"/api/favorites/{listing_id}")

    async def check_favorite(self, listing_id: str) -> ApiResult:
        return await self.request("GET", f"/api/favorites/{listing_id}/check")

    # messages
    async def conversations(self) -> ApiResult:
        return await self.request("GET", "/api/messages/conversations")

    async def open_conversation(self, user_id: str, listing_id: str) -> ApiResult:
        return await self.request("GET", f"/api/messages/conversation/{user_id}/{listing_id}")

    async def send_message(self, conversation_id: str, content: str) -> ApiResult:
        return await self.request(
            "POST", "/api/messages", json_body={"conversation_id": conversation_id, "content": content}
        )

    async def mark_read(self, conversation_id: str) -> ApiResult:
        return await self.request("PUT", f"/api/messages/read/{conversation_id}")

    async def unread_count(self) -> ApiResult:
        return await self.request("GET", "/api/messages/unread")

    # uploads
    async def upload_images(self, files: list[tuple[str, bytes, str]]) -> ApiResult:
        """`files` is a list of (filename, content, content_type)."""
        return await self.request("POST", "/api/uploads", files=[("images", f) for f in files])

    async def delete_upload(self, url: str) -> ApiResult:
        return await self.request("DELETE", "/api/uploads", json_body={"url": url})
