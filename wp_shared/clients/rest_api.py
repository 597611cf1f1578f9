"""WordPress REST API client (httpx) with cache-aside reads.

GET requests go through the shared ResponseCache; every write drops the
cached reads of the resource family it touched.
"""
import logging
from typing import Any

import httpx

from wp_shared.core.cache import ResponseCache, make_cache_key, resource_family
from wp_shared.core.config import settings
from wp_shared.core.exceptions import (
    ConfigurationError,
    WordPressAPIError,
    WordPressConnectionError,
)

logger = logging.getLogger(__name__)

_MISSING = object()


async def _log_request(request: httpx.Request) -> None:
    logger.debug(f"API Request: {request.method} {request.url}")


async def _log_response(response: httpx.Response) -> None:
    logger.debug(f"API Response: {response.status_code} {response.request.url}")


class WordPressRestClient:
    def __init__(
        self,
        url: str | None = None,
        username: str | None = None,
        app_password: str | None = None,
        cache: ResponseCache | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (url or settings.WORDPRESS_URL).strip().rstrip("/")
        self.username = username or settings.WORDPRESS_USERNAME
        app_password = app_password or settings.WORDPRESS_APP_PASSWORD

        if not self.base_url:
            raise ConfigurationError("WordPress URL is required")
        if not self.username or not app_password:
            raise ConfigurationError("WordPress username and application password are required")

        self.cache = cache if cache is not None else ResponseCache.from_settings()
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/wp-json",
            # Application passwords are displayed with spaces
            auth=(self.username, "".join(app_password.split())),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout or settings.REQUEST_TIMEOUT,
            event_hooks={"request": [_log_request], "response": [_log_response]},
            transport=transport,
        )
        logger.info(f"WordPress REST API client initialized: {self.base_url}")

    async def __aenter__(self) -> "WordPressRestClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Transport ---

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, endpoint, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            error = self._api_error(e.response)
            logger.error(f"API Error: {error.status_code} {error.message}")
            raise error from e
        except httpx.RequestError as e:
            logger.error(f"API Error: {e}")
            raise WordPressConnectionError(
                "No response from WordPress API. Check your connection and URL."
            ) from e
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            # PHP notices or plugin HTML in front of the payload
            logger.warning(f"Non-JSON response from {endpoint}, returning raw text")
            return resp.text

    @staticmethod
    def _api_error(response: httpx.Response) -> WordPressAPIError:
        try:
            data = response.json()
        except ValueError:
            data = None
        message = None
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
        return WordPressAPIError(response.status_code, message or response.reason_phrase)

    # --- Generic verbs ---

    async def get(self, endpoint: str, params: dict | None = None, use_cache: bool = True) -> Any:
        """GET with cache-aside on `GET:endpoint:params`."""
        params = params or {}
        key = make_cache_key("GET", endpoint, params)

        if use_cache:
            cached = self.cache.get(key, _MISSING)
            if cached is not _MISSING:
                return cached

        data = await self._request("GET", endpoint, params=params)
        if use_cache:
            self.cache.set(key, data)
        return data

    async def post(self, endpoint: str, data: dict | None = None) -> Any:
        result = await self._request("POST", endpoint, json=data or {})
        self.cache.invalidate_by_pattern(resource_family(endpoint))
        return result

    async def put(self, endpoint: str, data: dict | None = None) -> Any:
        result = await self._request("PUT", endpoint, json=data or {})
        self.cache.invalidate_by_pattern(resource_family(endpoint))
        return result

    async def delete(self, endpoint: str, params: dict | None = None) -> Any:
        result = await self._request("DELETE", endpoint, params=params or {})
        self.cache.invalidate_by_pattern(resource_family(endpoint))
        return result

    # --- Posts ---

    async def get_posts(self, params: dict | None = None):
        return await self.get("/wp/v2/posts", params)

    async def get_post(self, post_id: int):
        return await self.get(f"/wp/v2/posts/{post_id}")

    async def create_post(self, data: dict):
        return await self.post("/wp/v2/posts", data)

    async def update_post(self, post_id: int, data: dict):
        return await self.put(f"/wp/v2/posts/{post_id}", data)

    async def delete_post(self, post_id: int, force: bool = False):
        return await self.delete(f"/wp/v2/posts/{post_id}", {"force": force})

    # --- Pages ---

    async def get_pages(self, params: dict | None = None):
        return await self.get("/wp/v2/pages", params)

    async def get_page(self, page_id: int):
        return await self.get(f"/wp/v2/pages/{page_id}")

    async def create_page(self, data: dict):
        return await self.post("/wp/v2/pages", data)

    async def update_page(self, page_id: int, data: dict):
        return await self.put(f"/wp/v2/pages/{page_id}", data)

    async def delete_page(self, page_id: int, force: bool = False):
        return await self.delete(f"/wp/v2/pages/{page_id}", {"force": force})

    # --- Media ---

    async def get_media(self, params: dict | None = None):
        return await self.get("/wp/v2/media", params)

    async def get_media_item(self, media_id: int):
        return await self.get(f"/wp/v2/media/{media_id}")

    async def upload_media(self, file_data: bytes, filename: str, mime_type: str):
        """Upload raw file bytes; the filename travels in Content-Disposition."""
        result = await self._request(
            "POST",
            "/wp/v2/media",
            content=file_data,
            headers={
                "Content-Type": mime_type,
                "Content-Disposition": f'attachment; filename="{filename}"',
            },
        )
        self.cache.invalidate_by_pattern(resource_family("/wp/v2/media"))
        return result

    async def update_media(self, media_id: int, data: dict):
        return await self.put(f"/wp/v2/media/{media_id}", data)

    async def delete_media(self, media_id: int, force: bool = False):
        return await self.delete(f"/wp/v2/media/{media_id}", {"force": force})

    # --- Taxonomies ---

    async def get_categories(self, params: dict | None = None):
        return await self.get("/wp/v2/categories", params)

    async def create_category(self, data: dict):
        return await self.post("/wp/v2/categories", data)

    async def update_category(self, category_id: int, data: dict):
        return await self.put(f"/wp/v2/categories/{category_id}", data)

    async def delete_category(self, category_id: int, force: bool = False):
        return await self.delete(f"/wp/v2/categories/{category_id}", {"force": force})

    async def get_tags(self, params: dict | None = None):
        return await self.get("/wp/v2/tags", params)

    async def create_tag(self, data: dict):
        return await self.post("/wp/v2/tags", data)

    async def update_tag(self, tag_id: int, data: dict):
        return await self.put(f"/wp/v2/tags/{tag_id}", data)

    async def delete_tag(self, tag_id: int, force: bool = False):
        return await self.delete(f"/wp/v2/tags/{tag_id}", {"force": force})

    # --- Users ---

    async def get_users(self, params: dict | None = None):
        return await self.get("/wp/v2/users", params)

    async def get_user(self, user_id: int):
        return await self.get(f"/wp/v2/users/{user_id}")

    async def get_current_user(self):
        return await self.get("/wp/v2/users/me")

    # --- Themes & plugins ---

    async def get_themes(self):
        return await self.get("/wp/v2/themes")

    async def get_active_theme(self) -> dict | None:
        themes = await self.get_themes()
        return next((t for t in themes or [] if t.get("status") == "active"), None)

    async def get_plugins(self):
        return await self.get("/wp/v2/plugins")

    async def activate_plugin(self, plugin: str):
        return await self.put(f"/wp/v2/plugins/{plugin}", {"status": "active"})

    async def deactivate_plugin(self, plugin: str):
        return await self.put(f"/wp/v2/plugins/{plugin}", {"status": "inactive"})

    # --- Settings ---

    async def get_settings(self):
        return await self.get("/wp/v2/settings")

    async def update_settings(self, data: dict):
        return await self.post("/wp/v2/settings", data)

    # --- Menus ---

    async def get_menus(self):
        return await self.get("/wp/v2/menus")

    async def get_menu(self, menu_id: int):
        return await self.get(f"/wp/v2/menus/{menu_id}")

    async def create_menu(self, data: dict):
        return await self.post("/wp/v2/menus", data)

    async def update_menu(self, menu_id: int, data: dict):
        return await self.put(f"/wp/v2/menus/{menu_id}", data)

    async def delete_menu(self, menu_id: int):
        return await self.delete(f"/wp/v2/menus/{menu_id}")

    async def get_menu_items(self, menu_id: int):
        return await self.get("/wp/v2/menu-items", {"menus": menu_id})

    async def create_menu_item(self, data: dict):
        return await self.post("/wp/v2/menu-items", data)

    async def update_menu_item(self, item_id: int, data: dict):
        return await self.put(f"/wp/v2/menu-items/{item_id}", data)

    async def delete_menu_item(self, item_id: int):
        return await self.delete(f"/wp/v2/menu-items/{item_id}")

    # --- Blocks ---

    async def get_block_patterns(self):
        return await self.get("/wp/v2/block-patterns/patterns")

    async def get_reusable_blocks(self):
        return await self.get("/wp/v2/blocks")

    async def create_reusable_block(self, data: dict):
        return await self.post("/wp/v2/blocks", data)

    # --- Search ---

    async def search(self, query: str, params: dict | None = None):
        return await self.get("/wp/v2/search", {"search": query, **(params or {})})

    async def test_connection(self) -> dict:
        """Fetch the current user; never raises."""
        try:
            user = await self.get_current_user()
            logger.info(f"Connected to WordPress as: {user.get('name')} ({user.get('email')})")
            return {"success": True, "user": user}
        except Exception as e:
            logger.error(f"Connection test failed: {e}")
            return {"success": False, "error": str(e)}
