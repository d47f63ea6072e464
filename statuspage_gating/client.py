"""
Statuspage REST client.

A thin async wrapper over the read-only Statuspage API. Each client owns
its own aiohttp session and is meant to be used as an async context
manager so the connection is always released:

    async with StatusPageClient(url, api_key) as client:
        pages = await client.list_pages()

Every failure (non-2xx status, transport error, timeout, malformed body)
surfaces as a FetchError. There are no retries.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

import aiohttp

from statuspage_gating.models import (
    DEFAULT_ROOT_URL,
    Component,
    ComponentGroup,
    Page,
    Source,
)

T = TypeVar("T")


class FetchError(Exception):
    """A remote call failed."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class StatusPageClient:
    """
    Read-only client for one Statuspage API root.

    Attributes:
        root_url: API root, always ending with a slash.
        api_key: Optional credential sent as ``Authorization: OAuth <key>``.
    """

    def __init__(
        self,
        root_url: str = DEFAULT_ROOT_URL,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
    ) -> None:
        root_url = root_url or DEFAULT_ROOT_URL
        self.root_url = root_url if root_url.endswith("/") else root_url + "/"
        self.api_key = api_key
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def for_source(cls, source: Source, timeout: float = 15.0) -> "StatusPageClient":
        return cls(source.url, source.api_key, timeout=timeout)

    async def __aenter__(self) -> "StatusPageClient":
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    # ── API ───────────────────────────────────────────────

    async def list_pages(self) -> List[Page]:
        return await self._fetch_list("pages", Page.from_dict)

    async def list_components(self, page: Page) -> List[Component]:
        return await self._fetch_list(f"pages/{page.id}/components", Component.from_dict)

    async def list_component_groups(self, page: Page) -> List[ComponentGroup]:
        return await self._fetch_list(
            f"pages/{page.id}/component-groups", ComponentGroup.from_dict
        )

    # ── Internals ─────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"OAuth {self.api_key}"
        return headers

    async def _fetch_list(
        self, path: str, factory: Callable[[Dict[str, Any]], T]
    ) -> List[T]:
        url = self.root_url + path
        body = await self._get_json(url)
        return deserialize_list(url, body, factory)

    async def _get_json(self, url: str) -> Any:
        if self._session is None:
            raise RuntimeError("StatusPageClient must be used as an async context manager")

        try:
            async with self._session.get(url, headers=self._headers()) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(
                        url, f"Status code {resp.status} accessing {url}", status=resp.status
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise FetchError(
                        url, f"Malformed JSON from {url}: {exc}", status=resp.status
                    ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(url, f"Failed accessing {url}: {exc!r}") from exc


def deserialize_list(
    url: str, body: Any, factory: Callable[[Dict[str, Any]], T]
) -> List[T]:
    """
    Convert a decoded JSON array into typed records.

    Raises:
        FetchError: If the body is not an array of objects of the
            expected shape.
    """
    if not isinstance(body, list):
        raise FetchError(url, f"Expected a JSON array from {url}, got {type(body).__name__}")
    try:
        return [factory(item) for item in body]
    except (KeyError, TypeError, AttributeError) as exc:
        raise FetchError(url, f"Unexpected payload shape from {url}: {exc!r}") from exc
