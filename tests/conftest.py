"""
Shared fixtures: an in-memory stand-in for StatusPageClient and the two
sources most tests poll.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from statuspage_gating.models import (
    Component,
    ComponentGroup,
    ComponentStatus,
    Page,
    Source,
)


class FakeStatusPageClient:
    """Serves fixed pages/components/groups, or fails every call with ``error``."""

    def __init__(
        self,
        pages: Optional[Dict[Page, List[Component]]] = None,
        groups: Optional[Dict[Page, List[ComponentGroup]]] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.pages = pages or {}
        self.groups = groups or {}
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.entered = 0
        self.closed = 0
        self.active = 0
        self.max_active = 0

    async def __aenter__(self) -> "FakeStatusPageClient":
        self.entered += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.active -= 1
        self.closed += 1

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def list_pages(self) -> List[Page]:
        await self._call("pages")
        return list(self.pages)

    async def list_components(self, page: Page) -> List[Component]:
        await self._call(f"components:{page.name}")
        return list(self.pages[page])

    async def list_component_groups(self, page: Page) -> List[ComponentGroup]:
        await self._call(f"groups:{page.name}")
        return list(self.groups.get(page, []))


SHARED_PAGES = {
    Page("oneId", "oneName"): [
        Component("deadbeef", "Component #1", "Some desc", ComponentStatus.OPERATIONAL),
    ],
    Page("twoId", "twoName"): [
        Component("hexcat", "down-component", "it is down, alright", ComponentStatus.MAJOR_OUTAGE),
        Component("lizard", "some-other-component", "", ComponentStatus.DEGRADED_PERFORMANCE),
        Component("squirrel", "Squirrel", "", ComponentStatus.MAJOR_OUTAGE),
    ],
}


@pytest.fixture
def fake_client_cls():
    return FakeStatusPageClient


@pytest.fixture
def shared_fixture_client():
    return FakeStatusPageClient(pages=SHARED_PAGES)


@pytest.fixture
def declared_sources():
    return [
        Source("one", ("oneName",)),
        Source("Second One", ("twoName",)),
    ]
