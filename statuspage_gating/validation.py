"""
Connectivity check for a source configuration.

Unlike polling, where a page selector that matches nothing simply yields
an empty snapshot, the check fails loudly and names the missing pages.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from statuspage_gating.models import Source
from statuspage_gating.updater import ClientFactory

logger = logging.getLogger(__name__)

TEXT_NO_API_KEY = (
    "No API key provided, make sure desired pages are available without authentication."
)
TEXT_NO_PAGES = "No pages configured!"


@dataclass(frozen=True)
class ConnectionCheck:
    """Outcome of a connectivity check."""

    ok: bool
    message: str

    def to_dict(self) -> dict:
        return {"ok": self.ok, "message": self.message}


async def check_connection(source: Source, client_factory: ClientFactory) -> ConnectionCheck:
    """
    Connect to the source's API and verify every configured page exists.

    Fetch failures are reported as a failed check, never raised.
    """
    try:
        async with client_factory(source) as client:
            pages = await client.list_pages()
    except Exception as exc:
        logger.info("Verification of source %s failed: %s", source.label, exc)
        return ConnectionCheck(False, f"Verification failed: {exc}")

    existing = [p.name for p in pages]
    missing = [name for name in source.pages if name not in existing]
    if missing:
        return ConnectionCheck(
            False,
            f"Some configured pages {list(source.pages)} do not exist: {missing}",
        )

    message = "Connected!"
    if source.api_key is None:
        message += " " + TEXT_NO_API_KEY
    message += " Existing pages: " + ", ".join(existing)
    return ConnectionCheck(True, message)


async def check_connection_params(
    pages: Union[str, Iterable[str]],
    url: Optional[str],
    api_key: Optional[str],
    client_factory: ClientFactory,
) -> ConnectionCheck:
    """Check an unsaved configuration given as raw form values."""
    try:
        source = Source(
            label=str(uuid.uuid4()),
            pages=pages if isinstance(pages, str) else tuple(pages),
            url=url or "",
            api_key=api_key,
        )
    except ValueError:
        return ConnectionCheck(False, TEXT_NO_PAGES)
    return await check_connection(source, client_factory)
