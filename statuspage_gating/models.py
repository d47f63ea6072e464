"""
Data models for statuspage gating.

Defines the remote records (pages, components, component groups), the
status enumeration with its explicit severity ranking, and the locally
published resources, snapshots and errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

DEFAULT_ROOT_URL = "https://api.statuspage.io/v1/"


# ─── Statuses ─────────────────────────────────────────────────


class ComponentStatus(str, Enum):
    """Health of a single remote component."""

    OPERATIONAL = "operational"
    UNDER_MAINTENANCE = "under_maintenance"
    DEGRADED_PERFORMANCE = "degraded_performance"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"
    UNKNOWN = "unknown"

    @property
    def severity(self) -> int:
        return STATUS_SEVERITY[self]

    @property
    def category(self) -> "Category":
        return STATUS_CATEGORY[self]

    def is_at_least(self, required: "ComponentStatus") -> bool:
        """True when this status is as healthy as ``required`` or better."""
        return self.severity <= required.severity


class Category(str, Enum):
    """Coarse Up/Down grouping of component statuses."""

    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"

    @property
    def severity(self) -> int:
        return CATEGORY_SEVERITY[self]

    def is_at_least(self, required: "Category") -> bool:
        return self.severity <= required.severity


# Severity comes from these tables, never from enum declaration order.
STATUS_SEVERITY: Dict[ComponentStatus, int] = {
    ComponentStatus.OPERATIONAL: 0,
    ComponentStatus.UNDER_MAINTENANCE: 1,
    ComponentStatus.DEGRADED_PERFORMANCE: 2,
    ComponentStatus.PARTIAL_OUTAGE: 3,
    ComponentStatus.MAJOR_OUTAGE: 4,
    ComponentStatus.UNKNOWN: 5,
}

CATEGORY_SEVERITY: Dict[Category, int] = {
    Category.UP: 0,
    Category.DEGRADED: 1,
    Category.DOWN: 2,
    Category.UNKNOWN: 3,
}

STATUS_CATEGORY: Dict[ComponentStatus, Category] = {
    ComponentStatus.OPERATIONAL: Category.UP,
    ComponentStatus.UNDER_MAINTENANCE: Category.DEGRADED,
    ComponentStatus.DEGRADED_PERFORMANCE: Category.DEGRADED,
    ComponentStatus.PARTIAL_OUTAGE: Category.DOWN,
    ComponentStatus.MAJOR_OUTAGE: Category.DOWN,
    ComponentStatus.UNKNOWN: Category.UNKNOWN,
}

# Status of a published resource: full fidelity, or a category once compacted
ResourceStatus = Union[ComponentStatus, Category]


def parse_status(value: Any) -> ComponentStatus:
    """
    Normalize a remote status string into a ComponentStatus.

    Matching is case-insensitive. Empty, missing or unrecognized values
    become UNKNOWN; this never raises.
    """
    if value is None or value == "":
        return ComponentStatus.UNKNOWN
    try:
        return ComponentStatus(str(value).strip().lower())
    except ValueError:
        logger.warning("Failed to deserialize component status from %r", value)
        return ComponentStatus.UNKNOWN


def _safe_parse_datetime(dt_string: Optional[str]) -> Optional[datetime]:
    """Parse a datetime string flexibly, returning None when absent or invalid."""
    if not dt_string:
        return None
    try:
        parsed = dateutil_parser.parse(dt_string)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ─── Remote records ───────────────────────────────────────────


@dataclass(frozen=True)
class Page:
    """A remote status page."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Page":
        return cls(id=str(raw["id"]), name=str(raw["name"]))


@dataclass(frozen=True)
class Component:
    """
    A remote component and its health.

    Attributes:
        id: Remote identifier.
        name: Display name, used to build resource IDs.
        description: Free text, empty when the remote sends none.
        status: Normalized health status.
        group_id: Id of the owning group, when the remote reports one.
        is_group: True when the remote lists a group as a component.
        updated_at: Last change reported by the remote.
    """

    id: str
    name: str
    description: str = ""
    status: ComponentStatus = ComponentStatus.UNKNOWN
    group_id: Optional[str] = None
    is_group: bool = False
    updated_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Component":
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            description=raw.get("description") or "",
            status=parse_status(raw.get("status")),
            group_id=raw.get("group_id"),
            is_group=bool(raw.get("group", False)),
            updated_at=_safe_parse_datetime(raw.get("updated_at")),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.status.value})"


@dataclass(frozen=True)
class ComponentGroup:
    """A named aggregate of components on one page."""

    id: str
    name: str
    component_ids: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ComponentGroup":
        members = raw.get("components") or []
        if not isinstance(members, list):
            raise TypeError(f"Expected a list of component ids, got {type(members).__name__}")
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            component_ids=tuple(str(m) for m in members),
        )


# ─── Configuration ────────────────────────────────────────────


class SchemaVersion(str, Enum):
    """
    Shape of the published data.

    GROUPED is canonical: several pages per source, component groups are
    resolved and resource IDs read ``label/page/[group]/component``.
    FLAT is the compatibility mode: one page, no groups, and resource IDs
    read ``label/component``.
    """

    GROUPED = "grouped"
    FLAT = "flat"


@dataclass(frozen=True)
class Source:
    """One configured remote status provider."""

    label: str
    pages: Tuple[str, ...]
    url: str = DEFAULT_ROOT_URL
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.label:
            raise ValueError("Source label must not be empty")
        pages = _split_pages(self.pages)
        if not pages:
            raise ValueError(f"Source {self.label!r} selects no pages")
        object.__setattr__(self, "pages", pages)

        url = (self.url or "").strip() or DEFAULT_ROOT_URL
        if not url.endswith("/"):
            url += "/"
        object.__setattr__(self, "url", url)
        object.__setattr__(self, "api_key", self.api_key or None)


def _split_pages(pages: Union[str, Tuple[str, ...], list]) -> Tuple[str, ...]:
    """
    Normalize a page selector into a tuple of page names.

    A lone string (or a one-item list) may hold several names separated
    by line breaks. Blank names are dropped.

    Raises:
        ValueError: If the selector is neither a string nor a sequence.
    """
    if isinstance(pages, str):
        pages = [pages]
    if not isinstance(pages, (list, tuple)):
        raise ValueError(f"Page selector must be a name or a list of names, got {pages!r}")
    pages = list(pages)
    if len(pages) == 1 and pages[0]:
        pages = str(pages[0]).splitlines()
    return tuple(str(p).strip() for p in pages if p is not None and str(p).strip())


@dataclass
class GatingSettings:
    """Global settings."""

    log_level: str = "INFO"
    schema: SchemaVersion = SchemaVersion.GROUPED
    update_interval: float = 60.0  # seconds
    source_timeout: float = 30.0  # seconds, whole build of one source
    request_timeout: float = 15.0  # seconds, a single HTTP call
    port: int = 10000


# ─── Published data ───────────────────────────────────────────


def build_resource_id(
    source_label: str,
    component_name: Optional[str] = None,
    page_name: Optional[str] = None,
    group_name: Optional[str] = None,
) -> str:
    """Join the present parts as ``label/page/group/component``."""
    parts = [source_label, page_name, group_name, component_name]
    return "/".join(p for p in parts if p is not None)


@dataclass(frozen=True)
class Resource:
    """One locally addressable health entry."""

    resource_id: str
    status: ResourceStatus
    description: str = ""
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "status": self.status.value,
            "kind": "category" if isinstance(self.status, Category) else "status",
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class Snapshot:
    """
    The complete set of Resources of one source at one fetch.

    ``resources`` is a read-only mapping. Two snapshots compare equal when
    their label and resources match, regardless of capture time.
    """

    source_label: str
    resources: Mapping[str, Resource] = field(default_factory=dict)
    captured_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", MappingProxyType(dict(self.resources)))

    @property
    def statuses(self) -> Dict[str, ResourceStatus]:
        return {rid: res.status for rid, res in self.resources.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {rid: res.to_dict() for rid, res in self.resources.items()}

    def __hash__(self) -> int:
        return hash((self.source_label, tuple(self.resources.items())))

    def __len__(self) -> int:
        return len(self.resources)


@dataclass(frozen=True)
class SourceError:
    """A failed fetch/build cycle of one source."""

    source_label: str
    message: str
    cause: Optional[BaseException] = field(default=None, compare=False)
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def cause_message(self) -> str:
        return str(self.cause) if self.cause is not None else ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "source_label": self.source_label,
            "message": self.message,
            "cause": self.cause_message,
            "occurred_at": self.occurred_at.isoformat(),
        }
