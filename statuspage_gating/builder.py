"""
Snapshot builder.

Turns the remote pages, components and component groups of one source
into a Snapshot keyed by resource ID. The build either completes or
raises; callers never see a partial snapshot.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from statuspage_gating.client import StatusPageClient
from statuspage_gating.compaction import compact
from statuspage_gating.models import (
    Component,
    ComponentGroup,
    Page,
    Resource,
    SchemaVersion,
    Snapshot,
    Source,
    build_resource_id,
)

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """The remote data cannot be turned into a snapshot."""


async def build_snapshot(
    source: Source,
    client: StatusPageClient,
    schema: SchemaVersion = SchemaVersion.GROUPED,
) -> Snapshot:
    """
    Fetch and normalize everything a source exposes.

    Pages are matched by exact name against ``source.pages``; no match
    yields an empty snapshot.

    Raises:
        FetchError: If any remote call fails.
        SnapshotError: If a group has no resolvable members.
    """
    resources: Dict[str, Resource] = {}

    for page in await client.list_pages():
        if page.name not in source.pages:
            continue

        components = await client.list_components(page)
        if schema is SchemaVersion.FLAT:
            _add_flat(resources, source, components)
        else:
            groups = await client.list_component_groups(page)
            _add_grouped(resources, source, page, components, groups)

    return Snapshot(source_label=source.label, resources=resources)


def _put(resources: Dict[str, Resource], resource: Resource) -> None:
    if resource.resource_id in resources:
        logger.debug("Duplicate resource %s, keeping the last one", resource.resource_id)
    resources[resource.resource_id] = resource


def _component_resource(rid: str, component: Component) -> Resource:
    return Resource(rid, component.status, component.description, component.updated_at)


def _add_flat(
    resources: Dict[str, Resource], source: Source, components: List[Component]
) -> None:
    for component in components:
        rid = build_resource_id(source.label, component.name)
        _put(resources, _component_resource(rid, component))


def _members(group: ComponentGroup, components: List[Component]) -> List[Component]:
    """Components listed by the group, then those naming it as their group_id."""
    by_id = {c.id: c for c in components}
    members = [by_id[cid] for cid in group.component_ids if cid in by_id]
    listed = {m.id for m in members}
    members.extend(
        c for c in components
        if c.group_id == group.id and c.id not in listed and not c.is_group
    )
    return members


def _add_grouped(
    resources: Dict[str, Resource],
    source: Source,
    page: Page,
    components: List[Component],
    groups: List[ComponentGroup],
) -> None:
    group_ids = {g.id for g in groups}
    group_rids = set()
    grouped_ids = set()

    for group in groups:
        members = _members(group, components)
        if not members:
            raise SnapshotError(
                f"Component group {group.name!r} on page {page.name!r} "
                f"of source {source.label!r} has no resolvable members"
            )

        for member in members:
            grouped_ids.add(member.id)
            rid = build_resource_id(source.label, member.name, page.name, group.name)
            _put(resources, _component_resource(rid, member))

        group_rid = build_resource_id(source.label, page_name=page.name, group_name=group.name)
        if group_rid in group_rids:
            raise SnapshotError(f"Two component groups publish as {group_rid!r}")
        group_rids.add(group_rid)
        timestamps = [m.updated_at for m in members if m.updated_at is not None]
        _put(resources, Resource(
            group_rid,
            compact(m.status for m in members),
            updated_at=max(timestamps) if timestamps else None,
        ))

    for component in components:
        # Groups are listed as components too; their aggregate is emitted above
        if component.is_group or component.id in group_ids or component.id in grouped_ids:
            continue
        rid = build_resource_id(source.label, component.name, page.name)
        if rid in group_rids:
            raise SnapshotError(
                f"Component {component.name!r} on page {page.name!r} of source "
                f"{source.label!r} has the same resource ID as a component group"
            )
        _put(resources, _component_resource(rid, component))
