"""
Component group compaction.

Reduces the statuses of a group's members to one representative value:
the shared status when every member agrees, otherwise the category of the
least healthy member.
"""

from __future__ import annotations

from typing import Iterable

from statuspage_gating.models import ComponentStatus, ResourceStatus


def compact(statuses: Iterable[ComponentStatus]) -> ResourceStatus:
    """
    Compact member statuses into a single group status.

    Args:
        statuses: Statuses of the group members, in any order.

    Returns:
        The common status if all members agree, else the Category of the
        worst status by severity.

    Raises:
        ValueError: If ``statuses`` is empty.
    """
    distinct = set(statuses)
    if not distinct:
        raise ValueError("Cannot compact an empty set of statuses")
    if len(distinct) == 1:
        return distinct.pop()

    worst = max(distinct, key=lambda s: s.severity)
    return worst.category
