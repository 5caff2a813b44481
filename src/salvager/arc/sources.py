"""source discovery and tier grouping.

finds every item that salvages or recycles into a demanded material and
folds tier variants ("Anvil I", "Anvil II", ...) into one group, since they
are the same loot source for a player.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from salvager.arc.models import Item, SourceOutput
    from salvager.arc.store import ItemStore

TIER_SUFFIX = re.compile(r"\s+(I|II|III|IV)$")


def strip_tier_suffix(name: str) -> str:
    """Drop a trailing roman-numeral tier from a display name.

    Args:
        name: item display name (e.g. "Anvil III")

    Returns:
        base name (e.g. "Anvil"); unchanged when there is no tier suffix
    """
    return TIER_SUFFIX.sub("", name)


@dataclass
class SourceGroup:
    """all catalog items sharing one base name, with summed yields."""

    base_name: str
    items: list[Item] = field(default_factory=list)
    salvage_totals: dict[str, int] = field(default_factory=dict)
    recycle_totals: dict[str, int] = field(default_factory=dict)

    @property
    def representative(self) -> Item:
        return self.items[0]

    def add_member(self, item: Item) -> None:
        if not any(member.id == item.id for member in self.items):
            self.items.append(item)


def _collect(
    groups: dict[str, SourceGroup],
    outputs: Iterable[SourceOutput],
    material_id: str,
    *,
    salvage: bool,
    normalize_name: Callable[[str], str],
) -> None:
    for output in outputs:
        base_name = normalize_name(output.source_item.name)
        group = groups.get(base_name)
        if group is None:
            group = groups[base_name] = SourceGroup(base_name=base_name)
        group.add_member(output.source_item)

        totals = group.salvage_totals if salvage else group.recycle_totals
        totals[material_id] = totals.get(material_id, 0) + output.quantity


def discover_sources(
    material_ids: list[str],
    store: ItemStore,
    excluded_ids: set[str],
    normalize_name: Callable[[str], str] = strip_tier_suffix,
) -> dict[str, SourceGroup]:
    """Find and group every item that yields one of the demanded materials.

    salvage outputs are gathered for all materials first, then recycle
    outputs, so group membership order follows the salvage edges.

    Args:
        material_ids: demanded material ids, in demand order
        store: catalog to query output edges from
        excluded_ids: ids that can never be a source (bookmarks, materials,
            hidden items)
        normalize_name: maps a display name to its tier group key

    Returns:
        base_name -> SourceGroup, in first-seen order
    """
    groups: dict[str, SourceGroup] = {}

    for material_id in material_ids:
        _collect(
            groups,
            store.salvage_outputs_for(material_id, excluded_ids),
            material_id,
            salvage=True,
            normalize_name=normalize_name,
        )

    for material_id in material_ids:
        _collect(
            groups,
            store.recycle_outputs_for(material_id, excluded_ids),
            material_id,
            salvage=False,
            normalize_name=normalize_name,
        )

    return groups
