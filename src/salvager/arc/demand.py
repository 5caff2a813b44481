"""material demand resolution for bookmarked items.

walks each active bookmark's recipe, sums how much of every ingredient is
needed, and remembers which bookmarks asked for it.
"""

from __future__ import annotations

import logging
from collections.abc import Set
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from salvager.arc.models import Item, MaterialFilterOptions, MaterialRequirement

if TYPE_CHECKING:
    from collections.abc import Iterable

    from salvager.arc.store import ItemStore

logger = logging.getLogger(__name__)

# materials the scrappy drone collects on its own between raids
SCRAPPY_MATERIALS = frozenset(
    {
        "metal_parts",
        "fabric",
        "plastic_parts",
        "chemicals",
        "rubber_parts",
        "assorted_seeds",
    }
)


def ordered_ids(ids: Iterable[str]) -> list[str]:
    """Return ids in a reproducible order with duplicates removed.

    sequences keep the caller's order. sets have no meaningful order (and
    string hashing differs between runs), so they are sorted.

    Args:
        ids: item ids in any iterable

    Returns:
        deduplicated list of ids
    """
    if isinstance(ids, Set):
        return sorted(ids)
    return list(dict.fromkeys(ids))


def should_include_material(material: Item, filters: MaterialFilterOptions) -> bool:
    """Check whether a material passes the rarity and scrappy filters.

    Args:
        material: ingredient item
        filters: active material filters

    Returns:
        True if the material should be tracked
    """
    if material.rarity not in filters.rarity_filters:
        return False
    return not (filters.hide_scrappy_collected and material.id in SCRAPPY_MATERIALS)


@dataclass
class MaterialDemand:
    """per-material totals for one aggregation run, in first-seen order."""

    quantities: dict[str, int] = field(default_factory=dict)
    required_by: dict[str, list[str]] = field(default_factory=dict)
    items: dict[str, Item] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.quantities.values())

    def __contains__(self, material_id: object) -> bool:
        return material_id in self.quantities

    def add(self, material: Item, quantity: int, bookmark_id: str) -> None:
        self.items.setdefault(material.id, material)
        self.quantities[material.id] = self.quantities.get(material.id, 0) + quantity
        requesters = self.required_by.setdefault(material.id, [])
        if bookmark_id not in requesters:
            requesters.append(bookmark_id)

    def requirements(self) -> list[MaterialRequirement]:
        """Materials sorted by total quantity, largest first (stable)."""
        materials = [
            MaterialRequirement(
                item=self.items[material_id],
                total_quantity=quantity,
                required_by=list(self.required_by[material_id]),
            )
            for material_id, quantity in self.quantities.items()
        ]
        materials.sort(key=lambda m: m.total_quantity, reverse=True)
        return materials


def resolve_demand(
    bookmarked_ids: Iterable[str],
    store: ItemStore,
    filters: MaterialFilterOptions,
) -> MaterialDemand:
    """Aggregate the materials required by every non-paused bookmark.

    each ingredient item is fetched from the store at most once per run.
    recipe edges that reference unknown items are skipped.

    Args:
        bookmarked_ids: wanted item ids
        store: catalog to read recipes and items from
        filters: active material filters

    Returns:
        MaterialDemand holding the accepted quantities
    """
    demand = MaterialDemand()
    material_cache: dict[str, Item | None] = {}

    for item_id in ordered_ids(bookmarked_ids):
        if item_id in filters.paused_bookmarks:
            continue

        for recipe in store.recipes_for(item_id):
            ingredient_id = recipe.ingredient_id
            if ingredient_id not in material_cache:
                material_cache[ingredient_id] = store.item_by_id(ingredient_id)

            material = material_cache[ingredient_id]
            if material is None:
                logger.debug(
                    "recipe for %s references unknown item %s", item_id, ingredient_id
                )
                continue
            if not should_include_material(material, filters):
                continue

            demand.add(material, recipe.quantity, item_id)

    return demand
