"""materials aggregation engine for arc raiders crafting goals.

pure logic module, no I/O beyond read-only store lookups. takes the
bookmarked items, filter settings and scoring method, returns which
materials are needed and which items to salvage or recycle for them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from salvager.arc.demand import ordered_ids, resolve_demand
from salvager.arc.models import (
    MAX_YIELD,
    SCORING_METHODS,
    AggregatedMaterialsData,
    MaterialFilterOptions,
    SalvagingSource,
    ScoringMethod,
    SourceFilterOptions,
)
from salvager.arc.scoring import score_group
from salvager.arc.sources import discover_sources, strip_tier_suffix

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from salvager.arc.store import ItemStore

logger = logging.getLogger(__name__)

# recycling must be at least this many times as rewarding as salvaging
RECYCLING_THRESHOLD = 2.0


def partition_sources(
    sources: Iterable[SalvagingSource],
) -> tuple[list[SalvagingSource], list[SalvagingSource]]:
    """Split scored sources into salvage and recycle buckets.

    sources with both scores at 0 are dropped. a source with only one
    non-zero score goes to that bucket; otherwise it goes to recycle when
    recycle_score / salvage_score exceeds RECYCLING_THRESHOLD.

    Args:
        sources: scored sources in discovery order

    Returns:
        tuple of (salvage sources by salvage_score desc,
        recycle sources by recycle_score desc)
    """
    salvage: list[SalvagingSource] = []
    recycle: list[SalvagingSource] = []

    for source in sources:
        if source.salvage_score == 0 and source.recycle_score == 0:
            continue
        if source.salvage_score == 0:
            recycle.append(source)
            continue
        if source.recycle_score == 0:
            salvage.append(source)
            continue

        recycling_advantage = source.recycle_score / source.salvage_score
        if recycling_advantage > RECYCLING_THRESHOLD:
            recycle.append(source)
        else:
            salvage.append(source)

    salvage.sort(key=lambda s: s.salvage_score, reverse=True)
    recycle.sort(key=lambda s: s.recycle_score, reverse=True)
    return salvage, recycle


def build_relationship_index(
    salvage_sources: Sequence[SalvagingSource],
    recycle_sources: Sequence[SalvagingSource],
) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """Build material <-> source lookups for hover highlighting.

    salvage sources are visited before recycle sources, so a material shared
    by both lists lists its salvage sources first.

    Args:
        salvage_sources: final salvage bucket
        recycle_sources: final recycle bucket

    Returns:
        tuple of (material_id -> source ids, source_id -> material ids)
    """
    material_to_sources: dict[str, list[str]] = {}
    source_to_materials: dict[str, list[str]] = {}

    for source in [*salvage_sources, *recycle_sources]:
        source_id = source.item.id
        provided = list(dict.fromkeys([*source.salvage_yields, *source.recycle_yields]))

        for material_id in provided:
            linked = material_to_sources.setdefault(material_id, [])
            if source_id not in linked:
                linked.append(source_id)

        source_to_materials[source_id] = provided

    return material_to_sources, source_to_materials


def aggregate(
    bookmarked_ids: Iterable[str],
    store: ItemStore,
    scoring_method: ScoringMethod = MAX_YIELD,
    filter_options: MaterialFilterOptions | None = None,
    *,
    normalize_name: Callable[[str], str] = strip_tier_suffix,
) -> AggregatedMaterialsData:
    """Work out materials, salvage sources and recycle sources for bookmarks.

    step 1: resolve demanded materials from non-paused bookmarks' recipes
    step 2: find items that salvage/recycle into them, grouped by tier
    step 3: score each group for salvaging and for recycling
    step 4: partition into salvage/recycle buckets and sort
    step 5: build material <-> source relationship maps

    Args:
        bookmarked_ids: wanted item ids
        store: read-only item/recipe catalog
        scoring_method: "max_yield" or "weight_conscious"
        filter_options: material filters, defaults to everything enabled
        normalize_name: maps a display name to its tier group key

    Returns:
        full aggregation snapshot

    Raises:
        ValueError: on an unknown scoring method
        StoreNotReadyError: if the store has not been loaded
    """
    if scoring_method not in SCORING_METHODS:
        raise ValueError(f"unknown scoring method: {scoring_method!r}")
    if filter_options is None:
        filter_options = MaterialFilterOptions()

    bookmarks = ordered_ids(bookmarked_ids)

    # step 1
    demand = resolve_demand(bookmarks, store, filter_options)
    materials = demand.requirements()

    # step 2
    material_ids = list(demand.quantities)
    excluded_ids = {
        *bookmarks,
        *material_ids,
        *filter_options.hidden_source_items,
    }
    groups = discover_sources(material_ids, store, excluded_ids, normalize_name)

    # step 3
    scored = []
    for group in groups.values():
        source = score_group(group, demand, store, scoring_method)
        if source is not None:
            scored.append(source)

    # step 4
    salvage_sources, recycle_sources = partition_sources(scored)

    # step 5
    material_to_sources, source_to_materials = build_relationship_index(
        salvage_sources, recycle_sources
    )

    logger.debug(
        "aggregated %d bookmarks: %d materials, %d groups, %d salvage, %d recycle",
        len(bookmarks),
        len(materials),
        len(groups),
        len(salvage_sources),
        len(recycle_sources),
    )

    return AggregatedMaterialsData(
        materials=materials,
        salvage_sources=salvage_sources,
        recycle_sources=recycle_sources,
        material_to_sources=material_to_sources,
        source_to_materials=source_to_materials,
    )


def _source_visible(
    source: SalvagingSource,
    store: ItemStore,
    options: SourceFilterOptions,
) -> bool:
    item = source.item
    if options.type_filters is not None and item.type not in options.type_filters:
        return False
    if options.category_filters is not None:
        categories = store.categories_for(item.id)
        if not options.category_filters.intersection(categories):
            return False
    return not (
        options.max_source_value_enabled and item.value > options.max_source_value
    )


def filter_sources(
    data: AggregatedMaterialsData,
    store: ItemStore,
    options: SourceFilterOptions,
) -> AggregatedMaterialsData:
    """Narrow the source lists by type, category and sell value.

    materials are left untouched; the relationship maps are rebuilt so they
    only reference the sources that survive.

    Args:
        data: result of aggregate()
        store: catalog used for category lookups
        options: display filters

    Returns:
        new aggregation snapshot with filtered source lists
    """
    salvage = [s for s in data.salvage_sources if _source_visible(s, store, options)]
    recycle = [s for s in data.recycle_sources if _source_visible(s, store, options)]
    material_to_sources, source_to_materials = build_relationship_index(
        salvage, recycle
    )
    return replace(
        data,
        salvage_sources=salvage,
        recycle_sources=recycle,
        material_to_sources=material_to_sources,
        source_to_materials=source_to_materials,
    )
