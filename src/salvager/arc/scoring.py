"""dual scoring of tier groups: salvage in the field vs recycle at base.

both scores start from the demand-weighted yield of the materials a source
produces, then apply weight, rarity and slot-efficiency factors. the two
scoring methods only differ in how hard weight is punished.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from salvager.arc.models import (
    MAX_YIELD,
    WEIGHT_CONSCIOUS,
    Item,
    SalvagingSource,
    ScoringMethod,
    YieldMap,
)

if TYPE_CHECKING:
    from salvager.arc.demand import MaterialDemand
    from salvager.arc.sources import SourceGroup
    from salvager.arc.store import ItemStore

# -- formula constants --

# commons are favoured for salvaging, rarer gear is better used elsewhere
RARITY_SALVAGE_PENALTY: dict[str, float] = {
    "Common": 1.0,
    "Uncommon": 0.9,
    "Rare": 0.8,
    "Epic": 0.7,
    "Legendary": 0.6,
}

RARITY_RECYCLE_BONUS: dict[str, float] = {
    "Common": 1.0,
    "Uncommon": 1.1,
    "Rare": 1.15,
    "Epic": 1.2,
    "Legendary": 1.25,
}

IMMEDIACY_BONUS = 1.2
COMPLEXITY_PENALTY = 0.85
SLOT_EFFICIENCY_WEIGHT = 0.3
DEFAULT_STACK_SIZE = 1

MULTI_MATERIAL_BASE = 1.15
MIN_CARRY_WEIGHT_PENALTY = 0.3
CARRY_WEIGHT_SCALE_KG = 10
MAX_VALUE_BONUS = 1.3
VALUE_BONUS_SCALE = 5000


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return math.floor(value + 0.5)


def multi_material_bonus(num_materials: int) -> float:
    """Reward sources that recycle into many distinct materials."""
    return MULTI_MATERIAL_BASE ** (num_materials - 1)


def carry_weight_penalty(weight_kg: float) -> float:
    """Discount heavy items, floored at 30% of the base score."""
    return max(MIN_CARRY_WEIGHT_PENALTY, 1 - weight_kg / CARRY_WEIGHT_SCALE_KG)


def value_bonus(value: int) -> float:
    """Small bonus for high sell-value items, capped at +30%."""
    return min(MAX_VALUE_BONUS, 1 + (value / VALUE_BONUS_SCALE) * 0.1)


def slot_bonus(slot_efficiency: float) -> float:
    """Turn a slot efficiency ratio into a multiplier that never goes below 1."""
    return max(1.0, 1 + (slot_efficiency - 1) * SLOT_EFFICIENCY_WEIGHT)


def _divide(numerator: float, denominator: float) -> float:
    # zero yield scores zero; weightless catalog rows would divide by zero
    if numerator == 0:
        return 0.0
    if denominator == 0:
        return math.inf
    return numerator / denominator


def _material(material_id: str, demand: MaterialDemand, store: ItemStore) -> Item | None:
    cached = demand.items.get(material_id)
    return cached if cached is not None else store.item_by_id(material_id)


def slot_efficiency(
    item: Item,
    yields: YieldMap,
    demand: MaterialDemand,
    store: ItemStore,
) -> float:
    """Ratio of the yield-weighted mean output stack size to the source's.

    Args:
        item: source item being broken down
        yields: material_id -> quantity produced
        demand: current demand (its item cache is reused for lookups)
        store: catalog for materials missing from the cache

    Returns:
        slot efficiency, 1.0 when nothing is produced
    """
    total_quantity = sum(yields.values())
    if total_quantity <= 0:
        return 1.0

    item_stack_size = item.stack_size or DEFAULT_STACK_SIZE
    weighted_stack_sum = 0
    for material_id, quantity in yields.items():
        material = _material(material_id, demand, store)
        stack_size = (material.stack_size if material else None) or DEFAULT_STACK_SIZE
        weighted_stack_sum += stack_size * quantity

    return (weighted_stack_sum / total_quantity) / item_stack_size


def average_yields(
    totals: dict[str, int], member_count: int, demand: MaterialDemand
) -> YieldMap:
    """Average a group's summed yields per member, keeping demanded materials.

    Args:
        totals: material_id -> quantity summed across all tier variants
        member_count: number of tier variants in the group
        demand: current demand, used to drop stale materials

    Returns:
        material_id -> rounded average quantity
    """
    return {
        material_id: round_half_up(total / member_count)
        for material_id, total in totals.items()
        if material_id in demand
    }


def demand_weighted_yield(yields: YieldMap, demand: MaterialDemand) -> float:
    """Sum of yield x (need / total need) over the produced materials."""
    total_demand = demand.total
    if total_demand <= 0 or sum(yields.values()) <= 0:
        return 0.0

    score = 0.0
    for material_id, amount in yields.items():
        demand_weight = demand.quantities.get(material_id, 0) / total_demand
        score += amount * demand_weight
    return score


def salvage_score(
    item: Item,
    yields: YieldMap,
    demand: MaterialDemand,
    store: ItemStore,
    method: ScoringMethod,
) -> float:
    """Score how worthwhile salvaging item in the field is.

    divides the demand-weighted yield by the weight of what you'd carry away
    afterwards (squared in weight_conscious mode), applies the rarity penalty,
    the immediacy bonus and the slot-efficiency bonus.

    Args:
        item: representative source item
        yields: averaged salvage yields
        demand: current material demand
        store: catalog for material weights and stack sizes
        method: scoring method

    Returns:
        non-negative salvage score
    """
    base_score = demand_weighted_yield(yields, demand)

    total_yield_weight = 0.0
    for material_id, amount in yields.items():
        material = _material(material_id, demand, store)
        if material is not None:
            total_yield_weight += amount * material.weight_kg

    effective_weight = total_yield_weight if total_yield_weight > 0 else item.weight_kg
    weight_factor = (
        effective_weight**2 if method == WEIGHT_CONSCIOUS else effective_weight
    )

    score = (
        _divide(base_score, weight_factor)
        * RARITY_SALVAGE_PENALTY.get(item.rarity, 1.0)
        * IMMEDIACY_BONUS
    )
    return score * slot_bonus(slot_efficiency(item, yields, demand, store))


def recycle_score(
    item: Item,
    yields: YieldMap,
    demand: MaterialDemand,
    store: ItemStore,
    method: ScoringMethod,
) -> float:
    """Score how worthwhile carrying item home to recycle is.

    max_yield divides by the item's own weight; weight_conscious divides by
    its square and also applies the carry-weight penalty and value bonus.
    both apply the rarity bonus, multi-material bonus, complexity penalty and
    slot-efficiency bonus.

    Args:
        item: representative source item
        yields: averaged recycle yields
        demand: current material demand
        store: catalog for material stack sizes
        method: scoring method

    Returns:
        non-negative recycle score
    """
    base_score = demand_weighted_yield(yields, demand)
    rarity_bonus = RARITY_RECYCLE_BONUS.get(item.rarity, 1.0)
    materials_bonus = multi_material_bonus(len(yields))

    if method == MAX_YIELD:
        score = (
            _divide(base_score, item.weight_kg)
            * rarity_bonus
            * materials_bonus
            * COMPLEXITY_PENALTY
        )
    else:
        score = (
            _divide(base_score, item.weight_kg**2)
            * rarity_bonus
            * materials_bonus
            * carry_weight_penalty(item.weight_kg)
            * value_bonus(item.value)
            * COMPLEXITY_PENALTY
        )

    return score * slot_bonus(slot_efficiency(item, yields, demand, store))


def score_group(
    group: SourceGroup,
    demand: MaterialDemand,
    store: ItemStore,
    method: ScoringMethod,
) -> SalvagingSource | None:
    """Average a tier group's yields and compute both scores.

    weight, value and rarity come from the representative item only; yields
    are averaged across the whole group.

    Args:
        group: tier group from source discovery
        demand: current material demand
        store: catalog for material lookups
        method: scoring method

    Returns:
        scored source, or None when the group yields nothing still in demand
    """
    member_count = len(group.items)
    salvage_yields = average_yields(group.salvage_totals, member_count, demand)
    recycle_yields = average_yields(group.recycle_totals, member_count, demand)
    if not salvage_yields and not recycle_yields:
        return None

    item = group.representative
    return SalvagingSource(
        item=item,
        salvage_yields=salvage_yields,
        recycle_yields=recycle_yields,
        salvage_score=salvage_score(item, salvage_yields, demand, store, method),
        recycle_score=recycle_score(item, recycle_yields, demand, store, method),
        base_name=group.base_name,
    )
