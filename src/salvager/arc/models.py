"""shared dataclasses used by the catalog stores and the materials engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# -- shared primitives --

RecipeMap = dict[str, int]
"""item_id -> quantity mapping used for recipes, recycling, salvage."""

YieldMap = dict[str, int]
"""material_id -> averaged quantity produced by one tier group."""

ScoringMethod = Literal["max_yield", "weight_conscious"]

MAX_YIELD: ScoringMethod = "max_yield"
WEIGHT_CONSCIOUS: ScoringMethod = "weight_conscious"
SCORING_METHODS: tuple[ScoringMethod, ...] = (MAX_YIELD, WEIGHT_CONSCIOUS)

# -- rarities --

RARITIES = ("Common", "Uncommon", "Rare", "Epic", "Legendary")
"""rarity labels, lowest tier first."""


def normalize_rarity(rarity: str | None) -> str:
    """Map a raw rarity string onto one of the five rarity labels.

    matching is case-insensitive. anything unrecognised falls back to Common.

    Args:
        rarity: raw rarity string from the api or database

    Returns:
        canonical rarity label (e.g. "Epic")
    """
    lowered = (rarity or "").strip().lower()
    for label in RARITIES:
        if label.lower() == lowered:
            return label
    return "Common"


# -- catalog records --


@dataclass(frozen=True)
class Item:
    """a game item as stored in the catalog.

    recipe/salvages_into/recycles_into are only populated when the item was
    loaded from the arctracker api; the sqlite store keeps those edges in
    their own tables.
    """

    id: str
    name: str
    type: str
    rarity: str
    value: int
    weight_kg: float
    stack_size: int | None = None
    is_craftable: bool = False
    description: str = ""
    categories: tuple[str, ...] = ()
    recipe: RecipeMap = field(default_factory=dict, compare=False, hash=False)
    salvages_into: RecipeMap = field(default_factory=dict, compare=False, hash=False)
    recycles_into: RecipeMap = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class RecipeEdge:
    """item_id needs quantity units of ingredient_id to craft."""

    item_id: str
    ingredient_id: str
    quantity: int


@dataclass(frozen=True)
class SourceOutput:
    """a salvage or recycle output edge joined with its source item."""

    source_item_id: str
    output_id: str
    quantity: int
    source_item: Item


# -- filter configuration --


@dataclass
class MaterialFilterOptions:
    """which materials and sources the aggregation considers."""

    hide_scrappy_collected: bool = False
    rarity_filters: set[str] = field(default_factory=lambda: set(RARITIES))
    hidden_source_items: set[str] = field(default_factory=set)
    paused_bookmarks: set[str] = field(default_factory=set)


@dataclass
class SourceFilterOptions:
    """display-side narrowing of the salvage/recycle lists.

    None for type_filters or category_filters means no restriction.
    """

    type_filters: set[str] | None = None
    category_filters: set[str] | None = None
    max_source_value_enabled: bool = False
    max_source_value: int = 500


# -- aggregation results --


@dataclass(frozen=True)
class MaterialRequirement:
    """total demand for one material across all active bookmarks."""

    item: Item
    total_quantity: int
    required_by: list[str]


@dataclass(frozen=True)
class SalvagingSource:
    """a tier group of items that yields demanded materials."""

    item: Item  # representative, first tier variant seen
    salvage_yields: YieldMap
    recycle_yields: YieldMap
    salvage_score: float
    recycle_score: float
    base_name: str


@dataclass(frozen=True)
class AggregatedMaterialsData:
    """complete output of one aggregation run."""

    materials: list[MaterialRequirement] = field(default_factory=list)
    salvage_sources: list[SalvagingSource] = field(default_factory=list)
    recycle_sources: list[SalvagingSource] = field(default_factory=list)
    material_to_sources: dict[str, list[str]] = field(default_factory=dict)
    source_to_materials: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Whether there is nothing to show (no demanded materials)."""
        return not self.materials
