"""read-only item/recipe stores consumed by the materials engine.

two implementations of the same lookup interface:

- CatalogStore: in-memory indices over the item catalog fetched from the
  arctracker api (items carry their own recipe/salvage/recycle maps).
- SqliteStore: parameterized queries over a prebuilt sqlite catalog.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from salvager.arc.models import Item, RecipeEdge, SourceOutput, normalize_rarity

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

logger = logging.getLogger(__name__)


class StoreNotReadyError(RuntimeError):
    """the store was queried before its data was loaded."""


class CatalogOpenError(StoreNotReadyError):
    """the sqlite catalog file is missing or is not a catalog."""


class ItemStore(Protocol):
    """lookups the materials engine needs from a catalog."""

    def recipes_for(self, item_id: str) -> list[RecipeEdge]:
        """Get the crafting recipe edges of an item.

        Args:
            item_id: crafted item identifier

        Returns:
            one edge per ingredient, empty for unknown or uncraftable items
        """
        ...

    def item_by_id(self, item_id: str) -> Item | None:
        """Look up one item, or None if it is not in the catalog."""
        ...

    def salvage_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find the items that salvage into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            salvage edges with their source items attached
        """
        ...

    def recycle_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find the items that recycle into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            recycle edges with their source items attached
        """
        ...

    def categories_for(self, item_id: str) -> list[str]:
        """Get the category display names of an item."""
        ...


# -- in-memory catalog --


def _reverse_outputs(
    items: Mapping[str, Item], attr: str
) -> dict[str, list[tuple[str, int]]]:
    """Build output_id -> [(source_id, qty), ...] from one item output map.

    Args:
        items: full item catalog
        attr: "salvages_into" or "recycles_into"

    Returns:
        reverse edge map, sources in catalog order
    """
    reverse: dict[str, list[tuple[str, int]]] = {}
    for item_id, item in items.items():
        for output_id, qty in getattr(item, attr).items():
            reverse.setdefault(output_id, []).append((item_id, qty))
    return reverse


class CatalogStore:
    """item store backed by an in-memory item catalog.

    reverse salvage/recycle indices are built once at construction. edges that
    point at items missing from the catalog are kept; the engine skips them.
    """

    def __init__(
        self,
        items: Mapping[str, Item],
        categories: Mapping[str, list[str]] | None = None,
    ) -> None:
        """Initialize the catalog store.

        Args:
            items: item_id -> Item catalog
            categories: optional item_id -> category names override. when
                omitted, each item's own categories are used.
        """
        self.items = dict(items)
        self._categories = dict(categories) if categories is not None else None
        self._salvage_reverse = _reverse_outputs(self.items, "salvages_into")
        self._recycle_reverse = _reverse_outputs(self.items, "recycles_into")

    def recipes_for(self, item_id: str) -> list[RecipeEdge]:
        """Get an item's recipe edges in recipe-map order.

        Args:
            item_id: crafted item identifier

        Returns:
            recipe edges, empty if the item is unknown
        """
        item = self.items.get(item_id)
        if item is None:
            return []
        return [
            RecipeEdge(item_id=item_id, ingredient_id=ingredient_id, quantity=qty)
            for ingredient_id, qty in item.recipe.items()
        ]

    def item_by_id(self, item_id: str) -> Item | None:
        """Look up one item by id."""
        return self.items.get(item_id)

    def _outputs(
        self,
        reverse: dict[str, list[tuple[str, int]]],
        material_id: str,
        exclude: Collection[str],
    ) -> list[SourceOutput]:
        outputs = []
        for source_id, qty in reverse.get(material_id, []):
            if source_id in exclude:
                continue
            source = self.items.get(source_id)
            if source is None:
                continue
            outputs.append(
                SourceOutput(
                    source_item_id=source_id,
                    output_id=material_id,
                    quantity=qty,
                    source_item=source,
                )
            )
        return outputs

    def salvage_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find catalog items that salvage into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            salvage edges in catalog order; sources missing from the
            catalog are skipped
        """
        return self._outputs(self._salvage_reverse, material_id, exclude)

    def recycle_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find catalog items that recycle into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            recycle edges in catalog order
        """
        return self._outputs(self._recycle_reverse, material_id, exclude)

    def categories_for(self, item_id: str) -> list[str]:
        """Get category names from the override map, else from the item."""
        if self._categories is not None:
            return list(self._categories.get(item_id, []))
        item = self.items.get(item_id)
        return list(item.categories) if item else []

    def find_by_name(self, query: str) -> Item | None:
        """Resolve a user query to a catalog item by name.

        tries exact match first, then substring. for multiple substring
        matches, picks the shortest name (most specific).

        Args:
            query: user-provided item name (case-insensitive)

        Returns:
            matched Item, or None if no match
        """
        query_lower = query.lower().strip()
        if not query_lower:
            return None

        for item in self.items.values():
            if item.name.lower() == query_lower:
                return item

        matches = [
            item for item in self.items.values() if query_lower in item.name.lower()
        ]
        if matches:
            matches.sort(key=lambda i: len(i.name))
            return matches[0]

        return None


# -- sqlite catalog --

SCHEMA_SQL = """
CREATE TABLE items (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    type TEXT NOT NULL,
    rarity TEXT NOT NULL,
    value INTEGER NOT NULL,
    weight_kg REAL NOT NULL,
    stack_size INTEGER,
    is_craftable BOOLEAN DEFAULT 0
);

CREATE TABLE crafting_recipes (
    item_id TEXT NOT NULL,
    ingredient_id TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    PRIMARY KEY (item_id, ingredient_id)
);

CREATE TABLE recycling_outputs (
    item_id TEXT NOT NULL,
    output_id TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    PRIMARY KEY (item_id, output_id)
);

CREATE TABLE salvaging_outputs (
    item_id TEXT NOT NULL,
    output_id TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    PRIMARY KEY (item_id, output_id)
);

CREATE TABLE item_categories (
    id TEXT PRIMARY KEY,
    display_name TEXT NOT NULL
);

CREATE TABLE item_category_links (
    item_id TEXT NOT NULL,
    category_id TEXT NOT NULL,
    PRIMARY KEY (item_id, category_id)
);

CREATE INDEX idx_crafting_recipes_ingredient ON crafting_recipes(ingredient_id);
CREATE INDEX idx_recycling_outputs_output ON recycling_outputs(output_id);
CREATE INDEX idx_salvaging_outputs_output ON salvaging_outputs(output_id);
"""
"""tables the sqlite store reads. the import pipeline owns the real file."""

_ITEM_COLUMNS = (
    "i.id, i.name, i.description, i.type, i.rarity, i.value, i.weight_kg, "
    "i.stack_size, i.is_craftable"
)


def _item_from_row(row: sqlite3.Row) -> Item:
    return Item(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        type=row["type"],
        rarity=normalize_rarity(row["rarity"]),
        value=row["value"] or 0,
        weight_kg=row["weight_kg"] or 0.0,
        stack_size=row["stack_size"],
        is_craftable=bool(row["is_craftable"]),
    )


class SqliteStore:
    """read-only item store over a sqlite catalog file.

    the connection is opened lazily via open() (or the context manager);
    querying before that raises StoreNotReadyError. the file is opened with
    mode=ro, so a missing path is never created.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the sqlite store.

        Args:
            path: database file path, or ":memory:"
        """
        self.path = str(path)
        self._conn: sqlite3.Connection | None = None

    @classmethod
    def from_connection(cls, conn: sqlite3.Connection) -> SqliteStore:
        """Wrap an already-open connection (used for in-memory catalogs)."""
        store = cls(":memory:")
        conn.row_factory = sqlite3.Row
        store._conn = conn
        return store

    def open(self) -> SqliteStore:
        """Open the catalog file read-only.

        Returns:
            this store, ready for queries

        Raises:
            CatalogOpenError: if the file is missing, unreadable, or has no
                items table
        """
        if self._conn is None:
            logger.info("opening sqlite catalog %s", self.path)
            uri = f"{Path(self.path).resolve().as_uri()}?mode=ro"
            try:
                conn = sqlite3.connect(uri, uri=True)
            except sqlite3.DatabaseError as e:
                raise CatalogOpenError(
                    f"cannot open sqlite catalog {self.path}: {e}"
                ) from e
            try:
                conn.execute("SELECT 1 FROM items LIMIT 1")
            except sqlite3.DatabaseError as e:
                conn.close()
                raise CatalogOpenError(
                    f"{self.path} is not an item catalog: {e}"
                ) from e
            conn.row_factory = sqlite3.Row
            self._conn = conn
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SqliteStore:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        if self._conn is None:
            raise StoreNotReadyError("sqlite catalog is not open")
        return self._conn.execute(sql, params).fetchall()

    def recipes_for(self, item_id: str) -> list[RecipeEdge]:
        """Get an item's recipe edges in insertion order.

        Args:
            item_id: crafted item identifier

        Returns:
            recipe edges, empty if the item has no recipe

        Raises:
            StoreNotReadyError: if the store is not open
        """
        rows = self._query(
            "SELECT item_id, ingredient_id, quantity FROM crafting_recipes "
            "WHERE item_id = ? ORDER BY rowid",
            (item_id,),
        )
        return [
            RecipeEdge(
                item_id=row["item_id"],
                ingredient_id=row["ingredient_id"],
                quantity=row["quantity"],
            )
            for row in rows
        ]

    def item_by_id(self, item_id: str) -> Item | None:
        """Look up one item by id, or None if it is not in the catalog."""
        rows = self._query(
            f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.id = ?",  # noqa: S608
            (item_id,),
        )
        return _item_from_row(rows[0]) if rows else None

    def _outputs(
        self, table: str, material_id: str, exclude: Collection[str]
    ) -> list[SourceOutput]:
        excluded = list(exclude)
        placeholders = ",".join("?" for _ in excluded)
        not_in = f"AND o.item_id NOT IN ({placeholders})" if excluded else ""
        rows = self._query(
            f"SELECT o.output_id, o.quantity, {_ITEM_COLUMNS} "  # noqa: S608
            f"FROM {table} o JOIN items i ON o.item_id = i.id "
            f"WHERE o.output_id = ? {not_in} ORDER BY o.rowid",
            (material_id, *excluded),
        )
        return [
            SourceOutput(
                source_item_id=row["id"],
                output_id=row["output_id"],
                quantity=row["quantity"],
                source_item=_item_from_row(row),
            )
            for row in rows
        ]

    def salvage_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find catalog items that salvage into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            salvage edges joined with their source items, in row order
        """
        return self._outputs("salvaging_outputs", material_id, exclude)

    def recycle_outputs_for(
        self, material_id: str, exclude: Collection[str] = ()
    ) -> list[SourceOutput]:
        """Find catalog items that recycle into a material.

        Args:
            material_id: output material identifier
            exclude: source item ids to leave out

        Returns:
            recycle edges joined with their source items, in row order
        """
        return self._outputs("recycling_outputs", material_id, exclude)

    def categories_for(self, item_id: str) -> list[str]:
        """Get an item's category display names, sorted."""
        rows = self._query(
            "SELECT c.display_name FROM item_category_links l "
            "JOIN item_categories c ON l.category_id = c.id "
            "WHERE l.item_id = ? ORDER BY c.display_name",
            (item_id,),
        )
        return [row["display_name"] for row in rows]

    def find_by_name(self, query: str) -> Item | None:
        """Resolve a user query to a catalog item by name.

        exact (case-insensitive) match first, then the shortest name
        containing the query.

        Args:
            query: user-provided item name

        Returns:
            matched Item, or None if no match
        """
        query_lower = query.lower().strip()
        if not query_lower:
            return None

        rows = self._query(
            f"SELECT {_ITEM_COLUMNS} FROM items i "  # noqa: S608
            "WHERE lower(i.name) = ? ORDER BY i.rowid LIMIT 1",
            (query_lower,),
        )
        if not rows:
            rows = self._query(
                f"SELECT {_ITEM_COLUMNS} FROM items i "  # noqa: S608
                "WHERE instr(lower(i.name), ?) > 0 "
                "ORDER BY length(i.name), i.rowid LIMIT 1",
                (query_lower,),
            )
        return _item_from_row(rows[0]) if rows else None
