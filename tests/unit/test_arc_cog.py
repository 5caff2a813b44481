"""tests for the arc materials discord cog."""

import asyncio
import sqlite3
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from salvager.arc.client import ArcApiError
from salvager.arc.cog import (
    COLOR_ERROR,
    ArcMaterials,
    PlannerState,
    parse_label_list,
    parse_rarities,
)
from salvager.arc.models import RARITIES, WEIGHT_CONSCIOUS, Item
from salvager.arc.store import SCHEMA_SQL, CatalogStore


def make_item(
    id: str,
    name: str,
    recipe: dict[str, int] | None = None,
    salvages_into: dict[str, int] | None = None,
) -> Item:
    return Item(
        id=id,
        name=name,
        type="Basic Material",
        rarity="Common",
        value=100,
        weight_kg=1.0,
        recipe=recipe or {},
        salvages_into=salvages_into or {},
    )


CATALOG = {
    "anvil_ii": make_item("anvil_ii", "Anvil II", recipe={"wires": 4}),
    "wires": make_item("wires", "Wires"),
    "radio": make_item("radio", "Broken Radio", salvages_into={"wires": 2}),
}


def make_ctx(user_id: int = 1) -> MagicMock:
    """helper to build a command context whose send is awaitable."""
    ctx = MagicMock()
    ctx.author.id = user_id
    ctx.author.name = "raider"
    ctx.send = AsyncMock()
    return ctx


@pytest.fixture
def cog() -> ArcMaterials:
    with patch.dict("os.environ", {"ARC_DB_PATH": "", "ARC_SCORING_METHOD": "max_yield"}):
        materials = ArcMaterials(MagicMock())
    materials._store = CatalogStore(CATALOG)
    return materials


def sent_text(ctx: MagicMock) -> str:
    return ctx.send.call_args.args[0]


class TestPlannerState:
    """tests for per-user bookmark and filter state."""

    def test_toggle_bookmark(self):
        state = PlannerState()

        assert state.toggle_bookmark("anvil_ii") is True
        assert state.bookmarks == ["anvil_ii"]
        assert state.toggle_bookmark("anvil_ii") is False
        assert state.bookmarks == []

    def test_removing_bookmark_unpauses_it(self):
        state = PlannerState()
        state.toggle_bookmark("anvil_ii")
        state.toggle_pause("anvil_ii")

        state.toggle_bookmark("anvil_ii")

        assert state.filters.paused_bookmarks == set()

    def test_pause_requires_bookmark(self):
        state = PlannerState()

        assert state.toggle_pause("anvil_ii") is None

        state.toggle_bookmark("anvil_ii")
        assert state.toggle_pause("anvil_ii") is True
        assert state.toggle_pause("anvil_ii") is False

    def test_toggle_hidden_source(self):
        state = PlannerState()

        assert state.toggle_hidden_source("radio") is True
        assert state.filters.hidden_source_items == {"radio"}
        assert state.toggle_hidden_source("radio") is False

    def test_clear(self):
        state = PlannerState()
        state.toggle_bookmark("anvil_ii")
        state.toggle_pause("anvil_ii")
        state.toggle_hidden_source("radio")

        state.clear()

        assert state.bookmarks == []
        assert state.filters.paused_bookmarks == set()
        assert state.filters.hidden_source_items == {"radio"}


class TestParseRarities:
    """tests for rarity argument parsing."""

    def test_all(self):
        assert parse_rarities(("ALL",)) == set(RARITIES)

    def test_case_insensitive_labels(self):
        assert parse_rarities(("rare", "Epic")) == {"Rare", "Epic"}

    def test_invalid_label(self):
        assert parse_rarities(("rare", "shiny")) is None


class TestParseLabelList:
    """tests for comma separated type and category arguments."""

    def test_multi_word_labels(self):
        assert parse_label_list(("Basic", "Material,", "Trinket")) == {
            "Basic Material",
            "Trinket",
        }

    def test_all_lifts_restriction(self):
        assert parse_label_list(("ALL",)) is None

    def test_empty_labels_dropped(self):
        assert parse_label_list(("Trinket,", ",")) == {"Trinket"}


class TestCogSettings:
    """tests for environment driven defaults."""

    def test_scoring_method_from_env(self):
        with patch.dict(
            "os.environ", {"ARC_SCORING_METHOD": WEIGHT_CONSCIOUS, "ARC_DB_PATH": ""}
        ):
            materials = ArcMaterials(MagicMock())

        assert materials._state_for(make_ctx()).scoring_method == WEIGHT_CONSCIOUS

    def test_invalid_scoring_method_falls_back(self):
        with patch.dict(
            "os.environ", {"ARC_SCORING_METHOD": "fastest", "ARC_DB_PATH": ""}
        ):
            materials = ArcMaterials(MagicMock())

        assert materials._state_for(make_ctx()).scoring_method == "max_yield"

    def test_states_are_per_user(self, cog):
        assert cog._state_for(make_ctx(1)) is not cog._state_for(make_ctx(2))
        assert cog._state_for(make_ctx(1)) is cog._state_for(make_ctx(1))


class TestBookmarkCommands:
    """tests for arcwant, arcpause, archide and arcclear."""

    async def test_arcwant_bookmarks_by_name(self, cog):
        ctx = make_ctx()

        await cog.arcwant.callback(cog, ctx, "anvil", "ii")

        assert sent_text(ctx) == "Bookmarked **Anvil II**."
        assert cog._state_for(ctx).bookmarks == ["anvil_ii"]

    async def test_arcwant_without_args_shows_usage(self, cog):
        ctx = make_ctx()

        await cog.arcwant.callback(cog, ctx)

        assert sent_text(ctx) == "Usage: `%arcwant <item name>`"

    async def test_arcwant_unknown_item(self, cog):
        ctx = make_ctx()

        await cog.arcwant.callback(cog, ctx, "hullcracker")

        assert sent_text(ctx) == 'No item found matching "hullcracker".'

    async def test_arcpause_not_bookmarked(self, cog):
        ctx = make_ctx()

        await cog.arcpause.callback(cog, ctx, "anvil ii")

        assert sent_text(ctx) == "**Anvil II** is not bookmarked."

    async def test_archide_toggles(self, cog):
        ctx = make_ctx()

        await cog.archide.callback(cog, ctx, "radio")

        assert cog._state_for(ctx).filters.hidden_source_items == {"radio"}

    async def test_arcclear(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).toggle_bookmark("anvil_ii")

        await cog.arcclear.callback(cog, ctx)

        assert cog._state_for(ctx).bookmarks == []


class TestFilterCommands:
    """tests for arcscrappy, arcrarity and arcmode."""

    async def test_arcscrappy_toggles(self, cog):
        ctx = make_ctx()

        await cog.arcscrappy.callback(cog, ctx)
        assert cog._state_for(ctx).filters.hide_scrappy_collected is True

        await cog.arcscrappy.callback(cog, ctx)
        assert cog._state_for(ctx).filters.hide_scrappy_collected is False

    async def test_arcrarity_sets_filters(self, cog):
        ctx = make_ctx()

        await cog.arcrarity.callback(cog, ctx, "epic", "rare")

        assert cog._state_for(ctx).filters.rarity_filters == {"Rare", "Epic"}
        assert sent_text(ctx) == "Tracking materials of rarity: Rare, Epic."

    async def test_arcrarity_invalid_keeps_filters(self, cog):
        ctx = make_ctx()

        await cog.arcrarity.callback(cog, ctx, "shiny")

        assert cog._state_for(ctx).filters.rarity_filters == set(RARITIES)
        assert sent_text(ctx).startswith("Usage:")

    async def test_arcmode(self, cog):
        ctx = make_ctx()

        await cog.arcmode.callback(cog, ctx, "WEIGHT_CONSCIOUS")

        assert cog._state_for(ctx).scoring_method == WEIGHT_CONSCIOUS

    async def test_arcmode_invalid(self, cog):
        ctx = make_ctx()

        await cog.arcmode.callback(cog, ctx, "fastest")

        assert cog._state_for(ctx).scoring_method == "max_yield"
        assert sent_text(ctx) == "Usage: `%arcmode max_yield|weight_conscious`"


class TestArcmats:
    """tests for the materials report."""

    async def test_no_bookmarks(self, cog):
        ctx = make_ctx()

        await cog.arcmats.callback(cog, ctx)

        assert sent_text(ctx).startswith("No bookmarks yet.")

    async def test_sends_section_and_summary_embeds(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).toggle_bookmark("anvil_ii")

        await cog.arcmats.callback(cog, ctx)

        embeds = [call.kwargs["embed"] for call in ctx.send.call_args_list]
        assert [e.title for e in embeds] == [
            "\U0001f9f0 Materials",
            "\U0001f527 Salvage",
            "♻ Recycle",
            "Materials Summary",
        ]
        assert "Wires" in embeds[0].description
        assert "Broken Radio" in embeds[1].description
        assert embeds[2].description == "No items to display."
        assert "**Bookmarks:** 1 (0 paused)" in embeds[3].description

    async def test_api_error_is_reported(self, cog):
        ctx = make_ctx()
        cog._store = None
        cog._arc_client.fetch_items = AsyncMock(
            side_effect=ArcApiError("RATE_LIMITED", "slow down", 429)
        )
        cog._state_for(ctx).toggle_bookmark("anvil_ii")

        await cog.arcmats.callback(cog, ctx)

        embed = ctx.send.call_args.kwargs["embed"]
        assert embed.title == "API Error"
        assert embed.color.value == COLOR_ERROR
        assert "RATE_LIMITED" in embed.description

    async def test_catalog_fetched_once(self, cog):
        ctx = make_ctx()
        cog._store = None
        cog._arc_client.fetch_items = AsyncMock(return_value=CATALOG)
        cog._state_for(ctx).toggle_bookmark("anvil_ii")

        await cog.arcmats.callback(cog, ctx)
        await cog.arcmats.callback(cog, ctx)

        cog._arc_client.fetch_items.assert_awaited_once()

    async def test_value_filter_hides_source(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).toggle_bookmark("anvil_ii")
        await cog.arcvalue.callback(cog, ctx, "50")

        await cog.arcmats.callback(cog, ctx)

        embeds = [call.kwargs["embed"] for call in ctx.send.call_args_list[1:]]
        assert embeds[1].title == "\U0001f527 Salvage"
        assert "Broken Radio" not in embeds[1].description
        assert embeds[1].description == "No items to display."
        assert "Wires" in embeds[0].description

    async def test_type_filter_hides_source(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).toggle_bookmark("anvil_ii")
        await cog.arctype.callback(cog, ctx, "Trinket")

        await cog.arcmats.callback(cog, ctx)

        salvage = ctx.send.call_args_list[2].kwargs["embed"]
        assert salvage.description == "No items to display."


class TestSourceFilterCommands:
    """tests for arctype, arccategory and arcvalue."""

    async def test_arctype_sets_types(self, cog):
        ctx = make_ctx()

        await cog.arctype.callback(cog, ctx, "Trinket,", "Basic", "Material")

        assert cog._state_for(ctx).source_filters.type_filters == {
            "Trinket",
            "Basic Material",
        }
        assert sent_text(ctx) == "Suggesting sources of type: Basic Material, Trinket."

    async def test_arctype_all_clears(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).source_filters.type_filters = {"Trinket"}

        await cog.arctype.callback(cog, ctx, "all")

        assert cog._state_for(ctx).source_filters.type_filters is None

    async def test_arctype_without_args_shows_usage(self, cog):
        ctx = make_ctx()

        await cog.arctype.callback(cog, ctx)

        assert sent_text(ctx).startswith("Usage:")
        assert cog._state_for(ctx).source_filters.type_filters is None

    async def test_arccategory_sets_categories(self, cog):
        ctx = make_ctx()

        await cog.arccategory.callback(cog, ctx, "Electrical")

        assert cog._state_for(ctx).source_filters.category_filters == {"Electrical"}

    async def test_arcvalue_enables_limit(self, cog):
        ctx = make_ctx()

        await cog.arcvalue.callback(cog, ctx, "1500")

        options = cog._state_for(ctx).source_filters
        assert options.max_source_value_enabled is True
        assert options.max_source_value == 1500
        assert sent_text(ctx) == "Hiding sources worth more than 1,500."

    async def test_arcvalue_off(self, cog):
        ctx = make_ctx()
        await cog.arcvalue.callback(cog, ctx, "1500")

        await cog.arcvalue.callback(cog, ctx, "OFF")

        assert cog._state_for(ctx).source_filters.max_source_value_enabled is False

    async def test_arcvalue_invalid(self, cog):
        ctx = make_ctx()

        await cog.arcvalue.callback(cog, ctx, "cheap")

        assert sent_text(ctx) == "Usage: `%arcvalue <max value>` or `%arcvalue off`"
        assert cog._state_for(ctx).source_filters.max_source_value_enabled is False


class TestArcsources:
    """tests for the per-material source lookup."""

    async def test_lists_sources_of_needed_material(self, cog):
        ctx = make_ctx()
        cog._state_for(ctx).toggle_bookmark("anvil_ii")

        await cog.arcsources.callback(cog, ctx, "wires")

        embed = ctx.send.call_args.kwargs["embed"]
        assert embed.title == "Sources for Wires"
        assert embed.description.startswith("**Broken Radio** · salvage ")

    async def test_material_not_needed(self, cog):
        ctx = make_ctx()

        await cog.arcsources.callback(cog, ctx, "wires")

        assert sent_text(ctx) == "**Wires** is not needed by your bookmarks."

    async def test_filtered_sources_are_not_listed(self, cog):
        ctx = make_ctx()
        state = cog._state_for(ctx)
        state.toggle_bookmark("anvil_ii")
        state.source_filters.type_filters = {"Trinket"}

        await cog.arcsources.callback(cog, ctx, "wires")

        embed = ctx.send.call_args.kwargs["embed"]
        assert embed.description == "No salvage or recycle sources found."


class TestCatalogLoading:
    """tests for lazy catalog loading."""

    async def test_concurrent_commands_share_one_fetch(self, cog):
        cog._store = None

        async def slow_fetch():
            await asyncio.sleep(0)
            return CATALOG

        cog._arc_client.fetch_items = AsyncMock(side_effect=slow_fetch)

        await asyncio.gather(
            cog.arcwant.callback(cog, make_ctx(1), "anvil"),
            cog.arcwant.callback(cog, make_ctx(2), "radio"),
        )

        cog._arc_client.fetch_items.assert_awaited_once()

    async def test_failed_catalog_open_is_retried(self, tmp_path):
        path = tmp_path / "catalog.db"
        with patch.dict(
            "os.environ", {"ARC_DB_PATH": str(path), "ARC_SCORING_METHOD": "max_yield"}
        ):
            materials = ArcMaterials(MagicMock())
        ctx = make_ctx()

        await materials.arcwant.callback(materials, ctx, "anvil")

        assert sent_text(ctx).startswith("The item catalog could not be opened.")
        assert materials._store is None
        assert not path.exists()

        conn = sqlite3.connect(path)
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT INTO items VALUES "
            "('anvil_ii', 'Anvil II', '', 'Weapon', 'Common', 100, 1.0, 1, 1)"
        )
        conn.commit()
        conn.close()

        await materials.arcwant.callback(materials, ctx, "anvil")

        assert sent_text(ctx) == "Bookmarked **Anvil II**."
        materials._store.close()


class TestPresence:
    async def test_on_ready_advertises_command(self, cog):
        cog.client.change_presence = AsyncMock()

        await cog.on_ready()

        activity = cog.client.change_presence.call_args.kwargs["activity"]
        assert activity.name == "%arcmats"
