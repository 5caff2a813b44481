"""discord cog for arc raiders crafting material planning commands."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from salvager.arc.client import ArcApiError, ArcClient
from salvager.arc.engine import aggregate, filter_sources
from salvager.arc.formatter import format_materials, format_sources, material_names
from salvager.arc.models import (
    MAX_YIELD,
    RARITIES,
    SCORING_METHODS,
    Item,
    MaterialFilterOptions,
    ScoringMethod,
    SourceFilterOptions,
)
from salvager.arc.store import (
    CatalogOpenError,
    CatalogStore,
    SqliteStore,
    StoreNotReadyError,
)

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

    from salvager.arc.models import AggregatedMaterialsData

logger = logging.getLogger(__name__)

# embed colors
COLOR_MATERIALS = 0xF39C12  # yellow
COLOR_SALVAGE = 0x2ECC71  # green
COLOR_RECYCLE = 0x3498DB  # blue
COLOR_SUMMARY = 0x95A5A6  # grey
COLOR_ERROR = 0xE74C3C  # red

# %arcsources lines per reply, well under the 4096 char embed limit
MAX_SOURCE_LINES = 25


@dataclass
class PlannerState:
    """one discord user's bookmarks and filters (in memory only)."""

    scoring_method: ScoringMethod = MAX_YIELD
    bookmarks: list[str] = field(default_factory=list)
    filters: MaterialFilterOptions = field(default_factory=MaterialFilterOptions)
    source_filters: SourceFilterOptions = field(default_factory=SourceFilterOptions)

    def toggle_bookmark(self, item_id: str) -> bool:
        """Toggle a bookmark; removing one also unpauses it.

        Returns:
            True if the item is now bookmarked
        """
        if item_id in self.bookmarks:
            self.bookmarks.remove(item_id)
            self.filters.paused_bookmarks.discard(item_id)
            return False
        self.bookmarks.append(item_id)
        return True

    def toggle_pause(self, item_id: str) -> bool | None:
        """Toggle pause on a bookmarked item.

        Returns:
            True if now paused, False if resumed, None if not bookmarked
        """
        if item_id not in self.bookmarks:
            return None
        paused = self.filters.paused_bookmarks
        if item_id in paused:
            paused.discard(item_id)
            return False
        paused.add(item_id)
        return True

    def toggle_hidden_source(self, item_id: str) -> bool:
        """Toggle hiding an item from the source lists.

        Returns:
            True if the item is now hidden
        """
        hidden = self.filters.hidden_source_items
        if item_id in hidden:
            hidden.discard(item_id)
            return False
        hidden.add(item_id)
        return True

    def clear(self) -> None:
        self.bookmarks.clear()
        self.filters.paused_bookmarks.clear()


def parse_rarities(args: tuple[str, ...]) -> set[str] | None:
    """Parse rarity labels from command args ("all" selects every rarity).

    Args:
        args: command arguments, case-insensitive

    Returns:
        set of rarity labels, or None if any arg is not a rarity
    """
    if len(args) == 1 and args[0].lower() == "all":
        return set(RARITIES)

    by_lower = {label.lower(): label for label in RARITIES}
    selected = set()
    for arg in args:
        label = by_lower.get(arg.lower())
        if label is None:
            return None
        selected.add(label)
    return selected


def parse_label_list(args: tuple[str, ...]) -> set[str] | None:
    """Parse comma separated labels ("all" lifts the restriction).

    labels may contain spaces, e.g. `Basic Material, Trinket`. matching
    against item types and categories is exact.

    Args:
        args: command arguments

    Returns:
        set of labels, or None for no restriction
    """
    text = " ".join(args).strip()
    if text.lower() == "all":
        return None
    return {label.strip() for label in text.split(",") if label.strip()}


def _api_error_embed(error: ArcApiError) -> discord.Embed:
    return discord.Embed(
        title="API Error",
        description=f"Error from ArcTracker: [{error.status}] {error.code}",
        color=COLOR_ERROR,
    )


def _sources_embed(material: Item, data: AggregatedMaterialsData) -> discord.Embed:
    """Build the %arcsources reply for one needed material.

    each line names a source, where it ranks (salvage or recycle) and the
    other needed materials it also yields.

    Args:
        material: the material being looked up
        data: filtered aggregation result

    Returns:
        embed listing the material's sources
    """
    by_id = {s.item.id: ("salvage", s.salvage_score, s) for s in data.salvage_sources}
    by_id.update(
        (s.item.id, ("recycle", s.recycle_score, s)) for s in data.recycle_sources
    )
    names = material_names(data.materials)

    lines = []
    source_ids = data.material_to_sources.get(material.id, [])
    for source_id in source_ids[:MAX_SOURCE_LINES]:
        kind, score, source = by_id[source_id]
        line = f"**{source.base_name}** · {kind} {score:.2f}"
        others = [
            names.get(m, m)
            for m in data.source_to_materials.get(source_id, [])
            if m != material.id
        ]
        if others:
            line += f" · also {', '.join(others)}"
        lines.append(line)
    if len(source_ids) > MAX_SOURCE_LINES:
        lines.append(f"... and {len(source_ids) - MAX_SOURCE_LINES} more.")

    return discord.Embed(
        title=f"Sources for {material.name}",
        description="\n".join(lines) or "No salvage or recycle sources found.",
        color=COLOR_SALVAGE,
    )


class ArcMaterials(commands.Cog):
    """arc raiders crafting materials commands."""

    def __init__(self, client: commands.Bot) -> None:
        """Initialize the arc materials cog.

        Args:
            client: discord bot client
        """
        self.client = client
        self._arc_client = ArcClient(app_key=os.getenv("ARC_API_KEY", ""))
        self._db_path = os.getenv("ARC_DB_PATH", "")
        default_method = os.getenv("ARC_SCORING_METHOD", MAX_YIELD)
        if default_method not in SCORING_METHODS:
            logger.warning(
                "ignoring unknown ARC_SCORING_METHOD %r, using %s",
                default_method,
                MAX_YIELD,
            )
            default_method = MAX_YIELD
        self._default_method: ScoringMethod = default_method
        self._store: CatalogStore | SqliteStore | None = None
        self._store_lock = asyncio.Lock()
        self._states: dict[int, PlannerState] = {}

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        logger.info("bot %s is ready", self.client.user)
        await self.client.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.listening, name="%arcmats"
            ),
            status=discord.Status.online,
        )

    async def cog_unload(self) -> None:
        """Close the aiohttp session and any open sqlite catalog."""
        await self._arc_client.close()
        if isinstance(self._store, SqliteStore):
            self._store.close()

    def _state_for(self, ctx: commands.Context) -> PlannerState:
        """Get (or create) the planner state for the invoking user."""
        user_id = ctx.author.id
        if user_id not in self._states:
            self._states[user_id] = PlannerState(scoring_method=self._default_method)
        return self._states[user_id]

    async def _ensure_store(self) -> CatalogStore | SqliteStore:
        """Lazy-load the item catalog.

        uses the sqlite catalog when ARC_DB_PATH is set, otherwise fetches
        the item list from arctracker. concurrent callers share one load; a
        failed load is retried by the next command.

        Returns:
            loaded item store

        Raises:
            ArcApiError: on api errors
            CatalogOpenError: if the sqlite catalog cannot be opened
        """
        async with self._store_lock:
            if self._store is None:
                if self._db_path:
                    store = SqliteStore(self._db_path).open()
                else:
                    logger.info("fetching item catalog from arctracker")
                    store = CatalogStore(await self._arc_client.fetch_items())
                self._store = store
        return self._store

    async def _resolve_item(
        self, ctx: commands.Context, args: tuple[str, ...], usage: str
    ) -> Item | None:
        """Resolve command args to a catalog item, replying on failure."""
        query = " ".join(args).strip()
        if not query:
            await ctx.send(f"Usage: `{usage}`")
            return None

        store = await self._ensure_store()
        item = store.find_by_name(query)
        if item is None:
            await ctx.send(f'No item found matching "{query}".')
        return item

    async def _run_guarded(
        self, ctx: commands.Context, name: str, coro: Coroutine[Any, Any, None]
    ) -> None:
        """Await a command body, turning failures into user-facing replies."""
        try:
            await coro
        except ArcApiError as e:
            logger.exception("arctracker api error in %s", name)
            await ctx.send(embed=_api_error_embed(e))
        except CatalogOpenError:
            logger.exception("cannot open item catalog in %s", name)
            await ctx.send(
                "The item catalog could not be opened. Check that ARC_DB_PATH "
                "points at a salvager catalog."
            )
        except StoreNotReadyError:
            logger.exception("catalog not ready in %s", name)
            await ctx.send("The item catalog is still loading, try again shortly.")
        except Exception:
            logger.exception("unexpected error in %s", name)
            await ctx.send("Something went wrong while planning your materials.")

    @commands.command(name="arcwant")
    async def arcwant(self, ctx: commands.Context, *args: str) -> None:
        """Toggle a bookmark on an item you want to craft.

        Usage:
            %arcwant Anvil II

        Args:
            ctx: discord command context
            args: item name
        """
        logger.info("arcwant invoked by %s", ctx.author.name)

        async def body() -> None:
            item = await self._resolve_item(ctx, args, "%arcwant <item name>")
            if item is None:
                return
            if self._state_for(ctx).toggle_bookmark(item.id):
                await ctx.send(f"Bookmarked **{item.name}**.")
            else:
                await ctx.send(f"Removed bookmark for **{item.name}**.")

        await self._run_guarded(ctx, "arcwant", body())

    @commands.command(name="arcpause")
    async def arcpause(self, ctx: commands.Context, *args: str) -> None:
        """Pause or resume a bookmark without removing it.

        Args:
            ctx: discord command context
            args: item name
        """
        logger.info("arcpause invoked by %s", ctx.author.name)

        async def body() -> None:
            item = await self._resolve_item(ctx, args, "%arcpause <item name>")
            if item is None:
                return
            paused = self._state_for(ctx).toggle_pause(item.id)
            if paused is None:
                await ctx.send(f"**{item.name}** is not bookmarked.")
            elif paused:
                await ctx.send(f"Paused **{item.name}**.")
            else:
                await ctx.send(f"Resumed **{item.name}**.")

        await self._run_guarded(ctx, "arcpause", body())

    @commands.command(name="archide")
    async def archide(self, ctx: commands.Context, *args: str) -> None:
        """Hide or unhide an item from the salvage/recycle lists.

        Args:
            ctx: discord command context
            args: item name
        """
        logger.info("archide invoked by %s", ctx.author.name)

        async def body() -> None:
            item = await self._resolve_item(ctx, args, "%archide <item name>")
            if item is None:
                return
            if self._state_for(ctx).toggle_hidden_source(item.id):
                await ctx.send(f"**{item.name}** will no longer be suggested.")
            else:
                await ctx.send(f"**{item.name}** can be suggested again.")

        await self._run_guarded(ctx, "archide", body())

    @commands.command(name="arcscrappy")
    async def arcscrappy(self, ctx: commands.Context) -> None:
        """Toggle hiding materials that scrappy collects automatically."""
        logger.info("arcscrappy invoked by %s", ctx.author.name)
        filters = self._state_for(ctx).filters
        filters.hide_scrappy_collected = not filters.hide_scrappy_collected
        state = "hidden" if filters.hide_scrappy_collected else "shown"
        await ctx.send(f"Scrappy-collected materials are now {state}.")

    @commands.command(name="arcrarity")
    async def arcrarity(self, ctx: commands.Context, *args: str) -> None:
        """Set which material rarities are tracked.

        Usage:
            %arcrarity all
            %arcrarity rare epic legendary

        Args:
            ctx: discord command context
            args: rarity labels, or "all"
        """
        logger.info("arcrarity invoked by %s", ctx.author.name)
        rarities = parse_rarities(args) if args else None
        if rarities is None:
            await ctx.send(f"Usage: `%arcrarity all` or `%arcrarity {' '.join(RARITIES)}`")
            return

        self._state_for(ctx).filters.rarity_filters = rarities
        shown = ", ".join(label for label in RARITIES if label in rarities)
        await ctx.send(f"Tracking materials of rarity: {shown}.")

    @commands.command(name="arcmode")
    async def arcmode(self, ctx: commands.Context, method: str = "") -> None:
        """Switch between max_yield and weight_conscious scoring.

        Args:
            ctx: discord command context
            method: scoring method name
        """
        logger.info("arcmode invoked by %s", ctx.author.name)
        method = method.lower()
        if method not in SCORING_METHODS:
            await ctx.send(f"Usage: `%arcmode {'|'.join(SCORING_METHODS)}`")
            return

        self._state_for(ctx).scoring_method = method
        await ctx.send(f"Scoring method set to **{method}**.")

    @commands.command(name="arctype")
    async def arctype(self, ctx: commands.Context, *args: str) -> None:
        """Only suggest sources of the given item types.

        Usage:
            %arctype Basic Material, Trinket
            %arctype all

        Args:
            ctx: discord command context
            args: comma separated item types, or "all"
        """
        logger.info("arctype invoked by %s", ctx.author.name)
        if not args:
            await ctx.send("Usage: `%arctype <type>, <type>...` or `%arctype all`")
            return

        types = parse_label_list(args)
        self._state_for(ctx).source_filters.type_filters = types
        if types is None:
            await ctx.send("Suggesting sources of every type.")
        else:
            await ctx.send(f"Suggesting sources of type: {', '.join(sorted(types))}.")

    @commands.command(name="arccategory")
    async def arccategory(self, ctx: commands.Context, *args: str) -> None:
        """Only suggest sources in at least one of the given categories.

        Args:
            ctx: discord command context
            args: comma separated category names, or "all"
        """
        logger.info("arccategory invoked by %s", ctx.author.name)
        if not args:
            await ctx.send(
                "Usage: `%arccategory <category>, <category>...` or `%arccategory all`"
            )
            return

        categories = parse_label_list(args)
        self._state_for(ctx).source_filters.category_filters = categories
        if categories is None:
            await ctx.send("Suggesting sources from every category.")
        else:
            await ctx.send(
                f"Suggesting sources in: {', '.join(sorted(categories))}."
            )

    @commands.command(name="arcvalue")
    async def arcvalue(self, ctx: commands.Context, limit: str = "") -> None:
        """Hide sources worth more than a sell value.

        Usage:
            %arcvalue 500
            %arcvalue off

        Args:
            ctx: discord command context
            limit: max sell value, or "off"
        """
        logger.info("arcvalue invoked by %s", ctx.author.name)
        options = self._state_for(ctx).source_filters
        if limit.lower() == "off":
            options.max_source_value_enabled = False
            await ctx.send("Sources of any value will be suggested.")
            return
        try:
            max_value = int(limit)
        except ValueError:
            max_value = -1
        if max_value < 0:
            await ctx.send("Usage: `%arcvalue <max value>` or `%arcvalue off`")
            return

        options.max_source_value = max_value
        options.max_source_value_enabled = True
        await ctx.send(f"Hiding sources worth more than {max_value:,}.")

    @commands.command(name="arcclear")
    async def arcclear(self, ctx: commands.Context) -> None:
        """Drop every bookmark (and its paused state)."""
        logger.info("arcclear invoked by %s", ctx.author.name)
        self._state_for(ctx).clear()
        await ctx.send("Cleared all bookmarks.")

    @commands.command(name="arcmats")
    async def arcmats(self, ctx: commands.Context, *args: str) -> None:
        """Show needed materials and what to salvage or recycle for them.

        Flags:
            all: show every row across multiple embeds

        Args:
            ctx: discord command context
            args: command arguments ("all" for full listing)
        """
        logger.info("arcmats invoked by %s", ctx.author.name)
        show_all = len(args) > 0 and args[0].lower() == "all"

        async def body() -> None:
            state = self._state_for(ctx)
            if not state.bookmarks:
                await ctx.send("No bookmarks yet. Use `%arcwant <item name>` first.")
                return

            data = await self._plan(state)
            for embed in self._build_embeds(data, state, show_all=show_all):
                await ctx.send(embed=embed)

        await self._run_guarded(ctx, "arcmats", body())

    @commands.command(name="arcsources")
    async def arcsources(self, ctx: commands.Context, *args: str) -> None:
        """List the suggested sources of one needed material.

        Usage:
            %arcsources Wires

        Args:
            ctx: discord command context
            args: material name
        """
        logger.info("arcsources invoked by %s", ctx.author.name)

        async def body() -> None:
            item = await self._resolve_item(ctx, args, "%arcsources <material name>")
            if item is None:
                return
            data = await self._plan(self._state_for(ctx))
            if not any(m.item.id == item.id for m in data.materials):
                await ctx.send(f"**{item.name}** is not needed by your bookmarks.")
                return
            await ctx.send(embed=_sources_embed(item, data))

        await self._run_guarded(ctx, "arcsources", body())

    async def _plan(self, state: PlannerState) -> AggregatedMaterialsData:
        """Aggregate a user's bookmarks and apply their source filters."""
        store = await self._ensure_store()
        data = aggregate(state.bookmarks, store, state.scoring_method, state.filters)
        return filter_sources(data, store, state.source_filters)

    def _build_embeds(
        self,
        data: AggregatedMaterialsData,
        state: PlannerState,
        *,
        show_all: bool,
    ) -> list[discord.Embed]:
        """Build the materials, salvage, recycle and summary embeds.

        Args:
            data: aggregation result
            state: the invoking user's planner state
            show_all: whether to paginate across multiple embeds

        Returns:
            embeds in send order
        """
        names = material_names(data.materials)
        sections = [
            (
                "\U0001f9f0 Materials",
                format_materials(data.materials, show_all=show_all)[0],
                COLOR_MATERIALS,
            ),
            (
                "\U0001f527 Salvage",
                format_sources(
                    data.salvage_sources, names, recycle=False, show_all=show_all
                )[0],
                COLOR_SALVAGE,
            ),
            (
                "♻ Recycle",
                format_sources(
                    data.recycle_sources, names, recycle=True, show_all=show_all
                )[0],
                COLOR_RECYCLE,
            ),
        ]

        embeds = []
        for title, descriptions, color in sections:
            total_pages = len(descriptions)
            for i, desc in enumerate(descriptions):
                page_title = title
                if show_all and total_pages > 1:
                    page_title = f"{title} ({i + 1}/{total_pages})"
                embeds.append(
                    discord.Embed(title=page_title, description=desc, color=color)
                )

        paused = len(state.filters.paused_bookmarks)
        summary_text = (
            f"**Bookmarks:** {len(state.bookmarks)} ({paused} paused)\n"
            f"**Materials:** {len(data.materials)}\n"
            f"**Salvage:** {len(data.salvage_sources)} sources\n"
            f"**Recycle:** {len(data.recycle_sources)} sources\n"
            f"**Scoring:** {state.scoring_method}"
        )
        embeds.append(
            discord.Embed(
                title="Materials Summary", description=summary_text, color=COLOR_SUMMARY
            )
        )
        return embeds
