"""discord table formatter for arc raiders materials commands.

produces unicode box-drawing tables inside discord code blocks (monospace).
designed to fit within discord embed description limits (4096 chars).
uses ansi escape codes for colored output in discord ```ansi code blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from salvager.arc.models import MaterialRequirement, SalvagingSource, YieldMap

# -- ansi color code constants --

ANSI_BOLD_BLUE = "1;34"
ANSI_RED = "0;31"
ANSI_GREEN = "0;32"

EMPTY_MESSAGE = "No items to display."


@dataclass
class TableSpec:
    """bundled table layout specification (headers, alignment, widths, colors)."""

    headers: list[str]
    alignments: list[str]
    max_widths: list[int]
    cell_colors: list[str | None] = field(default_factory=list)


# -- table geometry constants --

COL_ITEM_WIDTH = 20
COL_NEED_WIDTH = 5
COL_FOR_WIDTH = 4
COL_SCORE_WIDTH = 7
COL_YIELDS_WIDTH = 24

# -- pagination limits for source layout (3 columns, 2 colored) --
# visual line width: 20 + 7 + 24 = 51 content + 4 pipes + 6 padding = 61
# ansi overhead per row: 2 colored columns * 11 chars = 22
# data row: 61 + 22 + 1 (newline) = 84 chars
# separator: 61 + 1 = 62 chars
# fixed chrome: 8 (```ansi\n) + 62*4 (borders/header) + 3 (```) = 259
# footer (worst case): 64 chars
# with footer: 259 + 64 + 84N + 62(N-1) <= 4096 => 261 + 146N <= 4096 => N = 26
# without footer: 259 - 62 + 146N <= 4096 => 197 + 146N <= 4096 => N = 26
SOURCE_MAX_ROWS_WITH_FOOTER = 26
SOURCE_MAX_ROWS_PER_EMBED = 26

# -- pagination limits for materials layout (3 columns, 2 colored) --
# visual line width: 20 + 5 + 4 = 29 content + 4 pipes + 6 padding = 39
# ansi overhead per row: 2 colored columns * 11 chars = 22
# data row: 39 + 22 + 1 (newline) = 62 chars
# separator: 39 + 1 = 40 chars
# fixed chrome: 8 (```ansi\n) + 40*4 (borders/header) + 3 (```) = 171
# with footer: 171 + 64 + 62N + 40(N-1) <= 4096 => 195 + 102N <= 4096 => N = 38
# without footer: 171 - 40 + 102N <= 4096 => 131 + 102N <= 4096 => N = 38
MAT_MAX_ROWS_WITH_FOOTER = 38
MAT_MAX_ROWS_PER_EMBED = 38


def _truncate(text: str, max_width: int) -> str:
    """Truncate text with ellipsis if it exceeds max_width.

    Args:
        text: string to potentially truncate
        max_width: maximum allowed width

    Returns:
        original or truncated string
    """
    if len(text) <= max_width:
        return text
    return text[: max_width - 1] + "…"


def _format_score(score: float) -> str:
    """Format a score with two decimals (e.g. "12.35")."""
    return f"{score:.2f}"


def _format_yields(yields: YieldMap, names: Mapping[str, str]) -> str:
    """Render a yield map as "4x Metal Parts, 2x Wires".

    Args:
        yields: material_id -> quantity
        names: material_id -> display name

    Returns:
        comma-joined yield summary, "-" when empty
    """
    if not yields:
        return "-"
    return ", ".join(
        f"{qty}x {names.get(material_id, material_id)}"
        for material_id, qty in yields.items()
    )


def _align_cell(text: str, width: int, alignment: str) -> str:
    """Pad a cell value to the given width with the specified alignment.

    Args:
        text: cell content
        width: target column width
        alignment: "l" for left, "r" for right, "c" for center

    Returns:
        padded string
    """
    if alignment == "r":
        return text.rjust(width)
    if alignment == "c":
        return text.center(width)
    return text.ljust(width)


def _process_cells(
    cells: list[str],
    max_widths: list[int | None],
) -> list[str]:
    """Apply truncation to a list of cell values (None width = no limit)."""
    return [
        _truncate(cell, mw) if mw is not None else cell
        for cell, mw in zip(cells, max_widths, strict=True)
    ]


def _compute_col_widths(
    proc_headers: list[str],
    proc_rows: list[list[str]],
    max_widths: list[int | None],
) -> list[int]:
    """Compute column widths from processed headers and rows.

    a declared max_width is used as a fixed width so that per-row char cost
    stays constant; other columns auto-size to their widest value.

    Args:
        proc_headers: processed header strings
        proc_rows: processed row data
        max_widths: per-column fixed width (None means auto-size)

    Returns:
        list of column widths
    """
    col_widths = []
    for i, header in enumerate(proc_headers):
        fixed = max_widths[i]
        if fixed is not None:
            col_widths.append(fixed)
            continue
        widest = max((len(row[i]) for row in proc_rows if i < len(row)), default=0)
        col_widths.append(max(len(header), widest))
    return col_widths


def _colorize(text: str, code: str | None) -> str:
    return f"\x1b[{code}m{text}\x1b[0m" if code else text


def _row_line(
    cells: list[str],
    col_widths: list[int],
    alignments: list[str],
    colors: list[str | None],
) -> str:
    """Build a single row like "│ val1 │ val2 │", padding missing cells.

    borders and padding stay outside the escape codes so colored and plain
    rows line up.
    """
    padded = [*cells, *[""] * (len(col_widths) - len(cells))]
    shown = [
        _colorize(_align_cell(cell, width, align), code)
        for cell, width, align, code in zip(
            padded, col_widths, alignments, colors, strict=True
        )
    ]
    return "│" + "│".join(f" {cell} " for cell in shown) + "│"


def _rule(col_widths: list[int], left: str, mid: str, right: str) -> str:
    """Horizontal border line like "┌──────┬──────┐"."""
    return left + mid.join("─" * (w + 2) for w in col_widths) + right


def format_table(
    headers: list[str],
    rows: list[list[str]],
    alignments: list[str] | None = None,
    max_widths: list[int] | None = None,
    cell_colors: list[str | None] | None = None,
) -> str:
    """Build a unicode box-drawing table string.

    Args:
        headers: column header labels
        rows: list of row data (each row is a list of cell strings)
        alignments: per-column alignment ("l", "r", "c"). defaults to "l"
        max_widths: per-column fixed width. truncates with ellipsis
        cell_colors: per-column ansi code (e.g. "1;34") or None. applied to
            data rows only.

    Returns:
        complete table string with box-drawing borders, no trailing newline
    """
    num_cols = len(headers)
    alignments = alignments or ["l"] * num_cols
    mw: list[int | None] = list(max_widths) if max_widths else [None] * num_cols
    colors: list[str | None] = list(cell_colors or [])
    colors += [None] * (num_cols - len(colors))

    proc_headers = _process_cells(headers, mw)
    proc_rows = [_process_cells(row, mw) for row in rows]
    col_widths = _compute_col_widths(proc_headers, proc_rows, mw)

    separator = _rule(col_widths, "├", "┼", "┤")
    lines = [
        _rule(col_widths, "┌", "┬", "┐"),
        _row_line(proc_headers, col_widths, alignments, [None] * num_cols),
    ]
    for row in proc_rows:
        lines.append(separator)
        lines.append(_row_line(row, col_widths, alignments, colors))
    if not proc_rows:
        lines.append(separator)
    lines.append(_rule(col_widths, "└", "┴", "┘"))
    return "\n".join(lines)


def format_table_for_embed(
    spec: TableSpec,
    rows: list[list[str]],
    footer: str | None = None,
) -> str:
    """Wrap format_table output in a code block for an embed description.

    Args:
        spec: bundled table layout specification
        rows: list of row data
        footer: optional text appended outside the code block

    Returns:
        markdown code block containing the table. uses the ```ansi language
        tag when the spec has cell colors.
    """
    colors = spec.cell_colors or None
    table = format_table(
        spec.headers, rows, spec.alignments, spec.max_widths, cell_colors=colors
    )
    lang = "ansi" if colors else ""
    result = f"```{lang}\n{table}\n```"
    if footer:
        result += f"\n{footer}"
    return result


def _paginate(
    spec: TableSpec,
    all_rows: list[list[str]],
    *,
    show_all: bool,
    command_hint: str,
    max_with_footer: int,
    max_per_embed: int,
) -> tuple[list[str], bool]:
    """Lay rows out as one truncated embed or several full pages.

    Args:
        spec: bundled table layout specification
        all_rows: all data rows
        show_all: paginate across embeds instead of truncating
        command_hint: command shown in truncation footer
        max_with_footer: max rows that fit with a footer line
        max_per_embed: max rows per page when paginating

    Returns:
        tuple of (list of embed descriptions, was_truncated)
    """
    if show_all:
        pages = [
            format_table_for_embed(spec, all_rows[start : start + max_per_embed])
            for start in range(0, len(all_rows), max_per_embed)
        ]
        return pages, False

    truncated = len(all_rows) > max_with_footer
    remaining = len(all_rows) - max_with_footer

    footer = None
    if truncated:
        noun = "item" if remaining == 1 else "items"
        footer = f"... and {remaining} more {noun}. use {command_hint} to see everything"

    return [format_table_for_embed(spec, all_rows[:max_with_footer], footer)], truncated


def _materials_table_spec() -> TableSpec:
    return TableSpec(
        headers=["Material", "Need", "For"],
        alignments=["l", "r", "r"],
        max_widths=[COL_ITEM_WIDTH, COL_NEED_WIDTH, COL_FOR_WIDTH],
        cell_colors=[ANSI_BOLD_BLUE, ANSI_RED, None],
    )


def _source_table_spec() -> TableSpec:
    return TableSpec(
        headers=["Item", "Score", "Yields"],
        alignments=["l", "r", "l"],
        max_widths=[COL_ITEM_WIDTH, COL_SCORE_WIDTH, COL_YIELDS_WIDTH],
        cell_colors=[ANSI_BOLD_BLUE, ANSI_GREEN, None],
    )


def material_names(materials: Sequence[MaterialRequirement]) -> dict[str, str]:
    """Map material ids to display names for yield columns."""
    return {m.item.id: m.item.name for m in materials}


def format_materials(
    materials: Sequence[MaterialRequirement],
    *,
    show_all: bool = False,
    command_hint: str = "%arcmats all",
) -> tuple[list[str], bool]:
    """Format material requirements into embed descriptions.

    columns: Material | Need (total quantity) | For (number of bookmarks)

    Args:
        materials: requirements, already sorted by quantity
        show_all: if True, paginate across multiple embeds.
                  if False, single embed with truncation footer.
        command_hint: command shown in truncation footer

    Returns:
        tuple of (list of embed descriptions, was_truncated)
    """
    if not materials:
        return [EMPTY_MESSAGE], False

    rows = [
        [m.item.name, f"{m.total_quantity:,}", str(len(m.required_by))]
        for m in materials
    ]
    return _paginate(
        _materials_table_spec(),
        rows,
        show_all=show_all,
        command_hint=command_hint,
        max_with_footer=MAT_MAX_ROWS_WITH_FOOTER,
        max_per_embed=MAT_MAX_ROWS_PER_EMBED,
    )


def format_sources(
    sources: Sequence[SalvagingSource],
    names: Mapping[str, str],
    *,
    recycle: bool,
    show_all: bool = False,
    command_hint: str = "%arcmats all",
) -> tuple[list[str], bool]:
    """Format salvage or recycle sources into embed descriptions.

    columns: Item (tier group base name) | Score | Yields. the score and
    yields shown are the recycle ones when recycle is set, salvage otherwise.

    Args:
        sources: sources from one bucket, already sorted
        names: material_id -> display name
        recycle: show recycle score/yields instead of salvage
        show_all: if True, paginate across multiple embeds.
                  if False, single embed with truncation footer.
        command_hint: command shown in truncation footer

    Returns:
        tuple of (list of embed descriptions, was_truncated)
    """
    if not sources:
        return [EMPTY_MESSAGE], False

    rows = []
    for source in sources:
        if recycle:
            score, yields = source.recycle_score, source.recycle_yields
        else:
            score, yields = source.salvage_score, source.salvage_yields
        rows.append(
            [source.base_name, _format_score(score), _format_yields(yields, names)]
        )

    return _paginate(
        _source_table_spec(),
        rows,
        show_all=show_all,
        command_hint=command_hint,
        max_with_footer=SOURCE_MAX_ROWS_WITH_FOOTER,
        max_per_embed=SOURCE_MAX_ROWS_PER_EMBED,
    )
