"""Plain-text rendering of project lists, group lists and group trees."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Sequence
from typing import TextIO

from glids.models import Group, Project

TREE_BRANCH = "  ├"
TREE_CORNER = "  └"
TREE_VERTICAL = "  │"
TREE_HORIZONTAL = "──❯"
TREE_SPACE = " "

_PADDING = 2


def format_columns(rows: Iterable[Sequence[str]], min_width: int = 0) -> str:
    """Lay out rows as right-aligned columns.

    Every cell but the last in a row is padded on the left to its column's
    width: the widest cell plus two, or ``min_width`` if that is larger.
    The last cell of each row is written as it is. Each row ends in a newline.
    """
    materialised = [list(row) for row in rows]
    widths: dict[int, int] = {}
    for row in materialised:
        for column, cell in enumerate(row[:-1]):
            widths[column] = max(widths.get(column, min_width), len(cell) + _PADDING)

    lines = []
    for row in materialised:
        cells = [cell.rjust(widths[column]) for column, cell in enumerate(row[:-1])]
        if row:
            cells.append(row[-1])
        lines.append("".join(cells) + "\n")
    return "".join(lines)


def print_project_list(
    projects: Iterable[Project], name_width: int = 0, stream: TextIO | None = None
) -> None:
    """Print projects as 'path:' and ID, the path column at least ``name_width`` wide."""
    out = stream if stream is not None else sys.stdout
    rows = [(f"{project.path_with_namespace}:", f"{project.id:6d}") for project in projects]
    out.write(format_columns(rows, name_width))


def print_group_list(
    groups: Iterable[Group], name_width: int = 0, stream: TextIO | None = None
) -> None:
    """Print groups as 'path:' and ID, the path column at least ``name_width`` wide."""
    out = stream if stream is not None else sys.stdout
    rows = [(f"{group.full_path}:", f"{group.id:6d}") for group in groups]
    out.write(format_columns(rows, name_width))


def print_hierarchy(root_group: Group, stream: TextIO | None = None) -> None:
    """Print a group and everything below it as a tree, subgroups before projects."""
    out = stream if stream is not None else sys.stdout
    out.write(f"\n{root_group.full_path} (ID: {root_group.id})\n")
    _print_children(root_group, "", out)


def _print_children(group: Group, prefix: str, out: TextIO) -> None:
    children: list[Group | Project] = [*group.subgroups, *group.projects]
    last_index = len(children) - 1
    for index, child in enumerate(children):
        _print_node(child, prefix, index == last_index, out)


def _print_node(item: Group | Project, prefix: str, is_last: bool, out: TextIO) -> None:
    connector = TREE_CORNER if is_last else TREE_BRANCH
    lead = f"{prefix}{connector}{TREE_HORIZONTAL}{TREE_SPACE}"
    if isinstance(item, Group):
        out.write(f"{lead} {item.name} [G] [ID={item.id}]\n")
        if is_last:
            child_prefix = prefix + TREE_SPACE * 4
        else:
            child_prefix = prefix + TREE_VERTICAL + TREE_SPACE * 3
        _print_children(item, child_prefix, out)
    else:
        out.write(f"{lead} {item.name} [P] [ID={item.id}]\n")