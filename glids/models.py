"""Data types for GitLab projects, groups and pagination details."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def _parse_int(value: Any) -> int | None:
    """Parse a decimal integer header value, returning None when it is malformed."""
    if value is None:
        return None
    text = str(value)
    if not _INT_PATTERN.fullmatch(text):
        return None
    return int(text)


@dataclass
class Project:
    """A GitLab project."""

    id: int = 0
    path_with_namespace: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Project:
        """Build a project from a decoded API object; missing fields take zero values."""
        return cls(
            id=int(data.get("id") or 0),
            path_with_namespace=str(data.get("path_with_namespace") or ""),
            name=str(data.get("name") or ""),
        )


@dataclass
class Group:
    """A GitLab group or subgroup, with children filled in separately."""

    id: int = 0
    parent_id: int | None = None
    full_path: str = ""
    name: str = ""
    subgroups: list[Group] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Group:
        """Build a group from a decoded API object; children are never read from it."""
        parent = data.get("parent_id")
        return cls(
            id=int(data.get("id") or 0),
            parent_id=None if parent is None else int(parent),
            full_path=str(data.get("full_path") or ""),
            name=str(data.get("name") or ""),
        )


@dataclass(frozen=True)
class PaginationInfo:
    """Pagination figures reported by the API in response headers."""

    total: int = 0
    per_page: int = 0
    total_pages: int = 0
    current_page: int = 0

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any]) -> PaginationInfo:
        """Read the X-Total, X-Per-Page, X-Total-Pages and X-Page headers.

        Header names are matched case-insensitively; absent or malformed
        values are reported as 0.
        """
        lowered = {str(key).lower(): value for key, value in headers.items()}

        def read(name: str) -> int:
            parsed = _parse_int(lowered.get(name.lower()))
            return 0 if parsed is None else parsed

        return cls(
            total=read("X-Total"),
            per_page=read("X-Per-Page"),
            total_pages=read("X-Total-Pages"),
            current_page=read("X-Page"),
        )