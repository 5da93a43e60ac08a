"""GitLab REST API client for listing projects, groups and group trees."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timedelta
from typing import Any, Protocol, TypeVar

import requests

from glids.confirm import default_confirm
from glids.models import Group, PaginationInfo, Project

LARGE_FETCH_THRESHOLD = 50
"""Item counts above this ask for confirmation before fetching."""

PAGE_SIZE = 100
ACTIVITY_WINDOW = timedelta(days=30)
_PAUSE_SETTLE_SECONDS = 0.05

_T = TypeVar("_T")


class GitLabError(Exception):
    """Raised when talking to the GitLab API fails."""


class OperationCancelledError(GitLabError):
    """Raised when the user declines a large fetch."""

    def __init__(self, message: str = "operation cancelled by user") -> None:
        super().__init__(message)


class _StatusControl(Protocol):
    def pause(self) -> None: ...

    def resume(self) -> None: ...


def _chained(message: str, cause: BaseException) -> GitLabError:
    error = GitLabError(message)
    error.__cause__ = cause
    return error


def _activity_cutoff() -> str:
    """The moment thirty days ago, as an RFC 3339 timestamp in local time."""
    return (datetime.now().astimezone() - ACTIVITY_WINDOW).isoformat(timespec="seconds")


class GitLabClient:
    """Fetches projects and groups from a GitLab server's v4 API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        logger: logging.Logger | None = None,
        status: _StatusControl | None = None,
        confirm: Callable[[str], bool] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.status = status
        self.confirm = confirm if confirm is not None else default_confirm
        self.session = session if session is not None else requests.Session()

    # -- transport -------------------------------------------------------

    def _get(self, path: str, params: Mapping[str, Any]) -> tuple[list[Any], PaginationInfo]:
        """GET an API path and return the decoded JSON array with pagination details."""
        url = f"{self.base_url}{path}"
        self.logger.debug("Making API request to: %s %s", url, dict(params))
        try:
            response = self.session.get(
                url, params=dict(params), headers={"Authorization": f"Bearer {self.token}"}
            )
        except requests.RequestException as exc:
            raise _chained(f"error making API request: {exc}", exc) from exc

        pagination = PaginationInfo.from_headers(response.headers)
        body = response.text

        if response.status_code != 200:
            self.logger.debug(
                "API request failed with status %d: %s", response.status_code, body
            )
            raise GitLabError(f"API request failed with status {response.status_code}: {body}")

        try:
            data = response.json()
        except ValueError as exc:
            self.logger.debug("Error parsing JSON response: %s, response body: %s", exc, body)
            raise _chained(f"error parsing JSON response: {exc}", exc) from exc
        if not isinstance(data, list):
            raise GitLabError("error parsing JSON response: expected a JSON array")
        return data, pagination

    def _fetch_all(
        self,
        path: str,
        make_params: Callable[[int], dict[str, Any]],
        build: Callable[[Mapping[str, Any]], _T],
        description: str,
    ) -> list[_T]:
        """Follow pages of ``path`` until one comes back empty."""
        results: list[_T] = []
        for page in self._pages():
            raw, _ = self._get(path, make_params(page))
            self.logger.debug("Received %d %s for page %d", len(raw), description, page)
            if not raw:
                break
            try:
                results.extend(build(item) for item in raw)
            except (TypeError, ValueError, AttributeError) as exc:
                raise _chained(f"error parsing JSON response: {exc}", exc) from exc
        return results

    @staticmethod
    def _pages() -> Iterator[int]:
        page = 1
        while True:
            yield page
            page += 1

    # -- confirmation ----------------------------------------------------

    def _confirm_large_fetch(self, resource_description: str, total_count: int) -> bool:
        """Return True if the fetch may go ahead, asking the user above the threshold."""
        if total_count <= LARGE_FETCH_THRESHOLD:
            return True

        paused = False
        if self.status is not None:
            self.logger.debug("Signalling status pause")
            self.status.pause()
            paused = True
            time.sleep(_PAUSE_SETTLE_SECONDS)

        self.logger.debug("Large number of %s detected: %d", resource_description, total_count)
        prompt = f"This operation will fetch {total_count} {resource_description}. Continue?"
        if self.confirm(prompt):
            self.logger.debug("User confirmed fetching %d %s", total_count, resource_description)
            if paused and self.status is not None:
                self.logger.debug("Signalling status resume")
                self.status.resume()
            return True

        self.logger.debug(
            "User cancelled operation due to large fetch size (%d %s)",
            total_count,
            resource_description,
        )
        return False

    # -- public API ------------------------------------------------------

    def check_resource_count(
        self, resource_type: str, all_items: bool = False, search_term: str = ""
    ) -> int:
        """Fetch one item of 'groups' or 'projects' and return the reported total."""
        params: dict[str, Any]
        if resource_type == "groups":
            path = "/api/v4/groups"
            params = {"per_page": 1, "page": 1, "all_available": "true"}
            if search_term:
                params["search"] = search_term
        elif resource_type == "projects":
            path = "/api/v4/projects"
            params = {"per_page": 1, "page": 1}
        else:
            raise ValueError(f"unknown resource type: {resource_type}")

        if not all_items:
            params["last_activity_after"] = _activity_cutoff()

        _, pagination = self._get(path, params)
        return pagination.total

    def get_projects(self, search_term: str = "", all_projects: bool = False) -> list[Project]:
        """Fetch projects, recently active ones unless ``all_projects``, filtered by path."""
        if all_projects:
            try:
                total = self.check_resource_count("projects", all_projects, search_term)
            except GitLabError as exc:
                self.logger.warning(
                    "Could not determine project count: %s. Proceeding without confirmation.",
                    exc,
                )
            else:
                if not self._confirm_large_fetch("projects", total):
                    raise OperationCancelledError()

        def params(page: int) -> dict[str, Any]:
            query: dict[str, Any] = {
                "per_page": PAGE_SIZE,
                "order_by": "last_activity_at",
                "sort": "desc",
                "page": page,
            }
            if not all_projects:
                query["last_activity_after"] = _activity_cutoff()
            return query

        projects = self._fetch_all("/api/v4/projects", params, Project.from_dict, "projects")

        if search_term:
            needle = search_term.lower()
            projects = [p for p in projects if needle in p.path_with_namespace.lower()]
            self.logger.debug(
                "Filtered down to %d projects matching search term: %s",
                len(projects),
                search_term,
            )
        return projects

    def get_groups(self, search_term: str = "", all_groups: bool = False) -> list[Group]:
        """Fetch groups, using the API search and falling back to filtering by path."""
        api_search = bool(search_term)

        if all_groups:
            try:
                total = self.check_resource_count("groups", all_groups, search_term)
            except GitLabError as exc:
                self.logger.warning(
                    "Could not determine group count: %s. Proceeding without confirmation.",
                    exc,
                )
            else:
                description = f"groups matching '{search_term}'" if search_term else "groups"
                if not self._confirm_large_fetch(description, total):
                    raise OperationCancelledError()

        def params(page: int) -> dict[str, Any]:
            query: dict[str, Any] = {
                "per_page": PAGE_SIZE,
                "page": page,
                "all_available": "true",
            }
            if not all_groups:
                query["last_activity_after"] = _activity_cutoff()
            if api_search:
                query["search"] = search_term
            return query

        groups = self._fetch_all("/api/v4/groups", params, Group.from_dict, "groups")

        if api_search and not groups:
            self.logger.debug(
                "No groups found with API search for '%s', trying manual filtering", search_term
            )
            try:
                unfiltered = self.get_groups("", all_groups)
            except OperationCancelledError:
                raise
            except GitLabError as exc:
                raise _chained(
                    f"error fetching groups for manual filtering: {exc}", exc
                ) from exc
            needle = search_term.lower()
            groups = [g for g in unfiltered if needle in g.full_path.lower()]
            self.logger.debug(
                "Manually filtered to %d groups containing '%s'", len(groups), search_term
            )
        return groups

    def _get_group_children(
        self,
        group_id: int,
        kind: str,
        all_items: bool,
        build: Callable[[Mapping[str, Any]], _T],
    ) -> list[_T]:
        """Fetch a group's direct subgroups or projects, confirming large fetches."""
        path = f"/api/v4/groups/{group_id}/{kind}"
        extra: dict[str, Any] = {"include_subgroups": "false"} if kind == "projects" else {}
        cutoff = _activity_cutoff()

        count_params: dict[str, Any] = {"per_page": 1, "page": 1, **extra}
        if not all_items:
            count_params["last_activity_after"] = cutoff
        try:
            _, pagination = self._get(path, count_params)
        except GitLabError as exc:
            self.logger.warning(
                "Could not determine %s count for group %d: %s. Proceeding without confirmation.",
                kind.rstrip("s"),
                group_id,
                exc,
            )
        else:
            if all_items and not self._confirm_large_fetch(
                f"{kind} for group {group_id}", pagination.total
            ):
                raise OperationCancelledError()

        def params(page: int) -> dict[str, Any]:
            query: dict[str, Any] = {"per_page": PAGE_SIZE, "page": page, **extra}
            if not all_items:
                query["last_activity_after"] = cutoff
            return query

        try:
            return self._fetch_all(path, params, build, f"{kind} for group ID {group_id}")
        except GitLabError as exc:
            raise _chained(f"error fetching {kind} for group {group_id}: {exc}", exc) from exc

    def populate_group_hierarchy(self, group: Group, all_items: bool = False) -> None:
        """Fill ``group`` in place with its projects and, recursively, its subgroups.

        Children are sorted by name, case-insensitively. Failures other than
        cancellation do not stop the walk: whatever could be fetched is kept,
        and the first failure is raised as a GitLabError once the walk ends.
        Cancellation is raised at once.
        """
        self.logger.debug("Populating hierarchy for group: %s (ID: %d)", group.full_path, group.id)
        first_error: GitLabError | None = None

        try:
            projects = self._get_group_children(group.id, "projects", all_items, Project.from_dict)
        except OperationCancelledError:
            raise
        except GitLabError as exc:
            self.logger.debug("Error getting projects for group %d: %s", group.id, exc)
            first_error = _chained(f"failed getting projects for group {group.id}: {exc}", exc)
        else:
            group.projects = projects
            self.logger.debug("Found %d projects for group %d", len(projects), group.id)

        try:
            subgroups = self._get_group_children(group.id, "subgroups", all_items, Group.from_dict)
        except OperationCancelledError:
            raise
        except GitLabError as exc:
            self.logger.debug("Error getting subgroups for group %d: %s", group.id, exc)
            if first_error is None:
                first_error = _chained(
                    f"failed getting subgroups for group {group.id}: {exc}", exc
                )
            raise first_error from first_error.__cause__
        self.logger.debug("Found %d direct subgroups for group %d", len(subgroups), group.id)

        for subgroup in subgroups:
            try:
                self.populate_group_hierarchy(subgroup, all_items)
            except OperationCancelledError:
                raise
            except GitLabError as exc:
                self.logger.debug(
                    "Error populating hierarchy for subgroup %d (%s): %s",
                    subgroup.id,
                    subgroup.name,
                    exc,
                )
                if first_error is None:
                    first_error = _chained(
                        f"failed to populate subgroup {subgroup.name}: {exc}", exc
                    )

        group.subgroups = sorted(subgroups, key=lambda g: g.name.lower())
        group.projects = sorted(group.projects, key=lambda p: p.name.lower())

        if first_error is not None:
            raise first_error from first_error.__cause__