"""Command-line entry point: list GitLab projects, groups or group trees."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from typing import TextIO

from glids.client import GitLabClient, GitLabError, OperationCancelledError
from glids.display import (
    print_group_list,
    print_hierarchy,
    print_project_list,
)
from glids.models import Group, Project
from glids.status import CLEAR_LINE, StatusIndicator

EXECUTABLE_NAME = "glids"
VERSION = "devel"
COMMIT_SHA = "none"
COMMIT_DATE = "unknown"

_DEFAULT_TERMINAL_WIDTH = 80

_log = logging.getLogger(__name__)

StopStatus = Callable[[], None]


def _is_terminal(stream: object) -> bool:
    try:
        return bool(stream.isatty())  # type: ignore[attr-defined]
    except (AttributeError, ValueError, OSError):
        return False


def _noop() -> None:
    """Do nothing; stands in when there is no status indicator to stop."""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; options accept one or two leading dashes."""
    parser = argparse.ArgumentParser(
        prog=EXECUTABLE_NAME,
        description="List GitLab projects and groups with their IDs.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-search", "--search", default="", help="Search term to filter projects or groups"
    )
    parser.add_argument(
        "-all",
        "--all",
        dest="all_items",
        action="store_true",
        help="List all projects/groups regardless of activity date",
    )
    parser.add_argument(
        "-groups",
        "--groups",
        action="store_true",
        help="Show groups and subgroups instead of projects",
    )
    parser.add_argument(
        "-hierarchy",
        "--hierarchy",
        action="store_true",
        help="Show groups, subgroups, and projects in hierarchical format",
    )
    parser.add_argument(
        "-both", "--both", action="store_true", help="Show both groups and projects"
    )
    parser.add_argument(
        "-host",
        "--host",
        default="",
        help="GitLab server host (e.g., gitlab.example.com). Overrides GITLAB_HOST env var.",
    )
    parser.add_argument("-debug", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-nohttps", "--nohttps", dest="no_https", action="store_true", help="Turn off SSL/TLS"
    )
    parser.add_argument("-version", "--version", action="store_true", help="Show version")
    parser.add_argument("terms", nargs="*", help="Search term (overrides --search)")
    return parser


def resolve_base_url(
    host: str, no_https: bool = False, env: Mapping[str, str] | None = None
) -> str:
    """Return the server's base URL, plain HTTP if asked for or GLIDS_NOHTTPS is 'true'."""
    environment = env if env is not None else os.environ
    if no_https or environment.get("GLIDS_NOHTTPS") == "true":
        return f"http://{host}"
    return f"https://{host}"


def _report_failure(
    exc: GitLabError, cancel_message: str, error_label: str, stdout: TextIO
) -> int:
    if isinstance(exc, OperationCancelledError):
        print(f"\n{cancel_message}", file=stdout)
        return 0
    print(f"\n{error_label}: {exc}", file=sys.stderr)
    return 1


def _by_group_path(group: Group) -> str:
    return group.full_path.lower()


def _by_project_path(project: Project) -> str:
    return project.path_with_namespace.lower()


def run_projects_mode(
    client: GitLabClient,
    search_term: str = "",
    all_items: bool = False,
    stop_status: StopStatus = _noop,
    stdout: TextIO | None = None,
) -> int:
    """List projects sorted by path; return the exit status."""
    out = stdout if stdout is not None else sys.stdout
    try:
        _log.debug("Running in projects mode, search term: '%s'", search_term)
        try:
            projects = client.get_projects(search_term, all_items)
        except GitLabError as exc:
            stop_status()
            return _report_failure(
                exc, "Operation cancelled.", "Error getting projects", out
            )
        stop_status()
        _log.debug("Found %d projects", len(projects))

        if not projects:
            print("\nNo projects found matching search term:", search_term, file=out)
            return 0

        print_project_list(sorted(projects, key=_by_project_path), 0, out)
        return 0
    finally:
        stop_status()


def run_groups_mode(
    client: GitLabClient,
    search_term: str = "",
    all_items: bool = False,
    stop_status: StopStatus = _noop,
    stdout: TextIO | None = None,
) -> int:
    """List groups sorted by path; return the exit status."""
    out = stdout if stdout is not None else sys.stdout
    try:
        _log.debug("Running in groups mode, search term: '%s'", search_term)
        try:
            groups = client.get_groups(search_term, all_items)
        except GitLabError as exc:
            stop_status()
            return _report_failure(exc, "Operation cancelled.", "Error getting groups", out)
        stop_status()
        _log.debug("Found %d groups", len(groups))

        if not groups:
            print("\nNo groups found matching search term:", search_term, file=out)
            return 0

        print_group_list(sorted(groups, key=_by_group_path), 0, out)
        return 0
    finally:
        stop_status()


def run_both_mode(
    client: GitLabClient,
    search_term: str = "",
    all_items: bool = False,
    stop_status: StopStatus = _noop,
    stdout: TextIO | None = None,
) -> int:
    """List groups, then projects, with their name columns lined up."""
    out = stdout if stdout is not None else sys.stdout
    try:
        _log.debug("Running in both mode, search term: '%s'", search_term)

        _log.debug("Fetching groups for both mode...")
        try:
            groups = client.get_groups(search_term, all_items)
        except GitLabError as exc:
            stop_status()
            return _report_failure(
                exc, "Operation cancelled while fetching groups.", "Error getting groups", out
            )
        _log.debug("Found %d groups", len(groups))

        _log.debug("Fetching projects for both mode...")
        try:
            projects = client.get_projects(search_term, all_items)
        except GitLabError as exc:
            stop_status()
            return _report_failure(
                exc,
                "Operation cancelled while fetching projects.",
                "Error getting projects",
                out,
            )
        _log.debug("Found %d projects", len(projects))

        stop_status()

        if not groups and not projects:
            print(
                "\nNo groups or projects found matching search term:", search_term, file=out
            )
            return 0

        max_length = 0
        padded_resource = ""
        for group in groups:
            length = len(group.full_path) + 1
            if length > max_length:
                max_length = length
                padded_resource = "groups"
        for project in projects:
            length = len(project.path_with_namespace) + 1
            if length > max_length:
                max_length = length
                padded_resource = "projects"

        _log.debug("maxNameDisplayLength set to: %d", max_length)
        _log.debug("padWhichResource set to: %s", padded_resource)

        if groups:
            print("\nGroups:", file=out)
            width = max_length if padded_resource == "groups" else max_length + 2
            print_group_list(sorted(groups, key=_by_group_path), width, out)
        else:
            print("\nNo groups found matching search term:", search_term, file=out)

        if projects:
            print("\nProjects:", file=out)
            width = max_length if padded_resource == "projects" else max_length + 2
            print_project_list(sorted(projects, key=_by_project_path), width, out)
        else:
            print("\nNo projects found matching search term:", search_term, file=out)
        return 0
    finally:
        stop_status()


def _terminal_width(stream: TextIO) -> int:
    try:
        return os.get_terminal_size(stream.fileno()).columns
    except (OSError, ValueError, AttributeError) as exc:
        _log.debug("Warning: Could not get terminal size: %s", exc)
        return _DEFAULT_TERMINAL_WIDTH


def _fit(line: str, width: int) -> str:
    max_len = width - 1
    if len(line) <= max_len:
        return line
    if max_len > 3:
        return line[: max_len - 3] + "..."
    return line[: max(max_len, 0)]


def run_hierarchy_mode(
    client: GitLabClient,
    search_term: str = "",
    all_items: bool = False,
    stop_status: StopStatus = _noop,
    stdout: TextIO | None = None,
) -> int:
    """Print each matching group as a tree of subgroups and projects."""
    out = stdout if stdout is not None else sys.stdout
    err = sys.stderr
    try:
        _log.debug("Running in hierarchy mode, search term: '%s'", search_term)
        try:
            matching = client.get_groups(search_term, all_items)
        except GitLabError as exc:
            stop_status()
            return _report_failure(
                exc, "Operation cancelled.", "Error getting initial groups", out
            )
        stop_status()
        _log.debug("Found %d initial matching groups", len(matching))

        if not matching:
            print("\nNo groups found matching search term:", search_term, file=out)
            return 0

        matching = sorted(matching, key=_by_group_path)
        print("Populating hierarchy for found groups...", file=out)

        is_terminal = _is_terminal(err)
        width = _terminal_width(err) if is_terminal else _DEFAULT_TERMINAL_WIDTH

        populated: list[Group] = []
        cancelled = False
        for number, group in enumerate(matching, start=1):
            status_line = f"[{number}/{len(matching)}] Populating: {group.full_path}..."
            if is_terminal:
                err.write(f"{CLEAR_LINE}{_fit(status_line, width)}")
                err.flush()
            else:
                print(status_line, file=err)

            try:
                client.populate_group_hierarchy(group, all_items)
            except OperationCancelledError:
                if is_terminal:
                    err.write(CLEAR_LINE)
                print("\nOperation cancelled during hierarchy population.", file=out)
                cancelled = True
                break
            except GitLabError as exc:
                if is_terminal:
                    err.write(CLEAR_LINE)
                print(
                    f"\nWarning: Failed to fully populate group {group.full_path} "
                    f"(ID: {group.id}): {exc}",
                    file=err,
                )
            else:
                if is_terminal:
                    err.write(CLEAR_LINE)
            populated.append(group)

        if is_terminal:
            err.write(CLEAR_LINE)
            err.flush()

        for group in populated:
            print_hierarchy(group, out)
        if not populated and not cancelled:
            print("\nNo groups found or populated.", file=out)
        return 0
    finally:
        stop_status()


def _configure_logging(debug: bool) -> tuple[logging.Logger, logging.Handler, int, bool]:
    logger = logging.getLogger("glids")
    saved_level, saved_propagate = logger.level, logger.propagate
    handler: logging.Handler
    if debug:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "[DEBUG] %(asctime)s %(filename)s:%(lineno)d: %(message)s", "%H:%M:%S"
            )
        )
        logger.setLevel(logging.DEBUG)
    else:
        handler = logging.NullHandler()
        logger.setLevel(logging.CRITICAL + 1)
    logger.addHandler(handler)
    logger.propagate = False
    return logger, handler, saved_level, saved_propagate


def _status_message(args: argparse.Namespace) -> str:
    if args.hierarchy:
        return "Fetching initial groups for hierarchy..."
    if args.groups:
        return "Fetching groups..."
    if args.both:
        return "Fetching groups and projects..."
    return "Fetching projects..."


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command and return its exit status."""
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"{EXECUTABLE_NAME} {VERSION} ({COMMIT_SHA[:7]}) {COMMIT_DATE}")
        return 0

    logger, handler, saved_level, saved_propagate = _configure_logging(args.debug)
    try:
        logger.debug("Debug logging enabled")

        search_term = args.search
        if args.terms:
            search_term = args.terms[0]
            logger.debug("Using positional argument for search term: %s", search_term)

        host = args.host
        if not host:
            logger.debug("Host flag not provided, checking GITLAB_HOST environment variable.")
            host = os.environ.get("GITLAB_HOST", "")
            if host:
                logger.debug("Using GitLab Host from GITLAB_HOST env var: %s", host)
        else:
            logger.debug("Using GitLab Host from --host flag: %s", host)

        token = os.environ.get("GITLAB_TOKEN", "")
        if not token or not host:
            print(
                "Error: GITLAB_TOKEN environment variable must be set, and GitLab host must "
                "be provided via --host flag or GITLAB_HOST environment variable.",
                file=sys.stderr,
            )
            return 1

        base_url = resolve_base_url(host, args.no_https)
        message = _status_message(args)

        status: StatusIndicator | None = None
        stop_status: StopStatus = _noop
        if not args.debug and _is_terminal(sys.stderr):
            status = StatusIndicator(message, sys.stderr).start()
            stop_status = status.stop
        elif not args.debug:
            print(f"{message}...", file=sys.stderr)

        client = GitLabClient(base_url, token, logger=logger, status=status)

        if args.hierarchy:
            mode = run_hierarchy_mode
        elif args.groups:
            mode = run_groups_mode
        elif args.both:
            mode = run_both_mode
        else:
            mode = run_projects_mode
        return mode(client, search_term, args.all_items, stop_status, sys.stdout)
    finally:
        logger.removeHandler(handler)
        logger.setLevel(saved_level)
        logger.propagate = saved_propagate


if __name__ == "__main__":
    sys.exit(main())